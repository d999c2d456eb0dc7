"""
Process-wide store for the API, optionally seeded with demo data.

There is no persistence: the store lives for the lifetime of the process.
Tests build their own stores with ``create_store``.
"""
from datetime import date

import settings
from schemas import AccessRight
from store import Store

SAMPLE_USERS = [
    {
        "name": "John Doe",
        "email": "john@example.com",
        "company": "Acme Corp",
        "phone": "555-123-4567",
        "notification_emails": "john@example.com,manager@acme.com",
    },
    {
        "name": "Jane Smith",
        "email": "jane@example.com",
        "company": "TechSolutions",
        "phone": "555-987-6543",
        "notification_emails": "jane@example.com",
    },
    {
        "name": "Robert Johnson",
        "email": "robert@example.com",
        "company": "Innovate Inc",
        "phone": "555-456-7890",
        "notification_emails": "robert@example.com,admin@innovate.com",
    },
]

SAMPLE_DEVICES = [
    {
        "id": "DEV001",
        "name": "Temperature Sensor",
        "location": "Living Room",
        "status": "Online",
        "device_type": "Rental",
        "installed_date": date(2024, 1, 10),
        "configuration": {"kind": "sensor", "report_interval": 5, "threshold": 30},
        "billing": {"type": "Rental", "payment_status": "Current", "last_payment": date(2023, 4, 15)},
        "calibration_due_date": date(2025, 1, 10),
        "last_calibration_date": date(2024, 1, 10),
        "model": "TS-200",
        "serial_number": "TS200-0001",
    },
    {
        "id": "DEV002",
        "name": "Smart Lock",
        "location": "Front Door",
        "status": "Online",
        "device_type": "Sales",
        "installed_date": date(2023, 3, 10),
        "configuration": {"kind": "lock", "auto_lock": True, "pin_required": True},
        "billing": {"type": "Purchase", "payment_status": "Current", "last_payment": date(2023, 3, 10)},
        "model": "SL-10",
        "serial_number": "SL10-0042",
    },
    {
        "id": "DEV003",
        "name": "Security Camera",
        "location": "Backyard",
        "status": "Offline",
        "device_type": "Rental",
        "installed_date": date(2023, 1, 20),
        "configuration": {"kind": "camera", "resolution": "1080p", "motion_detection": True},
        "billing": {"type": "Rental", "payment_status": "Overdue", "last_payment": date(2023, 1, 20)},
        "calibration_due_date": date(2027, 1, 20),
        "last_calibration_date": date(2026, 1, 20),
        "model": "SC-4K",
        "serial_number": "SC4K-1138",
    },
    {
        "id": "DEV004",
        "name": "Humidity Sensor",
        "location": "Bathroom",
        "status": "Online",
        "device_type": "Rental",
        "installed_date": date(2023, 4, 1),
        "configuration": {"kind": "sensor", "report_interval": 10, "threshold": 70},
        "billing": {"type": "Rental", "payment_status": "Current", "last_payment": date(2023, 4, 1)},
        "model": "HS-100",
        "serial_number": "HS100-0007",
    },
]

SAMPLE_ACCESS = [
    (1, "DEV001"),
    (1, "DEV002"),
    (2, "DEV002"),
    (2, "DEV003"),
    (3, "DEV001"),
    (3, "DEV004"),
]

SAMPLE_REMINDERS = [
    {
        "user_id": 1,
        "service_type": "HVAC Maintenance",
        "site_location": "Acme Corp HQ",
        "last_service_date": date(2026, 4, 15),
        "reminder_months": 6,
    },
    {
        "user_id": 2,
        "service_type": "Fire Alarm Inspection",
        "site_location": "TechSolutions Warehouse",
        "last_service_date": date(2025, 9, 1),
        "reminder_months": 12,
    },
    {
        "user_id": 3,
        "service_type": "Security System Check",
        "site_location": "Innovate Inc Lab",
        "last_service_date": date(2026, 7, 20),
        "reminder_months": 3,
        "reminder_enabled": False,
    },
]


def seed(store: Store) -> Store:
    for user in SAMPLE_USERS:
        store.add_user(user)
    for device in SAMPLE_DEVICES:
        store.add_device(device)
    # demo grants carry no assignment dates
    for user_id, device_id in SAMPLE_ACCESS:
        store.access_rights[(user_id, device_id)] = AccessRight(user_id=user_id, device_id=device_id)
    for reminder in SAMPLE_REMINDERS:
        store.add_service_reminder(reminder)
    return store


def create_store(seed_data: bool = True) -> Store:
    store = Store()
    return seed(store) if seed_data else store


db = create_store(settings.SEED_SAMPLE_DATA)


def get_store() -> Store:
    return db
