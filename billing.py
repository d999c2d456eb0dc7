"""
Billing, calibration and service-reminder calculations.

Everything here is a pure function of its arguments; ``today`` defaults
to the current date but can be pinned by callers.
"""
from datetime import date
from typing import Iterable, List, Optional

from dateutil.relativedelta import relativedelta

from errors import ValidationError
from schemas import (
    Billing,
    BillingSummary,
    CalibrationSummary,
    Device,
    DueStatus,
    ReminderSummary,
    ServiceReminder,
)

CALIBRATION_FILTERS = ("overdue", "due-soon", "sales", "rental")
REMINDER_FILTERS = ("overdue", "due-soon", "enabled", "disabled")


def add_months(d: date, months: int) -> date:
    return d + relativedelta(months=months)


def months_elapsed(start: date, end: date) -> int:
    """Calendar-month difference; the day of month is ignored."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def due_status(due: date, today: Optional[date] = None) -> DueStatus:
    today = today or date.today()
    if due < today:
        return "Overdue"
    if due < add_months(today, 1):
        return "DueSoon"
    return "UpToDate"

# ---------- Payments ----------

def due_amount(device: Device, rate_per_month: float, today: Optional[date] = None) -> float:
    if rate_per_month < 0:
        raise ValidationError("Rate per month cannot be negative")
    if device.device_type != "Rental" or device.installed_date is None:
        return 0.0
    today = today or date.today()
    months = months_elapsed(device.installed_date, today) + 1
    return round(max(months, 0) * rate_per_month, 2)


def payment_status(device: Device) -> str:
    if device.billing is None:
        return "N/A"
    return device.billing.payment_status


def record_payment(device: Device, today: Optional[date] = None) -> Device:
    today = today or date.today()
    if device.billing is None:
        billing = Billing(
            type="Rental" if device.device_type == "Rental" else "Purchase",
            payment_status="Current",
            last_payment=today,
        )
    else:
        billing = device.billing.model_copy(update={"last_payment": today, "payment_status": "Current"})
    return device.model_copy(update={"billing": billing})


def billing_summary(devices: Iterable[Device], blocked: Iterable[str] = ()) -> BillingSummary:
    devices = list(devices)
    blocked = set(blocked)
    return BillingSummary(
        total=len(devices),
        online=sum(1 for d in devices if d.status == "Online"),
        rental=sum(1 for d in devices if d.billing and d.billing.type == "Rental"),
        purchase=sum(1 for d in devices if d.billing and d.billing.type == "Purchase"),
        overdue=sum(1 for d in devices if payment_status(d) == "Overdue"),
        blocked=sum(1 for d in devices if d.id in blocked),
    )

# ---------- Calibration ----------

def calibration_status(device: Device, today: Optional[date] = None) -> Optional[DueStatus]:
    if device.calibration_due_date is None:
        return None
    return due_status(device.calibration_due_date, today)


def calibration_summary(devices: Iterable[Device], today: Optional[date] = None) -> CalibrationSummary:
    counts = {"Overdue": 0, "DueSoon": 0, "UpToDate": 0, None: 0}
    for device in devices:
        counts[calibration_status(device, today)] += 1
    return CalibrationSummary(
        overdue=counts["Overdue"],
        due_soon=counts["DueSoon"],
        up_to_date=counts["UpToDate"],
        not_scheduled=counts[None],
    )


def filter_calibration(devices: Iterable[Device], filters: Iterable[str] = (),
                       today: Optional[date] = None) -> List[Device]:
    """Keep devices matching every selected filter."""
    filters = _check_filters(filters, CALIBRATION_FILTERS)
    result = []
    for device in devices:
        status = calibration_status(device, today)
        if "overdue" in filters and status != "Overdue":
            continue
        if "due-soon" in filters and status != "DueSoon":
            continue
        if "sales" in filters and device.device_type != "Sales":
            continue
        if "rental" in filters and device.device_type != "Rental":
            continue
        result.append(device)
    return result

# ---------- Service reminders ----------

def service_reminder_status(reminder: ServiceReminder, today: Optional[date] = None) -> DueStatus:
    return due_status(reminder.due_date, today)


def update_reminder(reminder: ServiceReminder, months: int, enabled: bool) -> ServiceReminder:
    if months < 1:
        raise ValidationError("Reminder interval must be at least one month")
    return reminder.model_copy(update={
        "reminder_months": months,
        "reminder_enabled": enabled,
        "due_date": add_months(reminder.last_service_date, months),
    })


def reminder_summary(reminders: Iterable[ServiceReminder], today: Optional[date] = None) -> ReminderSummary:
    reminders = list(reminders)
    statuses = [service_reminder_status(r, today) for r in reminders]
    return ReminderSummary(
        overdue=statuses.count("Overdue"),
        due_soon=statuses.count("DueSoon"),
        up_to_date=statuses.count("UpToDate"),
        enabled=sum(1 for r in reminders if r.reminder_enabled),
    )


def filter_reminders(reminders: Iterable[ServiceReminder], filters: Iterable[str] = (),
                     today: Optional[date] = None) -> List[ServiceReminder]:
    filters = _check_filters(filters, REMINDER_FILTERS)
    result = []
    for reminder in reminders:
        status = service_reminder_status(reminder, today)
        if "overdue" in filters and status != "Overdue":
            continue
        if "due-soon" in filters and status != "DueSoon":
            continue
        if "enabled" in filters and not reminder.reminder_enabled:
            continue
        if "disabled" in filters and reminder.reminder_enabled:
            continue
        result.append(reminder)
    return result


def _check_filters(filters: Iterable[str], allowed) -> set:
    filters = {f.strip().lower() for f in filters if f and f.strip()}
    unknown = filters.difference(allowed)
    if unknown:
        raise ValidationError(f"Unknown filter(s): {', '.join(sorted(unknown))}")
    return filters
