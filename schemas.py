"""
Domain schemas for the IoT device access manager.

Each Pydantic model is one entity held by the in-memory Store
(users, devices, access rights, service reminders, payments, sessions),
plus the request/response bodies used by the API.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Annotated, Optional, List, Literal, Union
from datetime import date, datetime

Role = Literal[
    "super_admin",
    "billing_admin",
    "inventory_admin",
    "calibration_lab_admin",
    "qsafe_admin",
]
AdminType = Literal["full", "billing"]
FeatureArea = Literal["users", "devices", "access", "billing", "calibration", "service"]
DueStatus = Literal["Overdue", "DueSoon", "UpToDate"]

# Users
class User(BaseModel):
    id: int = Field(..., gt=0)
    name: str
    email: str = Field(..., description="Unique email")
    role: Literal["User", "Admin"] = "User"
    company: str = ""
    phone: str = ""
    notification_emails: str = Field("", description="Comma-separated addresses")
    admin_role: Optional[Role] = Field(None, description="Admin role for RBAC, None for plain users")
    password_hash: Optional[str] = Field(None, exclude=True)

    def notification_addresses(self) -> List[str]:
        return [e.strip() for e in self.notification_emails.split(",") if e.strip()]


class UserIn(BaseModel):
    name: str
    email: str
    role: Literal["User", "Admin"] = "User"
    company: str = ""
    phone: str = ""
    notification_emails: str = ""
    admin_role: Optional[Role] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[Literal["User", "Admin"]] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    notification_emails: Optional[str] = None
    admin_role: Optional[Role] = None

# Device configuration, one variant per device category
class SensorConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["sensor"] = "sensor"
    report_interval: int = Field(5, ge=1, le=60, description="Minutes between reports")
    threshold: int = Field(30, ge=0, le=100)


class LockConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["lock"] = "lock"
    auto_lock: bool = True
    pin_required: bool = True


class CameraConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["camera"] = "camera"
    resolution: Literal["720p", "1080p", "4K"] = "1080p"
    motion_detection: bool = True


DeviceConfig = Annotated[Union[SensorConfig, LockConfig, CameraConfig], Field(discriminator="kind")]

# Devices
class Billing(BaseModel):
    type: Literal["Rental", "Purchase"] = "Rental"
    payment_status: Literal["Current", "Overdue"] = "Current"
    last_payment: Optional[date] = None


class Device(BaseModel):
    id: str
    name: str
    location: str
    status: Literal["Online", "Offline"] = "Offline"
    device_type: Literal["Sales", "Rental"] = "Rental"
    installed_date: Optional[date] = None
    configuration: DeviceConfig = Field(default_factory=SensorConfig)
    billing: Optional[Billing] = None
    calibration_due_date: Optional[date] = None
    last_calibration_date: Optional[date] = None
    serial_number: Optional[str] = None
    model: Optional[str] = None


class DeviceIn(BaseModel):
    id: Optional[str] = None
    name: str
    location: str
    status: Literal["Online", "Offline"] = "Offline"
    device_type: Literal["Sales", "Rental"] = "Rental"
    installed_date: Optional[date] = None
    configuration: Optional[DeviceConfig] = None
    billing: Optional[Billing] = None
    calibration_due_date: Optional[date] = None
    last_calibration_date: Optional[date] = None
    serial_number: Optional[str] = None
    model: Optional[str] = None

# Access rights
class AccessRight(BaseModel):
    user_id: int
    device_id: str
    granted: bool = True
    assigned_date: Optional[date] = None
    due_date: Optional[date] = None
    device_type: Optional[Literal["Sales", "Rental"]] = None


class DeviceView(BaseModel):
    """A device as seen by one user holding a granted access right."""
    device: Device
    device_type: Literal["Sales", "Rental"]
    assigned_date: date
    due_date: date
    blocked: bool = False

# Service reminders
class ServiceReminder(BaseModel):
    id: str
    user_id: int
    service_type: str
    site_location: str
    last_service_date: date
    due_date: date
    reminder_enabled: bool = True
    reminder_months: int = Field(1, ge=1)


class ServiceReminderIn(BaseModel):
    id: Optional[str] = None
    user_id: int
    service_type: str
    site_location: str
    last_service_date: date
    due_date: Optional[date] = None
    reminder_enabled: bool = True
    reminder_months: int = Field(1, ge=1)


class ServiceReminderUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    service_type: Optional[str] = None
    site_location: Optional[str] = None
    last_service_date: Optional[date] = None
    reminder_enabled: Optional[bool] = None
    reminder_months: Optional[int] = Field(None, ge=1)

# Payments ledger (append-only)
class PaymentRecord(BaseModel):
    device_id: str
    paid_on: date
    amount: Optional[float] = None

# Auth sessions (token storage for simplicity)
class Session(BaseModel):
    token: str
    user_id: int
    created_at: datetime
    expires_at: datetime

# Permissions
class PermissionSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: bool = False
    devices: bool = False
    access: bool = False
    billing: bool = False
    calibration: bool = False
    service: bool = False


class LegacyFlags(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_full_access: bool = False
    is_billing_access: bool = False

# Bulk import
class SkippedRow(BaseModel):
    line: int
    reason: str


class ImportResult(BaseModel):
    added: List[Device] = []
    skipped: List[SkippedRow] = []

# Dashboard summaries
class BillingSummary(BaseModel):
    total: int
    online: int
    rental: int
    purchase: int
    overdue: int
    blocked: int


class CalibrationSummary(BaseModel):
    overdue: int
    due_soon: int
    up_to_date: int
    not_scheduled: int


class ReminderSummary(BaseModel):
    overdue: int
    due_soon: int
    up_to_date: int
    enabled: int
