"""
In-memory entity store and the commands that mutate it.

A Store owns users, devices, access rights, service reminders, the
billing block list, the payment ledger and login sessions. Nothing is
shared between Store instances.

Every command validates its input before touching state, so a command
that raises leaves the store exactly as it was. Commands and the list
methods share one re-entrant lock, so readers get a consistent snapshot
while another thread mutates.
"""
import functools
import logging
import secrets
import threading
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

from passlib.hash import bcrypt
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaError

import billing
from device_import import parse_devices_csv
from errors import NotFoundError, ValidationError
from schemas import (
    AccessRight,
    Billing,
    Device,
    DeviceConfig,
    DeviceIn,
    ImportResult,
    PaymentRecord,
    SensorConfig,
    ServiceReminder,
    ServiceReminderIn,
    ServiceReminderUpdate,
    Session,
    SkippedRow,
    User,
    UserIn,
    UserUpdate,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

_config_adapter = TypeAdapter(DeviceConfig)


def synchronized(method):
    """Run a store method under the store's lock; reads and commands share it."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


def _parse(model, data, what: str):
    try:
        return model.model_validate(data)
    except SchemaError as e:
        raise ValidationError(f"Invalid {what}: {e.errors()[0]['msg']}") from e


def _next_id(prefix: str, taken, start: int) -> str:
    seq = start
    while f"{prefix}{seq:03d}" in taken:
        seq += 1
    return f"{prefix}{seq:03d}"


class Store:
    def __init__(self):
        self.users: Dict[int, User] = {}
        self.devices: Dict[str, Device] = {}
        self.access_rights: Dict[Tuple[int, str], AccessRight] = {}
        self.reminders: Dict[str, ServiceReminder] = {}
        self.blocked_devices: Set[str] = set()
        self.payments: List[PaymentRecord] = []
        self.sessions: Dict[str, Session] = {}
        self._lock = threading.RLock()

    # ---------- Lookups ----------

    def get_user(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_device(self, device_id: str) -> Device:
        device = self.devices.get(device_id)
        if device is None:
            raise NotFoundError("Device", device_id)
        return device

    def get_reminder(self, reminder_id: str) -> ServiceReminder:
        reminder = self.reminders.get(reminder_id)
        if reminder is None:
            raise NotFoundError("Service reminder", reminder_id)
        return reminder

    @synchronized
    def find_user_by_email(self, email: str) -> Optional[User]:
        email = email.strip().lower()
        for user in self.users.values():
            if user.email.lower() == email:
                return user
        return None

    @synchronized
    def list_users(self) -> List[User]:
        return list(self.users.values())

    @synchronized
    def list_devices(self) -> List[Device]:
        return list(self.devices.values())

    @synchronized
    def list_reminders(self) -> List[ServiceReminder]:
        return list(self.reminders.values())

    @synchronized
    def list_access_rights(self) -> List[AccessRight]:
        return list(self.access_rights.values())

    @synchronized
    def blocked_ids(self) -> Set[str]:
        return set(self.blocked_devices)

    def is_blocked(self, device_id: str) -> bool:
        return device_id in self.blocked_devices

    def search_users(self, term: str = "") -> List[User]:
        term = term.strip().lower()
        return [
            u for u in self.list_users()
            if term in u.name.lower() or term in u.email.lower() or term in u.company.lower()
        ]

    def search_devices(self, term: str = "") -> List[Device]:
        term = term.strip().lower()
        res = []
        for d in self.list_devices():
            fields = [d.name, d.location, d.id, d.model or "", d.serial_number or ""]
            if any(term in f.lower() for f in fields):
                res.append(d)
        return res

    # ---------- Users ----------

    @synchronized
    def add_user(self, data: Union[UserIn, Mapping[str, Any]]) -> User:
        data = _parse(UserIn, data, "user")
        if self.find_user_by_email(data.email):
            raise ValidationError("Email already registered")
        password_hash = None
        if data.password is not None:
            if data.password != data.confirm_password:
                raise ValidationError("Passwords do not match")
            if len(data.password) < MIN_PASSWORD_LENGTH:
                raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
            password_hash = bcrypt.hash(data.password)

        user = User(
            id=max(self.users, default=0) + 1,
            password_hash=password_hash,
            **data.model_dump(exclude={"password", "confirm_password"}),
        )
        self.users[user.id] = user
        logger.info(f"Added user {user.id} ({user.email})")
        return user

    @synchronized
    def update_user(self, user_id: int, patch: Union[UserUpdate, Mapping[str, Any]]) -> User:
        user = self.get_user(user_id)
        changes = _parse(UserUpdate, patch, "user update").model_dump(exclude_unset=True)
        # only admin_role may be cleared
        changes = {k: v for k, v in changes.items() if v is not None or k == "admin_role"}
        if "email" in changes:
            other = self.find_user_by_email(changes["email"])
            if other is not None and other.id != user_id:
                raise ValidationError("Email already registered")
        user = user.model_copy(update=changes)
        self.users[user_id] = user
        logger.info(f"Updated user {user_id}: {sorted(changes)}")
        return user

    @synchronized
    def set_admin_role(self, user_id: int, role: Optional[str]) -> User:
        user = self.get_user(user_id)
        admin_role = _parse(UserUpdate, {"admin_role": role}, "admin role").admin_role
        user = user.model_copy(update={"admin_role": admin_role})
        self.users[user_id] = user
        logger.info(f"User {user_id} admin role set to {admin_role}")
        return user

    def check_password(self, email: str, password: str) -> Optional[User]:
        user = self.find_user_by_email(email)
        if user is None or not user.password_hash:
            return None
        if not bcrypt.verify(password, user.password_hash):
            return None
        return user

    # ---------- Devices ----------

    @synchronized
    def add_device(self, data: Union[DeviceIn, Mapping[str, Any]], today: Optional[date] = None) -> Device:
        data = _parse(DeviceIn, data, "device")
        device_id = (data.id or "").strip() or _next_id("DEV", self.devices, len(self.devices) + 1)
        if device_id in self.devices:
            raise ValidationError(f"Device id already exists: {device_id}")
        fields = data.model_dump(exclude={"id", "configuration", "billing"})
        device = Device(
            id=device_id,
            configuration=data.configuration or SensorConfig(),
            billing=data.billing or Billing(
                type="Rental", payment_status="Current", last_payment=today or date.today()
            ),
            **fields,
        )
        self.devices[device_id] = device
        logger.info(f"Added device {device_id} ({device.name})")
        return device

    @synchronized
    def update_device_config(self, device_id: str, patch: Union[DeviceConfig, Mapping[str, Any]]) -> Device:
        device = self.get_device(device_id)
        current = device.configuration
        if isinstance(patch, BaseModel):
            patch = {**patch.model_dump(exclude_unset=True), "kind": patch.kind}
        if patch.get("kind", current.kind) != current.kind:
            raise ValidationError(f"Cannot change configuration kind of {device_id} from {current.kind}")
        try:
            configuration = _config_adapter.validate_python({**current.model_dump(), **patch})
        except SchemaError as e:
            err = e.errors()[0]
            field = ".".join(str(p) for p in err["loc"][1:]) or "configuration"
            raise ValidationError(f"Invalid {current.kind} configuration ({field}): {err['msg']}") from e
        device = device.model_copy(update={"configuration": configuration})
        self.devices[device_id] = device
        logger.info(f"Updated configuration of {device_id}: {sorted(patch)}")
        return device

    @synchronized
    def import_devices(self, text: str, today: Optional[date] = None) -> ImportResult:
        drafts, skipped = parse_devices_csv(text)
        accepted, seen = [], set()
        for lineno, draft in drafts:
            if draft.id in self.devices or draft.id in seen:
                skipped.append(SkippedRow(line=lineno, reason=f"duplicate device id {draft.id}"))
                logger.warning(f"Skipping CSV line {lineno}: device {draft.id} already exists")
                continue
            seen.add(draft.id)
            accepted.append(draft)
        if not accepted:
            raise ValidationError("No valid devices found in the CSV file")
        added = [self.add_device(draft, today=today) for draft in accepted]
        logger.info(f"Imported {len(added)} device(s), skipped {len(skipped)}")
        return ImportResult(added=added, skipped=skipped)

    # ---------- Access ----------

    @synchronized
    def toggle_access(self, user_id: int, device_id: str, today: Optional[date] = None) -> AccessRight:
        self.get_user(user_id)
        device = self.get_device(device_id)
        key = (user_id, device_id)
        right = self.access_rights.get(key)
        if right is not None:
            right = right.model_copy(update={"granted": not right.granted})
        else:
            today = today or date.today()
            right = AccessRight(
                user_id=user_id,
                device_id=device_id,
                granted=True,
                assigned_date=today,
                due_date=billing.add_months(today, 1),
                device_type=device.device_type,
            )
        self.access_rights[key] = right
        logger.info(f"Access for user {user_id} to {device_id} is now {'granted' if right.granted else 'revoked'}")
        return right

    @synchronized
    def grant_access(self, user_id: int, device_id: str, today: Optional[date] = None) -> AccessRight:
        right = self.access_rights.get((user_id, device_id))
        if right is not None and right.granted:
            return right
        return self.toggle_access(user_id, device_id, today=today)

    @synchronized
    def revoke_access(self, user_id: int, device_id: str) -> Optional[AccessRight]:
        right = self.access_rights.get((user_id, device_id))
        if right is None or not right.granted:
            return right
        return self.toggle_access(user_id, device_id)

    # ---------- Billing ----------

    @synchronized
    def toggle_device_block(self, device_id: str) -> bool:
        self.get_device(device_id)
        if device_id in self.blocked_devices:
            self.blocked_devices.discard(device_id)
            blocked = False
        else:
            self.blocked_devices.add(device_id)
            blocked = True
        logger.info(f"Device {device_id} {'blocked' if blocked else 'unblocked'}")
        return blocked

    @synchronized
    def record_payment(self, device_id: str, amount: Optional[float] = None,
                       today: Optional[date] = None) -> Device:
        if amount is not None and amount < 0:
            raise ValidationError("Payment amount cannot be negative")
        today = today or date.today()
        device = billing.record_payment(self.get_device(device_id), today)
        self.devices[device_id] = device
        self.payments.append(PaymentRecord(device_id=device_id, paid_on=today, amount=amount))
        logger.info(f"Recorded payment for {device_id} on {today}")
        return device

    @synchronized
    def payments_for(self, device_id: Optional[str] = None) -> List[PaymentRecord]:
        return [p for p in self.payments if device_id is None or p.device_id == device_id]

    # ---------- Service reminders ----------

    @synchronized
    def add_service_reminder(self, data: Union[ServiceReminderIn, Mapping[str, Any]]) -> ServiceReminder:
        data = _parse(ServiceReminderIn, data, "service reminder")
        self.get_user(data.user_id)
        reminder_id = (data.id or "").strip() or _next_id("SR", self.reminders, len(self.reminders) + 1)
        if reminder_id in self.reminders:
            raise ValidationError(f"Service reminder id already exists: {reminder_id}")
        reminder = ServiceReminder(
            id=reminder_id,
            due_date=data.due_date or billing.add_months(data.last_service_date, data.reminder_months),
            **data.model_dump(exclude={"id", "due_date"}),
        )
        self.reminders[reminder_id] = reminder
        logger.info(f"Added service reminder {reminder_id} for user {reminder.user_id}")
        return reminder

    @synchronized
    def update_service_reminder(self, reminder_id: str,
                                patch: Union[ServiceReminderUpdate, Mapping[str, Any]]) -> ServiceReminder:
        reminder = self.get_reminder(reminder_id)
        changes = _parse(ServiceReminderUpdate, patch, "service reminder update").model_dump(
            exclude_unset=True, exclude_none=True
        )
        reminder = reminder.model_copy(update=changes)
        if "reminder_months" in changes or "last_service_date" in changes:
            reminder = billing.update_reminder(reminder, reminder.reminder_months, reminder.reminder_enabled)
        self.reminders[reminder_id] = reminder
        logger.info(f"Updated service reminder {reminder_id}: {sorted(changes)}")
        return reminder

    @synchronized
    def set_reminder_schedule(self, reminder_id: str, months: int, enabled: bool) -> ServiceReminder:
        reminder = billing.update_reminder(self.get_reminder(reminder_id), months, enabled)
        self.reminders[reminder_id] = reminder
        logger.info(f"Service reminder {reminder_id} every {months} month(s), enabled={enabled}")
        return reminder

    # ---------- Sessions ----------

    @synchronized
    def create_session(self, user_id: int, ttl: timedelta, now: Optional[datetime] = None) -> Session:
        self.get_user(user_id)
        now = now or datetime.now(timezone.utc)
        session = Session(token=secrets.token_urlsafe(32), user_id=user_id,
                          created_at=now, expires_at=now + ttl)
        self.sessions[session.token] = session
        return session

    @synchronized
    def resolve_session(self, token: str, now: Optional[datetime] = None) -> Optional[User]:
        session = self.sessions.get(token)
        if session is None:
            return None
        now = now or datetime.now(timezone.utc)
        if session.expires_at < now:
            del self.sessions[token]
            return None
        return self.users.get(session.user_id)

    @synchronized
    def end_session(self, token: str) -> None:
        self.sessions.pop(token, None)
