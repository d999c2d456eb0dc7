import logging
from datetime import timedelta
from typing import Optional, List

from fastapi import FastAPI, HTTPException, Depends, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

import access
import billing
import permissions
import settings
from database import get_store
from errors import NotFoundError, ValidationError
from schemas import (
    AccessRight,
    BillingSummary,
    CalibrationSummary,
    Device,
    DeviceIn,
    DeviceView,
    ImportResult,
    PaymentRecord,
    PermissionSet,
    ReminderSummary,
    ServiceReminder,
    ServiceReminderIn,
    ServiceReminderUpdate,
    User,
    UserIn,
    UserUpdate,
)
from store import Store

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="IoT Device Access Manager API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse({"detail": str(exc)}, status_code=404)


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse({"detail": str(exc)}, status_code=400)

# ---------- Utilities ----------

def session_ttl() -> timedelta:
    return timedelta(days=settings.SESSION_TTL_DAYS)


def device_row(store: Store, device: Device) -> dict:
    holder = access.user_for_device(store, device.id)
    return {
        **device.model_dump(),
        "payment_status": billing.payment_status(device),
        "due_amount": billing.due_amount(device, settings.RENTAL_RATE_PER_MONTH),
        "blocked": store.is_blocked(device.id),
        "assigned_to": {"id": holder.id, "name": holder.name} if holder else None,
    }

# ---------- Auth (session-based, role looked up server-side) ----------

class LoginRequest(BaseModel):
    email: str
    password: str

class AuthUser(BaseModel):
    user: User
    role_label: str
    permissions: PermissionSet

class TokenResponse(BaseModel):
    token: str
    user: AuthUser


def auth_user(user: User) -> AuthUser:
    return AuthUser(
        user=user,
        role_label=permissions.format_role(user.admin_role),
        permissions=permissions.resolve_permissions(user.admin_role),
    )


@app.post("/auth/login", response_model=TokenResponse)
def login(body: LoginRequest, store: Store = Depends(get_store)):
    user = store.check_password(body.email, body.password)
    if not user:
        logger.warning(f"Failed login for {body.email}")
        raise HTTPException(401, "Invalid credentials")
    session = store.create_session(user.id, session_ttl())
    return TokenResponse(token=session.token, user=auth_user(user))


@app.post("/auth/bootstrap", response_model=TokenResponse)
def bootstrap_admin(store: Store = Depends(get_store)):
    """
    One-click initialization: creates a default super admin if none exists yet
    and returns an auth token for immediate access.
    Credentials come from BOOTSTRAP_ADMIN_EMAIL / BOOTSTRAP_ADMIN_PASSWORD.
    """
    if any(u.admin_role == "super_admin" for u in store.list_users()):
        raise HTTPException(400, "Already initialized")
    user = store.add_user(UserIn(
        name="Super Admin",
        email=settings.BOOTSTRAP_ADMIN_EMAIL,
        role="Admin",
        admin_role="super_admin",
        password=settings.BOOTSTRAP_ADMIN_PASSWORD,
        confirm_password=settings.BOOTSTRAP_ADMIN_PASSWORD,
    ))
    session = store.create_session(user.id, session_ttl())
    logger.info(f"Bootstrapped super admin {user.email}")
    return TokenResponse(token=session.token, user=auth_user(user))


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(401, "Missing token")
    return authorization.split()[1]


def get_current_user(authorization: Optional[str] = Header(None), store: Store = Depends(get_store)) -> User:
    user = store.resolve_session(bearer_token(authorization))
    if not user:
        raise HTTPException(401, "Invalid or expired token")
    return user


def require_permission(area: str):
    def dep(user: User = Depends(get_current_user)):
        if not permissions.has_permission(user.admin_role, area):
            logger.warning(f"User {user.id} ({user.admin_role}) denied access to {area}")
            raise HTTPException(403, f"No access to {area}")
        return user
    return dep


@app.get("/auth/me", response_model=AuthUser)
def me(user: User = Depends(get_current_user)):
    return auth_user(user)


@app.post("/auth/logout")
def logout(authorization: Optional[str] = Header(None), store: Store = Depends(get_store)):
    store.end_session(bearer_token(authorization))
    return {"ok": True}

# ---------- Users ----------

class RoleUpdate(BaseModel):
    admin_role: Optional[str] = None


def check_role_assignment(user: User):
    if not permissions.can_assign_roles(user.admin_role):
        logger.warning(f"User {user.id} ({user.admin_role}) tried to assign an admin role")
        raise HTTPException(403, "Only a super admin can assign admin roles")


@app.get("/users", response_model=List[User])
def list_users(q: str = "", user=Depends(require_permission("users")), store: Store = Depends(get_store)):
    return store.search_users(q)


@app.post("/users", response_model=User)
def add_user(body: UserIn, user=Depends(require_permission("users")), store: Store = Depends(get_store)):
    if body.admin_role is not None:
        check_role_assignment(user)
    return store.add_user(body)


@app.patch("/users/{user_id}", response_model=User)
def update_user(user_id: int, body: UserUpdate, user=Depends(require_permission("users")),
                store: Store = Depends(get_store)):
    if "admin_role" in body.model_fields_set:
        check_role_assignment(user)
    return store.update_user(user_id, body)


@app.put("/users/{user_id}/role", response_model=User)
def set_user_role(user_id: int, body: RoleUpdate, user=Depends(require_permission("users")),
                  store: Store = Depends(get_store)):
    check_role_assignment(user)
    return store.set_admin_role(user_id, body.admin_role)

# ---------- Devices ----------

class CsvImport(BaseModel):
    content: str


@app.get("/devices", response_model=List[Device])
def list_devices(q: str = "", user=Depends(require_permission("devices")), store: Store = Depends(get_store)):
    return store.search_devices(q)


@app.post("/devices", response_model=Device)
def add_device(body: DeviceIn, user=Depends(require_permission("devices")), store: Store = Depends(get_store)):
    return store.add_device(body)


@app.patch("/devices/{device_id}/configuration", response_model=Device)
def update_device_config(device_id: str, body: dict, user=Depends(require_permission("devices")),
                         store: Store = Depends(get_store)):
    return store.update_device_config(device_id, body)


@app.post("/devices/import", response_model=ImportResult)
def import_devices(body: CsvImport, user=Depends(require_permission("devices")), store: Store = Depends(get_store)):
    return store.import_devices(body.content)

# ---------- Access ----------

class ToggleAccessRequest(BaseModel):
    user_id: int
    device_id: str


@app.get("/access/unassigned", response_model=List[Device])
def unassigned(user=Depends(require_permission("access")), store: Store = Depends(get_store)):
    return access.unassigned_devices(store)


@app.get("/access/{user_id}", response_model=List[DeviceView])
def user_devices(user_id: int, user=Depends(require_permission("access")), store: Store = Depends(get_store)):
    return access.devices_for_user(store, user_id)


@app.post("/access/toggle", response_model=AccessRight)
def toggle_access(body: ToggleAccessRequest, user=Depends(require_permission("access")),
                  store: Store = Depends(get_store)):
    return store.toggle_access(body.user_id, body.device_id)

# ---------- Billing ----------

class PaymentIn(BaseModel):
    amount: Optional[float] = None


@app.get("/billing")
def list_billing(q: str = "", user=Depends(require_permission("billing")), store: Store = Depends(get_store)):
    return [device_row(store, d) for d in store.search_devices(q)]


@app.get("/billing/summary", response_model=BillingSummary)
def billing_summary(user=Depends(require_permission("billing")), store: Store = Depends(get_store)):
    return billing.billing_summary(store.list_devices(), store.blocked_ids())


@app.get("/billing/payments", response_model=List[PaymentRecord])
def list_payments(device_id: Optional[str] = None, user=Depends(require_permission("billing")),
                  store: Store = Depends(get_store)):
    return store.payments_for(device_id)


@app.post("/billing/{device_id}/block")
def toggle_block(device_id: str, user=Depends(require_permission("billing")), store: Store = Depends(get_store)):
    return {"device_id": device_id, "blocked": store.toggle_device_block(device_id)}


@app.post("/billing/{device_id}/payments", response_model=Device)
def record_payment(device_id: str, body: PaymentIn, user=Depends(require_permission("billing")),
                   store: Store = Depends(get_store)):
    return store.record_payment(device_id, body.amount)

# ---------- Calibration ----------

@app.get("/calibration")
def list_calibration(filters: List[str] = Query([]), q: str = "",
                     user=Depends(require_permission("calibration")), store: Store = Depends(get_store)):
    res = []
    for d in billing.filter_calibration(store.search_devices(q), filters):
        holder = access.user_for_device(store, d.id)
        res.append({
            **d.model_dump(),
            "calibration_status": billing.calibration_status(d),
            "company": holder.company if holder and holder.company else "N/A",
        })
    return res


@app.get("/calibration/summary", response_model=CalibrationSummary)
def calibration_summary(user=Depends(require_permission("calibration")), store: Store = Depends(get_store)):
    return billing.calibration_summary(store.list_devices())

# ---------- Service reminders ----------

@app.get("/service-reminders")
def list_reminders(filters: List[str] = Query([]), user=Depends(require_permission("service")),
                   store: Store = Depends(get_store)):
    res = []
    for r in billing.filter_reminders(store.list_reminders(), filters):
        owner = store.users.get(r.user_id)
        if owner is None:
            continue
        res.append({**r.model_dump(), "status": billing.service_reminder_status(r), "user_name": owner.name})
    return res


@app.get("/service-reminders/summary", response_model=ReminderSummary)
def reminders_summary(user=Depends(require_permission("service")), store: Store = Depends(get_store)):
    return billing.reminder_summary(store.list_reminders())


@app.post("/service-reminders", response_model=ServiceReminder)
def add_reminder(body: ServiceReminderIn, user=Depends(require_permission("service")),
                 store: Store = Depends(get_store)):
    return store.add_service_reminder(body)


@app.patch("/service-reminders/{reminder_id}", response_model=ServiceReminder)
def update_reminder(reminder_id: str, body: ServiceReminderUpdate, user=Depends(require_permission("service")),
                    store: Store = Depends(get_store)):
    return store.update_service_reminder(reminder_id, body)

# ---------- Root ----------

@app.get("/")
def read_root():
    return {"message": "IoT Device Access Manager API running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
