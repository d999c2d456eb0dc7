"""
Role -> feature-area permission resolution.

The table is static: each admin role maps to exactly one PermissionSet.
Anything not in the table (None, blank, unknown strings) resolves to the
empty set, so an unrecognised role can never see more than a plain user.
"""
from typing import Dict, Optional

from schemas import LegacyFlags, PermissionSet, Role

NO_PERMISSIONS = PermissionSet()

ROLE_PERMISSIONS: Dict[str, PermissionSet] = {
    "super_admin": PermissionSet(
        users=True, devices=True, access=True, billing=True, calibration=True, service=True
    ),
    "billing_admin": PermissionSet(billing=True),
    "inventory_admin": PermissionSet(users=True, devices=True, access=True),
    "calibration_lab_admin": PermissionSet(calibration=True),
    "qsafe_admin": PermissionSet(service=True),
}

ROLE_DESCRIPTIONS: Dict[str, str] = {
    "super_admin": "Full access to all features and functionalities.",
    "billing_admin": "Access to billing features only.",
    "inventory_admin": "Access to user management, device management, and access control.",
    "calibration_lab_admin": "Access to calibration reminder features only.",
    "qsafe_admin": "Access to service reminder features only.",
}

LEGACY_ROLES: Dict[str, Role] = {
    "full": "super_admin",
    "billing": "billing_admin",
}


def known_role(role: Optional[str]) -> Optional[str]:
    """The role itself when it is in the table, else None. Matching is exact."""
    return role if role in ROLE_PERMISSIONS else None


def resolve_permissions(role: Optional[str]) -> PermissionSet:
    key = known_role(role)
    if key is None:
        return NO_PERMISSIONS
    return ROLE_PERMISSIONS[key]


def has_permission(role: Optional[str], area: str) -> bool:
    return bool(getattr(resolve_permissions(role), area, False))


def can_assign_roles(role: Optional[str]) -> bool:
    """Only a super admin may grant or change admin roles."""
    return role == "super_admin"


def legacy_flags(admin_type: Optional[str]) -> LegacyFlags:
    """Two-flag model: "full" grants everything, "billing" grants billing only."""
    if admin_type == "full":
        return LegacyFlags(is_full_access=True, is_billing_access=True)
    if admin_type == "billing":
        return LegacyFlags(is_billing_access=True)
    return LegacyFlags()


def role_from_legacy(admin_type: Optional[str]) -> Optional[Role]:
    return LEGACY_ROLES.get(admin_type)


def format_role(role: Optional[str]) -> str:
    key = known_role(role)
    if key is None:
        return "No Admin Access"
    return " ".join(word.capitalize() for word in key.split("_"))


def describe_role(role: Optional[str]) -> str:
    key = known_role(role)
    if key is None:
        return "No admin access. User will be redirected to the user dashboard."
    return ROLE_DESCRIPTIONS[key]
