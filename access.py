"""
Read-side projections over a Store's access rights.

Lookups here never raise for unknown ids: an unknown user simply has no
devices and an unknown device has no holder. Toggling access is a store
command (see ``Store.toggle_access``).

Each projection iterates the store's locked snapshots, never the live
maps, so it is safe next to a concurrent command.
"""
from datetime import date
from typing import List, Optional, Set

from billing import add_months
from schemas import Device, DeviceView, User
from store import Store


def has_access(store: Store, user_id: int, device_id: str) -> bool:
    right = store.access_rights.get((user_id, device_id))
    return right is not None and right.granted


def assigned_device_ids(store: Store) -> Set[str]:
    return {r.device_id for r in store.list_access_rights() if r.granted}


def unassigned_devices(store: Store) -> List[Device]:
    assigned = assigned_device_ids(store)
    return [d for d in store.list_devices() if d.id not in assigned]


def users_with_access(store: Store, device_id: str) -> List[User]:
    holders = []
    for r in store.list_access_rights():
        if r.device_id != device_id or not r.granted:
            continue
        user = store.users.get(r.user_id)
        if user is not None:
            holders.append(user)
    return holders


def user_for_device(store: Store, device_id: str) -> Optional[User]:
    """First user (in grant order) holding the device, or None when unassigned."""
    holders = users_with_access(store, device_id)
    return holders[0] if holders else None


def devices_for_user(store: Store, user_id: int, today: Optional[date] = None) -> List[DeviceView]:
    today = today or date.today()
    views = []
    for right in store.list_access_rights():
        if right.user_id != user_id or not right.granted:
            continue
        device = store.devices.get(right.device_id)
        if device is None:
            continue
        views.append(DeviceView(
            device=device,
            device_type=right.device_type or device.device_type,
            assigned_date=right.assigned_date or today,
            due_date=right.due_date or add_months(today, 1),
            blocked=store.is_blocked(device.id),
        ))
    return views
