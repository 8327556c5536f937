"""
Admin Permissions Registry
============================
Roles, their ranking and labels, and the rules for who may change whose role.
Route protection itself goes through modules.auth.deps.require_role().

Ranking (each includes all below):
  USER        → storefront only
  ADMIN       → admin panel: catalog, orders, users (read/update)
  SUPER_ADMIN → ADMIN + delete users + grant/revoke admin roles
"""

from modules.user.models import UserRole

ROLE_RANK = {
    UserRole.USER.value: 0,
    UserRole.ADMIN.value: 1,
    UserRole.SUPER_ADMIN.value: 2,
}

ROLE_LABELS = {
    UserRole.USER.value: "Customer",
    UserRole.ADMIN.value: "Admin",
    UserRole.SUPER_ADMIN.value: "Super Admin",
}

ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)


def can_assign_role(actor_role: str, target_current_role: str, new_role: str) -> bool:
    """
    ADMIN may move users between USER and ADMIN but never touch SUPER_ADMIN;
    SUPER_ADMIN may assign anything.
    """
    if actor_role == UserRole.SUPER_ADMIN.value:
        return True
    if actor_role != UserRole.ADMIN.value:
        return False
    ceiling = ROLE_RANK[UserRole.ADMIN.value]
    return ROLE_RANK.get(target_current_role, 0) <= ceiling and ROLE_RANK.get(new_role, 99) <= ceiling


def role_options() -> list:
    return [{"value": role, "label": ROLE_LABELS[role]} for role in ROLE_RANK]
