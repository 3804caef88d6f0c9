import hmac
import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional

from fastapi import Header

from checkin.config import config
from checkin.utils.error_utils import ForbiddenError, ServiceError, UnauthorizedError

logger = logging.getLogger(__name__)


class Role(str, Enum):
    MENTOR = "mentor"
    MANAGER = "manager"


class Permission(str, Enum):
    VIEW_DASHBOARD = "view_dashboard"
    MANAGE_TASKS = "manage_tasks"
    DECIDE_CORRECTIONS = "decide_corrections"
    MANAGE_ROSTER = "manage_roster"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.MENTOR: frozenset({
        Permission.VIEW_DASHBOARD,
        Permission.MANAGE_TASKS,
        Permission.DECIDE_CORRECTIONS,
    }),
    Role.MANAGER: frozenset({Permission.MANAGE_ROSTER}),
}


def configured_key(role: Role) -> Optional[str]:
    """Shared secret configured for a role (None when unset)."""
    if role is Role.MENTOR:
        return config.auth.mentor_key
    return config.auth.manager_key


def resolve_role(provided_key: str) -> Optional[Role]:
    """Return the role whose configured key matches, if any."""
    for role in Role:
        expected = configured_key(role)
        if expected and hmac.compare_digest(provided_key.encode(), expected.encode()):
            return role
    return None


def check_permission(provided_key: Optional[str], permission: Permission) -> Role:
    """
    Checks that an access key grants a permission.

    Args:
        provided_key: value of the access-key header (may be None)
        permission: permission the caller needs

    Returns:
        Role: role the key belongs to

    Raises:
        ServiceError: no key configured for any role holding the permission
        UnauthorizedError: no key supplied
        ForbiddenError: key does not grant the permission
    """
    holders = [role for role, perms in ROLE_PERMISSIONS.items() if permission in perms]
    if not any(configured_key(role) for role in holders):
        names = ", ".join(f"{role.value.upper()}_KEY" for role in holders)
        raise ServiceError(f"{names} not configured")

    if not provided_key:
        raise UnauthorizedError("Missing access key")

    role = resolve_role(provided_key)
    if role is None or permission not in ROLE_PERMISSIONS[role]:
        logger.warning(f"Access denied for permission {permission.value}")
        raise ForbiddenError("Access denied")
    return role


def require_permission(permission: Permission):
    """FastAPI dependency factory; the key travels in x-access-key or x-app-key."""

    async def dependency(
        x_access_key: Optional[str] = Header(None),
        x_app_key: Optional[str] = Header(None),
    ) -> Role:
        return check_permission(x_access_key or x_app_key, permission)

    return dependency
