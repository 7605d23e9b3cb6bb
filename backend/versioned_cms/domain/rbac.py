"""
Role-based access control.

Permissions are derived from a static role table; nothing here touches the
database. ``make_access_decision`` is the single place that turns an actor
into an allow/deny answer, and its checks run in a fixed order so the
denial reason is deterministic.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, Optional

from versioned_cms.errors import InsufficientPermissions, NotReady


class UserRole:
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    EDITOR = "editor"

    ALL = (SUPER_ADMIN, ADMIN, EDITOR)


class Permission:
    # Content
    CONTENT_READ = "content:read"
    CONTENT_CREATE = "content:create"
    CONTENT_UPDATE = "content:update"
    CONTENT_DELETE = "content:delete"
    CONTENT_PUBLISH = "content:publish"
    CONTENT_ROLLBACK = "content:rollback"

    # Admin management
    ADMIN_READ = "admin:read"
    ADMIN_CREATE = "admin:create"
    ADMIN_UPDATE = "admin:update"
    ADMIN_DELETE = "admin:delete"

    # Audit log
    AUDIT_READ = "audit:read"

    # Versions
    VERSION_READ = "version:read"
    VERSION_RESTORE = "version:restore"

    ALL = (
        CONTENT_READ,
        CONTENT_CREATE,
        CONTENT_UPDATE,
        CONTENT_DELETE,
        CONTENT_PUBLISH,
        CONTENT_ROLLBACK,
        ADMIN_READ,
        ADMIN_CREATE,
        ADMIN_UPDATE,
        ADMIN_DELETE,
        AUDIT_READ,
        VERSION_READ,
        VERSION_RESTORE,
    )


ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    UserRole.SUPER_ADMIN: frozenset(Permission.ALL),
    UserRole.ADMIN: frozenset({
        Permission.CONTENT_READ,
        Permission.CONTENT_CREATE,
        Permission.CONTENT_UPDATE,
        Permission.CONTENT_DELETE,
        Permission.CONTENT_PUBLISH,
        Permission.CONTENT_ROLLBACK,
        Permission.ADMIN_READ,
        Permission.AUDIT_READ,
        Permission.VERSION_READ,
        Permission.VERSION_RESTORE,
    }),
    UserRole.EDITOR: frozenset({
        Permission.CONTENT_READ,
        Permission.CONTENT_CREATE,
        Permission.CONTENT_UPDATE,
        Permission.VERSION_READ,
    }),
}

# Higher number = more privileges
ROLE_HIERARCHY: Dict[str, int] = {
    UserRole.EDITOR: 1,
    UserRole.ADMIN: 2,
    UserRole.SUPER_ADMIN: 3,
}

ROLE_DISPLAY_NAMES: Dict[str, str] = {
    UserRole.SUPER_ADMIN: "Super Admin",
    UserRole.ADMIN: "Admin",
    UserRole.EDITOR: "Editor",
}

CONTENT_ACTION_PERMISSIONS: Dict[str, str] = {
    "read": Permission.CONTENT_READ,
    "create": Permission.CONTENT_CREATE,
    "update": Permission.CONTENT_UPDATE,
    "delete": Permission.CONTENT_DELETE,
    "publish": Permission.CONTENT_PUBLISH,
    "rollback": Permission.CONTENT_ROLLBACK,
}


# -------------------------------------------------
# Permission checks
# -------------------------------------------------

def has_permission(role: Optional[str], permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(role, frozenset())


def has_all_permissions(role: Optional[str], permissions: Iterable[str]) -> bool:
    return all(has_permission(role, permission) for permission in permissions)


def has_any_permission(role: Optional[str], permissions: Iterable[str]) -> bool:
    return any(has_permission(role, permission) for permission in permissions)


def get_permissions_for_role(role: Optional[str]) -> FrozenSet[str]:
    return ROLE_PERMISSIONS.get(role, frozenset())


# -------------------------------------------------
# Role hierarchy
# -------------------------------------------------

def is_valid_role(role: Any) -> bool:
    return role in ROLE_HIERARCHY


def is_role_at_least(role: Optional[str], required_role: str) -> bool:
    if not is_valid_role(role) or not is_valid_role(required_role):
        return False
    return ROLE_HIERARCHY[role] >= ROLE_HIERARCHY[required_role]


def can_manage_role(manager_role: Optional[str], target_role: Optional[str]) -> bool:
    """
    Super admins manage every role, admins manage editors only,
    editors manage nobody.
    """
    if manager_role == UserRole.SUPER_ADMIN:
        return is_valid_role(target_role)
    if manager_role == UserRole.ADMIN:
        return target_role == UserRole.EDITOR
    return False


def get_role_display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(role, role)


# -------------------------------------------------
# Shortcuts
# -------------------------------------------------

def can_perform_content_action(role: Optional[str], action: str) -> bool:
    permission = CONTENT_ACTION_PERMISSIONS.get(action)
    return has_permission(role, permission) if permission else False


def can_manage_admins(role: Optional[str]) -> bool:
    return has_any_permission(
        role,
        (Permission.ADMIN_CREATE, Permission.ADMIN_UPDATE, Permission.ADMIN_DELETE),
    )


def can_view_audit_logs(role: Optional[str]) -> bool:
    return has_permission(role, Permission.AUDIT_READ)


def can_view_version_history(role: Optional[str]) -> bool:
    return has_permission(role, Permission.VERSION_READ)


def can_restore_versions(role: Optional[str]) -> bool:
    return has_permission(role, Permission.VERSION_RESTORE)


# -------------------------------------------------
# Access decision
# -------------------------------------------------

@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None
    required_permission: Optional[str] = None


def make_access_decision(user: Any, required_permission: str) -> AccessDecision:
    """
    Decide whether ``user`` may exercise ``required_permission``.

    Order of checks (first failure wins):
    1. user present
    2. account active
    3. role is a known role
    4. role grants the permission
    """
    if user is None:
        return AccessDecision(allowed=False, reason="User not authenticated")

    if not getattr(user, "is_active", False):
        return AccessDecision(allowed=False, reason="User account is deactivated")

    role = getattr(user, "role", None)
    if not is_valid_role(role):
        return AccessDecision(allowed=False, reason="Invalid user role")

    if not has_permission(role, required_permission):
        return AccessDecision(
            allowed=False,
            reason=f"Missing required permission: {required_permission}",
            required_permission=required_permission,
        )

    return AccessDecision(allowed=True)


def require_permission(user: Any, required_permission: str) -> None:
    """Raising form of ``make_access_decision``; a missing user is NOT_READY."""
    if user is None:
        raise NotReady("No authenticated user")

    decision = make_access_decision(user, required_permission)
    if not decision.allowed:
        raise InsufficientPermissions(
            f"Insufficient permissions: {decision.reason}",
            details={"required_permission": required_permission},
        )


def create_permission_guard(required_permissions: Iterable[str]) -> Callable[[Optional[str]], bool]:
    required = tuple(required_permissions)

    def guard(role: Optional[str]) -> bool:
        if not role:
            return False
        return has_all_permissions(role, required)

    return guard
