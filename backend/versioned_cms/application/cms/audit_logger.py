# versioned_cms/application/cms/audit_logger.py
import json
from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from versioned_cms.models.audit_log import AuditLog
from versioned_cms.models.base import utc_now
from versioned_cms.store import DocumentStore
from versioned_cms.utils.pagination import CursorMeta, apply_cursor, normalize_ts, paginate_cursor

MAX_VALUE_SIZE = 10000
PREVIEW_LENGTH = 500
DEFAULT_PAGE_SIZE = 50


class AuditAction:
    # Auth
    LOGIN = "login"
    LOGOUT = "logout"
    LOGIN_FAILED = "login_failed"

    # Content
    CONTENT_CREATE = "content_create"
    CONTENT_UPDATE = "content_update"
    CONTENT_DELETE = "content_delete"
    CONTENT_PUBLISH = "content_publish"
    CONTENT_UNPUBLISH = "content_unpublish"
    CONTENT_ROLLBACK = "content_rollback"

    # Admin management
    ADMIN_CREATE = "admin_create"
    ADMIN_UPDATE = "admin_update"
    ADMIN_DELETE = "admin_delete"
    ADMIN_ROLE_CHANGE = "admin_role_change"

    # System
    SETTINGS_UPDATE = "settings_update"


ADMIN_ACTIONS = {
    "create": AuditAction.ADMIN_CREATE,
    "update": AuditAction.ADMIN_UPDATE,
    "delete": AuditAction.ADMIN_DELETE,
    "role_change": AuditAction.ADMIN_ROLE_CHANGE,
}


def truncate_value(value: Optional[Dict[str, Any]], max_size: int = MAX_VALUE_SIZE) -> Optional[Dict[str, Any]]:
    """Replace values whose JSON form exceeds ``max_size`` characters with a preview."""
    if value is None:
        return None

    serialized = json.dumps(value, default=str, separators=(",", ":"))
    if len(serialized) <= max_size:
        return value

    return {
        "truncated": True,
        "original_size": len(serialized),
        "preview": serialized[:PREVIEW_LENGTH] + "...",
    }


def _jsonable(value: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    # JSON columns reject datetimes; round-trip through json with str() fallback
    if value is None:
        return None
    return json.loads(json.dumps(value, default=str))


class AuditLogger:
    """
    Append-only recorder for admin actions.

    ``log`` is best-effort: a failed write is reported on the application
    logger and never raised, so audit storage problems cannot block or revert
    the operation being audited.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        max_value_size: int = MAX_VALUE_SIZE,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._store = store
        self._max_value_size = max_value_size
        self._page_size = page_size

    def log(
        self,
        *,
        action: str,
        user_id: str,
        user_email: Optional[str] = None,
        user_role: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        resource_path: Optional[str] = None,
        previous_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        success: bool,
        error_message: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[str]:
        try:
            entry = AuditLog()
            entry.action = action
            entry.user_id = user_id
            entry.user_email = user_email
            entry.user_role = user_role
            entry.timestamp = utc_now()
            entry.resource_type = resource_type
            entry.resource_id = resource_id
            entry.resource_path = resource_path
            entry.previous_value = truncate_value(_jsonable(previous_value), self._max_value_size)
            entry.new_value = truncate_value(_jsonable(new_value), self._max_value_size)
            entry.success = success
            entry.error_message = error_message
            entry.extra = _jsonable(metadata)

            return self._persist(entry)
        except Exception as exc:
            current_app.logger.warning("Failed to write audit log (%s by %s): %s", action, user_id, exc)
            return None

    def _persist(self, entry: AuditLog) -> str:
        return self._store.add_to_collection(entry)

    def query(
        self,
        *,
        user_id: Optional[str] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        success: Optional[bool] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> tuple[list[AuditLog], CursorMeta]:
        """
        Filtered audit entries, newest first.

        Pagination fetches one extra row to compute ``has_more``; pass the
        returned ``next_cursor`` back as ``cursor`` to continue.
        """
        stmt = select(AuditLog)

        if user_id:
            stmt = stmt.filter(AuditLog.user_id == user_id)
        if action:
            stmt = stmt.filter(AuditLog.action == action)
        if resource_type:
            stmt = stmt.filter(AuditLog.resource_type == resource_type)
        if resource_id:
            stmt = stmt.filter(AuditLog.resource_id == resource_id)
        if success is not None:
            stmt = stmt.filter(AuditLog.success.is_(success))
        if start_date is not None:
            stmt = stmt.filter(AuditLog.timestamp >= normalize_ts(start_date))
        if end_date is not None:
            stmt = stmt.filter(AuditLog.timestamp <= normalize_ts(end_date))

        stmt = apply_cursor(stmt, model=AuditLog, cursor=cursor, sort_field="timestamp")

        try:
            return paginate_cursor(
                self._store.session,
                stmt,
                model=AuditLog,
                limit=limit or self._page_size,
                sort_field="timestamp",
            )
        except SQLAlchemyError as exc:
            self._store.session.rollback()
            current_app.logger.error("Failed to query audit logs: %s", exc)
            return [], {"has_more": False, "next_cursor": None}

    # -------------------------------------------------
    # Convenience wrappers
    # -------------------------------------------------

    def log_login(self, actor, *, success: bool, error_message: Optional[str] = None):
        return self.log(
            action=AuditAction.LOGIN if success else AuditAction.LOGIN_FAILED,
            **_actor_fields(actor),
            success=success,
            error_message=error_message,
        )

    def log_logout(self, actor):
        return self.log(action=AuditAction.LOGOUT, **_actor_fields(actor), success=True)

    def log_content_create(self, actor, *, resource_type, resource_path, new_value,
                           success, error_message=None):
        return self.log(
            action=AuditAction.CONTENT_CREATE,
            **_actor_fields(actor),
            resource_type=resource_type,
            resource_id=resource_path,
            resource_path=resource_path,
            new_value=new_value,
            success=success,
            error_message=error_message,
        )

    def log_content_update(self, actor, *, resource_type, resource_path, previous_value,
                           new_value, success, error_message=None, metadata=None):
        return self.log(
            action=AuditAction.CONTENT_UPDATE,
            **_actor_fields(actor),
            resource_type=resource_type,
            resource_id=resource_path,
            resource_path=resource_path,
            previous_value=previous_value,
            new_value=new_value,
            success=success,
            error_message=error_message,
            metadata=metadata,
        )

    def log_content_delete(self, actor, *, resource_type, resource_path, previous_value,
                           success, error_message=None, hard_delete=False):
        return self.log(
            action=AuditAction.CONTENT_DELETE,
            **_actor_fields(actor),
            resource_type=resource_type,
            resource_id=resource_path,
            resource_path=resource_path,
            previous_value=previous_value,
            success=success,
            error_message=error_message,
            metadata={"hard_delete": hard_delete},
        )

    def log_content_publish(self, actor, *, resource_type, resource_path, previous_value,
                            new_value, success, error_message=None, published=True):
        return self.log(
            action=AuditAction.CONTENT_PUBLISH if published else AuditAction.CONTENT_UNPUBLISH,
            **_actor_fields(actor),
            resource_type=resource_type,
            resource_id=resource_path,
            resource_path=resource_path,
            previous_value=previous_value,
            new_value=new_value,
            success=success,
            error_message=error_message,
        )

    def log_content_rollback(self, actor, *, resource_type, resource_path, previous_value,
                             new_value, from_version, to_version, success, error_message=None):
        return self.log(
            action=AuditAction.CONTENT_ROLLBACK,
            **_actor_fields(actor),
            resource_type=resource_type,
            resource_id=resource_path,
            resource_path=resource_path,
            previous_value=previous_value,
            new_value=new_value,
            success=success,
            error_message=error_message,
            metadata={"from_version": from_version, "to_version": to_version},
        )

    def log_admin_management(self, action: str, actor, *, target_user_id: str, target_user_email: Optional[str],
                             previous_value=None, new_value=None, success=True, error_message=None):
        return self.log(
            action=ADMIN_ACTIONS[action],
            **_actor_fields(actor),
            resource_type="admin",
            resource_id=target_user_id,
            resource_path=f"admin_users/{target_user_id}",
            previous_value=previous_value,
            new_value=new_value,
            success=success,
            error_message=error_message,
            metadata={"target_user_email": target_user_email},
        )

    def log_settings_update(self, actor, *, resource_path, previous_value, new_value,
                            success=True, error_message=None):
        return self.log(
            action=AuditAction.SETTINGS_UPDATE,
            **_actor_fields(actor),
            resource_type="settings",
            resource_id=resource_path,
            resource_path=resource_path,
            previous_value=previous_value,
            new_value=new_value,
            success=success,
            error_message=error_message,
        )


def _actor_fields(actor) -> Dict[str, Any]:
    return {
        "user_id": actor.id,
        "user_email": getattr(actor, "email", None),
        "user_role": getattr(actor, "role", None),
    }
