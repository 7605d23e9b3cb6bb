# versioned_cms/application/cms/admin_users.py
from types import SimpleNamespace
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from versioned_cms.application.cms.audit_logger import AuditLogger
from versioned_cms.domain.rbac import Permission, UserRole, can_manage_role, is_valid_role, require_permission
from versioned_cms.domain.results import OperationResult
from versioned_cms.domain.sanitizer import sanitize_email, sanitize_title
from versioned_cms.errors import CMSError, InsufficientPermissions, NotFound, NotReady, ValidationFailed
from versioned_cms.models.admin_user import AdminUser
from versioned_cms.models.base import utc_now
from versioned_cms.normalizers.admin_user import normalize_admin_user
from versioned_cms.store import DocumentStore
from versioned_cms.utils.transaction import transactional


def _snapshot(user: Optional[AdminUser]):
    if user is None:
        return None
    return {"role": user.role, "is_active": user.is_active, "email": user.email}


class AdminUserService:
    """
    Admin console user management.

    Users are never physically deleted: removal deactivates. Actors can only
    manage roles below or equal to what ``can_manage_role`` grants them, and
    never their own role or activation.
    """

    def __init__(self, store: DocumentStore, audit_logger: AuditLogger):
        self._store = store
        self._audit = audit_logger

    @property
    def _session(self):
        return self._store.session

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------

    def get_admin(self, user_id: str) -> Optional[AdminUser]:
        if not user_id:
            return None
        return self._session.get(AdminUser, user_id)

    def list_admins(self, actor, *, include_inactive: bool = True) -> OperationResult:
        try:
            require_permission(actor, Permission.ADMIN_READ)
        except CMSError as exc:
            return OperationResult.failure(exc)

        conditions = () if include_inactive else (AdminUser.is_active.is_(True),)
        users = self._store.query_collection(
            AdminUser,
            conditions=conditions,
            order_by=(AdminUser.created_at.asc(), AdminUser.id.asc()),
        )
        return OperationResult.ok([normalize_admin_user(user) for user in users])

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------

    def create_admin(
        self,
        actor,
        *,
        user_id: str,
        email: str,
        role: str = UserRole.EDITOR,
        display_name: Optional[str] = None,
    ) -> OperationResult:
        if actor is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        clean_email = sanitize_email(email)
        try:
            # 1️⃣ Permissions
            require_permission(actor, Permission.ADMIN_CREATE)
            if not is_valid_role(role):
                raise ValidationFailed(f"Invalid role: {role}", details={"role": role})
            if not can_manage_role(actor.role, role):
                raise InsufficientPermissions(f"Insufficient permissions: cannot assign role {role}")

            # 2️⃣ Input
            if not user_id or not clean_email:
                raise ValidationFailed("A user id and a valid email are required")

            # 3️⃣ Uniqueness
            if self.get_admin(user_id) is not None:
                raise ValidationFailed(f"Admin user already exists: {user_id}")
            duplicate = self._session.execute(
                select(AdminUser).where(AdminUser.email == clean_email)
            ).scalar_one_or_none()
            if duplicate is not None:
                raise ValidationFailed(f"Email already in use: {clean_email}")

            # 4️⃣ Persist
            user = AdminUser()
            user.id = user_id
            user.email = clean_email
            user.display_name = sanitize_title(display_name) if display_name else None
            user.role = role
            user.is_active = True
            user.created_by = actor.id
            try:
                with transactional(self._session) as session:
                    session.add(user)
            except IntegrityError as exc:
                raise ValidationFailed("Admin user already exists") from exc
        except CMSError as exc:
            self._audit.log_admin_management(
                "create", actor,
                target_user_id=user_id,
                target_user_email=clean_email or email,
                new_value={"role": role},
                success=False,
                error_message=exc.message,
            )
            return OperationResult.failure(exc)

        self._audit.log_admin_management(
            "create", actor,
            target_user_id=user.id,
            target_user_email=user.email,
            new_value=_snapshot(user),
        )
        return OperationResult.ok(normalize_admin_user(user))

    def change_role(self, actor, user_id: str, new_role: str) -> OperationResult:
        if actor is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        target = None
        previous = None
        try:
            require_permission(actor, Permission.ADMIN_UPDATE)
            target = self._require_target(user_id)
            previous = _snapshot(target)

            if target.id == actor.id:
                raise ValidationFailed("You cannot change your own role")
            if not is_valid_role(new_role):
                raise ValidationFailed(f"Invalid role: {new_role}", details={"role": new_role})
            if not (can_manage_role(actor.role, target.role) and can_manage_role(actor.role, new_role)):
                raise InsufficientPermissions(
                    f"Insufficient permissions: cannot change {target.role} to {new_role}"
                )

            self._update(target, actor, role=new_role)
        except CMSError as exc:
            self._audit_failure("role_change", actor, user_id, target, previous, exc, new_value={"role": new_role})
            return OperationResult.failure(exc)

        self._audit.log_admin_management(
            "role_change", actor,
            target_user_id=target.id,
            target_user_email=target.email,
            previous_value=previous,
            new_value=_snapshot(target),
        )
        return OperationResult.ok(normalize_admin_user(target))

    def set_active(self, actor, user_id: str, is_active: bool) -> OperationResult:
        return self._set_active("update", Permission.ADMIN_UPDATE, actor, user_id, is_active)

    def remove_admin(self, actor, user_id: str) -> OperationResult:
        """Deactivates the admin; the row and its history stay."""
        return self._set_active("delete", Permission.ADMIN_DELETE, actor, user_id, False)

    def record_login(self, user_id: str) -> OperationResult:
        """
        Stamps ``last_login_at`` once the identity provider has accepted the
        user. Unknown and deactivated accounts are audited as failed logins.
        """
        user = self.get_admin(user_id)
        if user is None or not user.is_active:
            exc = (
                NotFound(f"Admin user not found: {user_id}")
                if user is None
                else InsufficientPermissions("User account is deactivated")
            )
            self._audit.log_login(user or SimpleNamespace(id=user_id), success=False, error_message=exc.message)
            return OperationResult.failure(exc)

        with transactional(self._session):
            user.last_login_at = utc_now()

        self._audit.log_login(user, success=True)
        return OperationResult.ok(normalize_admin_user(user))

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    def _set_active(self, action: str, permission: str, actor, user_id: str, is_active: bool) -> OperationResult:
        if actor is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        target = None
        previous = None
        try:
            require_permission(actor, permission)
            target = self._require_target(user_id)
            previous = _snapshot(target)

            if target.id == actor.id and not is_active:
                raise ValidationFailed("You cannot deactivate your own account")
            if not can_manage_role(actor.role, target.role):
                raise InsufficientPermissions(f"Insufficient permissions: cannot manage {target.role}")

            self._update(target, actor, is_active=is_active)
        except CMSError as exc:
            self._audit_failure(action, actor, user_id, target, previous, exc, new_value={"is_active": is_active})
            return OperationResult.failure(exc)

        self._audit.log_admin_management(
            action, actor,
            target_user_id=target.id,
            target_user_email=target.email,
            previous_value=previous,
            new_value=_snapshot(target),
        )
        return OperationResult.ok(normalize_admin_user(target))

    def _require_target(self, user_id: str) -> AdminUser:
        target = self.get_admin(user_id)
        if target is None:
            raise NotFound(f"Admin user not found: {user_id}")
        return target

    def _update(self, target: AdminUser, actor, **changes) -> None:
        with transactional(self._session):
            for field, value in changes.items():
                setattr(target, field, value)
            target.updated_at = utc_now()
            target.updated_by = actor.id

    def _audit_failure(self, action, actor, user_id, target, previous, exc, *, new_value):
        self._audit.log_admin_management(
            action, actor,
            target_user_id=user_id,
            target_user_email=target.email if target is not None else None,
            previous_value=previous,
            new_value=new_value,
            success=False,
            error_message=exc.message,
        )
