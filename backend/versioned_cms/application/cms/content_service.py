# versioned_cms/application/cms/content_service.py
from typing import Any, Dict, Mapping, Optional

from werkzeug.exceptions import BadRequest

from versioned_cms.application.cms.audit_logger import AuditLogger
from versioned_cms.application.cms.version_manager import VersionManager
from versioned_cms.domain.lifecycle.content import DELETED_MARKER, ContentStatus
from versioned_cms.domain.rbac import Permission, make_access_decision, require_permission
from versioned_cms.domain.results import OperationResult
from versioned_cms.domain.sanitizer import contains_dangerous_content, serialize_for_check
from versioned_cms.domain.schemas import CONTENT_TYPES, ContentType, get_content_type, sanitize_for_type, validate_for_type
from versioned_cms.errors import (
    CMSError,
    DangerousContent,
    NotFound,
    NotReady,
    ValidationFailed,
    VersionNotFound,
)
from versioned_cms.normalizers.audit import normalize_audit_log
from versioned_cms.normalizers.pagination import normalize_pagination
from versioned_cms.normalizers.version import normalize_version


def _mark_deleted(content: Dict[str, Any]) -> Dict[str, Any]:
    return {**content, DELETED_MARKER: True}


def _clear_deleted(content: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in content.items() if key != DELETED_MARKER}


def _content_of(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return document["content"] if document is not None else None


class ContentService:
    """
    Permission-checked facade over versioning, sanitization and auditing.

    Every public operation returns an ``OperationResult``; taxonomy errors
    raised underneath are caught here and never cross this boundary. Each
    attempted write with a known actor produces exactly one audit entry.
    """

    def __init__(
        self,
        version_manager: VersionManager,
        audit_logger: AuditLogger,
        registry: Optional[Mapping[str, ContentType]] = None,
    ):
        self._versions = version_manager
        self._audit = audit_logger
        self._registry = registry if registry is not None else CONTENT_TYPES

    # -------------------------------------------------
    # Permission checks
    # -------------------------------------------------

    def check_permission(self, user, permission: str) -> bool:
        return make_access_decision(user, permission).allowed

    def ensure_permission(self, user, permission: str) -> None:
        require_permission(user, permission)

    def content_type(self, key: str) -> Optional[ContentType]:
        return get_content_type(key, self._registry)

    # -------------------------------------------------
    # Content
    # -------------------------------------------------

    def get_content(self, path: str) -> Optional[Dict[str, Any]]:
        return self._versions.get_current_content(path)

    def save_content(
        self,
        path: str,
        content_type: str,
        content: Dict[str, Any],
        *,
        user,
        expected_version: Optional[int] = None,
        publish: bool = False,
        change_description: Optional[str] = None,
        skip_validation: bool = False,
        skip_sanitization: bool = False,
    ) -> OperationResult:
        """
        Validated, sanitized, versioned save.

        Responsibilities:
        - permission checks (update, plus publish when publishing)
        - schema validation
        - sanitization and dangerous-content re-check
        - versioned write
        - audit of the outcome
        """
        if user is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        previous = None
        sanitized = content

        try:
            # 1️⃣ Permissions
            self.ensure_permission(user, Permission.CONTENT_UPDATE)
            if publish:
                self.ensure_permission(user, Permission.CONTENT_PUBLISH)

            # 2️⃣ Pre-image for the audit trail
            previous = self._versions.get_current_content(path)

            # 3️⃣ Validation
            definition = self.content_type(content_type)
            if not skip_validation:
                validation = validate_for_type(definition, content)
                if not validation.is_valid:
                    raise ValidationFailed(
                        f"Validation failed: {', '.join(validation.errors)}",
                        details={"errors": validation.errors},
                    )

            # 4️⃣ Sanitization
            if not skip_sanitization:
                sanitized = sanitize_for_type(definition, content)

            # 5️⃣ Dangerous-content re-check
            if contains_dangerous_content(serialize_for_check(sanitized)):
                raise DangerousContent("Content contains potentially dangerous patterns")

            # 6️⃣ Versioned write
            result = self._versions.save_content(
                path,
                sanitized,
                actor=user,
                expected_version=expected_version,
                publish=publish,
                change_description=change_description,
            )
        except CMSError as exc:
            self._audit_save(user, content_type, path, previous, sanitized, publish=publish,
                             success=False, error_message=exc.message)
            return OperationResult.failure(exc)

        # 7️⃣ Audit
        self._audit_save(user, content_type, path, previous, sanitized, publish=publish,
                         success=True, metadata={"version": result["version"]})
        return OperationResult.ok(result)

    def delete_content(self, path: str, content_type: str, *, user, hard_delete: bool = False) -> OperationResult:
        """
        Soft delete (default) archives a new version carrying a deletion
        marker. Hard delete removes the live document; history stays.
        """
        if user is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        current = None
        try:
            self.ensure_permission(user, Permission.CONTENT_DELETE)
            if hard_delete:
                self.ensure_permission(user, Permission.ADMIN_DELETE)

            current = self._versions.get_current_content(path)
            if current is None:
                raise NotFound(f"Content not found: {path}")

            if hard_delete:
                self._versions.hard_delete(path)
                data = {"hard_delete": True}
            else:
                result = self._versions.set_status(
                    path,
                    ContentStatus.ARCHIVED,
                    actor=user,
                    expected_version=current["_meta"]["version"],
                    change_description="Content archived",
                    transform=_mark_deleted,
                )
                data = {"hard_delete": False, "version": result["version"]}
        except CMSError as exc:
            self._audit.log_content_delete(
                user,
                resource_type=content_type,
                resource_path=path,
                previous_value=_content_of(current),
                success=False,
                error_message=exc.message,
                hard_delete=hard_delete,
            )
            return OperationResult.failure(exc)

        self._audit.log_content_delete(
            user,
            resource_type=content_type,
            resource_path=path,
            previous_value=_content_of(current),
            success=True,
            hard_delete=hard_delete,
        )
        return OperationResult.ok(data)

    def restore_content(self, path: str, content_type: str, *, user) -> OperationResult:
        """Undoes a soft delete: drops the marker and returns the document to draft."""
        if user is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        current = None
        new_content = None
        try:
            self.ensure_permission(user, Permission.CONTENT_UPDATE)

            current = self._versions.get_current_content(path)
            if current is None:
                raise NotFound(f"Content not found: {path}")
            if current["_meta"]["status"] != ContentStatus.ARCHIVED:
                raise ValidationFailed("Only archived content can be restored")

            new_content = _clear_deleted(current["content"] or {})
            result = self._versions.set_status(
                path,
                ContentStatus.DRAFT,
                actor=user,
                expected_version=current["_meta"]["version"],
                change_description="Content restored",
                transform=_clear_deleted,
            )
        except CMSError as exc:
            self._audit.log_content_update(
                user,
                resource_type=content_type,
                resource_path=path,
                previous_value=_content_of(current),
                new_value=new_content,
                success=False,
                error_message=exc.message,
                metadata={"restore": True},
            )
            return OperationResult.failure(exc)

        self._audit.log_content_update(
            user,
            resource_type=content_type,
            resource_path=path,
            previous_value=_content_of(current),
            new_value=new_content,
            success=True,
            metadata={"restore": True, "version": result["version"]},
        )
        return OperationResult.ok({"version": result["version"]})

    def publish_content(self, path: str, content_type: str, *, user) -> OperationResult:
        return self._change_publication(path, content_type, user=user, published=True)

    def unpublish_content(self, path: str, content_type: str, *, user) -> OperationResult:
        return self._change_publication(path, content_type, user=user, published=False)

    def rollback_content(self, path: str, content_type: str, *, user, target_version: int) -> OperationResult:
        if user is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        current = None
        try:
            self.ensure_permission(user, Permission.CONTENT_ROLLBACK)
            current = self._versions.get_current_content(path)
            # Success is audited by the version manager
            result = self._versions.rollback_to_version(
                path,
                target_version,
                actor=user,
                resource_type=content_type,
            )
        except CMSError as exc:
            self._audit.log_content_rollback(
                user,
                resource_type=content_type,
                resource_path=path,
                previous_value=_content_of(current),
                new_value=None,
                from_version=current["_meta"]["version"] if current is not None else None,
                to_version=target_version,
                success=False,
                error_message=exc.message,
            )
            return OperationResult.failure(exc)

        return OperationResult.ok(result)

    # -------------------------------------------------
    # Versions
    # -------------------------------------------------

    def get_version_history(self, path: str, *, user, limit: int = 20) -> OperationResult:
        try:
            self.ensure_permission(user, Permission.VERSION_READ)
        except CMSError as exc:
            return OperationResult.failure(exc)

        history = self._versions.get_version_history(path, limit=limit)
        return OperationResult.ok([normalize_version(row, include_content=False) for row in history])

    def get_version(self, path: str, version: int, *, user) -> OperationResult:
        try:
            self.ensure_permission(user, Permission.VERSION_READ)
            row = self._versions.get_version(path, version)
            if row is None:
                raise VersionNotFound(f"Version {version} not found", details={"version": version})
        except CMSError as exc:
            return OperationResult.failure(exc)

        return OperationResult.ok(normalize_version(row))

    def compare_versions(self, path: str, version_a: int, version_b: int, *, user) -> OperationResult:
        try:
            self.ensure_permission(user, Permission.VERSION_READ)
        except CMSError as exc:
            return OperationResult.failure(exc)

        pair = self._versions.compare_versions(path, version_a, version_b)
        return OperationResult.ok({
            "version_a": normalize_version(pair["version_a"]),
            "version_b": normalize_version(pair["version_b"]),
        })

    # -------------------------------------------------
    # Audit trail
    # -------------------------------------------------

    def query_audit_logs(self, user, **filters) -> OperationResult:
        try:
            self.ensure_permission(user, Permission.AUDIT_READ)
        except CMSError as exc:
            return OperationResult.failure(exc)

        try:
            items, meta = self._audit.query(**filters)
        except BadRequest as exc:
            # Malformed cursor or page size
            return OperationResult.failure(ValidationFailed(exc.description))
        return OperationResult.ok(normalize_pagination(items, normalize_audit_log, cursor=meta))

    # -------------------------------------------------
    # Internals
    # -------------------------------------------------

    def _change_publication(self, path: str, content_type: str, *, user, published: bool) -> OperationResult:
        if user is None:
            return OperationResult.failure(NotReady("No authenticated user"))

        current = None
        try:
            self.ensure_permission(user, Permission.CONTENT_PUBLISH)

            current = self._versions.get_current_content(path)
            if current is None:
                raise NotFound(f"Content not found: {path}")
            if not published and current["_meta"]["status"] != ContentStatus.PUBLISHED:
                raise ValidationFailed("Only published content can be unpublished")

            result = self._versions.set_status(
                path,
                ContentStatus.PUBLISHED if published else ContentStatus.DRAFT,
                actor=user,
                expected_version=current["_meta"]["version"],
                change_description="Content published" if published else "Content unpublished",
            )
        except CMSError as exc:
            self._audit.log_content_publish(
                user,
                resource_type=content_type,
                resource_path=path,
                previous_value=_content_of(current),
                new_value=None,
                success=False,
                error_message=exc.message,
                published=published,
            )
            return OperationResult.failure(exc)

        self._audit.log_content_publish(
            user,
            resource_type=content_type,
            resource_path=path,
            previous_value=_content_of(current),
            new_value=_content_of(current),
            success=True,
            published=published,
        )
        return OperationResult.ok({"version": result["version"]})

    def _audit_save(self, user, content_type, path, previous, new_value, *, publish, success,
                    error_message=None, metadata=None):
        previous_content = _content_of(previous)

        if publish:
            self._audit.log_content_publish(
                user,
                resource_type=content_type,
                resource_path=path,
                previous_value=previous_content,
                new_value=new_value,
                success=success,
                error_message=error_message,
            )
        elif previous is None:
            self._audit.log_content_create(
                user,
                resource_type=content_type,
                resource_path=path,
                new_value=new_value,
                success=success,
                error_message=error_message,
            )
        else:
            self._audit.log_content_update(
                user,
                resource_type=content_type,
                resource_path=path,
                previous_value=previous_content,
                new_value=new_value,
                success=success,
                error_message=error_message,
                metadata=metadata,
            )
