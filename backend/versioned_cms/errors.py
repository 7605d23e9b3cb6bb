from typing import Any, Dict, Optional

from flask import jsonify
from werkzeug.exceptions import HTTPException

from versioned_cms.extensions import jwt


class ErrorCode:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DANGEROUS_CONTENT = "DANGEROUS_CONTENT"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    NOT_FOUND = "NOT_FOUND"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    NOT_READY = "NOT_READY"
    STORE_ERROR = "STORE_ERROR"


STATUS_BY_CODE: Dict[str, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.DANGEROUS_CONTENT: 400,
    ErrorCode.INSUFFICIENT_PERMISSIONS: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.VERSION_NOT_FOUND: 404,
    ErrorCode.VERSION_CONFLICT: 409,
    ErrorCode.NOT_READY: 503,
    ErrorCode.STORE_ERROR: 500,
}


class CMSError(Exception):
    """
    Base class for every failure the content store reports.

    Each subclass pins one taxonomy code. ``details`` carries structured
    context (field messages, version numbers) for callers and the audit trail.
    """

    code = ErrorCode.STORE_ERROR

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE.get(self.code, 500)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailed(CMSError):
    code = ErrorCode.VALIDATION_ERROR


class DangerousContent(CMSError):
    code = ErrorCode.DANGEROUS_CONTENT


class VersionConflict(CMSError):
    code = ErrorCode.VERSION_CONFLICT

    def __init__(self, expected: Optional[int] = None, actual: Optional[int] = None, *, message: Optional[str] = None):
        if message is None:
            message = (
                f"Version conflict: expected version {expected}, but current version is {actual}. "
                "Please refresh and try again."
            )
        super().__init__(
            message,
            details={"expected_version": expected, "current_version": actual},
        )


class VersionNotFound(CMSError):
    code = ErrorCode.VERSION_NOT_FOUND


class NotFound(CMSError):
    code = ErrorCode.NOT_FOUND


class InsufficientPermissions(CMSError):
    code = ErrorCode.INSUFFICIENT_PERMISSIONS


class NotReady(CMSError):
    code = ErrorCode.NOT_READY


class StoreError(CMSError):
    code = ErrorCode.STORE_ERROR


def register_error_handlers(app):
    @app.errorhandler(CMSError)
    def handle_cms_error(error):
        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        return response

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        response = jsonify({"error": error.name.upper().replace(" ", "_"), "message": error.description})
        response.status_code = error.code
        return response

    @jwt.unauthorized_loader
    def handle_missing_token(reason):
        return jsonify({"error": "UNAUTHORIZED", "message": reason}), 401

    @jwt.invalid_token_loader
    def handle_invalid_token(reason):
        return jsonify({"error": "UNAUTHORIZED", "message": reason}), 401

    @jwt.expired_token_loader
    def handle_expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "UNAUTHORIZED", "message": "Token has expired"}), 401
