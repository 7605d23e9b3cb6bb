from .admin_user import AdminUser
from .audit_log import AuditLog
from .content_document import ContentDocument
from .content_version import ContentVersion

__all__ = ["AdminUser", "AuditLog", "ContentDocument", "ContentVersion"]
