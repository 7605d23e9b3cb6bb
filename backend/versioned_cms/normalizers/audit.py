# versioned_cms/normalizers/audit.py
from __future__ import annotations

from typing import Dict, Any
from versioned_cms.models.audit_log import AuditLog


def normalize_audit_log(log: AuditLog) -> Dict[str, Any]:
    """
    Normalizes an AuditLog model into API-safe JSON.

    Notes:
    - resource_id is always serialized as string for consistency
    - previous_value/new_value are stored already size-capped
    """

    if not log:
        raise ValueError("AuditLog cannot be None")

    return {
        "id": log.id,
        "action": log.action,
        "user_id": log.user_id,
        "user_email": log.user_email,
        "user_role": log.user_role,
        "timestamp": log.timestamp.isoformat(),
        "resource_type": log.resource_type,
        "resource_id": str(log.resource_id) if log.resource_id is not None else None,
        "resource_path": log.resource_path,
        "previous_value": log.previous_value,
        "new_value": log.new_value,
        "success": log.success,
        "error_message": log.error_message,
        "metadata": log.extra or {},
    }
