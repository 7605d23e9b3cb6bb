from typing import Any, Dict, Optional

from versioned_cms.models.content_version import ContentVersion


def normalize_version(version: Optional[ContentVersion], include_content: bool = True) -> Optional[Dict[str, Any]]:
    if version is None:
        return None

    data = {
        "version_id": version.version_id,
        "version": version.version,
        "created_at": version.created_at.isoformat() if version.created_at else None,
        "created_by": version.created_by,
        "created_by_email": version.created_by_email,
        "change_description": version.change_description,
        "is_rollback": version.is_rollback,
        "rolled_back_from": version.rolled_back_from,
    }

    if include_content:
        data["content_snapshot"] = version.content_snapshot or {}

    return data
