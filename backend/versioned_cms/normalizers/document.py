from typing import Any, Dict, Optional


def _iso(value):
    return value.isoformat() if value is not None else None


def normalize_meta(meta: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "version": meta["version"],
        "status": meta["status"],
        "created_at": _iso(meta.get("created_at")),
        "created_by": meta.get("created_by"),
        "updated_at": _iso(meta.get("updated_at")),
        "updated_by": meta.get("updated_by"),
        "published_at": _iso(meta.get("published_at")),
        "published_by": meta.get("published_by"),
    }


def normalize_document(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Normalizes a live document (``DocumentStore.get`` output) into API-safe JSON.
    """
    if document is None:
        return None

    return {
        "path": document["path"],
        "content": document["content"] or {},
        "_meta": normalize_meta(document["_meta"]),
    }
