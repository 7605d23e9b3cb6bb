from typing import Any, Mapping, Optional

from flask import request, abort


def _parse_version(raw: Any, source: str) -> int:
    try:
        version = int(str(raw).strip().strip('"'))
    except (TypeError, ValueError):
        abort(400, description=f"Invalid {source}: expected an integer version")

    if version < 0:
        abort(400, description=f"Invalid {source}: version must not be negative")
    return version


def expected_version_from_request(data: Optional[Mapping[str, Any]] = None) -> Optional[int]:
    """
    Expected document version for optimistic locking.

    Read from the JSON body (``expected_version``) or the ``If-Match``
    header; the body wins. ``None`` means no lock was requested.
    """
    if data and data.get("expected_version") is not None:
        return _parse_version(data["expected_version"], "expected_version")

    header = request.headers.get("If-Match")
    if not header or header.strip() == "*":
        return None

    return _parse_version(header, "If-Match header")
