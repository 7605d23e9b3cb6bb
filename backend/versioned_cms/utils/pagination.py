# versioned_cms/utils/pagination.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Tuple, TypedDict, Type, Any

from sqlalchemy import Select
from sqlalchemy.orm import Session
from sqlalchemy.sql import or_, and_
from werkzeug.exceptions import BadRequest


class CursorMeta(TypedDict):
    """
    Strongly-typed cursor pagination metadata.

    Explicit keys prevent contract drift across list_* endpoints.
    """
    has_more: bool
    next_cursor: Optional[str]


def normalize_ts(ts: datetime) -> datetime:
    """
    Ensure datetime is timezone-aware and expressed in UTC.
    Defaults to UTC if naive.
    """
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def encode_cursor(sort_value: datetime, row_id: Any) -> str:
    """
    Encode a cursor using a stable, deterministic sort key.

    Format: ISO8601|<id>

    Notes:
    - Human-readable for debugging/admin tooling
    - Callers treat it as opaque
    """
    if not isinstance(sort_value, datetime) or row_id is None:
        raise ValueError("sort value and row_id are required to encode cursor")

    return f"{normalize_ts(sort_value).isoformat()}|{row_id}"


def decode_cursor(cursor: str) -> Tuple[datetime, str]:
    """
    Decode a cursor into (sort value, id).

    Raises:
    - BadRequest if cursor format or timestamp is invalid
    """
    if not cursor or "|" not in cursor:
        raise BadRequest("Invalid cursor format")

    try:
        ts_str, row_id = cursor.split("|", 1)
        return normalize_ts(datetime.fromisoformat(ts_str)), row_id
    except Exception as exc:
        # Ensures clean API error instead of 500
        raise BadRequest("Invalid cursor format") from exc


def apply_cursor(
    stmt: Select,
    *,
    model: Type[Any],
    cursor: Optional[str],
    sort_field: str = "created_at",
) -> Select:
    """
    Restrict a statement to rows strictly after ``cursor``.

    Ordering contract (MANDATORY):
      ORDER BY <sort_field> DESC, id DESC
    """
    if not cursor:
        return stmt

    cursor_ts, cursor_id = decode_cursor(cursor)
    sort_column = getattr(model, sort_field)

    return stmt.filter(
        or_(
            sort_column < cursor_ts,
            and_(
                sort_column == cursor_ts,
                model.id < cursor_id,
            ),
        )
    )


def paginate_cursor(
    session: Session,
    stmt: Select,
    *,
    model: Type[Any],
    limit: int,
    sort_field: str = "created_at",
) -> tuple[list[Any], CursorMeta]:
    """
    Execute a cursor-paginated query.

    Strategy:
    - Fetch limit + 1 rows to detect continuation
    - Trim extra row from result set
    - Generate the next cursor from the last returned row

    Returns:
    - items: list of ORM objects
    - meta: CursorMeta (has_more, next_cursor)
    """
    if limit <= 0:
        raise BadRequest("Limit must be greater than zero")

    sort_column = getattr(model, sort_field)

    # Enforce canonical ordering
    ordered = stmt.order_by(
        sort_column.desc(),
        model.id.desc(),
    )

    rows = list(session.scalars(ordered.limit(limit + 1)))

    has_more = len(rows) > limit
    items = rows[:limit]

    next_cursor: Optional[str] = None
    if items and has_more:
        last = items[-1]
        next_cursor = encode_cursor(getattr(last, sort_field), last.id)

    return items, {
        "has_more": has_more,
        "next_cursor": next_cursor,
    }
