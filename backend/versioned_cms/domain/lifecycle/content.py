from typing import Any, Dict, Set

from versioned_cms.errors import ValidationFailed


class ContentStatus:
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"

    ALL = (DRAFT, PUBLISHED, ARCHIVED)


# Explicit allowed state transitions (staying in the same state is always allowed)
ALLOWED_CONTENT_TRANSITIONS: dict[str, Set[str]] = {
    ContentStatus.DRAFT: {ContentStatus.PUBLISHED, ContentStatus.ARCHIVED},
    ContentStatus.PUBLISHED: {ContentStatus.DRAFT, ContentStatus.ARCHIVED},
    ContentStatus.ARCHIVED: {ContentStatus.DRAFT},  # archived documents come back through restore
}


def assert_content_transition(*, from_status: str, to_status: str) -> None:
    """
    Guards document status changes.
    Single source of truth for status changes.
    """
    if from_status == to_status:
        return

    allowed = ALLOWED_CONTENT_TRANSITIONS.get(from_status, set())

    if to_status not in allowed:
        raise ValidationFailed(
            f"Illegal content transition: {from_status} -> {to_status}",
            details={"from_status": from_status, "to_status": to_status},
        )


# Content key carried by soft-deleted documents; ``archived`` and the marker move together
DELETED_MARKER = "_deleted"


def status_for_content(status: str, content: Dict[str, Any]) -> str:
    """
    Status a full content replace lands in.

    Content without the deletion marker cannot stay archived, and content that
    carries it is archived whatever the previous status was.
    """
    deleted = bool((content or {}).get(DELETED_MARKER))
    if deleted:
        return ContentStatus.ARCHIVED
    if status == ContentStatus.ARCHIVED:
        return ContentStatus.DRAFT
    return status
