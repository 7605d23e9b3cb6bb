"""
Input sanitization for CMS content.

Every string that reaches storage goes through one of the field rules below.
The pattern list is also used by the content service as a post-sanitization
check: anything still matching after cleaning is rejected, not re-cleaned.
"""
import json
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from urllib.parse import urlsplit

from flask import current_app


class ContentLimits:
    TITLE = 200
    TAGLINE = 300
    DESCRIPTION = 2000
    BODY_TEXT = 50000
    URL = 2048
    EMAIL = 320
    PHONE = 30
    ADDRESS = 500
    LEGAL_TEXT = 100000


class FieldRule:
    TEXT = "text"
    TITLE = "title"
    URL = "url"
    EMAIL = "email"
    PHONE = "phone"
    RICH_TEXT = "richText"
    SKIP = "skip"


ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "tel"})

DANGEROUS_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>",
        r"javascript:",
        r"on\w+\s*=",  # onclick, onload, onerror, ...
        r"data:\s*text/html",
        r"vbscript:",
        r"expression\s*\(",
        r"<iframe\b",
        r"<object\b",
        r"<embed\b",
        r"<form\b",
        r"<input\b",
        r"<button\b",
        r"document\.(?:cookie|write|location)",
        r"window\.(?:location|open)",
        r"eval\s*\(",
        r"Function\s*\(",
        r"setTimeout\s*\(",
        r"setInterval\s*\(",
    )
]

RICH_TEXT_DANGEROUS_TAGS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>",
        r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>",
        r"<link\b[^>]*>",
        r"<meta\b[^>]*>",
        r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>",
        r"<object\b[^<]*(?:(?!</object>)<[^<]*)*</object>",
        r"<embed\b[^>]*>",
        r"<form\b[^<]*(?:(?!</form>)<[^<]*)*</form>",
    )
]

QUOTED_EVENT_HANDLER = re.compile(r"""\s*on\w+\s*=\s*(['"])[^'"]*\1""", re.IGNORECASE)
BARE_EVENT_HANDLER = re.compile(r"\s*on\w+\s*=\s*[^\s>]*", re.IGNORECASE)

EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)
PHONE_DISALLOWED = re.compile(r"[^0-9\s\-()+]")

HTML_ENTITIES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#x27;",
    "/": "&#x2F;",
    "`": "&#x60;",
    "=": "&#x3D;",
}
HTML_ESCAPE_PATTERN = re.compile(r"[&<>\"'`=/]")


# -------------------------------------------------
# Primitives
# -------------------------------------------------

def escape_html(value: str) -> str:
    return HTML_ESCAPE_PATTERN.sub(lambda match: HTML_ENTITIES[match.group(0)], value)


def contains_dangerous_content(value: str) -> bool:
    return any(pattern.search(value) for pattern in DANGEROUS_PATTERNS)


def remove_dangerous_content(value: str) -> str:
    for pattern in DANGEROUS_PATTERNS:
        value = pattern.sub("", value)
    return value


# -------------------------------------------------
# Field sanitizers
# -------------------------------------------------

def sanitize_text(value: Optional[str], max_length: int = ContentLimits.DESCRIPTION) -> str:
    """
    Plain text: trimmed, dangerous patterns stripped, HTML-escaped.
    Newlines are kept so multi-line text survives.
    """
    if not value:
        return ""

    result = remove_dangerous_content(value.strip())
    result = re.sub(r"[\t\f\v]+", " ", result)
    result = re.sub(r" +", " ", result).strip()
    result = escape_html(result)

    return result[:max_length]


def sanitize_title(value: Optional[str]) -> str:
    """Single line, no markup."""
    if not value:
        return ""

    result = re.sub(r"\s+", " ", value.strip())
    result = remove_dangerous_content(result)
    result = re.sub(r"\s+", " ", result).strip()
    result = escape_html(result)

    return result[:ContentLimits.TITLE]


def sanitize_url(value: Optional[str]) -> str:
    """Absolute URL on an allowed protocol, or ``""``."""
    if not value:
        return ""

    trimmed = value.strip()
    if not trimmed:
        return ""

    try:
        parts = urlsplit(trimmed)
    except ValueError:
        current_app.logger.warning("Blocked URL with invalid format")
        return ""

    scheme = parts.scheme.lower()
    if not scheme:
        current_app.logger.warning("Blocked URL without protocol")
        return ""

    if scheme not in ALLOWED_PROTOCOLS:
        current_app.logger.warning("Blocked URL with protocol: %s:", scheme)
        return ""

    if scheme in ("http", "https") and not parts.netloc:
        current_app.logger.warning("Blocked URL without host")
        return ""

    if contains_dangerous_content(trimmed):
        current_app.logger.warning("Blocked URL with dangerous content")
        return ""

    if len(trimmed) > ContentLimits.URL:
        current_app.logger.warning("Blocked URL exceeding %s characters", ContentLimits.URL)
        return ""

    return trimmed


def sanitize_email(value: Optional[str]) -> str:
    if not value:
        return ""

    trimmed = value.strip().lower()
    if not EMAIL_PATTERN.match(trimmed):
        return ""
    if len(trimmed) > ContentLimits.EMAIL:
        return ""

    return trimmed


def sanitize_phone(value: Optional[str]) -> str:
    if not value:
        return ""

    result = PHONE_DISALLOWED.sub("", value).strip()
    return result[:ContentLimits.PHONE]


def sanitize_rich_text(value: Optional[str], max_length: int = ContentLimits.BODY_TEXT) -> str:
    """
    Keeps ordinary markup, drops active content: the dangerous pattern list,
    script/style/link/meta/iframe/object/embed/form elements and any
    remaining event-handler attributes.
    """
    if not value:
        return ""

    result = remove_dangerous_content(value)

    for pattern in RICH_TEXT_DANGEROUS_TAGS:
        result = pattern.sub("", result)

    result = QUOTED_EVENT_HANDLER.sub("", result)
    result = BARE_EVENT_HANDLER.sub("", result)

    return result[:max_length].strip()


FIELD_SANITIZERS: Dict[str, Callable[[str], str]] = {
    FieldRule.TEXT: sanitize_text,
    FieldRule.TITLE: sanitize_title,
    FieldRule.URL: sanitize_url,
    FieldRule.EMAIL: sanitize_email,
    FieldRule.PHONE: sanitize_phone,
    FieldRule.RICH_TEXT: sanitize_rich_text,
    FieldRule.SKIP: lambda value: value,
}


# -------------------------------------------------
# Structured content
# -------------------------------------------------

def sanitize_object(obj: Mapping[str, Any], field_rules: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """
    Recursively sanitize every string in ``obj``.

    - strings use the rule declared for their key (default ``text``)
    - strings inside lists always use ``text``
    - nested objects reuse the same rule table
    - numbers, booleans and ``None`` pass through unchanged
    """
    rules = field_rules or {}
    result: Dict[str, Any] = {}

    for key, value in obj.items():
        if value is None:
            result[key] = value
        elif isinstance(value, str):
            sanitizer = FIELD_SANITIZERS.get(rules.get(key, FieldRule.TEXT), sanitize_text)
            result[key] = sanitizer(value)
        elif isinstance(value, (list, tuple)):
            result[key] = [_sanitize_item(item, rules) for item in value]
        elif isinstance(value, Mapping):
            result[key] = sanitize_object(value, rules)
        else:
            result[key] = value

    return result


def _sanitize_item(item: Any, rules: Mapping[str, str]) -> Any:
    if isinstance(item, str):
        return sanitize_text(item)
    if isinstance(item, Mapping):
        return sanitize_object(item, rules)
    return item


def create_content_sanitizer(field_rules: Mapping[str, str]) -> Callable[[Mapping[str, Any]], Dict[str, Any]]:
    rules = dict(field_rules)

    def sanitize(content: Mapping[str, Any]) -> Dict[str, Any]:
        return sanitize_object(content, rules)

    return sanitize


def serialize_for_check(content: Any) -> str:
    return json.dumps(content, default=str, ensure_ascii=False)


# -------------------------------------------------
# Generic validation
# -------------------------------------------------

@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_content(content: Any, required_fields: Iterable[str] = ()) -> ValidationResult:
    """Shape validation for content types without a registered schema."""
    if not isinstance(content, Mapping):
        return ValidationResult(is_valid=False, errors=["content: must be an object"])

    errors: List[str] = []
    warnings: List[str] = []

    for name in required_fields:
        if content.get(name) in (None, ""):
            errors.append(f"{name} is required")

    if contains_dangerous_content(serialize_for_check(content)):
        warnings.append("Content contains potentially dangerous patterns that will be sanitized")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


# -------------------------------------------------
# Content-type rule sets
# -------------------------------------------------

SITE_CONFIG_RULES = {
    "companyName": FieldRule.TITLE,
    "tagline": FieldRule.TEXT,
    "email": FieldRule.EMAIL,
    "phone": FieldRule.PHONE,
    "address": FieldRule.TEXT,
    "logo": FieldRule.URL,
}

SOCIAL_LINKS_RULES = {
    "linkedin": FieldRule.URL,
    "github": FieldRule.URL,
    "twitter": FieldRule.URL,
    "instagram": FieldRule.URL,
    "youtube": FieldRule.URL,
    "facebook": FieldRule.URL,
}

FOOTER_RULES = {
    "copyright": FieldRule.TITLE,
    "governingLaw": FieldRule.TITLE,
    "additionalText": FieldRule.TEXT,
}

HERO_RULES = {
    "title": FieldRule.TITLE,
    "tagline": FieldRule.TEXT,
    "description": FieldRule.TEXT,
    "background": FieldRule.URL,
    "ctaPrimary": FieldRule.TEXT,
    "ctaPrimaryLink": FieldRule.URL,
    "ctaSecondary": FieldRule.TEXT,
    "ctaSecondaryLink": FieldRule.URL,
}

ABOUT_RULES = {
    "heroTitle": FieldRule.TITLE,
    "heroSubtitle": FieldRule.TEXT,
    "heroBackground": FieldRule.URL,
    "missionTitle": FieldRule.TITLE,
    "missionStatement": FieldRule.TEXT,
    "visionTitle": FieldRule.TITLE,
    "visionStatement": FieldRule.TEXT,
    "teamTitle": FieldRule.TITLE,
    "teamDescription": FieldRule.TEXT,
}

LEGAL_RULES = {
    "termsOfService": FieldRule.RICH_TEXT,
    "privacyPolicy": FieldRule.RICH_TEXT,
    "disclaimer": FieldRule.RICH_TEXT,
    "cookiePolicy": FieldRule.RICH_TEXT,
    "lastUpdated": FieldRule.SKIP,
}
