"""
Content type registry.

Each content type key maps to a pydantic schema (field validation), the
sanitizer rules for its fields and the canonical document path it is stored
at. Keys are looked up, never reflected.
"""
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, Mapping, Optional, Type
from urllib.parse import urlsplit

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from .sanitizer import (
    ABOUT_RULES,
    EMAIL_PATTERN,
    FOOTER_RULES,
    HERO_RULES,
    LEGAL_RULES,
    SITE_CONFIG_RULES,
    SOCIAL_LINKS_RULES,
    ValidationResult,
    sanitize_object,
    validate_content,
)


def _url_or_empty(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    parts = urlsplit(value)
    if not parts.scheme or not parts.netloc:
        raise ValueError("Invalid URL")
    return value


def _email(value: str) -> str:
    if not EMAIL_PATTERN.match(value.strip()):
        raise ValueError("Invalid email address")
    return value


OptionalUrl = Annotated[Optional[str], AfterValidator(_url_or_empty)]
Email = Annotated[str, AfterValidator(_email)]


class ContentSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SiteConfigContent(ContentSchema):
    company_name: str = Field(alias="companyName", min_length=1, max_length=100)
    tagline: Optional[str] = Field(default=None, max_length=200)
    email: Email
    phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=500)
    logo: OptionalUrl = None


class SocialLinksContent(ContentSchema):
    linkedin: OptionalUrl = None
    github: OptionalUrl = None
    twitter: OptionalUrl = None
    instagram: OptionalUrl = None
    youtube: OptionalUrl = None
    facebook: OptionalUrl = None


class FooterContent(ContentSchema):
    copyright: str = Field(min_length=1, max_length=200)
    governing_law: str = Field(alias="governingLaw", min_length=1, max_length=100)
    additional_text: Optional[str] = Field(default=None, alias="additionalText", max_length=500)


class HeroContent(ContentSchema):
    title: str = Field(min_length=1, max_length=100)
    tagline: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    background: OptionalUrl = None
    cta_primary: Optional[str] = Field(default=None, alias="ctaPrimary", max_length=50)
    cta_primary_link: OptionalUrl = Field(default=None, alias="ctaPrimaryLink")
    cta_secondary: Optional[str] = Field(default=None, alias="ctaSecondary", max_length=50)
    cta_secondary_link: OptionalUrl = Field(default=None, alias="ctaSecondaryLink")


class AboutContent(ContentSchema):
    hero_title: str = Field(alias="heroTitle", min_length=1, max_length=100)
    hero_subtitle: Optional[str] = Field(default=None, alias="heroSubtitle", max_length=500)
    hero_background: OptionalUrl = Field(default=None, alias="heroBackground")
    mission_title: Optional[str] = Field(default=None, alias="missionTitle", max_length=100)
    mission_statement: Optional[str] = Field(default=None, alias="missionStatement", max_length=1000)
    vision_title: Optional[str] = Field(default=None, alias="visionTitle", max_length=100)
    vision_statement: Optional[str] = Field(default=None, alias="visionStatement", max_length=1000)
    team_title: Optional[str] = Field(default=None, alias="teamTitle", max_length=100)
    team_description: Optional[str] = Field(default=None, alias="teamDescription", max_length=1000)


class LegalContent(ContentSchema):
    terms_of_service: Optional[str] = Field(default=None, alias="termsOfService", max_length=50000)
    privacy_policy: Optional[str] = Field(default=None, alias="privacyPolicy", max_length=50000)
    disclaimer: Optional[str] = Field(default=None, max_length=10000)
    cookie_policy: Optional[str] = Field(default=None, alias="cookiePolicy", max_length=10000)
    last_updated: Optional[float] = Field(default=None, alias="lastUpdated")


@dataclass(frozen=True)
class ContentType:
    key: str
    schema: Type[ContentSchema]
    path: str
    display_name: str
    rules: Mapping[str, str] = field(default_factory=dict)


CONTENT_TYPES: Dict[str, ContentType] = {
    "site-config": ContentType(
        key="site-config",
        schema=SiteConfigContent,
        path="sites/singleton",
        display_name="Site Configuration",
        rules=SITE_CONFIG_RULES,
    ),
    "social-links": ContentType(
        key="social-links",
        schema=SocialLinksContent,
        path="sites/singleton/socials/singleton",
        display_name="Social Media Links",
        rules=SOCIAL_LINKS_RULES,
    ),
    "footer": ContentType(
        key="footer",
        schema=FooterContent,
        path="sites/singleton/footer/singleton",
        display_name="Footer",
        rules=FOOTER_RULES,
    ),
    "hero": ContentType(
        key="hero",
        schema=HeroContent,
        path="homes/singleton/hero/singleton",
        display_name="Hero Section",
        rules=HERO_RULES,
    ),
    "about": ContentType(
        key="about",
        schema=AboutContent,
        path="about/singleton",
        display_name="About Page",
        rules=ABOUT_RULES,
    ),
    "legal": ContentType(
        key="legal",
        schema=LegalContent,
        path="legals/singleton",
        display_name="Legal Pages",
        rules=LEGAL_RULES,
    ),
}


def get_content_type(key: str, registry: Optional[Mapping[str, ContentType]] = None) -> Optional[ContentType]:
    return (registry if registry is not None else CONTENT_TYPES).get(key)


def format_validation_errors(exc: ValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


def validate_for_type(content_type: Optional[ContentType], content: Any) -> ValidationResult:
    """Schema validation for a registered type, shape validation otherwise."""
    if content_type is None or not isinstance(content, Mapping):
        return validate_content(content)

    try:
        content_type.schema.model_validate(dict(content))
    except ValidationError as exc:
        return ValidationResult(is_valid=False, errors=format_validation_errors(exc))

    return ValidationResult(is_valid=True)


def sanitize_for_type(content_type: Optional[ContentType], content: Mapping[str, Any]) -> Dict[str, Any]:
    rules = content_type.rules if content_type is not None else None
    return sanitize_object(content, rules)
