"""
Unit tests for the content type registry.
"""
import pytest

from versioned_cms.domain.schemas import (
    CONTENT_TYPES,
    get_content_type,
    sanitize_for_type,
    validate_for_type,
)

pytestmark = pytest.mark.usefixtures("app")


class TestRegistry:
    def test_lookup(self):
        hero = get_content_type("hero")
        assert hero.path == "homes/singleton/hero/singleton"
        assert hero.display_name == "Hero Section"
        assert get_content_type("portfolio") is None

    def test_custom_registry(self):
        registry = {"hero": CONTENT_TYPES["hero"]}
        assert get_content_type("hero", registry) is CONTENT_TYPES["hero"]
        assert get_content_type("footer", registry) is None


class TestValidation:
    def test_valid_site_config(self, site_config):
        assert validate_for_type(CONTENT_TYPES["site-config"], site_config).is_valid

    def test_field_messages(self, site_config):
        content = dict(site_config, email="nope", logo="not a url")
        del content["companyName"]

        result = validate_for_type(CONTENT_TYPES["site-config"], content)

        assert not result.is_valid
        joined = " | ".join(result.errors)
        assert "companyName: Field required" in joined
        assert "email:" in joined
        assert "logo:" in joined

    def test_length_limits(self):
        result = validate_for_type(CONTENT_TYPES["hero"], {"title": "x" * 101})
        assert not result.is_valid
        assert result.errors[0].startswith("title:")

    def test_unregistered_type_uses_shape_validation(self):
        assert validate_for_type(None, {"anything": "goes"}).is_valid
        assert not validate_for_type(None, "text").is_valid


class TestSanitizeForType:
    def test_uses_type_rules(self):
        result = sanitize_for_type(
            CONTENT_TYPES["social-links"],
            {"github": "https://github.com/example", "twitter": "javascript:alert(1)"},
        )
        assert result == {"github": "https://github.com/example", "twitter": ""}

    def test_defaults_to_text(self):
        assert sanitize_for_type(None, {"title": "a & b"}) == {"title": "a &amp; b"}
