"""
Tests for the permission-checked content facade.
"""
import pytest

from versioned_cms.application.cms.content_service import ContentService
from versioned_cms.domain.schemas import CONTENT_TYPES
from versioned_cms.models.audit_log import AuditLog

SITE = CONTENT_TYPES["site-config"].path
HERO = CONTENT_TYPES["hero"].path


@pytest.fixture
def service(cms):
    return cms.content


def _audit_rows(db, **filters):
    return db.session.query(AuditLog).filter_by(**filters).order_by(AuditLog.timestamp).all()


class TestSave:
    def test_first_save_is_audited_as_create(self, service, users, db, site_config):
        result = service.save_content(SITE, "site-config", site_config, user=users.editor)

        assert result.success
        assert result.data == {"version": 1}

        rows = _audit_rows(db)
        assert [row.action for row in rows] == ["content_create"]
        assert rows[0].new_value == site_config
        assert rows[0].resource_type == "site-config"
        assert rows[0].resource_path == SITE

    def test_update_is_audited_with_before_and_after(self, service, users, db, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.editor)
        changed = dict(site_config, tagline="New tagline")

        result = service.save_content(SITE, "site-config", changed, user=users.editor, expected_version=1)

        assert result.data == {"version": 2}
        update = _audit_rows(db, action="content_update")[0]
        assert update.previous_value["tagline"] == "Engineering the future"
        assert update.new_value["tagline"] == "New tagline"

    def test_publish_is_audited_once_as_publish(self, service, users, db, site_config):
        result = service.save_content(SITE, "site-config", site_config, user=users.admin, publish=True)

        assert result.success
        assert [row.action for row in _audit_rows(db)] == ["content_publish"]
        assert service.get_content(SITE)["_meta"]["status"] == "published"

    def test_content_is_sanitized(self, service, users, site_config):
        dirty = dict(site_config, tagline="Hello <script>alert(1)</script>world", logo="javascript:alert(1)")
        service.save_content(SITE, "site-config", dirty, user=users.editor, skip_validation=True)

        content = service.get_content(SITE)["content"]
        assert content["tagline"] == "Hello world"
        assert content["logo"] == ""

    def test_validation_error(self, service, users, db, site_config):
        invalid = dict(site_config, email="not-an-email")

        result = service.save_content(SITE, "site-config", invalid, user=users.editor)

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"
        assert any(message.startswith("email:") for message in result.details["errors"])
        assert service.get_content(SITE) is None

        row = _audit_rows(db)[0]
        assert row.success is False
        assert row.error_message.startswith("Validation failed")

    def test_dangerous_content_check_runs_without_sanitization(self, service, users):
        result = service.save_content(
            "pages/custom",
            "custom",
            {"title": "<script>alert(1)</script>"},
            user=users.admin,
            skip_sanitization=True,
        )

        assert not result.success
        assert result.error_code == "DANGEROUS_CONTENT"
        assert service.get_content("pages/custom") is None

    def test_dangerous_content_check_runs_after_sanitization(self, service, users):
        # Stripping the inner "javascript:" leaves a new one behind
        result = service.save_content(
            "pages/custom",
            "custom",
            {"title": "javajavascript:script:alert(1)"},
            user=users.admin,
        )

        assert not result.success
        assert result.error_code == "DANGEROUS_CONTENT"
        assert service.get_content("pages/custom") is None

    def test_version_conflict(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.editor)
        service.save_content(SITE, "site-config", site_config, user=users.editor, expected_version=1)

        result = service.save_content(SITE, "site-config", site_config, user=users.editor, expected_version=1)

        assert not result.success
        assert result.error_code == "VERSION_CONFLICT"
        assert result.details == {"expected_version": 1, "current_version": 2}

    def test_editor_cannot_publish(self, service, users, db, site_config):
        result = service.save_content(SITE, "site-config", site_config, user=users.editor, publish=True)

        assert result.error_code == "INSUFFICIENT_PERMISSIONS"
        assert service.get_content(SITE) is None
        assert _audit_rows(db)[0].success is False

    def test_inactive_user_is_denied(self, service, users, site_config):
        result = service.save_content(SITE, "site-config", site_config, user=users.inactive)

        assert result.error_code == "INSUFFICIENT_PERMISSIONS"
        assert "deactivated" in result.error

    def test_missing_user_is_not_ready(self, service, db, site_config):
        result = service.save_content(SITE, "site-config", site_config, user=None)

        assert result.error_code == "NOT_READY"
        assert _audit_rows(db) == []

    def test_audit_failure_does_not_fail_save(self, service, cms, users, site_config, monkeypatch):
        def broken(entry):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(cms.audit_logger, "_persist", broken)

        result = service.save_content(SITE, "site-config", site_config, user=users.editor)

        assert result.success
        assert service.get_content(SITE)["_meta"]["version"] == 1


class TestDelete:
    def test_soft_delete_archives_a_new_version(self, service, users, db, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)

        result = service.delete_content(SITE, "site-config", user=users.admin)

        assert result.success
        assert result.data == {"hard_delete": False, "version": 2}
        document = service.get_content(SITE)
        assert document["_meta"]["status"] == "archived"
        assert document["content"]["_deleted"] is True

        row = _audit_rows(db, action="content_delete")[0]
        assert row.extra == {"hard_delete": False}
        assert row.previous_value == site_config

    def test_restore(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)
        service.delete_content(SITE, "site-config", user=users.admin)

        result = service.restore_content(SITE, "site-config", user=users.editor)

        assert result.success
        document = service.get_content(SITE)
        assert document["_meta"]["status"] == "draft"
        assert "_deleted" not in document["content"]
        assert document["_meta"]["version"] == 3

    def test_publishing_a_save_supersedes_the_archive(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)
        service.delete_content(SITE, "site-config", user=users.admin)

        result = service.save_content(SITE, "site-config", site_config, user=users.admin, publish=True)

        assert result.data == {"version": 3}
        document = service.get_content(SITE)
        assert document["_meta"]["status"] == "published"
        assert "_deleted" not in document["content"]

    def test_plain_save_after_delete_is_a_draft(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)
        service.delete_content(SITE, "site-config", user=users.admin)

        assert service.save_content(SITE, "site-config", site_config, user=users.editor).success

        document = service.get_content(SITE)
        assert document["_meta"]["status"] == "draft"
        assert "_deleted" not in document["content"]

    def test_rollback_after_delete_is_a_draft(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)
        service.delete_content(SITE, "site-config", user=users.admin)

        result = service.rollback_content(SITE, "site-config", user=users.admin, target_version=1)

        assert result.data == {"version": 3, "restored_version": 1}
        document = service.get_content(SITE)
        assert document["_meta"]["status"] == "draft"
        assert document["content"] == site_config

    def test_restore_requires_archived(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)
        result = service.restore_content(SITE, "site-config", user=users.admin)
        assert result.error_code == "VALIDATION_ERROR"

    def test_editor_cannot_delete(self, service, users, db, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)

        result = service.delete_content(SITE, "site-config", user=users.editor)

        assert result.error_code == "INSUFFICIENT_PERMISSIONS"
        assert service.get_content(SITE)["_meta"]["status"] == "draft"
        assert _audit_rows(db, action="content_delete")[0].success is False

    def test_hard_delete_needs_admin_delete(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.admin)

        denied = service.delete_content(SITE, "site-config", user=users.admin, hard_delete=True)
        assert denied.error_code == "INSUFFICIENT_PERMISSIONS"
        assert service.get_content(SITE) is not None

        allowed = service.delete_content(SITE, "site-config", user=users.super_admin, hard_delete=True)
        assert allowed.success
        assert service.get_content(SITE) is None

    def test_missing_document(self, service, users):
        result = service.delete_content(SITE, "site-config", user=users.admin)
        assert result.error_code == "NOT_FOUND"


class TestPublication:
    def test_publish_and_unpublish(self, service, users, db, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.editor)

        assert service.publish_content(SITE, "site-config", user=users.admin).data == {"version": 2}
        assert service.get_content(SITE)["_meta"]["status"] == "published"

        assert service.unpublish_content(SITE, "site-config", user=users.admin).data == {"version": 3}
        assert service.get_content(SITE)["_meta"]["status"] == "draft"

        actions = [row.action for row in _audit_rows(db)]
        assert actions == ["content_create", "content_publish", "content_unpublish"]

    def test_unpublish_requires_published(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.editor)
        assert service.unpublish_content(SITE, "site-config", user=users.admin).error_code == "VALIDATION_ERROR"

    def test_editor_cannot_publish(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.editor)
        assert service.publish_content(SITE, "site-config", user=users.editor).error_code == "INSUFFICIENT_PERMISSIONS"


class TestVersions:
    def _three_versions(self, service, user):
        for title in ("One", "Two", "Three"):
            assert service.save_content(HERO, "hero", {"title": title}, user=user).success

    def test_rollback(self, service, users):
        self._three_versions(service, users.admin)

        result = service.rollback_content(HERO, "hero", user=users.admin, target_version=1)

        assert result.data == {"version": 4, "restored_version": 1}
        assert service.get_content(HERO)["content"] == {"title": "One"}

    def test_rollback_denied_for_editor(self, service, users, db):
        self._three_versions(service, users.editor)

        result = service.rollback_content(HERO, "hero", user=users.editor, target_version=1)

        assert result.error_code == "INSUFFICIENT_PERMISSIONS"
        row = _audit_rows(db, action="content_rollback")[0]
        assert row.success is False
        assert row.extra == {"from_version": None, "to_version": 1}

    def test_rollback_to_unknown_version(self, service, users):
        self._three_versions(service, users.admin)
        result = service.rollback_content(HERO, "hero", user=users.admin, target_version=42)
        assert result.error_code == "VERSION_NOT_FOUND"

    def test_history_and_lookup(self, service, users):
        self._three_versions(service, users.admin)

        history = service.get_version_history(HERO, user=users.editor)
        assert [item["version"] for item in history.data] == [2, 1]
        assert "content_snapshot" not in history.data[0]

        version = service.get_version(HERO, 1, user=users.editor)
        assert version.data["content_snapshot"] == {"title": "One"}
        assert version.data["created_by"] == users.admin.id

        missing = service.get_version(HERO, 9, user=users.editor)
        assert missing.error_code == "VERSION_NOT_FOUND"

    def test_compare(self, service, users):
        self._three_versions(service, users.admin)

        result = service.compare_versions(HERO, 1, 2, user=users.admin)

        assert result.data["version_a"]["content_snapshot"] == {"title": "One"}
        assert result.data["version_b"]["content_snapshot"] == {"title": "Two"}

    def test_reads_require_a_user(self, service):
        assert service.get_version_history(HERO, user=None).error_code == "NOT_READY"


class TestAuditQueries:
    def test_requires_audit_read(self, service, users):
        assert service.query_audit_logs(users.editor).error_code == "INSUFFICIENT_PERMISSIONS"

    def test_returns_a_page(self, service, users, site_config):
        service.save_content(SITE, "site-config", site_config, user=users.editor)

        result = service.query_audit_logs(users.admin, action="content_create")

        assert result.success
        assert len(result.data["items"]) == 1
        assert result.data["items"][0]["user_id"] == users.editor.id
        assert result.data["pagination"] == {"has_more": False, "next_cursor": None}

    def test_malformed_paging_is_a_validation_error(self, service, users):
        bad_cursor = service.query_audit_logs(users.admin, cursor="garbage")
        bad_limit = service.query_audit_logs(users.admin, limit=-1)

        assert bad_cursor.error_code == "VALIDATION_ERROR"
        assert bad_cursor.error == "Invalid cursor format"
        assert bad_limit.error_code == "VALIDATION_ERROR"


class TestRegistryInjection:
    def test_custom_registry(self, cms, users):
        service = ContentService(cms.version_manager, cms.audit_logger, registry={})
        assert service.content_type("hero") is None

        # unregistered types fall back to shape validation and text rules
        result = service.save_content(HERO, "hero", {"anything": "a & b"}, user=users.admin)
        assert result.success
        assert service.get_content(HERO)["content"] == {"anything": "a &amp; b"}
