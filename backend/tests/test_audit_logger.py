"""
Tests for the append-only audit trail.
"""
from datetime import datetime, timedelta, timezone

import pytest

from versioned_cms.application.cms.audit_logger import AuditAction, truncate_value
from versioned_cms.models.audit_log import AuditLog


@pytest.fixture
def audit(cms):
    return cms.audit_logger


def _entry(audit, user, action=AuditAction.CONTENT_UPDATE, success=True, **extra):
    return audit.log(
        action=action,
        user_id=user.id,
        user_email=user.email,
        user_role=user.role,
        success=success,
        **extra,
    )


class TestTruncation:
    def test_small_values_pass_through(self):
        assert truncate_value({"title": "short"}) == {"title": "short"}
        assert truncate_value(None) is None

    def test_large_values_become_previews(self):
        value = {"body": "x" * 20000}
        result = truncate_value(value)

        assert result["truncated"] is True
        assert result["original_size"] > 10000
        assert len(result["preview"]) == 503
        assert result["preview"].endswith("...")

    def test_size_is_measured_on_compact_json(self):
        # {"a":"x...x","b":"y"} is exactly 10000 characters
        value = {"a": "x" * 9984, "b": "y"}
        assert truncate_value(value) == value

        over = {"a": "x" * 9985, "b": "y"}
        assert truncate_value(over)["original_size"] == 10001


class TestLog:
    def test_persists_entry(self, audit, users, db):
        entry_id = _entry(
            audit,
            users.admin,
            resource_type="hero",
            resource_id="homes/singleton/hero/singleton",
            resource_path="homes/singleton/hero/singleton",
            previous_value={"title": "Old"},
            new_value={"title": "New"},
            metadata={"version": 2},
        )

        row = db.session.get(AuditLog, entry_id)
        assert row.action == "content_update"
        assert row.user_email == users.admin.email
        assert row.user_role == "admin"
        assert row.previous_value == {"title": "Old"}
        assert row.new_value == {"title": "New"}
        assert row.extra == {"version": 2}
        assert row.success is True
        assert row.timestamp is not None

    def test_values_are_capped_independently(self, audit, users, db):
        entry_id = _entry(
            audit,
            users.admin,
            previous_value={"body": "x" * 20000},
            new_value={"body": "short"},
        )

        row = db.session.get(AuditLog, entry_id)
        assert row.previous_value["truncated"] is True
        assert row.new_value == {"body": "short"}

    def test_write_failure_is_swallowed(self, audit, users, db, monkeypatch):
        def broken(entry):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(audit, "_persist", broken)

        assert _entry(audit, users.admin) is None
        assert db.session.query(AuditLog).count() == 0

    def test_entries_are_immutable(self, audit, users, db):
        row = db.session.get(AuditLog, _entry(audit, users.admin))
        row.success = False

        with pytest.raises(RuntimeError, match="immutable"):
            db.session.commit()
        db.session.rollback()

        db.session.delete(db.session.get(AuditLog, row.id))
        with pytest.raises(RuntimeError, match="immutable"):
            db.session.commit()
        db.session.rollback()


class TestWrappers:
    def test_login_failure(self, audit, users, db):
        row = db.session.get(AuditLog, audit.log_login(users.editor, success=False, error_message="bad token"))
        assert row.action == AuditAction.LOGIN_FAILED
        assert row.error_message == "bad token"

    def test_logout_and_settings(self, audit, users, db):
        logout = db.session.get(AuditLog, audit.log_logout(users.editor))
        assert (logout.action, logout.success) == ("logout", True)

        settings = db.session.get(
            AuditLog,
            audit.log_settings_update(
                users.super_admin,
                resource_path="settings/cms",
                previous_value={"max_versions": 50},
                new_value={"max_versions": 20},
            ),
        )
        assert settings.action == "settings_update"
        assert settings.resource_type == "settings"
        assert settings.new_value == {"max_versions": 20}

    def test_rollback_metadata(self, audit, users, db):
        entry_id = audit.log_content_rollback(
            users.admin,
            resource_type="hero",
            resource_path="homes/singleton/hero/singleton",
            previous_value={"title": "B"},
            new_value={"title": "A"},
            from_version=3,
            to_version=1,
            success=True,
        )

        row = db.session.get(AuditLog, entry_id)
        assert row.action == "content_rollback"
        assert row.extra == {"from_version": 3, "to_version": 1}

    def test_admin_management(self, audit, users, db):
        entry_id = audit.log_admin_management(
            "role_change",
            users.super_admin,
            target_user_id=users.editor.id,
            target_user_email=users.editor.email,
            previous_value={"role": "editor"},
            new_value={"role": "admin"},
        )

        row = db.session.get(AuditLog, entry_id)
        assert row.action == "admin_role_change"
        assert row.resource_type == "admin"
        assert row.resource_path == f"admin_users/{users.editor.id}"
        assert row.extra == {"target_user_email": users.editor.email}


class TestQuery:
    def test_filters(self, audit, users):
        _entry(audit, users.admin, action=AuditAction.CONTENT_CREATE)
        _entry(audit, users.admin, action=AuditAction.CONTENT_UPDATE, success=False)
        _entry(audit, users.editor, action=AuditAction.CONTENT_UPDATE)

        items, _ = audit.query(action="content_update")
        assert len(items) == 2

        items, _ = audit.query(user_id=users.admin.id)
        assert {item.action for item in items} == {"content_create", "content_update"}

        items, _ = audit.query(success=False)
        assert len(items) == 1
        assert items[0].user_id == users.admin.id

    def test_date_range_is_inclusive_window(self, audit, users):
        _entry(audit, users.admin)
        now = datetime.now(timezone.utc)

        items, _ = audit.query(start_date=now - timedelta(minutes=5), end_date=now + timedelta(minutes=5))
        assert len(items) == 1

        items, _ = audit.query(end_date=now - timedelta(days=1))
        assert items == []

        items, _ = audit.query(start_date=now + timedelta(days=1))
        assert items == []

    def test_cursor_pagination(self, audit, users):
        created = [_entry(audit, users.admin, metadata={"n": n}) for n in range(5)]

        seen = []
        cursor = None
        pages = 0
        while True:
            items, meta = audit.query(limit=2, cursor=cursor)
            seen.extend(item.id for item in items)
            pages += 1
            if not meta["has_more"]:
                assert meta["next_cursor"] is None
                break
            cursor = meta["next_cursor"]

        assert pages == 3
        assert sorted(seen) == sorted(created)
        assert len(set(seen)) == 5

    def test_newest_first(self, audit, users):
        for _ in range(3):
            _entry(audit, users.admin)

        items, meta = audit.query()
        timestamps = [item.timestamp for item in items]
        assert timestamps == sorted(timestamps, reverse=True)
        assert meta == {"has_more": False, "next_cursor": None}
