"""Pytest configuration and fixtures"""
from types import SimpleNamespace

import pytest
from flask_jwt_extended import create_access_token

from versioned_cms import create_app
from versioned_cms.extensions import db as _db
from versioned_cms.models.admin_user import AdminUser


@pytest.fixture(scope="function")
def app(tmp_path):
    """App on a fresh SQLite file per test, with an app context pushed"""
    app = create_app(
        "testing",
        {"SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'cms-test.db'}"},
    )

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def cms(app):
    return app.extensions["cms"]


@pytest.fixture
def client(app):
    return app.test_client()


def _seed_user(user_id, role, *, is_active=True):
    user = AdminUser()
    user.id = user_id
    user.email = f"{user_id}@example.com"
    user.display_name = user_id.replace("-", " ").title()
    user.role = role
    user.is_active = is_active
    user.created_by = "seed"
    _db.session.add(user)
    return user


@pytest.fixture
def users(app):
    """One admin user per role plus a deactivated admin"""
    seeded = SimpleNamespace(
        super_admin=_seed_user("super-admin", "super_admin"),
        admin=_seed_user("site-admin", "admin"),
        editor=_seed_user("site-editor", "editor"),
        inactive=_seed_user("former-admin", "admin", is_active=False),
    )
    _db.session.commit()
    return seeded


@pytest.fixture
def auth_headers(app):
    """Builds Authorization headers carrying a JWT for the given admin user"""

    def build(user):
        token = create_access_token(identity=user.id)
        return {"Authorization": f"Bearer {token}"}

    return build


@pytest.fixture
def site_config():
    return {
        "companyName": "Chariotek",
        "tagline": "Engineering the future",
        "email": "hello@chariotek.example",
        "phone": "+1 (555) 010-2000",
        "address": "1 Harbour Way",
        "logo": "https://cdn.example.com/logo.png",
    }
