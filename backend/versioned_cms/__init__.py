import logging
from typing import Any, Mapping, Optional

from flask import Flask
from .config import config_by_name
from .extensions import db, migrate, jwt
from .errors import register_error_handlers
from .services import build_services


def create_app(config_name: str = "development", config_overrides: Optional[Mapping[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config["LOG_LEVEL"]).upper(), logging.INFO))

    # -------------------------------------------------
    # Extensions
    # -------------------------------------------------
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    # Models must be registered on db.metadata before migrations / create_all
    from . import models  # noqa: F401

    # -------------------------------------------------
    # Services
    # -------------------------------------------------
    app.extensions["cms"] = build_services(app)

    # -------------------------------------------------
    # API Blueprints
    # -------------------------------------------------
    from .api.v1 import v1_bp

    app.register_blueprint(v1_bp, url_prefix="/api/v1")
    register_error_handlers(app)

    return app
