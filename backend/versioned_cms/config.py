import os
from dotenv import load_dotenv

load_dotenv()


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Versioning / audit
    CMS_MAX_VERSIONS = int(os.getenv("CMS_MAX_VERSIONS", "50"))
    CMS_AUDIT_MAX_VALUE_SIZE = int(os.getenv("CMS_AUDIT_MAX_VALUE_SIZE", "10000"))
    CMS_AUDIT_PAGE_SIZE = int(os.getenv("CMS_AUDIT_PAGE_SIZE", "50"))

    # Post-commit work (snapshot pruning) on a worker pool instead of inline
    CMS_ASYNC_TASKS = env_flag("CMS_ASYNC_TASKS")
    CMS_TASK_WORKERS = int(os.getenv("CMS_TASK_WORKERS", "2"))

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URI", "sqlite:///cms-dev.db")

class TestingConfig(BaseConfig):
    TESTING = True
    SECRET_KEY = "test-secret-key-0123456789-abcdefghijklmnop"
    JWT_SECRET_KEY = SECRET_KEY
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URI", "sqlite://")
    CMS_ASYNC_TASKS = False

class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI")

config_by_name = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig
}
