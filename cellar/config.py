"""Environment-driven configuration for the cellar service.

``FLASK_ENV`` picks one of the config classes below; every other knob is an
environment variable read through ``EnvReader`` so malformed values fall
back to their defaults with a recorded warning instead of crashing import.
"""

from __future__ import annotations

import os
from typing import Mapping

ENV_KEY = "FLASK_ENV"
ENVIRONMENTS = ("development", "testing", "staging", "production")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class EnvReader:
    """Typed access to environment variables; collects warnings for bad values."""

    def __init__(self, data: Mapping[str, str] | None = None):
        self._data = dict(data if data is not None else os.environ)
        self.warnings: list[str] = []

    def _get(self, key: str) -> str | None:
        value = (self._data.get(key) or "").strip()
        return value or None

    def str(self, key: str, default: str | None = None) -> str | None:
        value = self._get(key)
        return default if value is None else value

    def int(self, key: str, default: int) -> int:
        value = self._get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            self.warnings.append(f"{key}={value!r} is not an integer; using {default}")
            return default

    def optional_bool(self, key: str) -> bool | None:
        value = self._get(key)
        if value is None:
            return None
        if value.lower() in _TRUE_VALUES:
            return True
        if value.lower() in _FALSE_VALUES:
            return False
        self.warnings.append(f"{key}={value!r} is not a boolean; ignoring it")
        return None

    def bool(self, key: str, default: bool) -> bool:
        value = self.optional_bool(key)
        return default if value is None else value


def resolve_environment(reader: EnvReader) -> str:
    name = (reader.str(ENV_KEY, "development") or "development").lower()
    if name not in ENVIRONMENTS:
        raise RuntimeError(f"Invalid {ENV_KEY}={name!r}; expected one of {', '.join(ENVIRONMENTS)}")
    return name


def database_url(reader: EnvReader) -> str | None:
    """DATABASE_URL with Heroku-style ``postgres://`` rewritten for SQLAlchemy."""
    url = reader.str("DATABASE_URL")
    if url and url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def pool_options(reader: EnvReader, *, size: int, overflow: int, recycle: int) -> dict:
    return {
        "pool_size": reader.int("SQLALCHEMY_POOL_SIZE", size),
        "max_overflow": reader.int("SQLALCHEMY_MAX_OVERFLOW", overflow),
        "pool_timeout": reader.int("SQLALCHEMY_POOL_TIMEOUT", 30),
        "pool_recycle": reader.int("SQLALCHEMY_POOL_RECYCLE", recycle),
        "pool_pre_ping": True,
    }


env = EnvReader()
ACTIVE_ENV = resolve_environment(env)


class BaseConfig:
    ENV = ACTIVE_ENV
    SECRET_KEY = env.str("FLASK_SECRET_KEY", "cellar-dev-secret")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = database_url(env)
    SQLALCHEMY_ENGINE_OPTIONS = pool_options(env, size=20, overflow=10, recycle=1800)
    # None leaves schema management to Alembic.
    SQLALCHEMY_CREATE_ALL = env.optional_bool("SQLALCHEMY_CREATE_ALL")

    CACHE_REDIS_URL = env.str("CACHE_REDIS_URL") or env.str("REDIS_URL")
    CACHE_DEFAULT_TIMEOUT = env.int("CACHE_DEFAULT_TIMEOUT", 120)
    VESSEL_BOARD_CACHE_TTL = env.int("VESSEL_BOARD_CACHE_TTL", 120)

    LOG_LEVEL = env.str("LOG_LEVEL", "WARNING")
    LOG_REDACT_PII = env.bool("LOG_REDACT_PII", True)

    # Window length for a transition that arrives without planned_end.
    FERMENTATION_DEFAULT_DAYS = env.int("FERMENTATION_DEFAULT_DAYS", 14)
    CONDITIONING_DEFAULT_DAYS = env.int("CONDITIONING_DEFAULT_DAYS", 14)
    PACKAGING_DEFAULT_DAYS = env.int("PACKAGING_DEFAULT_DAYS", 1)

    LOT_CODE_MAX_RETRIES = env.int("LOT_CODE_MAX_RETRIES", 5)
    DEFAULT_ORG_TIMEZONE = env.str("DEFAULT_ORG_TIMEZONE", "UTC")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    LOG_LEVEL = env.str("LOG_LEVEL", "INFO")
    SQLALCHEMY_DATABASE_URI = BaseConfig.SQLALCHEMY_DATABASE_URI or "sqlite:///" + os.path.join(
        os.path.abspath(os.path.dirname(__file__)), "..", "instance", "cellar.db"
    )


class TestingConfig(BaseConfig):
    TESTING = True
    SESSION_COOKIE_SECURE = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_CREATE_ALL = None


class StagingConfig(BaseConfig):
    SESSION_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = "https"
    SQLALCHEMY_ENGINE_OPTIONS = pool_options(env, size=10, overflow=20, recycle=1800)


class ProductionConfig(BaseConfig):
    SESSION_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = "https"
    LOG_LEVEL = env.str("LOG_LEVEL", "INFO")


CONFIG_BY_ENV = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "staging": StagingConfig,
    "production": ProductionConfig,
}

Config = CONFIG_BY_ENV[ACTIVE_ENV]
ENV_WARNINGS = tuple(env.warnings)
