"""Pick PostgreSQL-only DDL (the allocation exclusion constraint) at import time."""

import os

DIALECT_OVERRIDE_ENV = "CELLAR_FORCE_DB_DIALECT"
_URL_KEYS = ("SQLALCHEMY_TEST_DATABASE_URI", "SQLALCHEMY_DATABASE_URI", "DATABASE_URL")


def configured_database_url() -> str:
    return next((os.environ[key] for key in _URL_KEYS if os.environ.get(key)), "")


def is_postgres() -> bool:
    """True when models should carry PostgreSQL-only constraints.

    ``CELLAR_FORCE_DB_DIALECT`` wins, so a SQLite test run ignores a Postgres
    DATABASE_URL exported in the shell.
    """
    forced = os.environ.get(DIALECT_OVERRIDE_ENV, "").strip().lower()
    if forced:
        return forced in ("pg", "postgres", "postgresql")
    return configured_database_url().strip().lower().startswith(("postgres://", "postgresql"))
