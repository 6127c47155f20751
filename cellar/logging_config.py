from __future__ import annotations

import logging
import re

from flask import Flask

VERBOSE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s:%(lineno)d %(message)s"
COMPACT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s %(message)s"
QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic.runtime.migration", "cellar.blueprints_registry")

_EMAIL = re.compile(r"[A-Za-z0-9_.+-]+@[A-Za-z0-9-]+\.[A-Za-z0-9-.]+")
_CREDENTIAL = re.compile(r"(token|api[_-]?key|secret|password|authorization)\s*[:=]\s*([^\s,;]+)", re.IGNORECASE)


class RedactingFilter(logging.Filter):
    """Masks operator emails and credential-looking pairs in rendered messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = _EMAIL.sub("[email]", record.getMessage())
        record.msg = _CREDENTIAL.sub(lambda m: f"{m.group(1)}=[redacted]", message)
        record.args = None
        return True


def log_level(value, fallback: int = logging.INFO) -> int:
    if isinstance(value, int):
        return value
    resolved = getattr(logging, str(value or "").strip().upper(), None)
    return resolved if isinstance(resolved, int) else fallback


def configure_logging(app: Flask) -> None:
    """Apply LOG_LEVEL, pick a format for the environment and attach redaction to every handler."""
    level = log_level(app.config.get("LOG_LEVEL"), logging.DEBUG if app.debug else logging.INFO)
    for name in (None, "cellar"):
        logging.getLogger(name).setLevel(level)
    app.logger.setLevel(level)

    if level > logging.DEBUG:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    verbose = app.debug or app.config.get("ENV") != "production"
    formatter = logging.Formatter(VERBOSE_FORMAT if verbose else COMPACT_FORMAT)
    redact = app.config.get("LOG_REDACT_PII", True)
    for handler in [*logging.getLogger().handlers, *app.logger.handlers]:
        handler.setFormatter(formatter)
        if redact and not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(RedactingFilter())
