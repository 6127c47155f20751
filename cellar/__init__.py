import logging
import os
from typing import Any

from flask import Flask, jsonify
from sqlalchemy import event
from sqlalchemy.exc import DBAPIError
from sqlalchemy.pool import StaticPool

from .authz import configure_login_manager
from .blueprints_registry import register_blueprints
from .config import ENV_WARNINGS
from .extensions import cache, db, migrate
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

# Engine arguments that SQLite's pools refuse.
_QUEUE_POOL_ONLY = ("pool_size", "max_overflow", "pool_timeout")


def create_app(config: dict[str, Any] | None = None) -> Flask:
    """Build the cellar application.

    ``config`` overrides the environment-selected config class; a
    ``DATABASE_URL`` key there replaces ``SQLALCHEMY_DATABASE_URI``.
    """
    app = Flask(__name__)
    os.makedirs(app.instance_path, exist_ok=True)

    app.config.from_object("cellar.config.Config")
    if config:
        app.config.update(config)
        if config.get("DATABASE_URL"):
            app.config["SQLALCHEMY_DATABASE_URI"] = config["DATABASE_URL"]
    _adapt_engine_options(app)

    configure_logging(app)
    for warning in ENV_WARNINGS:
        logger.warning("Configuration: %s", warning)

    db.init_app(app)
    migrate.init_app(app, db)
    _init_cache(app)
    configure_login_manager(app)
    register_blueprints(app)

    from . import models  # noqa: F401
    from .management import register_commands

    register_commands(app)
    _install_database_handlers(app)

    with app.app_context():
        _enable_sqlite_savepoints(db.engine)
        if app.config.get("SQLALCHEMY_CREATE_ALL"):
            db.create_all()
            logger.info("Tables created via db.create_all() (SQLALCHEMY_CREATE_ALL)")

    return app


def _adapt_engine_options(app: Flask) -> None:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if not uri.startswith("sqlite"):
        return
    opts = {
        key: value
        for key, value in (app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {}).items()
        if key not in _QUEUE_POOL_ONLY
    }
    if uri in ("sqlite://", "sqlite:///:memory:"):
        opts["poolclass"] = StaticPool
        opts["connect_args"] = {"check_same_thread": False}
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts


def _enable_sqlite_savepoints(engine) -> None:
    """pysqlite opens transactions lazily and breaks SAVEPOINT; take over BEGIN."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _autocommit_driver(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")


def _init_cache(app: Flask) -> None:
    redis_url = app.config.get("CACHE_REDIS_URL")
    use_redis = bool(redis_url) and not app.config.get("TESTING")
    if app.config.get("ENV") == "production" and not use_redis:
        raise RuntimeError("CACHE_REDIS_URL is required in production")

    cache_config = {"CACHE_DEFAULT_TIMEOUT": app.config.get("CACHE_DEFAULT_TIMEOUT", 120)}
    if use_redis:
        cache_config.update(CACHE_TYPE="RedisCache", CACHE_REDIS_URL=redis_url)
    else:
        cache_config["CACHE_TYPE"] = "SimpleCache"
    cache.init_app(app, config=cache_config)
    logger.info("Cache backend: %s", cache_config["CACHE_TYPE"])


def _install_database_handlers(app: Flask) -> None:
    @app.teardown_request
    def _rollback_on_error(exc):
        if exc is not None:
            db.session.rollback()

    @app.errorhandler(DBAPIError)
    def _database_unavailable(err):
        db.session.rollback()
        logger.error("Database error: %s", err)
        return jsonify({"success": False, "error": "Database temporarily unavailable, try again shortly"}), 503
