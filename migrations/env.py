import logging
import os
from logging.config import fileConfig

from alembic import context
from flask import current_app
from sqlalchemy import create_engine, text

from cellar import models  # noqa: F401

config = context.config
fileConfig(config.config_file_name)
logger = logging.getLogger('alembic.env')

migrate_ext = current_app.extensions['migrate']


def _engine():
    """ALEMBIC_DATABASE_URL wins so schema changes can run with an owner role."""
    url = os.environ.get('ALEMBIC_DATABASE_URL')
    if url:
        if url.startswith('postgres://'):
            url = 'postgresql://' + url[len('postgres://'):]
        return create_engine(url)
    return migrate_ext.db.engine


def _drop_stale_batch_tables(connection):
    # Left behind when a SQLite batch migration dies halfway.
    rows = connection.execute(text(
        "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE '_alembic_tmp_%'"
    )).fetchall()
    for (name,) in rows:
        logger.info("Dropping stale batch table %s", name)
        connection.execute(text(f'DROP TABLE IF EXISTS "{name}"'))
    if rows:
        connection.commit()


def _skip_empty_autogenerate(context, revision, directives):
    if getattr(config.cmd_opts, 'autogenerate', False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info('No schema changes detected.')


engine = _engine()
config.set_main_option('sqlalchemy.url', engine.url.render_as_string(hide_password=False).replace('%', '%%'))
target_metadata = migrate_ext.db.metadata


def run_migrations_offline():
    context.configure(url=config.get_main_option('sqlalchemy.url'), target_metadata=target_metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    options = dict(migrate_ext.configure_args)
    options['transaction_per_migration'] = True
    if options.get('process_revision_directives') is None:
        options['process_revision_directives'] = _skip_empty_autogenerate

    with engine.connect() as connection:
        if connection.dialect.name == 'sqlite':
            _drop_stale_batch_tables(connection)
        context.configure(connection=connection, target_metadata=target_metadata, **options)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
