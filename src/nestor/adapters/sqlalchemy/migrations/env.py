"""Alembic environment for the nestor schema.

``upgrade_head`` hands in an open connection through ``config.attributes`` so
the upgrade joins the caller's transaction; the ``alembic`` CLI connects on its own.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from alembic import context
from sqlalchemy import create_engine, pool

from nestor.adapters.sqlalchemy.mappings import mapper_registry, start_mappers
from nestor.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config

log = logging.getLogger("alembic.env")

start_mappers()

target_metadata = mapper_registry.metadata

# SQLite cannot ALTER most constraints in place
_CONFIGURE_OPTIONS = {"render_as_batch": True, "compare_type": True}


def _run(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        **_CONFIGURE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""

    context.configure(
        url=config.get_main_option("sqlalchemy.url") or get_database_config().uri,
        target_metadata=target_metadata,
        literal_binds=True,
        **_CONFIGURE_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    existing_connection = config.attributes.get("connection")
    if existing_connection is not None:
        _run(existing_connection)
        return

    database = get_database_config()
    url = config.get_main_option("sqlalchemy.url") or database.uri
    engine = create_engine(url, poolclass=pool.NullPool, echo=database.echo, future=True)
    try:
        with engine.connect() as connection:
            log.info("Migrating %s", engine.url.render_as_string(hide_password=True))
            _run(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
