"""Alembic environment for the stockrecon inventory schema.

Runs against a connection handed over through ``config.attributes`` when
called from ``upgrade_head``; otherwise opens its own from ``sqlalchemy.url``
or ``DATABASE_URI``.
"""

from __future__ import annotations

import logging
from logging.config import fileConfig
from pathlib import Path
from typing import TYPE_CHECKING

from alembic import context
from sqlalchemy import create_engine, pool

from stockrecon.adapters.sqlalchemy import mapper_registry, start_mappers
from stockrecon.config import configure_logging, get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config

if config.config_file_name and Path(config.config_file_name).suffix == ".ini":
    fileConfig(config.config_file_name, disable_existing_loggers=False)
else:
    configure_logging()

log = logging.getLogger("alembic.env")

start_mappers()

# sqlite cannot ALTER most columns in place; batch mode recreates the table
COMMON_OPTIONS = {
    "target_metadata": mapper_registry.metadata,
    "render_as_batch": True,
    "compare_type": True,
}


def _url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _run(connection: Connection) -> None:
    context.configure(connection=connection, **COMMON_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    context.configure(url=_url(), literal_binds=True, **COMMON_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    handed_over: Connection | None = config.attributes.get("connection")
    if handed_over is not None:
        _run(handed_over)
        return

    engine = create_engine(_url(), poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _run(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    log.info("Rendering migrations as SQL")
    run_migrations_offline()
else:
    run_migrations_online()
