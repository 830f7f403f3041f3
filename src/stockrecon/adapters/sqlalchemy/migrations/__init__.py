"""Alembic helpers for the revision scripts shipped with this package."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from stockrecon.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent


def alembic_config(*, database_uri: str | None = None) -> Config:
    """Config that needs no ``alembic.ini``; ``env.py`` falls back to ``DATABASE_URI``."""

    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def head_revision() -> str | None:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


def current_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the schema to the newest revision; a no-op when already there."""

    if engine is None:
        command.upgrade(
            alembic_config(database_uri=database_uri or get_database_config().uri), "head"
        )
        return
    if current_revision(engine) == head_revision():
        log.debug("Schema already at head for %s", engine.url.render_as_string())
        return
    config = alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")
