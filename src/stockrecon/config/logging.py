"""Logging setup for batch reconciliation jobs."""

from __future__ import annotations

import logging
from typing import Final

from .env import read_env
from .errors import InvalidSettingError

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
# libraries that log every statement at INFO
_CHATTY_LOGGERS: Final[tuple[str, ...]] = ("sqlalchemy.engine", "alembic.runtime.migration")


def log_level_from_env(default: int = logging.INFO) -> int:
    raw = read_env("STOCKRECON_LOG_LEVEL")
    if raw is None:
        return default
    level = logging.getLevelNamesMapping().get(raw.upper())
    if level is None:
        raise InvalidSettingError("STOCKRECON_LOG_LEVEL", raw, "a logging level name")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    ``level`` defaults to ``STOCKRECON_LOG_LEVEL`` (INFO when unset). Library
    loggers that narrate every statement are held at WARNING unless DEBUG is
    requested. ``force=True`` replaces handlers installed earlier.
    """

    effective = log_level_from_env() if level is None else level
    logging.basicConfig(level=effective, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    if effective > logging.DEBUG:
        for name in _CHATTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
