"""Environment variable readers shared by the config factories."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidSettingError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def read_env(name: str) -> str | None:
    """Return the stripped value of ``name``; unset and blank both read as ``None``."""

    value = os.getenv(name)
    if value is None:
        return None
    return value.strip() or None


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    values = {name: read_env(name) for name in names}
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise MissingConfigurationError(missing)
    return {name: value for name, value in values.items() if value is not None}


def positive_int_env(name: str, default: int) -> int:
    raw = read_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidSettingError(name, raw, "an integer") from None
    if value < 1:
        raise InvalidSettingError(name, raw, "a positive integer")
    return value
