"""Value normalization shared by the resolver, conflict detector and diff engine.

Feed attributes are untrusted: every helper here accepts ``object`` and
degrades to empty/unknown instead of raising.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime

_STATE_SEPARATORS = re.compile(r"[^a-z0-9]+")
_MODEL_NOISE = re.compile(r"[^A-Z0-9]")


def clean_text(value: object) -> str | None:
    """Return a stripped string, or ``None`` for absent/blank values."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = value if isinstance(value, str) else str(value)
    text = text.strip()
    return text or None


def normalize_state(value: object) -> str:
    text = clean_text(value)
    if text is None:
        return ""
    return _STATE_SEPARATORS.sub("_", text.lower()).strip("_")


def normalize_model(value: object) -> str:
    text = clean_text(value)
    if text is None:
        return ""
    return _MODEL_NOISE.sub("", text.upper())


def coerce_quantity(value: object) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = clean_text(value)
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        try:
            number = float(text)
        except ValueError:
            return None
        return int(number) if number.is_integer() else None


def coerce_timestamp(value: object) -> datetime | None:
    """Return an aware UTC timestamp, or ``None`` when unknown/unparseable."""

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(normalized)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def as_text(value: object) -> str:
    """Consistent empty representation used for field comparisons."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return str(value)
