"""Ingestion boundary for decoded inventory feed rows."""

from __future__ import annotations

from .schema import FIELD_ALIASES, FeedRow
from .translator import FEED_DEFAULTS, TranslationResult, translate_feed_rows

__all__ = [
    "FEED_DEFAULTS",
    "FIELD_ALIASES",
    "FeedRow",
    "TranslationResult",
    "translate_feed_rows",
]
