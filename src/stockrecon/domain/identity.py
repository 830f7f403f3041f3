"""Identity normalization for feed rows.

Rows that carry an identifier keep it (trimmed). Rows without one receive a
synthetic identifier built from their descriptive attributes plus a per-run
counter, e.g. ``FG-NS:GTE18GMNRWW_AVAILABLE:3``. Identity is unique within a
single ingestion batch per feed; duplicates are dropped and counted.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Final

from stockrecon.domain.model import FeedKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stockrecon.domain.reconciliation.context import RunContext

log = logging.getLogger(__name__)

TOKEN_MAX_LENGTH: Final = 24
UNKNOWN_TOKEN: Final = "UNKNOWN"

SYNTHETIC_PREFIXES: Final[dict[str, str]] = {
    FeedKind.RETURNS: "ASIS-NS",
    FeedKind.FINISHED_GOODS: "FG-NS",
    FeedKind.STAGING: "STA-NS",
    FeedKind.INBOUND: "INB-NS",
    FeedKind.BACKHAUL: "BH-NS",
}

_TOKEN_NOISE = re.compile(r"[^A-Z0-9]")
_PREFIX_NOISE = re.compile(r"[^A-Z]")
_SYNTHETIC_PATTERN = re.compile(r"^[A-Z]+(?:-[A-Z]+)*-NS:[A-Z0-9_]+:[1-9][0-9]*$")


def normalize_token(value: object) -> str:
    if value is None:
        return ""
    return _TOKEN_NOISE.sub("", str(value).upper())[:TOKEN_MAX_LENGTH]


def synthetic_prefix(feed: str) -> str:
    known = SYNTHETIC_PREFIXES.get(feed)
    if known is not None:
        return known
    letters = _PREFIX_NOISE.sub("", feed.upper()) or "FEED"
    return f"{letters}-NS"


def build_synthetic_identifier(prefix: str, parts: Iterable[object], index: int) -> str:
    tokens = "_".join(token for token in (normalize_token(part) for part in parts) if token)
    return f"{prefix}:{tokens or UNKNOWN_TOKEN}:{index}"


def is_synthetic_identifier(identifier: str) -> bool:
    return bool(_SYNTHETIC_PATTERN.match(identifier))


class IdentityNormalizer:
    """Assign stable identities to the rows of one ingestion batch."""

    def __init__(self, context: RunContext) -> None:
        self._context = context

    def identify(
        self,
        feed: str,
        *,
        identifier: str | None,
        model: str | None = None,
        status: str | None = None,
        grouping_key: str | None = None,
    ) -> str | None:
        """Return the identity for one row, or ``None`` if it duplicates an earlier row."""

        resolved = identifier.strip() if identifier else ""
        if not resolved:
            index = self._context.next_synthesis_index(feed, grouping_key or "")
            resolved = build_synthetic_identifier(
                synthetic_prefix(feed),
                (model, status, grouping_key),
                index,
            )
            self._context.identity.synthesized += 1

        if not self._context.mark_seen(feed, resolved):
            self._context.identity.duplicates += 1
            log.debug("Dropping duplicate %s row for %s", feed, resolved)
            return None
        return resolved
