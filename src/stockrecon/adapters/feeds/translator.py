"""Translate decoded feed rows into Source Records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Final

from pydantic import ValidationError

from stockrecon.domain.identity import IdentityNormalizer
from stockrecon.domain.model import ON_HAND_STATE, STAGED_STATE, Bucket, FeedKind, SourceRecord

from .schema import FeedRow

if TYPE_CHECKING:
    from collections.abc import Iterable

    from stockrecon.domain.reconciliation import RunContext

log = getLogger(__name__)

# bucket and state assumed when the row itself carries none
FEED_DEFAULTS: Final[dict[str, tuple[str | None, str]]] = {
    FeedKind.FINISHED_GOODS: (Bucket.FG, ON_HAND_STATE),
    FeedKind.RETURNS: (Bucket.ASIS, ON_HAND_STATE),
    FeedKind.INBOUND: (Bucket.INBOUND, ON_HAND_STATE),
    FeedKind.BACKHAUL: (Bucket.BACKHAUL, ON_HAND_STATE),
    FeedKind.STAGING: (None, STAGED_STATE),
}


@dataclass(slots=True)
class TranslationResult:
    records: list[SourceRecord] = field(default_factory=list[SourceRecord])
    malformed: int = 0
    synthesized: int = 0
    duplicates: int = 0


def _json_safe(value: object) -> object:
    if value is None or isinstance(value, str | int | float | bool):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _raw_payload(row: object) -> dict[str, object]:
    if not isinstance(row, Mapping):
        return {}
    return {str(key): _json_safe(item) for key, item in row.items()}


def translate_feed_rows(
    rows: Iterable[Mapping[str, object] | FeedRow],
    *,
    feed: FeedKind | str,
    context: RunContext,
    observed_at: datetime | None = None,
) -> TranslationResult:
    """Build one Source Record per distinct identity in ``rows``.

    Rows failing schema validation are logged and skipped; rows repeating an
    identity already emitted in this batch are dropped.
    """

    seen_at = observed_at or datetime.now(UTC)
    default_bucket, default_state = FEED_DEFAULTS.get(feed, (None, ON_HAND_STATE))
    normalizer = IdentityNormalizer(context)
    synthesized_before = context.identity.synthesized
    duplicates_before = context.identity.duplicates
    result = TranslationResult()

    for position, row in enumerate(rows):
        try:
            payload = row if isinstance(row, FeedRow) else FeedRow.model_validate(row)
        except ValidationError as exc:
            result.malformed += 1
            log.warning("Skipping malformed %s row %d: %s", feed, position, exc)
            continue

        identifier = normalizer.identify(
            feed,
            identifier=payload.identifier,
            model=payload.model,
            status=payload.status,
            grouping_key=payload.grouping_key,
        )
        if identifier is None:
            continue

        result.records.append(
            SourceRecord(
                tenant_id=context.scope.tenant_id,
                location_id=context.scope.location_id,
                source_type=str(feed),
                identifier=identifier,
                bucket=payload.bucket or default_bucket,
                state=payload.state or default_state,
                model=payload.model,
                quantity=payload.quantity,
                grouping_key=payload.grouping_key,
                status=payload.status,
                message=payload.message,
                order_code=payload.order_code,
                last_seen_at=seen_at,
                raw_payload=(
                    payload.model_dump(mode="json")
                    if isinstance(row, FeedRow)
                    else _raw_payload(row)
                ),
            )
        )

    result.synthesized = context.identity.synthesized - synthesized_before
    result.duplicates = context.identity.duplicates - duplicates_before
    if result.synthesized or result.duplicates:
        log.info(
            "%s batch for %s: %d synthetic identifiers, %d duplicates dropped",
            feed,
            context.scope,
            result.synthesized,
            result.duplicates,
        )
    return result
