"""Declarative precedence rules consulted by the canonical resolver.

All "which feed wins" decisions live in one ``PrecedencePolicy`` so they can
be tested without running the rest of the pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from stockrecon.domain.model import STAGED_STATE, Bucket, FeedKind

if TYPE_CHECKING:
    from collections.abc import Collection


@dataclass(frozen=True, slots=True, kw_only=True)
class PrecedencePolicy:
    # earlier entries rank higher; unknown feeds rank after all of these
    feed_priority: tuple[str, ...]
    # first feed kind present in the candidate set decides the bucket
    bucket_by_feed: tuple[tuple[str, str], ...]
    # presence of the feed kind forces the canonical state
    forced_state_by_feed: tuple[tuple[str, str], ...]
    # feed whose status/message fields override the generic merge
    status_feed: str | None
    staging_feed: str
    staging_bucket: str
    staged_state: str = STAGED_STATE
    unknown_bucket: str = Bucket.UNKNOWN
    _priority_index: dict[str, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_priority_index",
            {feed: index for index, feed in enumerate(self.feed_priority)},
        )

    def priority_of(self, source_type: str) -> int:
        return self._priority_index.get(source_type, len(self.feed_priority))

    def bucket_for(self, present_feeds: Collection[str]) -> str | None:
        for feed, bucket in self.bucket_by_feed:
            if feed in present_feeds:
                return bucket
        return None

    def forced_state_for(self, present_feeds: Collection[str]) -> str | None:
        for feed, state in self.forced_state_by_feed:
            if feed in present_feeds:
                return state
        return None


DEFAULT_POLICY: Final[PrecedencePolicy] = PrecedencePolicy(
    feed_priority=(
        FeedKind.STAGING,
        FeedKind.RETURNS,
        FeedKind.FINISHED_GOODS,
        FeedKind.INBOUND,
        FeedKind.BACKHAUL,
    ),
    bucket_by_feed=(
        (FeedKind.RETURNS, Bucket.ASIS),
        (FeedKind.FINISHED_GOODS, Bucket.FG),
        (FeedKind.INBOUND, Bucket.INBOUND),
        (FeedKind.BACKHAUL, Bucket.BACKHAUL),
        (FeedKind.STAGING, Bucket.STA),
    ),
    forced_state_by_feed=((FeedKind.STAGING, STAGED_STATE),),
    status_feed=FeedKind.RETURNS,
    staging_feed=FeedKind.STAGING,
    staging_bucket=Bucket.STA,
)
