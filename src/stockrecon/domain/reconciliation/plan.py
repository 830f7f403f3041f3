"""Per-identifier planning: resolve, detect conflicts, diff.

Each identifier's plan depends only on its own Source Records and its own
persisted state, so planning fans out across worker threads when asked to.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from .conflicts import decide_conflict
from .diff import diff_identifier
from .precedence import DEFAULT_POLICY, PrecedencePolicy
from .resolve import resolve_canonical

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stockrecon.domain.model import CanonicalItem, ConflictGroup, SourceRecord

    from .context import RunContext
    from .contracts import IdentifierPlan


@dataclass(slots=True)
class ReconcileInputs:
    """Everything loaded from the store for one batch of identifiers."""

    sources: dict[str, list[SourceRecord]] = field(default_factory=dict)
    items: dict[str, list[CanonicalItem]] = field(default_factory=dict)
    open_conflicts: dict[str, ConflictGroup] = field(default_factory=dict)


def plan_identifier(
    identifier: str,
    inputs: ReconcileInputs,
    *,
    context: RunContext,
    policy: PrecedencePolicy = DEFAULT_POLICY,
) -> IdentifierPlan:
    rows = inputs.sources.get(identifier, [])
    view = resolve_canonical(rows, policy=policy)
    plan = diff_identifier(
        context.scope,
        identifier,
        view,
        inputs.items.get(identifier, []),
        run_id=context.run_id,
        now=context.now(),
    )
    conflict = decide_conflict(
        identifier,
        rows,
        inputs.open_conflicts.get(identifier),
        policy=policy,
    )
    if conflict is None:
        return plan
    return replace(plan, conflict=conflict)


def build_plans(
    identifiers: Sequence[str],
    inputs: ReconcileInputs,
    *,
    context: RunContext,
    policy: PrecedencePolicy = DEFAULT_POLICY,
    workers: int = 1,
) -> list[IdentifierPlan]:
    """Plan every identifier, preserving the order of ``identifiers``."""

    if workers <= 1 or len(identifiers) <= 1:
        return [
            plan_identifier(identifier, inputs, context=context, policy=policy)
            for identifier in identifiers
        ]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(
            pool.map(
                lambda identifier: plan_identifier(
                    identifier, inputs, context=context, policy=policy
                ),
                identifiers,
            )
        )
