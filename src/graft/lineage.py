"""Ascendant-chain walker."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from graft.arena import Arena
from graft.budget import (
    TRUNCATED_BY_DEPTH,
    BudgetExhausted,
    TraversalBudget,
    TraversalTruncated,
    resolve_budget,
)
from graft.config import DEFAULT_MAX_DEPTH, DEFAULT_STEP_BUDGET
from graft.invariants import never, require_positive_int
from graft.model import ItemId

log = logging.getLogger(__name__)


class AscendantWalk(Iterator[ItemId]):
    """Ids from the starting item outward to its root.

    The walk is consumed once. After exhaustion ``truncated`` tells whether
    it stopped at the root or at a depth/budget cut.
    """

    def __init__(
        self,
        arena: Arena,
        item_id: ItemId,
        *,
        max_depth: int,
        budget: TraversalBudget,
    ) -> None:
        arena.require(item_id)
        self.start = item_id
        self.max_depth = require_positive_int(max_depth, reason="invalid max_depth")
        self.truncated: TraversalTruncated | None = None
        self._arena = arena
        self._budget = budget
        self._steps = self._run()

    def __iter__(self) -> "AscendantWalk":
        return self

    def __next__(self) -> ItemId:
        return next(self._steps)

    def _run(self) -> Iterator[ItemId]:
        seen: set[ItemId] = set()
        current: ItemId | None = self.start
        depth = 0
        while current is not None:
            if depth >= self.max_depth:
                log.debug("ascendant walk from %s cut at depth %s", self.start, depth)
                self.truncated = TraversalTruncated(TRUNCATED_BY_DEPTH, (current,))
                return
            try:
                self._budget.consume()
            except BudgetExhausted as exc:
                self.truncated = TraversalTruncated(exc.reason, (current,))
                return
            if current in seen:
                never("ascendant cycle in published arena", item_id=current)
            seen.add(current)
            yield current
            current = self._arena.require(current).ascendant
            depth += 1


def walk_ascendants(
    arena: Arena,
    item_id: ItemId,
    max_depth: int = DEFAULT_MAX_DEPTH,
    *,
    budget: TraversalBudget | None = None,
) -> AscendantWalk:
    return AscendantWalk(
        arena,
        item_id,
        max_depth=max_depth,
        budget=resolve_budget(budget, default_steps=DEFAULT_STEP_BUDGET),
    )
