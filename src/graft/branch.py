"""Branch walker: depth-first over the structural pointers.

``head`` is expanded before ``next``. The walker carries the set of ids on
the current path (reached through head *and* peer edges); reaching an id
that is already on the path emits it once with ``is_cycle=True`` and does not
expand it again. The same id may show up several times through different
paths, since one subtree can be mounted at several stems.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from graft.arena import Arena
from graft.budget import (
    TRUNCATED_BY_DEPTH,
    BudgetExhausted,
    TraversalBudget,
    TraversalTruncated,
    resolve_budget,
)
from graft.composition import crosses_flux
from graft.config import DEFAULT_MAX_DEPTH, DEFAULT_STEP_BUDGET
from graft.invariants import require_positive_int
from graft.model import ItemId

log = logging.getLogger(__name__)

VIA_START = "start"
VIA_HEAD = "head"
VIA_PEER = "peer"


@dataclass(frozen=True)
class BranchStep:
    item_id: ItemId
    depth: int
    is_cycle: bool = False
    via: str = VIA_START
    is_flux: bool = False
    # Stem for ``via == "head"``, peer predecessor for ``via == "peer"``.
    parent: ItemId | None = None

    def as_payload(self) -> dict[str, object]:
        return {
            "item_id": self.item_id,
            "depth": self.depth,
            "is_cycle": self.is_cycle,
            "via": self.via,
            "is_flux": self.is_flux,
            "parent": self.parent,
        }


@dataclass(frozen=True)
class _Enter:
    item_id: ItemId
    depth: int
    via: str
    parent: ItemId | None


@dataclass(frozen=True)
class _Exit:
    item_id: ItemId


class BranchWalk(Iterator[BranchStep]):
    def __init__(
        self,
        arena: Arena,
        start: ItemId,
        *,
        max_depth: int,
        budget: TraversalBudget,
    ) -> None:
        arena.require(start)
        self.start = start
        self.max_depth = require_positive_int(max_depth, reason="invalid max_depth")
        self.truncated: TraversalTruncated | None = None
        self._arena = arena
        self._budget = budget
        self._steps = self._run()

    def __iter__(self) -> "BranchWalk":
        return self

    def __next__(self) -> BranchStep:
        return next(self._steps)

    def _run(self) -> Iterator[BranchStep]:
        stack: list[_Enter | _Exit] = [_Enter(self.start, 0, VIA_START, None)]
        on_path: set[ItemId] = set()
        cut: list[ItemId] = []
        while stack:
            frame = stack.pop()
            if isinstance(frame, _Exit):
                on_path.discard(frame.item_id)
                continue
            try:
                self._budget.consume()
            except BudgetExhausted as exc:
                pending = [frame.item_id]
                pending.extend(entry.item_id for entry in reversed(stack) if isinstance(entry, _Enter))
                self.truncated = TraversalTruncated(exc.reason, _unique(cut + pending))
                return
            item = self._arena.require(frame.item_id)
            is_flux = (
                frame.via == VIA_HEAD
                and frame.parent is not None
                and crosses_flux(frame.parent, item)
            )
            if item.id in on_path:
                yield BranchStep(item.id, frame.depth, True, frame.via, is_flux, frame.parent)
                continue
            yield BranchStep(item.id, frame.depth, False, frame.via, is_flux, frame.parent)
            on_path.add(item.id)
            stack.append(_Exit(item.id))
            if frame.via != VIA_START and item.next is not None:
                stack.append(_Enter(item.next, frame.depth, VIA_PEER, item.id))
            if item.head is not None:
                if frame.depth + 1 >= self.max_depth:
                    log.debug("branch walk from %s cut below %s", self.start, item.id)
                    cut.append(item.head)
                else:
                    stack.append(_Enter(item.head, frame.depth + 1, VIA_HEAD, item.id))
        if cut:
            self.truncated = TraversalTruncated(TRUNCATED_BY_DEPTH, _unique(cut))


def _unique(ids: list[ItemId]) -> tuple[ItemId, ...]:
    return tuple(dict.fromkeys(ids))


def walk_branch(
    arena: Arena,
    start: ItemId,
    max_depth: int = DEFAULT_MAX_DEPTH,
    *,
    budget: TraversalBudget | None = None,
) -> BranchWalk:
    return BranchWalk(
        arena,
        start,
        max_depth=max_depth,
        budget=resolve_budget(budget, default_steps=DEFAULT_STEP_BUDGET),
    )
