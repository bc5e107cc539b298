"""Deletion Repair Engine.

Removing an item X is classified by four facts about X:

    root            X.ascendant is None
    native          some item has ascendant == X
    head            some item has head == X
    peer_pred       some item has next == X

Each of the ten cases maps to a fixed set of repair actions. Facts the
matrix leaves open for a case are ignored when classifying but still
repaired, so no pointer into a removed item survives the commit.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum

from graft.arena import Arena
from graft.composition import flux_mounts
from graft.exceptions import LifecycleViolation
from graft.model import ItemId

log = logging.getLogger(__name__)

CASCADE = "cascade"
CLEAR_HEADS = "clear_heads"
REPOINT_HEADS = "repoint_heads"
SPLICE = "splice"

_UNSET = object()


class DeletionCase(str, Enum):
    ROOT_WITH_DESCENDANTS = "root_with_descendants"
    ROOT_HEAD = "root_head"
    ROOT_PLAIN = "root_plain"
    CASCADE = "cascade"
    CASCADE_REPOINT = "cascade_repoint"
    CASCADE_SPLICE = "cascade_splice"
    REPOINT = "repoint"
    REPOINT_SPLICE = "repoint_splice"
    SPLICE = "splice"
    PLAIN = "plain"


_ACTIONS: dict[DeletionCase, tuple[str, ...]] = {
    DeletionCase.ROOT_WITH_DESCENDANTS: (CASCADE, CLEAR_HEADS, SPLICE),
    DeletionCase.ROOT_HEAD: (CLEAR_HEADS, SPLICE),
    DeletionCase.ROOT_PLAIN: (SPLICE,),
    DeletionCase.CASCADE: (CASCADE,),
    DeletionCase.CASCADE_REPOINT: (CASCADE, REPOINT_HEADS, SPLICE),
    DeletionCase.CASCADE_SPLICE: (CASCADE, SPLICE),
    DeletionCase.REPOINT: (REPOINT_HEADS,),
    DeletionCase.REPOINT_SPLICE: (REPOINT_HEADS, SPLICE),
    DeletionCase.SPLICE: (SPLICE,),
    DeletionCase.PLAIN: (),
}


@dataclass(frozen=True)
class DeletionFacts:
    root: bool
    native: bool
    head: bool
    peer_pred: bool


def deletion_facts(arena: Arena, item_id: ItemId) -> DeletionFacts:
    item = arena.require(item_id)
    return DeletionFacts(
        root=item.is_root,
        native=bool(arena.native_descendants(item_id)),
        head=bool(arena.stems_of(item_id)),
        peer_pred=bool(arena.peer_predecessors(item_id)),
    )


def classify(arena: Arena, item_id: ItemId) -> DeletionCase:
    facts = deletion_facts(arena, item_id)
    if facts.root:
        if facts.native:
            return DeletionCase.ROOT_WITH_DESCENDANTS
        if facts.head:
            return DeletionCase.ROOT_HEAD
        return DeletionCase.ROOT_PLAIN
    if facts.native:
        if facts.head:
            return DeletionCase.CASCADE_REPOINT
        if facts.peer_pred:
            return DeletionCase.CASCADE_SPLICE
        return DeletionCase.CASCADE
    if facts.head:
        if facts.peer_pred:
            return DeletionCase.REPOINT_SPLICE
        return DeletionCase.REPOINT
    if facts.peer_pred:
        return DeletionCase.SPLICE
    return DeletionCase.PLAIN


def actions_for(case: DeletionCase) -> tuple[str, ...]:
    return _ACTIONS[case]


@dataclass(frozen=True)
class DeletionReport:
    item_id: ItemId
    case: DeletionCase
    removed: tuple[ItemId, ...]
    touched: tuple[ItemId, ...]

    def as_payload(self) -> dict[str, object]:
        return {
            "item_id": self.item_id,
            "case": self.case.value,
            "removed": list(self.removed),
            "touched": list(self.touched),
        }


class DeletionRepairEngine:
    """Applies one deletion to a private working arena.

    The arena handed in must be the store's transaction copy; the caller
    validates and publishes it afterwards.
    """

    def __init__(self, arena: Arena) -> None:
        self.arena = arena
        self._touched: set[ItemId] = set()

    def delete(self, item_id: ItemId) -> DeletionReport:
        case = classify(self.arena, item_id)
        victims = self._collect(item_id) if CASCADE in actions_for(case) else [item_id]
        self._check_lifecycle(victims)
        for victim in victims:
            victim_case = case if victim == item_id else classify(self.arena, victim)
            self._repair(victim, victim_case)
            self.arena.remove(victim)
            self._touched.add(victim)
        log.info(
            "deleted item %s (%s), %d item(s) removed",
            item_id,
            case.value,
            len(victims),
        )
        return DeletionReport(
            item_id=item_id,
            case=case,
            removed=tuple(victims),
            touched=tuple(sorted(self._touched)),
        )

    def _collect(self, item_id: ItemId) -> list[ItemId]:
        """The native subtree of ``item_id``, top-down."""
        ordered: list[ItemId] = []
        seen: set[ItemId] = set()
        queue = deque([item_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            ordered.append(current)
            queue.extend(self.arena.native_descendants(current))
        return ordered

    def _check_lifecycle(self, victims: list[ItemId]) -> None:
        doomed = set(victims)
        for victim in victims:
            if self.arena.require(victim).is_root:
                continue
            mounts = tuple(stem for stem in flux_mounts(self.arena, victim) if stem not in doomed)
            if mounts:
                raise LifecycleViolation(
                    f"item {victim} is mounted by {', '.join(map(str, mounts))}; "
                    "detach it before deleting",
                    item_id=victim,
                    mounts=mounts,
                )

    def _repair(self, item_id: ItemId, case: DeletionCase) -> None:
        item = self.arena.require(item_id)
        actions = actions_for(case)
        if CLEAR_HEADS in actions:
            for stem_id in self.arena.stems_of(item_id):
                self._relink(stem_id, head=None)
        if REPOINT_HEADS in actions:
            for stem_id in self.arena.stems_of(item_id):
                self._relink(stem_id, head=_unless_self(item.next, stem_id))
        if SPLICE in actions:
            for pred_id in self.arena.peer_predecessors(item_id):
                self._relink(pred_id, next_id=_unless_self(item.next, pred_id))

    def _relink(self, item_id: ItemId, *, head: object = _UNSET, next_id: object = _UNSET) -> None:
        item = self.arena.require(item_id)
        if head is not _UNSET:
            item = item.with_head(head)  # type: ignore[arg-type]
        if next_id is not _UNSET:
            item = item.with_next(next_id)  # type: ignore[arg-type]
        self.arena.put(item)
        self._touched.add(item_id)


def _unless_self(target: ItemId | None, owner: ItemId) -> ItemId | None:
    return None if target == owner else target
