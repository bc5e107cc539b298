"""Composition Engine and flux detection.

A stem ``S`` with ``S.head == D`` crosses a flux boundary iff
``D.ascendant != S.id``: the structural pointer enters a subtree that ``S``
did not natively grow. Flux is always derived by comparing the two edge
relations; nothing stores a flux flag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from graft.arena import Arena
from graft.budget import TraversalBudget, TraversalTruncated
from graft.model import Item, ItemId

if TYPE_CHECKING:
    from graft.store import ItemStore

log = logging.getLogger(__name__)


def crosses_flux(stem_id: ItemId, target: Item) -> bool:
    return target.ascendant != stem_id


def is_flux_edge(arena: Arena, stem_id: ItemId) -> bool:
    stem = arena.require(stem_id)
    if stem.head is None:
        return False
    return crosses_flux(stem_id, arena.require(stem.head))


def flux_mounts(arena: Arena, item_id: ItemId) -> tuple[ItemId, ...]:
    """Stems holding a flux link to ``item_id``."""
    item = arena.require(item_id)
    return tuple(stem_id for stem_id in arena.stems_of(item_id) if crosses_flux(stem_id, item))


def is_flux_target(arena: Arena, item_id: ItemId) -> bool:
    return bool(flux_mounts(arena, item_id))


@dataclass(frozen=True)
class FluxEdge:
    stem: ItemId
    target: ItemId

    def as_payload(self) -> dict[str, object]:
        return {"stem": self.stem, "target": self.target}


@dataclass(frozen=True)
class FluxBoundaries:
    edges: tuple[FluxEdge, ...]
    truncated: TraversalTruncated | None = None


def flux_boundaries(
    arena: Arena,
    start_id: ItemId,
    *,
    max_depth: int,
    budget: TraversalBudget | None = None,
) -> FluxBoundaries:
    """Flux edges crossed while walking the branch under ``start_id``."""
    # Lazy import avoids module-cycle: branch annotates steps with crosses_flux.
    from graft.branch import VIA_HEAD, walk_branch

    walk = walk_branch(arena, start_id, max_depth=max_depth, budget=budget)
    seen: set[FluxEdge] = set()
    edges: list[FluxEdge] = []
    for step in walk:
        if step.via == VIA_HEAD and step.is_flux and step.parent is not None:
            edge = FluxEdge(stem=step.parent, target=step.item_id)
            if edge not in seen:
                seen.add(edge)
                edges.append(edge)
    return FluxBoundaries(edges=tuple(edges), truncated=walk.truncated)


@dataclass(frozen=True)
class Composition:
    stem: ItemId
    target: ItemId
    is_flux: bool
    previous_head: ItemId | None

    @property
    def changed(self) -> bool:
        return self.previous_head != self.target


class CompositionEngine:
    """Creates and removes structural links between trees."""

    def __init__(self, store: "ItemStore") -> None:
        self.store = store

    def compose(self, stem_id: ItemId, target_id: ItemId) -> Composition:
        previous = self.store.get(stem_id).head
        self.store.set_descendant_head(stem_id, target_id)
        arena = self.store.snapshot()
        result = Composition(
            stem=stem_id,
            target=target_id,
            is_flux=crosses_flux(stem_id, arena.require(target_id)),
            previous_head=previous,
        )
        if result.changed:
            log.info(
                "composed %s -> %s (%s)",
                stem_id,
                target_id,
                "flux" if result.is_flux else "native",
            )
        return result

    def detach(self, stem_id: ItemId) -> ItemId | None:
        """Drop one structural edge; the mounted subtree is left untouched."""
        return self.store.clear_descendant_head(stem_id)

    def is_flux_target(self, item_id: ItemId) -> bool:
        return is_flux_target(self.store.snapshot(), item_id)

    def mounts_of(self, item_id: ItemId) -> tuple[ItemId, ...]:
        return flux_mounts(self.store.snapshot(), item_id)

    def is_flux_edge(self, stem_id: ItemId) -> bool:
        return is_flux_edge(self.store.snapshot(), stem_id)

    def flux_boundaries(
        self,
        start_id: ItemId,
        *,
        budget: TraversalBudget | None = None,
    ) -> FluxBoundaries:
        return flux_boundaries(
            self.store.snapshot(),
            start_id,
            max_depth=self.store.config.max_depth,
            budget=budget,
        )
