"""Pre-commit validators.

``ItemStore`` runs these against its private working copy before anything is
published. Each raises ``StructuralViolation`` (or ``NotFound``) and never
mutates the arena it inspects.
"""

from __future__ import annotations

from collections.abc import Iterable

from graft.arena import Arena
from graft.composition import flux_mounts
from graft.exceptions import NotFound, StructuralViolation
from graft.model import Item, ItemId


def check_no_self_reference(item: Item) -> None:
    for name, target in item.pointers():
        if target == item.id:
            raise StructuralViolation(
                f"item {item.id} cannot reference itself through {name}",
                item_id=item.id,
                rule="self_reference",
            )


def check_ascendant_chain(arena: Arena, item_id: ItemId, ascendant_id: ItemId | None) -> None:
    """Reject an ``ascendant`` assignment that would close a lineage cycle."""
    if ascendant_id is None:
        return
    if ascendant_id == item_id:
        raise StructuralViolation(
            f"item {item_id} cannot be its own ascendant",
            item_id=item_id,
            rule="self_reference",
        )
    visited = [item_id]
    current: ItemId | None = ascendant_id
    while current is not None:
        if current in visited:
            chain = " -> ".join(str(part) for part in [*visited, current])
            raise StructuralViolation(
                f"ascendant cycle detected: {chain}",
                item_id=item_id,
                rule="ascendant_cycle",
            )
        visited.append(current)
        current = arena.require(current).ascendant


def check_composable(arena: Arena, stem_id: ItemId, target_id: ItemId) -> None:
    arena.require(stem_id)
    arena.require(target_id)
    if stem_id == target_id:
        raise StructuralViolation(
            f"item {stem_id} cannot be composed onto itself",
            item_id=stem_id,
            rule="self_reference",
        )
    predecessors = arena.peer_predecessors(target_id)
    if predecessors:
        raise StructuralViolation(
            f"item {target_id} is not a branch head "
            f"(incoming peer link from {', '.join(map(str, predecessors))})",
            item_id=target_id,
            rule="not_a_head",
        )


def check_flux_heads(arena: Arena, item_ids: Iterable[ItemId]) -> None:
    """Every flux target among ``item_ids`` must still be a branch head."""
    for item_id in item_ids:
        if item_id not in arena:
            continue
        if flux_mounts(arena, item_id) and not arena.is_branch_head(item_id):
            raise StructuralViolation(
                f"flux item {item_id} must stay a branch head",
                item_id=item_id,
                rule="flux_head",
            )


def check_references(arena: Arena, item_ids: Iterable[ItemId]) -> None:
    for item_id in item_ids:
        item = arena.get(item_id)
        if item is None:
            referrers = (
                arena.native_descendants(item_id)
                + arena.stems_of(item_id)
                + arena.peer_predecessors(item_id)
            )
            if referrers:
                raise StructuralViolation(
                    f"removed item {item_id} is still referenced by "
                    f"{', '.join(map(str, sorted(set(referrers))))}",
                    item_id=item_id,
                    rule="dangling_reference",
                )
            continue
        check_no_self_reference(item)
        for name, target in item.pointers():
            if target is not None and target not in arena:
                raise StructuralViolation(
                    f"item {item_id} {name} points at missing item {target}",
                    item_id=item_id,
                    rule="dangling_reference",
                )


def check_integrity(arena: Arena, touched: Iterable[ItemId]) -> None:
    """Validate the neighbourhood of every touched id before commit."""
    ids = set(touched)
    neighbours: set[ItemId] = set()
    for item_id in ids:
        item = arena.get(item_id)
        if item is not None:
            neighbours.update(target for _, target in item.pointers() if target is not None)
    check_references(arena, sorted(ids))
    check_flux_heads(arena, sorted(ids | neighbours))


def validate_arena(arena: Arena) -> None:
    """Full consistency check, used for state loaded from outside the store."""
    try:
        for item_id in sorted(arena):
            item = arena[item_id]
            check_ascendant_chain(arena, item_id, item.ascendant)
    except NotFound as exc:
        raise StructuralViolation(
            f"ascendant chain points at missing item {exc.item_id}",
            item_id=exc.item_id,
            rule="dangling_reference",
        ) from exc
    check_integrity(arena, list(arena))
