"""Item Store.

Readers take the published arena (``snapshot()``) without locking; a
published arena is never mutated again. Writers serialize on one lock, edit
a private copy, run the pre-commit validators against it, and only then swap
it in. A write that raises leaves the published state untouched.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace

from graft.arena import Arena
from graft.composition import is_flux_edge
from graft.config import TraversalConfig
from graft.deletion import DeletionRepairEngine, DeletionReport
from graft.exceptions import StructuralViolation
from graft.invariants import never
from graft.model import ContentRef, Item, ItemId
from graft.validators import (
    check_ascendant_chain,
    check_composable,
    check_integrity,
    validate_arena,
)

log = logging.getLogger(__name__)


@dataclass
class _Transaction:
    arena: Arena
    label: str
    touched: set[ItemId] = field(default_factory=set)

    def put(self, item: Item) -> None:
        self.arena.put(item)
        self.touched.add(item.id)


class ItemStore:
    def __init__(
        self,
        *,
        config: TraversalConfig | None = None,
        arena: Arena | None = None,
        next_id: int = 1,
    ) -> None:
        self.config = config if config is not None else TraversalConfig()
        self._arena = arena if arena is not None else Arena()
        highest = max(self._arena, default=0)
        if next_id <= highest:
            never("next_id must exceed every stored id", next_id=next_id, highest=highest)
        self._next_id = next_id
        self._version = 0
        self._lock = threading.Lock()

    @classmethod
    def from_items(
        cls,
        items: list[Item],
        *,
        next_id: int | None = None,
        config: TraversalConfig | None = None,
    ) -> "ItemStore":
        """Build a store from externally supplied records, validating them first."""
        arena = Arena({item.id: item for item in items})
        if len(arena) != len(items):
            raise StructuralViolation("duplicate item ids in input", rule="duplicate_id")
        validate_arena(arena)
        floor = max(arena, default=0) + 1
        return cls(
            config=config,
            arena=arena,
            next_id=floor if next_id is None else max(next_id, floor),
        )

    @property
    def version(self) -> int:
        """Bumped on every committed write."""
        return self._version

    @property
    def next_id(self) -> int:
        return self._next_id

    def snapshot(self) -> Arena:
        return self._arena

    def __len__(self) -> int:
        return len(self._arena)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._arena

    @contextmanager
    def _transaction(self, label: str) -> Iterator[_Transaction]:
        with self._lock:
            txn = _Transaction(arena=self._arena.copy(), label=label)
            yield txn
            if not txn.touched:
                return
            check_integrity(txn.arena, txn.touched)
            self._arena = txn.arena
            self._version += 1
            log.debug(
                "commit %s v%d touched=%s",
                label,
                self._version,
                sorted(txn.touched),
            )

    def _allocate_id(self) -> ItemId:
        # Ids burned by a rejected write are not reused.
        item_id = self._next_id
        self._next_id += 1
        return item_id

    # Reads

    def get(self, item_id: ItemId) -> Item:
        return self._arena.require(item_id)

    def items(self) -> list[Item]:
        arena = self._arena
        return [arena[item_id] for item_id in sorted(arena)]

    def roots(self) -> tuple[ItemId, ...]:
        return self._arena.roots()

    def items_for_content(self, content_ref: ContentRef) -> tuple[ItemId, ...]:
        return self._arena.items_for_content(content_ref)

    def native_descendants(self, item_id: ItemId) -> tuple[ItemId, ...]:
        arena = self._arena
        arena.require(item_id)
        return arena.native_descendants(item_id)

    def stems_of(self, item_id: ItemId) -> tuple[ItemId, ...]:
        arena = self._arena
        arena.require(item_id)
        return arena.stems_of(item_id)

    def peer_predecessors(self, item_id: ItemId) -> tuple[ItemId, ...]:
        arena = self._arena
        arena.require(item_id)
        return arena.peer_predecessors(item_id)

    # Writes

    def create_root(self, content_ref: ContentRef, *, visual_ref: str | None = None) -> ItemId:
        with self._transaction("create_root") as txn:
            item = Item(id=self._allocate_id(), content_ref=content_ref, visual_ref=visual_ref)
            txn.put(item)
        return item.id

    def add_native_descendant(self, stem_id: ItemId, content_ref: ContentRef) -> ItemId:
        """Grow a new item under ``stem_id`` and make it the stem's branch head.

        The stem's previous head becomes the new item's peer.
        """
        with self._transaction("add_native_descendant") as txn:
            stem = txn.arena.require(stem_id)
            if is_flux_edge(txn.arena, stem_id):
                raise StructuralViolation(
                    f"item {stem_id} mounts flux item {stem.head}; detach it before growing",
                    item_id=stem_id,
                    rule="mounted_stem",
                )
            item_id = self._allocate_id()
            check_ascendant_chain(txn.arena, item_id, stem_id)
            txn.put(Item(id=item_id, content_ref=content_ref, ascendant=stem_id, next=stem.head))
            txn.put(stem.with_head(item_id))
        return item_id

    def add_peer(self, item_id: ItemId, content_ref: ContentRef) -> ItemId:
        """Insert a new item right after ``item_id`` in its peer chain."""
        with self._transaction("add_peer") as txn:
            anchor = txn.arena.require(item_id)
            peer_id = self._allocate_id()
            check_ascendant_chain(txn.arena, peer_id, anchor.ascendant)
            txn.put(
                Item(
                    id=peer_id,
                    content_ref=content_ref,
                    ascendant=anchor.ascendant,
                    next=anchor.next,
                )
            )
            txn.put(anchor.with_next(peer_id))
        return peer_id

    def set_descendant_head(self, stem_id: ItemId, target_id: ItemId) -> None:
        with self._transaction("set_descendant_head") as txn:
            stem = txn.arena.require(stem_id)
            if stem.head == target_id:
                return
            check_composable(txn.arena, stem_id, target_id)
            txn.put(stem.with_head(target_id))

    def clear_descendant_head(self, stem_id: ItemId) -> ItemId | None:
        """Drop ``stem_id``'s head pointer and return what it pointed at."""
        with self._transaction("clear_descendant_head") as txn:
            stem = txn.arena.require(stem_id)
            previous = stem.head
            if previous is not None:
                txn.put(stem.with_head(None))
        return previous

    def delete(self, item_id: ItemId) -> DeletionReport:
        with self._transaction("delete") as txn:
            report = DeletionRepairEngine(txn.arena).delete(item_id)
            txn.touched.update(report.touched)
        return report

    def attach_visual(self, item_id: ItemId, visual_ref: str) -> Item:
        with self._transaction("attach_visual") as txn:
            item = replace(txn.arena.require(item_id), visual_ref=visual_ref)
            txn.put(item)
        return item

    def detach_visual(self, item_id: ItemId) -> Item:
        with self._transaction("detach_visual") as txn:
            item = txn.arena.require(item_id)
            if item.visual_ref is not None:
                item = replace(item, visual_ref=None)
                txn.put(item)
        return item
