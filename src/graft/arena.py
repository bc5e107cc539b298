"""Flat id-keyed item table with reverse pointer indexes.

The arena holds two edge relations over the same items: the ascendant
relation (a forest, acyclic) and the structural relation (``head``/``next``,
which composition may turn cyclic). Reverse indexes answer "who points at
X" without scanning the table.

An arena published by ``ItemStore`` is never mutated again; writers work on
``copy()``. A copy shares the published base table and carries only the
entries changed since that base, so a write costs the size of what it
touched. Once the changes outgrow roughly the square root of the table,
``copy()`` folds them into a fresh base.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from math import isqrt

from graft.exceptions import NotFound
from graft.model import ContentRef, Item, ItemId

_ASCENDANT = 0
_HEAD = 1
_NEXT = 2
_CONTENT = 3
_INDEX_COUNT = 4

# Ascendant-index key collecting items without an ascendant.
_ROOT_KEY = ("root",)

_MIN_CHANGES_BEFORE_FOLD = 64

_EMPTY: frozenset[ItemId] = frozenset()


def _index_keys(item: Item) -> tuple[object, ...]:
    ascendant = _ROOT_KEY if item.ascendant is None else item.ascendant
    return (ascendant, item.head, item.next, item.content_ref)


class Arena(Mapping[ItemId, Item]):
    def __init__(self, items: Mapping[ItemId, Item] | None = None) -> None:
        self._base: dict[ItemId, Item] = {}
        self._base_indexes: tuple[dict[object, frozenset[ItemId]], ...] = tuple(
            {} for _ in range(_INDEX_COUNT)
        )
        # Changes over the base; ``None`` marks a removed item.
        self._changes: dict[ItemId, Item | None] = {}
        self._index_changes: tuple[dict[object, frozenset[ItemId]], ...] = tuple(
            {} for _ in range(_INDEX_COUNT)
        )
        self._size = 0
        for item in (items or {}).values():
            self.put(item)
        self._fold()

    # Mapping protocol

    def __getitem__(self, item_id: ItemId) -> Item:
        if item_id in self._changes:
            item = self._changes[item_id]
            if item is None:
                raise KeyError(item_id)
            return item
        return self._base[item_id]

    def __iter__(self) -> Iterator[ItemId]:
        changes = self._changes
        for item_id in self._base:
            if item_id not in changes:
                yield item_id
        for item_id, item in changes.items():
            if item is not None:
                yield item_id

    def __len__(self) -> int:
        return self._size

    def __contains__(self, item_id: object) -> bool:
        if item_id in self._changes:
            return self._changes[item_id] is not None
        return item_id in self._base

    def copy(self) -> "Arena":
        clone = Arena.__new__(Arena)
        clone._base = self._base
        clone._base_indexes = self._base_indexes
        clone._changes = dict(self._changes)
        clone._index_changes = tuple(dict(changed) for changed in self._index_changes)
        clone._size = self._size
        if len(clone._changes) > max(_MIN_CHANGES_BEFORE_FOLD, isqrt(len(self._base))):
            clone._fold()
        return clone

    def _fold(self) -> None:
        """Merge the changes into a new base owned by this arena."""
        if not self._changes and not any(self._index_changes):
            return
        base = dict(self._base)
        for item_id, item in self._changes.items():
            if item is None:
                base.pop(item_id, None)
            else:
                base[item_id] = item
        indexes = []
        for base_index, changed in zip(self._base_indexes, self._index_changes):
            merged = dict(base_index)
            for key, members in changed.items():
                if members:
                    merged[key] = members
                else:
                    merged.pop(key, None)
            indexes.append(merged)
        self._base = base
        self._base_indexes = tuple(indexes)
        self._changes = {}
        self._index_changes = tuple({} for _ in range(_INDEX_COUNT))

    def require(self, item_id: ItemId) -> Item:
        try:
            return self[item_id]
        except KeyError:
            raise NotFound(item_id) from None

    def put(self, item: Item) -> None:
        previous = self.get(item.id)
        if previous is None:
            self._size += 1
        else:
            self._unindex(previous)
        self._changes[item.id] = item
        for index, key in enumerate(_index_keys(item)):
            if key is not None:
                self._set_members(index, key, self._members(index, key) | {item.id})

    def remove(self, item_id: ItemId) -> Item:
        item = self.require(item_id)
        self._unindex(item)
        self._changes[item_id] = None
        self._size -= 1
        return item

    def _unindex(self, item: Item) -> None:
        for index, key in enumerate(_index_keys(item)):
            if key is not None:
                self._set_members(index, key, self._members(index, key) - {item.id})

    def _members(self, index: int, key: object) -> frozenset[ItemId]:
        changed = self._index_changes[index]
        if key in changed:
            return changed[key]
        return self._base_indexes[index].get(key, _EMPTY)

    def _set_members(self, index: int, key: object, members: frozenset[ItemId]) -> None:
        self._index_changes[index][key] = members

    # Reverse lookups. Results are sorted so callers see a stable order.

    def native_descendants(self, item_id: ItemId) -> tuple[ItemId, ...]:
        """Items natively grown from ``item_id`` (``ascendant == item_id``)."""
        return tuple(sorted(self._members(_ASCENDANT, item_id)))

    def stems_of(self, item_id: ItemId) -> tuple[ItemId, ...]:
        """Items whose ``head`` points at ``item_id``."""
        return tuple(sorted(self._members(_HEAD, item_id)))

    def peer_predecessors(self, item_id: ItemId) -> tuple[ItemId, ...]:
        """Items whose ``next`` points at ``item_id``."""
        return tuple(sorted(self._members(_NEXT, item_id)))

    def items_for_content(self, content_ref: ContentRef) -> tuple[ItemId, ...]:
        return tuple(sorted(self._members(_CONTENT, content_ref)))

    def roots(self) -> tuple[ItemId, ...]:
        return tuple(sorted(self._members(_ASCENDANT, _ROOT_KEY)))

    def is_branch_head(self, item_id: ItemId) -> bool:
        return not self._members(_NEXT, item_id)
