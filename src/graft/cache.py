"""Optional side table of resolved permission decisions.

The cache is never the authority: every entry is dropped as soon as either
the item store or the grant table commits a change.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from graft.model import ContentRef, PermissionLevel, UserId

if TYPE_CHECKING:
    from graft.grants import GrantTable
    from graft.store import ItemStore

CacheKey = tuple[ContentRef, UserId, PermissionLevel]


class PermissionCache:
    def __init__(self, store: "ItemStore", grants: "GrantTable") -> None:
        self._store = store
        self._grants = grants
        self._entries: dict[CacheKey, bool] = {}
        self._stamp = self._current_stamp()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _current_stamp(self) -> tuple[int, int]:
        return (self._store.version, self._grants.version)

    def _sync(self) -> None:
        stamp = self._current_stamp()
        if stamp != self._stamp:
            self._entries.clear()
            self._stamp = stamp

    def lookup(
        self, content_ref: ContentRef, user_id: UserId, level: PermissionLevel
    ) -> bool | None:
        with self._lock:
            self._sync()
            decision = self._entries.get((content_ref, user_id, level))
            if decision is None:
                self.misses += 1
            else:
                self.hits += 1
            return decision

    def record(
        self,
        content_ref: ContentRef,
        user_id: UserId,
        level: PermissionLevel,
        decision: bool,
        *,
        stamp: tuple[int, int],
    ) -> None:
        """Store ``decision`` if nothing changed since ``stamp`` was taken."""
        with self._lock:
            self._sync()
            if stamp != self._stamp:
                return
            self._entries[(content_ref, user_id, level)] = decision

    def stamp(self) -> tuple[int, int]:
        return self._current_stamp()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            self._sync()
            return len(self._entries)
