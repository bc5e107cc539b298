"""Flux-aware permission resolver.

``has_access(content, user, level)``:

1. A grant on the content itself at or above ``level`` allows.
2. Otherwise every item referencing the content is resolved, and any one
   allowing is enough. An item that is not a flux target is decided by its
   ascendant chain: the nearest ancestor carrying a grant for the user
   decides. A flux target must additionally resolve to allow through every
   mounting stem, each stem being resolved the same way in turn.
3. Anything unresolved, truncated, or failing denies. The resolver never
   raises to its caller.

A stem lineage that leads back into an item already being resolved adds no
constraint of its own: the outer resolution already requires that item's
lineages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from graft.arena import Arena
from graft.budget import TraversalBudget, budget_scope
from graft.cache import PermissionCache
from graft.composition import flux_mounts
from graft.config import TraversalConfig
from graft.exceptions import GraftError
from graft.grants import GrantTable
from graft.lineage import walk_ascendants
from graft.model import ContentRef, ItemId, PermissionLevel, UserId
from graft.store import ItemStore

log = logging.getLogger(__name__)


@dataclass
class _Resolution:
    arena: Arena
    grants: GrantTable
    user_id: UserId
    required: PermissionLevel
    max_depth: int
    decided: dict[tuple[ItemId, int], bool] = field(default_factory=dict)
    active: set[ItemId] = field(default_factory=set)
    loops: int = 0

    def resolve(self, item_id: ItemId, depth_used: int = 0) -> bool:
        key = (item_id, depth_used)
        if key in self.decided:
            return self.decided[key]
        if item_id in self.active:
            self.loops += 1
            log.debug("stem lineage re-enters item %s; deferring to the outer resolution", item_id)
            return True
        loops_before = self.loops
        self.active.add(item_id)
        try:
            decision = self._resolve_item(item_id, depth_used)
        finally:
            self.active.discard(item_id)
        # Decisions that leaned on a re-entered item only hold inside that resolution.
        if self.loops == loops_before:
            self.decided[key] = decision
        return decision

    def _resolve_item(self, item_id: ItemId, depth_used: int) -> bool:
        for stem_id in flux_mounts(self.arena, item_id):
            if not self.resolve(stem_id, depth_used + 1):
                return False
        return self._nearest_grant(item_id, depth_used)

    def _nearest_grant(self, item_id: ItemId, depth_used: int) -> bool:
        remaining = self.max_depth - depth_used
        if remaining <= 0:
            log.warning("permission lookup for item %s exceeded depth %d; denying", item_id, self.max_depth)
            return False
        walk = walk_ascendants(self.arena, item_id, remaining)
        for ancestor_id in walk:
            content_ref = self.arena[ancestor_id].content_ref
            level = self.grants.effective(content_ref, self.user_id)
            if level is not None:
                return level.satisfies(self.required)
        if walk.truncated is not None:
            log.warning(
                "permission lookup for item %s truncated (%s) at %s; denying",
                item_id,
                walk.truncated.reason,
                list(walk.truncated.frontier),
            )
        return False


class PermissionResolver:
    def __init__(
        self,
        store: ItemStore,
        grants: GrantTable,
        *,
        config: TraversalConfig | None = None,
        cache: PermissionCache | None = None,
    ) -> None:
        self.store = store
        self.grants = grants
        self.config = config if config is not None else store.config
        self.cache = cache

    def has_access(
        self,
        content_ref: ContentRef,
        user_id: UserId,
        required: PermissionLevel | str,
        *,
        timeout_ms: int | None = None,
    ) -> bool:
        try:
            level = PermissionLevel.parse(required)
        except ValueError:
            log.warning("unknown permission level %r; denying", required)
            return False
        if timeout_ms is not None and timeout_ms < 0:
            log.warning("invalid permission timeout %r; denying", timeout_ms)
            return False
        if self.cache is None:
            return self._decide(content_ref, user_id, level, timeout_ms)
        stamp = self.cache.stamp()
        cached = self.cache.lookup(content_ref, user_id, level)
        if cached is not None:
            return cached
        decision = self._decide(content_ref, user_id, level, timeout_ms)
        self.cache.record(content_ref, user_id, level, decision, stamp=stamp)
        return decision

    def _decide(
        self,
        content_ref: ContentRef,
        user_id: UserId,
        required: PermissionLevel,
        timeout_ms: int | None,
    ) -> bool:
        try:
            direct = self.grants.effective(content_ref, user_id)
            if direct is not None and direct.satisfies(required):
                return True
            arena = self.store.snapshot()
            item_ids = arena.items_for_content(content_ref)
            if not item_ids:
                return False
            resolution = _Resolution(
                arena=arena,
                grants=self.grants,
                user_id=user_id,
                required=required,
                max_depth=self.config.max_depth,
            )
            budget = TraversalBudget.from_steps(self.config.step_budget, timeout_ms=timeout_ms)
            with budget_scope(budget):
                return any(resolution.resolve(item_id) for item_id in item_ids)
        except GraftError as exc:
            log.warning("permission lookup for %s failed (%s); denying", content_ref, exc)
            return False
