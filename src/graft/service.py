"""One entry point wiring the store, grants, composition and the resolver."""

from __future__ import annotations

from graft.branch import BranchWalk, walk_branch
from graft.budget import TraversalBudget
from graft.cache import PermissionCache
from graft.composition import Composition, CompositionEngine, FluxBoundaries
from graft.config import TraversalConfig
from graft.deletion import DeletionReport
from graft.grants import GrantTable
from graft.lineage import AscendantWalk, walk_ascendants
from graft.model import ContentRef, Grant, Item, ItemId, PermissionLevel, UserId
from graft.resolver import PermissionResolver
from graft.store import ItemStore


class GraftService:
    def __init__(
        self,
        *,
        config: TraversalConfig | None = None,
        store: ItemStore | None = None,
        grants: GrantTable | None = None,
        use_cache: bool = False,
    ) -> None:
        if store is None:
            store = ItemStore(config=config)
        elif config is not None and config != store.config:
            raise ValueError(
                f"config {config} does not match the store's config {store.config}"
            )
        self.config = store.config
        self.store = store
        self.grants = grants if grants is not None else GrantTable()
        self.composition = CompositionEngine(self.store)
        self.cache = PermissionCache(self.store, self.grants) if use_cache else None
        self.resolver = PermissionResolver(
            self.store, self.grants, config=self.config, cache=self.cache
        )

    # Items

    def create_root(
        self,
        content_ref: ContentRef,
        *,
        creator: UserId | None = None,
        visual_ref: str | None = None,
    ) -> ItemId:
        item_id = self.store.create_root(content_ref, visual_ref=visual_ref)
        if creator is not None:
            self.grants.register_creator(content_ref, creator)
        return item_id

    def add_native_descendant(
        self,
        stem_id: ItemId,
        content_ref: ContentRef,
        *,
        creator: UserId | None = None,
    ) -> ItemId:
        item_id = self.store.add_native_descendant(stem_id, content_ref)
        if creator is not None:
            self.grants.register_creator(content_ref, creator)
        return item_id

    def add_peer(
        self,
        item_id: ItemId,
        content_ref: ContentRef,
        *,
        creator: UserId | None = None,
    ) -> ItemId:
        peer_id = self.store.add_peer(item_id, content_ref)
        if creator is not None:
            self.grants.register_creator(content_ref, creator)
        return peer_id

    def get(self, item_id: ItemId) -> Item:
        return self.store.get(item_id)

    def delete(self, item_id: ItemId) -> DeletionReport:
        return self.store.delete(item_id)

    # Composition

    def compose(self, stem_id: ItemId, target_id: ItemId) -> Composition:
        return self.composition.compose(stem_id, target_id)

    def detach(self, stem_id: ItemId) -> ItemId | None:
        return self.composition.detach(stem_id)

    def is_flux_target(self, item_id: ItemId) -> bool:
        return self.composition.is_flux_target(item_id)

    def mounts_of(self, item_id: ItemId) -> tuple[ItemId, ...]:
        return self.composition.mounts_of(item_id)

    def flux_boundaries(
        self, start_id: ItemId, *, budget: TraversalBudget | None = None
    ) -> FluxBoundaries:
        return self.composition.flux_boundaries(start_id, budget=budget)

    # Traversal

    def _budget(self, budget: TraversalBudget | None, timeout_ms: int | None) -> TraversalBudget:
        if budget is not None:
            return budget
        return TraversalBudget.from_steps(self.config.step_budget, timeout_ms=timeout_ms)

    def walk_ascendants(
        self,
        item_id: ItemId,
        *,
        max_depth: int | None = None,
        budget: TraversalBudget | None = None,
        timeout_ms: int | None = None,
    ) -> AscendantWalk:
        return walk_ascendants(
            self.store.snapshot(),
            item_id,
            self.config.max_depth if max_depth is None else max_depth,
            budget=self._budget(budget, timeout_ms),
        )

    def walk_branch(
        self,
        start_id: ItemId,
        *,
        max_depth: int | None = None,
        budget: TraversalBudget | None = None,
        timeout_ms: int | None = None,
    ) -> BranchWalk:
        return walk_branch(
            self.store.snapshot(),
            start_id,
            self.config.max_depth if max_depth is None else max_depth,
            budget=self._budget(budget, timeout_ms),
        )

    # Permissions

    def grant(
        self, content_ref: ContentRef, user_id: UserId, level: PermissionLevel | str
    ) -> Grant:
        return self.grants.grant(content_ref, user_id, level)

    def revoke(self, content_ref: ContentRef, user_id: UserId) -> Grant | None:
        return self.grants.revoke(content_ref, user_id)

    def register_creator(self, content_ref: ContentRef, user_id: UserId) -> None:
        self.grants.register_creator(content_ref, user_id)

    def has_access(
        self,
        content_ref: ContentRef,
        user_id: UserId,
        required: PermissionLevel | str,
        *,
        timeout_ms: int | None = None,
    ) -> bool:
        return self.resolver.has_access(content_ref, user_id, required, timeout_ms=timeout_ms)
