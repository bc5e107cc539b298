from __future__ import annotations

from graft.model import PermissionLevel
from graft.service import GraftService


def _cached_service() -> tuple[GraftService, int]:
    service = GraftService(use_cache=True)
    root = service.create_root("root-doc")
    service.add_native_descendant(root, "child-doc")
    return service, root


def test_repeat_lookups_hit_the_cache() -> None:
    service, _root = _cached_service()
    service.grant("root-doc", "u", "view")
    assert service.has_access("child-doc", "u", "view")
    assert service.has_access("child-doc", "u", "view")
    assert service.cache is not None
    assert service.cache.hits == 1
    assert len(service.cache) == 1


def test_grant_change_invalidates_entries() -> None:
    service, _root = _cached_service()
    assert not service.has_access("child-doc", "u", "view")
    service.grant("root-doc", "u", "view")
    assert service.has_access("child-doc", "u", "view")
    service.revoke("root-doc", "u")
    assert not service.has_access("child-doc", "u", "view")


def test_structure_change_invalidates_entries() -> None:
    service, root = _cached_service()
    service.grant("root-doc", "u", "admin")
    assert service.has_access("child-doc", "u", "admin")
    stem = service.create_root("stem-doc")
    child = service.store.items_for_content("child-doc")[0]
    service.detach(root)
    service.compose(stem, child)
    assert not service.has_access("child-doc", "u", "admin")


def test_levels_are_cached_separately() -> None:
    service, _root = _cached_service()
    service.grant("root-doc", "u", "view")
    assert service.has_access("child-doc", "u", PermissionLevel.VIEW)
    assert not service.has_access("child-doc", "u", PermissionLevel.EDIT)
    assert service.cache is not None
    assert len(service.cache) == 2


def test_stale_decision_is_not_recorded() -> None:
    service, _root = _cached_service()
    cache = service.cache
    assert cache is not None
    stamp = cache.stamp()
    service.grant("root-doc", "u", "view")
    cache.record("child-doc", "u", PermissionLevel.VIEW, False, stamp=stamp)
    assert cache.lookup("child-doc", "u", PermissionLevel.VIEW) is None
