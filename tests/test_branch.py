from __future__ import annotations

from graft.arena import Arena
from graft.branch import VIA_HEAD, VIA_PEER, VIA_START, walk_branch
from graft.budget import TRUNCATED_BY_DEPTH, TRUNCATED_BY_STEPS, TraversalBudget
from graft.model import Item
from graft.store import ItemStore


def _ids(walk) -> list[tuple[int, int, bool]]:
    return [(step.item_id, step.depth, step.is_cycle) for step in walk]


def test_head_expanded_before_peer(store: ItemStore) -> None:
    root = store.create_root("root")
    b = store.add_native_descendant(root, "b")
    a = store.add_native_descendant(root, "a")
    a_child = store.add_native_descendant(a, "a-child")
    steps = list(walk_branch(store.snapshot(), root))
    assert [(s.item_id, s.depth) for s in steps] == [(root, 0), (a, 1), (a_child, 2), (b, 1)]
    assert [s.via for s in steps] == [VIA_START, VIA_HEAD, VIA_HEAD, VIA_PEER]
    assert steps[3].parent == a


def test_start_item_peers_are_not_followed(store: ItemStore) -> None:
    root = store.create_root("root")
    a = store.add_native_descendant(root, "a")
    store.add_peer(a, "b")
    assert _ids(walk_branch(store.snapshot(), a)) == [(a, 0, False)]


def test_composition_cycle_flags_only_the_revisited_item(store: ItemStore) -> None:
    a = store.create_root("a")
    b = store.create_root("b")
    store.set_descendant_head(a, b)
    store.set_descendant_head(b, a)
    walk = walk_branch(store.snapshot(), a)
    assert _ids(walk) == [(a, 0, False), (b, 1, False), (a, 2, True)]
    assert walk.truncated is None


def test_peer_cycle_is_detected() -> None:
    arena = Arena(
        {
            1: Item(1, "root", head=2),
            2: Item(2, "x", ascendant=1, next=3),
            3: Item(3, "y", ascendant=1, next=2),
        }
    )
    steps = list(walk_branch(arena, 1))
    assert [(s.item_id, s.is_cycle) for s in steps] == [(1, False), (2, False), (3, False), (2, True)]


def test_shared_subtree_appears_at_each_mount_without_cycle_flag(store: ItemStore) -> None:
    host = store.create_root("host")
    left = store.add_native_descendant(host, "left")
    right = store.add_peer(left, "right")
    shared = store.create_root("shared")
    store.set_descendant_head(left, shared)
    store.set_descendant_head(right, shared)
    steps = list(walk_branch(store.snapshot(), host))
    shared_steps = [s for s in steps if s.item_id == shared]
    assert len(shared_steps) == 2
    assert not any(s.is_cycle for s in shared_steps)
    assert all(s.is_flux for s in shared_steps)
    assert {s.parent for s in shared_steps} == {left, right}


def test_native_heads_are_not_flux(store: ItemStore) -> None:
    root = store.create_root("root")
    store.add_native_descendant(root, "a")
    assert not any(step.is_flux for step in walk_branch(store.snapshot(), root))


def test_depth_limit_marks_frontier(store: ItemStore) -> None:
    ids = [store.create_root("c0")]
    for index in range(1, 5):
        ids.append(store.add_native_descendant(ids[-1], f"c{index}"))
    walk = walk_branch(store.snapshot(), ids[0], max_depth=3)
    assert [s.item_id for s in walk] == ids[:3]
    assert walk.truncated is not None
    assert walk.truncated.reason == TRUNCATED_BY_DEPTH
    assert walk.truncated.frontier == (ids[3],)


def test_cycle_walk_terminates_within_step_budget(store: ItemStore) -> None:
    a = store.create_root("a")
    b = store.create_root("b")
    store.set_descendant_head(a, b)
    store.set_descendant_head(b, a)
    walk = walk_branch(store.snapshot(), a, budget=TraversalBudget.from_steps(2))
    assert [s.item_id for s in walk] == [a, b]
    assert walk.truncated is not None
    assert walk.truncated.reason == TRUNCATED_BY_STEPS
    assert walk.truncated.frontier == (a,)


def test_step_payload(store: ItemStore) -> None:
    root = store.create_root("root")
    step = next(walk_branch(store.snapshot(), root))
    assert step.as_payload() == {
        "item_id": root,
        "depth": 0,
        "is_cycle": False,
        "via": VIA_START,
        "is_flux": False,
        "parent": None,
    }
