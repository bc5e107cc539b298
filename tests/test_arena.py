from __future__ import annotations

import pytest

from graft.arena import Arena
from graft.exceptions import NotFound
from graft.model import Item


def _arena() -> Arena:
    return Arena(
        {
            1: Item(1, "root", head=2),
            2: Item(2, "a", ascendant=1, next=3),
            3: Item(3, "b", ascendant=1),
            4: Item(4, "a"),
        }
    )


def test_reverse_indexes() -> None:
    arena = _arena()
    assert arena.native_descendants(1) == (2, 3)
    assert arena.stems_of(2) == (1,)
    assert arena.peer_predecessors(3) == (2,)
    assert arena.items_for_content("a") == (2, 4)
    assert arena.roots() == (1, 4)
    assert arena.is_branch_head(2)
    assert not arena.is_branch_head(3)


def test_put_reindexes_changed_pointers() -> None:
    arena = _arena()
    arena.put(arena[1].with_head(3))
    assert arena.stems_of(2) == ()
    assert arena.stems_of(3) == (1,)


def test_copy_is_independent() -> None:
    arena = _arena()
    clone = arena.copy()
    clone.remove(3)
    clone.put(clone[2].with_next(None))
    assert 3 in arena
    assert arena.peer_predecessors(3) == (2,)
    assert clone.peer_predecessors(3) == ()
    assert len(clone) == 3


def test_require_missing_raises_not_found() -> None:
    arena = _arena()
    with pytest.raises(NotFound) as exc:
        arena.require(99)
    assert exc.value.item_id == 99
    assert str(exc.value) == "item 99 not found"
    with pytest.raises(KeyError):
        arena.remove(99)


def test_roots_index_follows_ascendant_changes() -> None:
    arena = _arena()
    arena.put(arena[2].with_next(None))
    arena.remove(3)
    arena.put(Item(3, "b"))
    assert arena.roots() == (1, 3, 4)
    arena.remove(4)
    assert arena.roots() == (1, 3)


def test_copies_survive_folding_into_a_new_base() -> None:
    current = Arena({1: Item(1, "root")})
    snapshots = []
    for item_id in range(2, 202):
        current = current.copy()
        current.put(Item(item_id, "leaf", ascendant=1))
        snapshots.append(current)
    current = current.copy()
    current.remove(2)
    for count, snapshot in enumerate(snapshots, start=1):
        assert len(snapshot) == count + 1
        assert len(snapshot.native_descendants(1)) == count
        assert sorted(snapshot) == list(range(1, count + 2))
    assert 2 not in current
    assert current.native_descendants(1)[0] == 3
    assert current.roots() == (1,)
    assert len(current.items_for_content("leaf")) == 199
