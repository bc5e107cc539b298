from __future__ import annotations

import logging

import pytest

from graft.deletion import DeletionCase, classify, deletion_facts
from graft.exceptions import LifecycleViolation, NotFound
from graft.model import Item
from graft.store import ItemStore
from graft.validators import validate_arena


def _store(*items: Item) -> ItemStore:
    return ItemStore.from_items(list(items))


def test_root_with_descendants_cascades_transitively(store: ItemStore) -> None:
    root = store.create_root("root")
    child = store.add_native_descendant(root, "child")
    grandchild = store.add_native_descendant(child, "grandchild")
    other = store.add_native_descendant(root, "other")
    keep = store.create_root("keep")
    report = store.delete(root)
    assert report.case is DeletionCase.ROOT_WITH_DESCENDANTS
    assert set(report.removed) == {root, child, grandchild, other}
    assert report.removed[0] == root
    assert store.roots() == (keep,)
    assert len(store) == 1


def test_root_with_descendants_also_clears_mounts() -> None:
    store = _store(
        Item(1, "root", head=2),
        Item(2, "child", ascendant=1),
        Item(3, "stem", head=1),
    )
    assert classify(store.snapshot(), 1) is DeletionCase.ROOT_WITH_DESCENDANTS
    store.delete(1)
    assert store.get(3).head is None
    validate_arena(store.snapshot())


def test_root_with_descendants_also_splices_peer_roots() -> None:
    store = _store(
        Item(1, "peer-root", next=2),
        Item(2, "root", head=3, next=4),
        Item(3, "child", ascendant=2),
        Item(4, "after-root"),
    )
    store.delete(2)
    assert store.get(1).next == 4
    validate_arena(store.snapshot())


def test_root_head_clears_stems(store: ItemStore) -> None:
    target = store.create_root("target")
    first = store.create_root("first")
    second = store.create_root("second")
    store.set_descendant_head(first, target)
    store.set_descendant_head(second, target)
    report = store.delete(target)
    assert report.case is DeletionCase.ROOT_HEAD
    assert report.removed == (target,)
    assert store.get(first).head is None
    assert store.get(second).head is None


def test_root_plain(store: ItemStore) -> None:
    root = store.create_root("root")
    report = store.delete(root)
    assert report.case is DeletionCase.ROOT_PLAIN
    assert len(store) == 0


def test_root_plain_with_peer_predecessor_is_spliced(store: ItemStore) -> None:
    first = store.create_root("first")
    second = store.add_peer(first, "second")
    third = store.add_peer(second, "third")
    assert store.delete(second).case is DeletionCase.ROOT_PLAIN
    assert store.get(first).next == third


def test_cascade_only() -> None:
    store = _store(
        Item(1, "root"),
        Item(2, "x", ascendant=1, head=3),
        Item(3, "child", ascendant=2),
    )
    report = store.delete(2)
    assert report.case is DeletionCase.CASCADE
    assert report.removed == (2, 3)
    assert store.get(1) == Item(1, "root")


def test_cascade_repoints_stem_to_next_peer(store: ItemStore) -> None:
    root = store.create_root("root")
    older = store.add_native_descendant(root, "older")
    head = store.add_native_descendant(root, "head")
    store.add_native_descendant(head, "head-child")
    report = store.delete(head)
    assert report.case is DeletionCase.CASCADE_REPOINT
    assert store.get(root).head == older
    assert store.native_descendants(root) == (older,)


def test_cascade_splices_predecessor(store: ItemStore) -> None:
    root = store.create_root("root")
    tail = store.add_native_descendant(root, "tail")
    middle = store.add_native_descendant(root, "middle")
    head = store.add_native_descendant(root, "head")
    store.add_native_descendant(middle, "middle-child")
    report = store.delete(middle)
    assert report.case is DeletionCase.CASCADE_SPLICE
    assert store.get(head).next == tail
    assert store.get(root).head == head


def test_cascade_with_head_and_predecessor() -> None:
    store = _store(
        Item(1, "root", head=2),
        Item(2, "x", ascendant=1, head=4, next=5),
        Item(3, "pred", ascendant=1, next=2),
        Item(4, "child", ascendant=2),
        Item(5, "after", ascendant=1),
    )
    facts = deletion_facts(store.snapshot(), 2)
    assert (facts.root, facts.native, facts.head, facts.peer_pred) == (False, True, True, True)
    report = store.delete(2)
    assert report.case is DeletionCase.CASCADE_REPOINT
    assert store.get(1).head == 5
    assert store.get(3).next == 5


def test_repoint_head_to_next_peer(store: ItemStore) -> None:
    root = store.create_root("root")
    older = store.add_native_descendant(root, "older")
    head = store.add_native_descendant(root, "head")
    report = store.delete(head)
    assert report.case is DeletionCase.REPOINT
    assert store.get(root).head == older


def test_repoint_and_splice() -> None:
    store = _store(
        Item(1, "root", head=2),
        Item(2, "x", ascendant=1, next=4),
        Item(3, "pred", ascendant=1, next=2),
        Item(4, "after", ascendant=1),
    )
    report = store.delete(2)
    assert report.case is DeletionCase.REPOINT_SPLICE
    assert store.get(1).head == 4
    assert store.get(3).next == 4


def test_splice_only(store: ItemStore) -> None:
    root = store.create_root("root")
    tail = store.add_native_descendant(root, "tail")
    head = store.add_native_descendant(root, "head")
    report = store.delete(tail)
    assert report.case is DeletionCase.SPLICE
    assert store.get(head).next is None
    assert store.get(root).head == head


def test_terminal_leaf_removes_only_itself() -> None:
    store = _store(Item(1, "root"), Item(2, "leaf", ascendant=1))
    report = store.delete(2)
    assert report.case is DeletionCase.PLAIN
    assert report.removed == (2,)
    assert list(store.snapshot()) == [1]


def test_mounted_flux_target_cannot_be_deleted(store: ItemStore) -> None:
    source = store.create_root("source")
    target = store.add_native_descendant(source, "target")
    stem = store.create_root("stem")
    store.set_descendant_head(stem, target)
    snapshot = store.snapshot()
    with pytest.raises(LifecycleViolation) as exc:
        store.delete(target)
    assert exc.value.item_id == target
    assert exc.value.mounts == (stem,)
    assert store.snapshot() is snapshot
    store.clear_descendant_head(stem)
    assert store.delete(target).case is DeletionCase.REPOINT


def test_cascade_is_blocked_by_an_outside_mount(store: ItemStore) -> None:
    root = store.create_root("root")
    child = store.add_native_descendant(root, "child")
    leaf = store.add_native_descendant(child, "leaf")
    stem = store.create_root("stem")
    store.set_descendant_head(stem, leaf)
    with pytest.raises(LifecycleViolation) as exc:
        store.delete(root)
    assert exc.value.item_id == leaf
    assert len(store) == 4


def test_cascade_ignores_mounts_held_inside_the_deleted_subtree(store: ItemStore) -> None:
    root = store.create_root("root")
    left = store.add_native_descendant(root, "left")
    right = store.add_native_descendant(root, "right")
    leaf = store.add_native_descendant(right, "leaf")
    store.set_descendant_head(left, leaf)
    report = store.delete(root)
    assert set(report.removed) == {root, left, right, leaf}
    assert len(store) == 0


def test_flux_head_invariant_survives_repair(store: ItemStore) -> None:
    source = store.create_root("source")
    target = store.add_native_descendant(source, "target")
    stem = store.create_root("stem")
    store.set_descendant_head(stem, target)
    store.delete(stem)
    validate_arena(store.snapshot())
    assert store.peer_predecessors(target) == ()


def test_delete_missing_item(store: ItemStore) -> None:
    with pytest.raises(NotFound):
        store.delete(5)


def test_deletion_logs_at_info(store: ItemStore, caplog) -> None:
    caplog.set_level(logging.INFO, logger="graft.deletion")
    root = store.create_root("root")
    store.delete(root)
    assert any("deleted item" in record.getMessage() for record in caplog.records)
