from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
for entry in (ROOT, ROOT / "src"):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from graft.config import TraversalConfig
from graft.service import GraftService
from graft.store import ItemStore
from tests.env_helpers import TRAVERSAL_ENV_KEYS
from tests.env_helpers import restore_env as _restore_env
from tests.env_helpers import set_env as _set_env


@pytest.fixture(autouse=True)
def _clean_traversal_env():
    previous = _set_env({key: None for key in TRAVERSAL_ENV_KEYS})
    try:
        yield
    finally:
        _restore_env(previous)


@pytest.fixture
def store() -> ItemStore:
    return ItemStore(config=TraversalConfig())


@pytest.fixture
def service() -> GraftService:
    return GraftService(config=TraversalConfig())


@dataclass(frozen=True)
class SampleTrees:
    """Two native trees:

        root_a (doc-a)             root_b (doc-b)
          a1 -> a2   (peers)         b1
                                       b2 (under b1)
    """

    root_a: int
    a1: int
    a2: int
    root_b: int
    b1: int
    b2: int


@pytest.fixture
def sample_trees(service: GraftService) -> SampleTrees:
    root_a = service.create_root("doc-a", creator="alice")
    a2 = service.add_native_descendant(root_a, "doc-a2")
    a1 = service.add_native_descendant(root_a, "doc-a1")
    root_b = service.create_root("doc-b", creator="bob")
    b1 = service.add_native_descendant(root_b, "doc-b1")
    b2 = service.add_native_descendant(b1, "doc-b2")
    return SampleTrees(root_a=root_a, a1=a1, a2=a2, root_b=root_b, b1=b1, b2=b2)


@pytest.fixture
def write_config(tmp_path: Path):
    def _write(text: str, *, name: str = "graft.toml") -> Path:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
