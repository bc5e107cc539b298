from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Mapping


def canonicalize_json(value: object) -> object:
    if isinstance(value, Mapping):
        return {
            str(key): canonicalize_json(value[key])
            for key in sorted(value, key=str)
        }
    if isinstance(value, (list, tuple)):
        return [canonicalize_json(item) for item in value]
    return value


def load_json_object_path(
    path: Path,
    *,
    encoding: str = "utf-8",
) -> dict[str, object]:
    """Read a JSON object from ``path``; raises on unreadable or non-object input."""
    payload = json.loads(path.read_text(encoding=encoding))
    if not isinstance(payload, Mapping):
        raise ValueError(f"{path}: expected a JSON object")
    return dict(payload)


def dump_json_pretty(payload: object) -> str:
    return json.dumps(canonicalize_json(payload), indent=2, sort_keys=False)


def write_json_atomic(path: Path, payload: object, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``payload`` so readers never see a half-written file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(dump_json_pretty(payload) + "\n", encoding=encoding)
    os.replace(tmp_path, path)
