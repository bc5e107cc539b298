from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias
import logging
import os
import tomllib

from graft.invariants import never

DEFAULT_CONFIG_NAME = "graft.toml"
DEFAULT_MAX_DEPTH = 20
DEFAULT_STEP_BUDGET = 10_000

MAX_DEPTH_ENV = "GRAFT_MAX_DEPTH"
STEP_BUDGET_ENV = "GRAFT_STEP_BUDGET"

log = logging.getLogger(__name__)

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class TraversalConfig:
    """The two externally tunable knobs: depth limit and per-call step budget."""

    max_depth: int = DEFAULT_MAX_DEPTH
    step_budget: int = DEFAULT_STEP_BUDGET

    def __post_init__(self) -> None:
        for name in ("max_depth", "step_budget"):
            raw = getattr(self, name)
            if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
                never(f"invalid traversal {name}", value=raw)


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError:
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError:
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def traversal_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("traversal", {})
    return section if isinstance(section, dict) else {}


def _as_int(value: TomlValue | str) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lstrip("-").isdigit():
            return int(text)
    return None


def _env_int(name: str) -> int | None:
    text = os.getenv(name, "").strip()
    if not text:
        return None
    return _as_int(text)


def _positive_or_default(name: str, value: TomlValue, default: int) -> int:
    number = _as_int(value)
    if number is None or number <= 0:
        log.warning("ignoring invalid traversal %s=%r; using %d", name, value, default)
        return default
    return number


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged


def traversal_config(
    *,
    root: Path | None = None,
    config_path: Path | None = None,
    max_depth: int | None = None,
    step_budget: int | None = None,
) -> TraversalConfig:
    """Resolve traversal settings: explicit arguments, then environment,
    then ``[traversal]`` in ``graft.toml``, then built-in defaults."""
    file_values = traversal_defaults(root=root, config_path=config_path)
    env_values: TomlTable = {
        "max_depth": _env_int(MAX_DEPTH_ENV),
        "step_budget": _env_int(STEP_BUDGET_ENV),
    }
    explicit: TomlTable = {"max_depth": max_depth, "step_budget": step_budget}
    merged = merge_payload(explicit, merge_payload(env_values, file_values))
    return TraversalConfig(
        max_depth=_positive_or_default(
            "max_depth", merged.get("max_depth", DEFAULT_MAX_DEPTH), DEFAULT_MAX_DEPTH
        ),
        step_budget=_positive_or_default(
            "step_budget", merged.get("step_budget", DEFAULT_STEP_BUDGET), DEFAULT_STEP_BUDGET
        ),
    )
