"""JSON state file for the CLI and for embedding callers.

Loaded state goes through the same integrity validators as a live write, so
a hand-edited file cannot smuggle in a cycle or a dangling pointer.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from graft.config import TraversalConfig
from graft.exceptions import GraftError
from graft.grants import GrantTable
from graft.json_io import load_json_object_path, write_json_atomic
from graft.model import Item
from graft.schema import CreatorDTO, GrantDTO, ItemDTO, StoreStateDTO
from graft.service import GraftService
from graft.store import ItemStore

log = logging.getLogger(__name__)


class StateFileError(GraftError):
    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(f"{path}: {detail}")
        self.path = path


def state_from_service(service: GraftService) -> StoreStateDTO:
    return StoreStateDTO(
        next_id=service.store.next_id,
        items=[ItemDTO(**_item_fields(item)) for item in service.store.items()],
        grants=[
            GrantDTO(content_ref=grant.content_ref, user_id=grant.user_id, level=grant.level)
            for grant in service.grants.grants()
        ],
        creators=[
            CreatorDTO(content_ref=content_ref, user_id=user_id)
            for content_ref, user_id in service.grants.creators()
        ],
    )


def service_from_state(
    state: StoreStateDTO,
    *,
    config: TraversalConfig | None = None,
    use_cache: bool = False,
) -> GraftService:
    items = [Item(**entry.model_dump()) for entry in state.items]
    store = ItemStore.from_items(items, next_id=state.next_id, config=config)
    grants = GrantTable()
    for creator in state.creators:
        grants.register_creator(creator.content_ref, creator.user_id)
    for grant in state.grants:
        grants.grant(grant.content_ref, grant.user_id, grant.level)
    return GraftService(config=config, store=store, grants=grants, use_cache=use_cache)


def save_state(service: GraftService, path: Path) -> None:
    state = state_from_service(service)
    write_json_atomic(path, state.model_dump(mode="json"))
    log.debug("saved %d item(s) to %s", len(state.items), path)


def load_state(
    path: Path,
    *,
    config: TraversalConfig | None = None,
    use_cache: bool = False,
) -> GraftService:
    try:
        payload = load_json_object_path(path)
    except FileNotFoundError:
        raise StateFileError(path, "no state file (run `graft init`)") from None
    except (OSError, UnicodeError, json.JSONDecodeError, ValueError) as exc:
        raise StateFileError(path, f"unreadable state file ({exc})") from exc
    try:
        state = StoreStateDTO.model_validate(payload)
    except ValidationError as exc:
        raise StateFileError(path, f"invalid state file ({exc.error_count()} error(s))") from exc
    service = service_from_state(state, config=config, use_cache=use_cache)
    log.debug("loaded %d item(s) from %s", len(state.items), path)
    return service


def _item_fields(item: Item) -> dict[str, object]:
    fields = item.as_dict()
    fields.pop("is_root")
    return fields
