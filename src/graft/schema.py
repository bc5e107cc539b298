from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from graft.model import PermissionLevel


class ItemDTO(BaseModel):
    id: int
    content_ref: str
    ascendant: Optional[int] = None
    head: Optional[int] = None
    next: Optional[int] = None
    visual_ref: Optional[str] = None


class GrantDTO(BaseModel):
    content_ref: str
    user_id: str
    level: PermissionLevel


class CreatorDTO(BaseModel):
    content_ref: str
    user_id: str


class StoreStateDTO(BaseModel):
    format_version: int = 1
    next_id: int = 1
    items: List[ItemDTO] = []
    grants: List[GrantDTO] = []
    creators: List[CreatorDTO] = []


class TruncationDTO(BaseModel):
    reason: str
    frontier: List[int] = []


class BranchStepDTO(BaseModel):
    item_id: int
    depth: int
    is_cycle: bool = False
    via: str = "start"
    is_flux: bool = False
    parent: Optional[int] = None


class AscendantsResponseDTO(BaseModel):
    item_id: int
    ascendants: List[int]
    truncated: Optional[TruncationDTO] = None


class BranchResponseDTO(BaseModel):
    start: int
    steps: List[BranchStepDTO]
    truncated: Optional[TruncationDTO] = None


class DeletionResponseDTO(BaseModel):
    item_id: int
    case: str
    removed: List[int]
    touched: List[int] = []


class CompositionResponseDTO(BaseModel):
    stem: int
    target: int
    is_flux: bool
    previous_head: Optional[int] = None


class AccessCheckResponseDTO(BaseModel):
    content_ref: str
    user_id: str
    level: PermissionLevel
    allowed: bool
