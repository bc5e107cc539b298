from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TypeAlias

ItemId: TypeAlias = int
ContentRef: TypeAlias = str
UserId: TypeAlias = str


class PermissionLevel(str, Enum):
    """Capability levels, totally ordered: view < edit < admin."""

    VIEW = "view"
    EDIT = "edit"
    ADMIN = "admin"

    @property
    def rank(self) -> int:
        return _PERMISSION_RANK[self]

    # str compares lexically; levels compare by rank.
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, PermissionLevel):
            return NotImplemented
        return self.rank >= other.rank

    def satisfies(self, required: "PermissionLevel") -> bool:
        return self.rank >= required.rank

    @classmethod
    def parse(cls, value: "str | PermissionLevel") -> "PermissionLevel":
        if isinstance(value, PermissionLevel):
            return value
        return cls(str(value).strip().lower())

    @classmethod
    def highest(cls, levels: "list[PermissionLevel]") -> "PermissionLevel | None":
        return max(levels, key=lambda level: level.rank) if levels else None


_PERMISSION_RANK = {
    PermissionLevel.VIEW: 1,
    PermissionLevel.EDIT: 2,
    PermissionLevel.ADMIN: 3,
}


@dataclass(frozen=True)
class Item:
    """A position in a hierarchy.

    ``ascendant`` is the native lineage (immutable once set, null for roots);
    ``head`` and ``next`` are the structural pointers that composition may
    redirect.
    """

    id: ItemId
    content_ref: ContentRef
    ascendant: ItemId | None = None
    head: ItemId | None = None
    next: ItemId | None = None
    visual_ref: str | None = None

    @property
    def is_root(self) -> bool:
        return self.ascendant is None

    def pointers(self) -> tuple[tuple[str, ItemId | None], ...]:
        return (
            ("ascendant", self.ascendant),
            ("head", self.head),
            ("next", self.next),
        )

    def with_head(self, head: ItemId | None) -> "Item":
        return replace(self, head=head)

    def with_next(self, next_id: ItemId | None) -> "Item":
        return replace(self, next=next_id)

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "content_ref": self.content_ref,
            "ascendant": self.ascendant,
            "head": self.head,
            "next": self.next,
            "visual_ref": self.visual_ref,
            "is_root": self.is_root,
        }


@dataclass(frozen=True)
class Grant:
    content_ref: ContentRef
    user_id: UserId
    level: PermissionLevel
