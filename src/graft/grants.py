from __future__ import annotations

import logging
import threading

from graft.model import ContentRef, Grant, PermissionLevel, UserId

log = logging.getLogger(__name__)


class GrantTable:
    """Permission grants keyed by (content, user), plus content creators.

    Grants reference content, not items: one content unit can be reachable
    through several items. A content's creator holds an implicit ``admin``.
    """

    def __init__(self) -> None:
        self._grants: dict[tuple[ContentRef, UserId], PermissionLevel] = {}
        self._creators: dict[ContentRef, UserId] = {}
        self._version = 0
        self._lock = threading.Lock()

    @property
    def version(self) -> int:
        return self._version

    def grant(
        self,
        content_ref: ContentRef,
        user_id: UserId,
        level: PermissionLevel | str,
    ) -> Grant:
        resolved = PermissionLevel.parse(level)
        with self._lock:
            self._grants[(content_ref, user_id)] = resolved
            self._version += 1
        log.debug("grant %s on %s to %s", resolved.value, content_ref, user_id)
        return Grant(content_ref=content_ref, user_id=user_id, level=resolved)

    def revoke(self, content_ref: ContentRef, user_id: UserId) -> Grant | None:
        with self._lock:
            level = self._grants.pop((content_ref, user_id), None)
            if level is None:
                return None
            self._version += 1
        log.debug("revoke %s on %s from %s", level.value, content_ref, user_id)
        return Grant(content_ref=content_ref, user_id=user_id, level=level)

    def get(self, content_ref: ContentRef, user_id: UserId) -> PermissionLevel | None:
        """The explicit grant only; see ``effective`` for creator ownership."""
        with self._lock:
            return self._grants.get((content_ref, user_id))

    def register_creator(self, content_ref: ContentRef, user_id: UserId) -> None:
        with self._lock:
            if self._creators.get(content_ref) == user_id:
                return
            self._creators[content_ref] = user_id
            self._version += 1

    def creator_of(self, content_ref: ContentRef) -> UserId | None:
        with self._lock:
            return self._creators.get(content_ref)

    def effective(self, content_ref: ContentRef, user_id: UserId) -> PermissionLevel | None:
        with self._lock:
            levels = []
            explicit = self._grants.get((content_ref, user_id))
            if explicit is not None:
                levels.append(explicit)
            if self._creators.get(content_ref) == user_id:
                levels.append(PermissionLevel.ADMIN)
        return PermissionLevel.highest(levels)

    def grants(self) -> tuple[Grant, ...]:
        with self._lock:
            entries = sorted(self._grants.items())
        return tuple(
            Grant(content_ref=content_ref, user_id=user_id, level=level)
            for (content_ref, user_id), level in entries
        )

    def creators(self) -> tuple[tuple[ContentRef, UserId], ...]:
        with self._lock:
            return tuple(sorted(self._creators.items()))
