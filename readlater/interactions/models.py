"""Post interaction state shared by the client, service and controllers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any

from readlater.exceptions import MalformedResponseError


class InteractionKind(str, enum.Enum):
    """A toggleable interaction on a post."""

    FAVOURITE = "favourite"
    REBLOG = "reblog"
    BOOKMARK = "bookmark"

    @property
    def has_count(self) -> bool:
        return self is not InteractionKind.BOOKMARK


@dataclass(frozen=True)
class PostSnapshot:
    """Canonical interaction state of one post as the server reported it."""

    id: str
    favourited: bool = False
    reblogged: bool = False
    bookmarked: bool = False
    favourites_count: int = 0
    reblogs_count: int = 0
    reblog: PostSnapshot | None = None

    @property
    def display(self) -> PostSnapshot:
        """The post a user sees and interacts with: the boosted one, if any."""
        return self.reblog if self.reblog is not None else self

    def is_active(self, kind: InteractionKind) -> bool:
        if kind is InteractionKind.FAVOURITE:
            return self.favourited
        if kind is InteractionKind.REBLOG:
            return self.reblogged
        return self.bookmarked

    def count(self, kind: InteractionKind) -> int:
        if kind is InteractionKind.FAVOURITE:
            return self.favourites_count
        if kind is InteractionKind.REBLOG:
            return self.reblogs_count
        return 0

    def with_state(self, kind: InteractionKind, state: InteractionState) -> PostSnapshot:
        """Copy with one interaction replaced by ``state``."""
        if kind is InteractionKind.FAVOURITE:
            return replace(self, favourited=state.is_active, favourites_count=state.count)
        if kind is InteractionKind.REBLOG:
            return replace(self, reblogged=state.is_active, reblogs_count=state.count)
        return replace(self, bookmarked=state.is_active)

    @classmethod
    def from_api(cls, data: Any) -> PostSnapshot:
        """Build a snapshot from a Mastodon status object."""
        if not isinstance(data, dict) or not data.get("id"):
            raise MalformedResponseError("Status payload missing id")
        try:
            favourites = int(data.get("favourites_count") or 0)
            reblogs = int(data.get("reblogs_count") or 0)
        except (TypeError, ValueError) as exc:
            raise MalformedResponseError("Status payload has invalid counts") from exc
        nested = data.get("reblog")
        return cls(
            id=str(data["id"]),
            favourited=bool(data.get("favourited")),
            reblogged=bool(data.get("reblogged")),
            bookmarked=bool(data.get("bookmarked")),
            favourites_count=favourites,
            reblogs_count=reblogs,
            reblog=cls.from_api(nested) if nested else None,
        )


@dataclass(frozen=True)
class InteractionState:
    """Active flag and count of one interaction, always replaced together."""

    post_id: str
    is_active: bool
    count: int = 0

    @classmethod
    def of(cls, post: PostSnapshot, kind: InteractionKind) -> InteractionState:
        shown = post.display
        return cls(post_id=shown.id, is_active=shown.is_active(kind), count=shown.count(kind))
