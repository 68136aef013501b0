"""Interaction service: performs toggles and broadcasts canonical post state."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from readlater.interactions.models import InteractionKind

if TYPE_CHECKING:
    from readlater.interactions.client import MastodonInteractionClient
    from readlater.interactions.models import PostSnapshot
    from readlater.services.event_bus import EventBus

logger = logging.getLogger(__name__)


class InteractionService:
    """Every state the server confirms is published on the post-updates channel."""

    def __init__(self, client: MastodonInteractionClient, event_bus: EventBus) -> None:
        self._client = client
        self._event_bus = event_bus

    async def apply(
        self,
        post: PostSnapshot,
        kind: InteractionKind,
        active: bool,
        publish: bool = True,
    ) -> PostSnapshot:
        """Toggle ``kind`` on the displayed post.

        With ``publish=False`` the caller takes over broadcasting, typically
        after reconciling the response.
        """
        target = post.display
        snapshot = await self._client.set_state(target.id, kind, active)
        logger.debug("Set %s=%s on post %s", kind.value, active, target.id)
        if publish:
            self.publish_refresh(snapshot)
        return snapshot

    async def refresh(self, post_id: str) -> PostSnapshot:
        """Fetch a post and broadcast its current state."""
        snapshot = await self._client.get_status(post_id)
        self.publish_refresh(snapshot)
        return snapshot

    def publish_refresh(self, snapshot: PostSnapshot) -> int:
        return self._event_bus.post_updates.publish(snapshot)
