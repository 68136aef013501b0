"""Per-copy interaction controller.

One controller backs each rendered copy of a post. It shows the optimistic
state while a toggle is in flight, settles on the reconciled state, and
adopts any canonical state broadcast for the same post by another copy.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from readlater.interactions.models import InteractionKind, InteractionState
from readlater.interactions.reconciler import reconcile_state, toggle_state

if TYPE_CHECKING:
    from readlater.interactions.models import PostSnapshot
    from readlater.interactions.service import InteractionService
    from readlater.services.event_bus import EventBus

logger = logging.getLogger(__name__)


class PostInteractionController:
    def __init__(
        self,
        post: PostSnapshot,
        service: InteractionService,
        event_bus: EventBus,
    ) -> None:
        self._post = post.display
        self._service = service
        self._states = _states_of(self._post)
        self.is_processing = False
        self._unsubscribe = event_bus.post_updates.subscribe(self.apply_update)

    @property
    def post_id(self) -> str:
        return self._post.id

    def state(self, kind: InteractionKind) -> InteractionState:
        return self._states[kind]

    async def toggle(self, kind: InteractionKind) -> InteractionState | None:
        """Flip ``kind``. Returns None when a toggle is already in flight.

        On failure the previous state is restored and the error re-raised.
        """
        if self.is_processing:
            logger.debug("Ignoring %s toggle on busy post %s", kind.value, self.post_id)
            return None

        original = self._states[kind]
        self.is_processing = True
        self._states[kind] = toggle_state(original)
        try:
            server = await self._service.apply(
                self._post, kind, not original.is_active, publish=False
            )
        except Exception:
            self._states[kind] = original
            raise
        finally:
            self.is_processing = False

        settled = reconcile_state(original, server, kind)
        canonical = server.display.with_state(kind, settled)
        self._service.publish_refresh(canonical)
        self._states[kind] = settled
        return settled

    def apply_update(self, snapshot: PostSnapshot) -> None:
        """Adopt a broadcast snapshot if it describes this post."""
        shown = snapshot.display
        if shown.id != self.post_id:
            return
        self._post = shown
        self._states = _states_of(shown)

    def close(self) -> None:
        self._unsubscribe()


def _states_of(post: PostSnapshot) -> dict[InteractionKind, InteractionState]:
    return {kind: InteractionState.of(post, kind) for kind in InteractionKind}
