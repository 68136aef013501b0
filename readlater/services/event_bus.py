"""Typed in-process publish/subscribe channels.

Two separate channels carry the two payload contracts: save results from the
orchestrator and canonical post snapshots for interaction toggles. Keeping
them apart means a subscriber can never receive a payload of the wrong shape.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

    from readlater.interactions.models import PostSnapshot
    from readlater.providers.base import SaveResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Channel(Generic[T]):
    """A named channel delivering each published payload to every subscriber."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that removes it again."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, payload: T) -> int:
        """Deliver ``payload`` to all current subscribers.

        A failing subscriber is logged and skipped; the others still receive
        the payload. Returns the number of successful deliveries.
        """
        delivered = 0
        for callback in list(self._subscribers):
            try:
                callback(payload)
            except Exception:
                logger.exception("Subscriber on channel %r failed", self.name)
                continue
            delivered += 1
        return delivered


class EventBus:
    """The process-wide pair of channels."""

    def __init__(self) -> None:
        self.save_results: Channel[SaveResult] = Channel("readlater.save_results")
        self.post_updates: Channel[PostSnapshot] = Channel("readlater.post_updates")
