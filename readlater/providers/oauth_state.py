"""Time-limited in-memory store for pending provider authorization flows."""

from __future__ import annotations

import time
from typing import Any


class OAuthStateStore:
    """Store pending authorization state with automatic expiry.

    Entries are keyed by the OAuth ``state`` value (Raindrop) or the request
    code (Pocket) and hold whatever the callback needs to finish the flow.
    """

    def __init__(self, ttl_seconds: int = 600, max_entries: int = 100) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: dict[str, tuple[dict[str, Any], float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, data: dict[str, Any]) -> None:
        """Remember data for a flow; the oldest entry is evicted when full."""
        self.cleanup()
        if key not in self._entries and len(self._entries) >= self._max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest]
        self._entries[key] = (data, time.monotonic())

    def pop(self, key: str) -> dict[str, Any] | None:
        """Take the data for a finished flow; expired entries read as missing."""
        entry = self._entries.pop(key, None)
        if entry is None:
            return None
        data, created_at = entry
        if time.monotonic() - created_at > self._ttl:
            return None
        return data

    def cleanup(self) -> None:
        now = time.monotonic()
        expired = [k for k, (_, t) in self._entries.items() if now - t > self._ttl]
        for k in expired:
            del self._entries[k]
