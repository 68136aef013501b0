"""Mastodon-compatible HTTP client for favourite, boost and bookmark toggles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import httpx

from readlater.exceptions import (
    CredentialInvalidError,
    MalformedResponseError,
    ProviderRequestError,
    RateLimitedError,
)
from readlater.interactions.models import InteractionKind, PostSnapshot
from readlater.providers.base import response_text, retry_after_seconds

if TYPE_CHECKING:
    from readlater.config import Settings

logger = logging.getLogger(__name__)

ACTIONS: dict[tuple[InteractionKind, bool], str] = {
    (InteractionKind.FAVOURITE, True): "favourite",
    (InteractionKind.FAVOURITE, False): "unfavourite",
    (InteractionKind.REBLOG, True): "reblog",
    (InteractionKind.REBLOG, False): "unreblog",
    (InteractionKind.BOOKMARK, True): "bookmark",
    (InteractionKind.BOOKMARK, False): "unbookmark",
}


def _normalize_instance_url(raw_url: str) -> str:
    """Return the instance base URL without a trailing slash.

    Raises ValueError for anything but a bare http(s) origin.
    """
    candidate = raw_url.strip().rstrip("/")
    parsed = urlparse(candidate)
    if parsed.scheme.lower() not in ("https", "http") or not parsed.hostname:
        msg = f"Invalid instance URL: {raw_url!r}"
        raise ValueError(msg)
    if parsed.path or parsed.query or parsed.fragment:
        msg = f"Instance URL must not have a path: {raw_url!r}"
        raise ValueError(msg)
    return candidate


class MastodonInteractionClient:
    """Issues interaction calls for one signed-in account."""

    def __init__(self, instance_url: str, access_token: str, settings: Settings) -> None:
        self._instance_url = _normalize_instance_url(instance_url)
        self._access_token = access_token
        self._timeout = settings.request_timeout_seconds

    @property
    def instance_url(self) -> str:
        return self._instance_url

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def _snapshot(self, resp: httpx.Response, action: str) -> PostSnapshot:
        status = resp.status_code
        if status == 401:
            raise CredentialInvalidError("Mastodon session expired. Sign in again.")
        if status == 429:
            raise RateLimitedError(
                "Mastodon rate limit exceeded", retry_after=retry_after_seconds(resp)
            )
        if status != 200:
            logger.warning("Mastodon %s failed with status %s", action, status)
            msg = f"Mastodon {action} failed: {status} {response_text(resp)}".rstrip()
            raise ProviderRequestError(msg, status_code=status)
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("Mastodon returned a non-JSON response") from exc
        return PostSnapshot.from_api(data)

    async def set_state(self, post_id: str, kind: InteractionKind, active: bool) -> PostSnapshot:
        """Activate or deactivate one interaction; returns the server's status."""
        action = ACTIONS[(kind, active)]
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self._instance_url}/api/v1/statuses/{post_id}/{action}",
                headers=self._headers(),
                timeout=self._timeout,
            )
        return self._snapshot(resp, action)

    async def get_status(self, post_id: str) -> PostSnapshot:
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{self._instance_url}/api/v1/statuses/{post_id}",
                headers=self._headers(),
                timeout=self._timeout,
            )
        return self._snapshot(resp, "status fetch")
