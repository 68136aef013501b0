"""Readwise Reader integration.

Personal access tokens are verified against the ``auth`` endpoint before
they are accepted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from readlater.exceptions import (
    AuthenticationRequiredError,
    CredentialInvalidError,
    ProviderRequestError,
    RateLimitedError,
)
from readlater.providers.base import ProviderBase, ServiceType, response_text, retry_after_seconds

if TYPE_CHECKING:
    from readlater.config import Settings
    from readlater.models.provider_config import ProviderConfig
    from readlater.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

READWISE_CATEGORY = "article"
READWISE_LOCATIONS = frozenset({"new", "later", "archive", "feed"})


def _auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Token {token}"}


def _rate_limited(response: httpx.Response) -> RateLimitedError:
    return RateLimitedError(
        "Readwise rate limit exceeded", retry_after=retry_after_seconds(response)
    )


async def verify_readwise_token(token: str, settings: Settings) -> bool:
    """Return True when Readwise accepts the token."""
    async with httpx.AsyncClient() as client:
        resp = await client.get(
            f"{settings.readwise_api_url}/auth/",
            headers=_auth_header(token),
            timeout=settings.request_timeout_seconds,
        )
    if resp.status_code == 429:
        raise _rate_limited(resp)
    return resp.status_code in (200, 204)


class ReadwiseProvider(ProviderBase):
    """Adapter for Readwise Reader."""

    service_type = ServiceType.READWISE

    def __init__(
        self,
        config: ProviderConfig,
        credential_store: CredentialStore,
        settings: Settings,
    ) -> None:
        super().__init__(config, credential_store, settings)
        self._access_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    @property
    def location(self) -> str | None:
        location = self.config.settings.get("location")
        return location if location in READWISE_LOCATIONS else None

    def _apply_secret(self, secret: str) -> None:
        self._access_token = secret.strip()

    async def authenticate(self) -> str | None:
        msg = "Use set_access_token to configure Readwise"
        raise AuthenticationRequiredError(msg)

    async def set_access_token(self, token: str) -> None:
        """Verify and accept a personal access token."""
        token = token.strip()
        if not token:
            raise CredentialInvalidError("Readwise token is required")
        if not await verify_readwise_token(token, self._settings):
            raise CredentialInvalidError("Invalid Readwise token")
        await self._store_secret(token)
        self._access_token = token
        logger.info("Readwise token verified and saved for config %s", self.config_id)

    async def save(self, url: str, title: str | None = None) -> str | None:
        if self._access_token is None:
            raise CredentialInvalidError("Readwise token not configured")

        body: dict[str, Any] = {"url": url, "category": READWISE_CATEGORY}
        if title:
            body["title"] = title
        if self.location is not None:
            body["location"] = self.location

        logger.info("Saving to Readwise: %s", url)
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self._settings.readwise_api_url}/save/",
                json=body,
                headers=_auth_header(self._access_token),
                timeout=self.timeout,
            )

        status = resp.status_code
        if status in (200, 201):
            try:
                data = resp.json()
            except ValueError:
                return None
            item_id = data.get("id") if isinstance(data, dict) else None
            return str(item_id) if item_id else None
        if status == 401:
            raise CredentialInvalidError("Readwise authentication expired")
        if status == 429:
            logger.warning("Readwise rate limit hit")
            raise _rate_limited(resp)
        message = response_text(resp) or "Unknown error"
        raise ProviderRequestError(f"Readwise error: {message}", status_code=status)

    async def save_highlight(self, url: str, text: str, note: str | None = None) -> None:
        """Create one highlight attached to ``url``."""
        if self._access_token is None:
            raise CredentialInvalidError("Readwise token not configured")

        highlight: dict[str, Any] = {"text": text, "source_url": url}
        if note:
            highlight["note"] = note

        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self._settings.readwise_api_v2_url}/highlights/",
                json={"highlights": [highlight]},
                headers=_auth_header(self._access_token),
                timeout=self.timeout,
            )
        if resp.status_code not in (200, 201):
            self._raise_for_common_status(resp, "highlight save")
