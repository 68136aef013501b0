"""Instapaper integration using the Simple API.

The user supplies a username and password once. They are kept as one
``username:password`` credential and sent as HTTP basic authentication on
every call.
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING

import httpx

from readlater.exceptions import (
    AuthenticationRequiredError,
    CredentialInvalidError,
    ProviderRequestError,
    RateLimitedError,
)
from readlater.providers.base import ProviderBase, ServiceType, response_text, retry_after_seconds
from readlater.services.credential_store import join_secret, split_secret

if TYPE_CHECKING:
    from readlater.config import Settings
    from readlater.models.provider_config import ProviderConfig
    from readlater.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

CREDENTIAL_SEPARATOR = ":"
AUTH_FAILED_MESSAGE = "Instapaper authentication failed. Reconnect your account in Settings."
BAD_REQUEST_FALLBACK = "Instapaper rejected this URL or request payload"


def basic_authorization_header(username: str, password: str) -> str:
    """``Basic base64(username:password)``."""
    encoded = base64.b64encode(f"{username}:{password}".encode()).decode("ascii")
    return f"Basic {encoded}"


def _error_message(response: httpx.Response, fallback: str) -> str:
    text = response_text(response)
    if not text:
        return fallback
    return f"Instapaper error: {text}"


async def verify_instapaper_credentials(username: str, password: str, settings: Settings) -> bool:
    """Check a username and password against the authenticate endpoint."""
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            f"{settings.instapaper_api_url}/authenticate",
            headers={"Authorization": basic_authorization_header(username, password)},
            timeout=settings.request_timeout_seconds,
        )
    if resp.status_code == 429:
        raise RateLimitedError(
            "Instapaper rate limit exceeded", retry_after=retry_after_seconds(resp)
        )
    return resp.status_code == 200


class InstapaperProvider(ProviderBase):
    """Adapter for Instapaper."""

    service_type = ServiceType.INSTAPAPER

    def __init__(
        self,
        config: ProviderConfig,
        credential_store: CredentialStore,
        settings: Settings,
    ) -> None:
        super().__init__(config, credential_store, settings)
        self._username: str | None = None
        self._password: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._username is not None and self._password is not None

    @property
    def username(self) -> str | None:
        return self._username

    def _apply_secret(self, secret: str) -> None:
        parts = split_secret(secret, CREDENTIAL_SEPARATOR)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            logger.error("Stored Instapaper credentials for config %s are invalid", self.config_id)
            return
        self._username, self._password = parts

    async def authenticate(self) -> str | None:
        msg = "Use account credentials to configure Instapaper"
        raise AuthenticationRequiredError(msg)

    async def verify_credentials(self, username: str, password: str) -> bool:
        return await verify_instapaper_credentials(username, password, self._settings)

    async def authenticate_with_credentials(
        self,
        username: str,
        password: str,
        persist: bool = True,
        verify: bool = True,
    ) -> None:
        """Accept a username and password, optionally verifying them first."""
        if not username or not password:
            raise CredentialInvalidError("Instapaper username and password are required")
        if CREDENTIAL_SEPARATOR in username:
            raise CredentialInvalidError("Instapaper username must not contain ':'")
        if verify and not await self.verify_credentials(username, password):
            raise CredentialInvalidError(AUTH_FAILED_MESSAGE)

        if persist:
            await self._store_secret(join_secret([username, password], CREDENTIAL_SEPARATOR))
        self._username = username
        self._password = password
        logger.info("Instapaper credentials saved for config %s", self.config_id)

    async def save(self, url: str, title: str | None = None) -> str | None:
        logger.info("Saving to Instapaper: %s", url)
        if self._username is None or self._password is None:
            logger.error("Not authenticated with Instapaper")
            raise CredentialInvalidError("Not authenticated with Instapaper")

        form = {"url": url}
        if title:
            form["title"] = title

        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self._settings.instapaper_api_url}/add",
                data=form,
                headers={
                    "Authorization": basic_authorization_header(self._username, self._password),
                },
                timeout=self.timeout,
            )

        status = resp.status_code
        if status in (200, 201):
            logger.info("Successfully saved to Instapaper")
            return _bookmark_id(resp)
        if status == 400:
            message = _error_message(resp, BAD_REQUEST_FALLBACK)
            logger.error("Instapaper save rejected: %s", message)
            raise ProviderRequestError(message, status_code=status)
        if status in (401, 403):
            logger.error("Instapaper authentication failed with status %s", status)
            raise CredentialInvalidError(AUTH_FAILED_MESSAGE)
        if status == 429:
            raise RateLimitedError(
                "Instapaper rate limit exceeded", retry_after=retry_after_seconds(resp)
            )
        message = _error_message(resp, f"Instapaper returned status {status}")
        logger.error("Instapaper save failed with status %s: %s", status, message)
        raise ProviderRequestError(message, status_code=status)


def _bookmark_id(response: httpx.Response) -> str | None:
    try:
        data = response.json()
    except ValueError:
        return None
    entries = data if isinstance(data, list) else [data]
    for entry in entries:
        if isinstance(entry, dict) and entry.get("bookmark_id"):
            return str(entry["bookmark_id"])
    return None
