"""Pocket integration using the v3 API and its request-token OAuth flow.

The handshake is two-step: obtain a short-lived request code with the
consumer key, send the user to approve it, then exchange the approved code
for a long-lived access token.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import urlencode

import httpx

from readlater.exceptions import (
    AuthenticationRequiredError,
    CredentialInvalidError,
    MalformedResponseError,
)
from readlater.providers.base import ProviderBase, ServiceType

if TYPE_CHECKING:
    from readlater.config import Settings
    from readlater.models.provider_config import ProviderConfig
    from readlater.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

POCKET_HEADERS = {
    "Content-Type": "application/json; charset=UTF-8",
    "X-Accept": "application/json",
}


class PocketAuthError(CredentialInvalidError):
    """Raised when the Pocket request-token flow fails."""


def _json_field(response: httpx.Response, field: str) -> str:
    try:
        data = response.json()
    except ValueError as exc:
        raise MalformedResponseError("Invalid Pocket response") from exc
    value = data.get(field) if isinstance(data, dict) else None
    if not isinstance(value, str) or not value:
        msg = f"Pocket response missing {field}"
        raise MalformedResponseError(msg)
    return value


async def request_pocket_code(consumer_key: str, redirect_uri: str, settings: Settings) -> str:
    """Obtain a request code for the given consumer key.

    Raises PocketAuthError when Pocket rejects the request.
    """
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            f"{settings.pocket_api_url}/oauth/request",
            json={"consumer_key": consumer_key, "redirect_uri": redirect_uri},
            headers=POCKET_HEADERS,
            timeout=settings.request_timeout_seconds,
        )
    if resp.status_code != 200:
        msg = f"Failed to get Pocket request token: {resp.status_code}"
        raise PocketAuthError(msg)
    return _json_field(resp, "code")


def build_pocket_authorization_url(code: str, redirect_uri: str, settings: Settings) -> str:
    """URL the user opens to approve a request code."""
    query = urlencode({"request_token": code, "redirect_uri": redirect_uri})
    return f"{settings.pocket_authorize_url}?{query}"


async def exchange_pocket_code(consumer_key: str, code: str, settings: Settings) -> dict[str, str]:
    """Exchange an approved request code for an access token.

    Returns dict with keys: access_token, username.
    """
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            f"{settings.pocket_api_url}/oauth/authorize",
            json={"consumer_key": consumer_key, "code": code},
            headers=POCKET_HEADERS,
            timeout=settings.request_timeout_seconds,
        )
    if resp.status_code != 200:
        msg = f"Failed to get Pocket access token: {resp.status_code}"
        raise PocketAuthError(msg)
    access_token = _json_field(resp, "access_token")
    username = resp.json().get("username") or ""
    return {"access_token": access_token, "username": str(username)}


class PocketProvider(ProviderBase):
    """Adapter for Pocket."""

    service_type = ServiceType.POCKET

    def __init__(
        self,
        config: ProviderConfig,
        credential_store: CredentialStore,
        settings: Settings,
    ) -> None:
        super().__init__(config, credential_store, settings)
        self._access_token: str | None = None
        self._pending_code: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    @property
    def consumer_key(self) -> str | None:
        """Consumer key from the config blob, falling back to the app-wide one."""
        key = self.config.settings.get("consumer_key") or self._settings.pocket_consumer_key
        return key or None

    @property
    def pending_code(self) -> str | None:
        return self._pending_code

    def _apply_secret(self, secret: str) -> None:
        self._access_token = secret.strip()

    async def authenticate(self) -> str:
        """Obtain a request code and return the URL the user must approve."""
        consumer_key = self.consumer_key
        if consumer_key is None:
            msg = "Pocket consumer key not configured. Supply it when connecting Pocket."
            raise AuthenticationRequiredError(msg)
        redirect_uri = self._settings.pocket_redirect_uri
        self._pending_code = await request_pocket_code(consumer_key, redirect_uri, self._settings)
        return build_pocket_authorization_url(self._pending_code, redirect_uri, self._settings)

    async def complete_authentication(self, code: str | None = None) -> str:
        """Exchange the approved request code and store the access token."""
        consumer_key = self.consumer_key
        request_code = code or self._pending_code
        if consumer_key is None or request_code is None:
            msg = "Start the Pocket authorization before completing it"
            raise AuthenticationRequiredError(msg)
        tokens = await exchange_pocket_code(consumer_key, request_code, self._settings)
        await self._store_secret(tokens["access_token"])
        self._access_token = tokens["access_token"]
        self._pending_code = None
        logger.info("Pocket access token stored for config %s", self.config_id)
        return tokens["username"]

    async def save(self, url: str, title: str | None = None) -> str | None:
        consumer_key = self.consumer_key
        if self._access_token is None or consumer_key is None:
            raise CredentialInvalidError("Not authenticated with Pocket")

        body = {
            "url": url,
            "consumer_key": consumer_key,
            "access_token": self._access_token,
        }
        if title:
            body["title"] = title

        logger.info("Saving to Pocket: %s", url)
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"{self._settings.pocket_api_url}/add",
                json=body,
                headers=POCKET_HEADERS,
                timeout=self.timeout,
            )
        if resp.status_code != 200:
            logger.warning("Pocket save failed with status %s", resp.status_code)
            self._raise_for_common_status(resp, "save")

        try:
            data = resp.json()
        except ValueError:
            return None
        item = data.get("item") if isinstance(data, dict) else None
        item_id = item.get("item_id") if isinstance(item, dict) else None
        return str(item_id) if item_id else None
