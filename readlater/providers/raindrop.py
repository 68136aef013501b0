"""Raindrop.io integration using OAuth2 with refresh tokens."""

from __future__ import annotations

import logging
import secrets
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from readlater.exceptions import (
    AuthenticationRequiredError,
    CredentialInvalidError,
    MalformedResponseError,
)
from readlater.providers.base import ProviderBase, ServiceType
from readlater.services.credential_store import join_secret

if TYPE_CHECKING:
    from readlater.config import Settings
    from readlater.models.provider_config import ProviderConfig
    from readlater.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

TOKEN_SEPARATOR = "|"
UNSORTED_COLLECTION_ID = -1


class RaindropAuthError(CredentialInvalidError):
    """Raised when a Raindrop token exchange or refresh fails."""


def build_raindrop_authorization_url(
    client_id: str, redirect_uri: str, state: str, settings: Settings
) -> str:
    """URL the user opens to grant access."""
    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
        }
    )
    return f"{settings.raindrop_oauth_url}/authorize?{query}"


async def _request_tokens(payload: dict[str, str], settings: Settings) -> dict[str, str]:
    async with httpx.AsyncClient() as client:
        resp = await client.post(
            f"{settings.raindrop_oauth_url}/access_token",
            json=payload,
            timeout=settings.request_timeout_seconds,
        )
    if resp.status_code != 200:
        msg = f"Raindrop token request failed: {resp.status_code}"
        raise RaindropAuthError(msg)
    try:
        token_data = resp.json()
    except ValueError as exc:
        raise MalformedResponseError("Invalid Raindrop token response") from exc
    access_token = token_data.get("access_token") if isinstance(token_data, dict) else None
    if not access_token:
        raise MalformedResponseError("Raindrop token response missing access_token")
    return {
        "access_token": str(access_token),
        "refresh_token": str(token_data.get("refresh_token") or ""),
    }


async def exchange_raindrop_code(
    code: str,
    client_id: str,
    client_secret: str,
    redirect_uri: str,
    settings: Settings,
) -> dict[str, str]:
    """Exchange an authorization code for Raindrop tokens.

    Returns dict with keys: access_token, refresh_token.
    Raises RaindropAuthError on failure.
    """
    return await _request_tokens(
        {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
        },
        settings,
    )


async def refresh_raindrop_token(
    refresh_token: str, client_id: str, client_secret: str, settings: Settings
) -> dict[str, str]:
    """Trade a refresh token for a new token pair.

    The old refresh token is kept when the response omits a new one.
    """
    tokens = await _request_tokens(
        {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": client_id,
            "client_secret": client_secret,
        },
        settings,
    )
    if not tokens["refresh_token"]:
        tokens["refresh_token"] = refresh_token
    return tokens


class RaindropProvider(ProviderBase):
    """Adapter for Raindrop.io."""

    service_type = ServiceType.RAINDROP

    def __init__(
        self,
        config: ProviderConfig,
        credential_store: CredentialStore,
        settings: Settings,
    ) -> None:
        super().__init__(config, credential_store, settings)
        self._access_token: str | None = None
        self._refresh_token: str | None = None
        self._pending_state: str | None = None
        self._refreshed_unsaved = False

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    @property
    def pending_state(self) -> str | None:
        return self._pending_state

    @property
    def collection_id(self) -> int:
        value = self.config.settings.get("collection_id", UNSORTED_COLLECTION_ID)
        try:
            return int(value)
        except (TypeError, ValueError):
            return UNSORTED_COLLECTION_ID

    @property
    def default_tags(self) -> list[str]:
        tags = self.config.settings.get("default_tags") or []
        return [str(tag) for tag in tags if tag]

    def _app_credentials(self) -> tuple[str, str] | None:
        client_id = self._settings.raindrop_client_id
        client_secret = self._settings.raindrop_client_secret
        if not client_id or not client_secret:
            return None
        return client_id, client_secret

    def _apply_secret(self, secret: str) -> None:
        access, _, refresh = secret.partition(TOKEN_SEPARATOR)
        if not access:
            logger.error("Stored Raindrop token for config %s is invalid", self.config_id)
            return
        self._access_token = access
        self._refresh_token = refresh or None

    async def _store_tokens(self, access_token: str, refresh_token: str | None) -> None:
        parts = [access_token, refresh_token] if refresh_token else [access_token]
        await self._store_secret(join_secret(parts, TOKEN_SEPARATOR))
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._refreshed_unsaved = False

    async def authenticate(self) -> str:
        """Return the authorization URL; the generated state is kept pending."""
        app = self._app_credentials()
        if app is None:
            msg = "Raindrop client id and secret are not configured"
            raise AuthenticationRequiredError(msg)
        self._pending_state = secrets.token_urlsafe(32)
        return build_raindrop_authorization_url(
            app[0], self._settings.oauth_redirect_uri, self._pending_state, self._settings
        )

    async def complete_authentication(self, code: str) -> None:
        """Exchange the authorization code and store the token pair."""
        app = self._app_credentials()
        if app is None:
            msg = "Raindrop client id and secret are not configured"
            raise AuthenticationRequiredError(msg)
        tokens = await exchange_raindrop_code(
            code, app[0], app[1], self._settings.oauth_redirect_uri, self._settings
        )
        await self._store_tokens(tokens["access_token"], tokens["refresh_token"] or None)
        self._pending_state = None
        logger.info("Raindrop tokens stored for config %s", self.config_id)

    async def set_access_token(self, token: str, refresh_token: str | None = None) -> None:
        """Accept a token pair obtained elsewhere, such as a test token."""
        token = token.strip()
        if not token:
            raise CredentialInvalidError("Raindrop access token is required")
        await self._store_tokens(token, refresh_token.strip() if refresh_token else None)

    async def _try_refresh_token(self) -> bool:
        """Refresh once and hold the new pair in memory. Returns False when not possible.

        The pair is written to the store only after a save succeeds with it.
        """
        app = self._app_credentials()
        if not self._refresh_token or app is None:
            return False
        try:
            tokens = await refresh_raindrop_token(
                self._refresh_token, app[0], app[1], self._settings
            )
        except (RaindropAuthError, MalformedResponseError, httpx.HTTPError):
            logger.warning("Raindrop token refresh failed for config %s", self.config_id)
            return False
        self._access_token = tokens["access_token"]
        self._refresh_token = tokens["refresh_token"]
        self._refreshed_unsaved = True
        logger.info("Raindrop token refreshed for config %s", self.config_id)
        return True

    def _save_body(self, url: str, title: str | None) -> dict[str, Any]:
        body: dict[str, Any] = {"link": url, "pleaseParse": {}}
        if title:
            body["title"] = title
        if self.collection_id >= 0:
            body["collection"] = {"$id": self.collection_id}
        if self.default_tags:
            body["tags"] = self.default_tags
        return body

    async def save(self, url: str, title: str | None = None) -> str | None:
        if self._access_token is None:
            raise CredentialInvalidError("Not authenticated with Raindrop")

        body = self._save_body(url, title)
        endpoint = f"{self._settings.raindrop_api_url}/raindrop"
        logger.info("Saving to Raindrop: %s", url)
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                endpoint,
                json=body,
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=self.timeout,
            )
            if resp.status_code == 401:
                if not await self._try_refresh_token():
                    msg = "Raindrop authentication expired. Reconnect your account in Settings."
                    raise CredentialInvalidError(msg)
                resp = await client.post(
                    endpoint,
                    json=body,
                    headers={"Authorization": f"Bearer {self._access_token}"},
                    timeout=self.timeout,
                )

        if resp.status_code not in (200, 201):
            logger.warning("Raindrop save failed with status %s", resp.status_code)
            self._raise_for_common_status(resp, "save")

        if self._refreshed_unsaved and self._access_token is not None:
            await self._store_tokens(self._access_token, self._refresh_token)

        try:
            data = resp.json()
        except ValueError:
            return None
        item = data.get("item") if isinstance(data, dict) else None
        item_id = item.get("_id") if isinstance(item, dict) else None
        return str(item_id) if item_id is not None else None

    async def get_collections(self) -> list[dict[str, Any]]:
        """List the user's root collections."""
        if self._access_token is None:
            raise CredentialInvalidError("Not authenticated with Raindrop")
        async with httpx.AsyncClient() as client:
            resp = await client.get(
                f"{self._settings.raindrop_api_url}/collections",
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=self.timeout,
            )
        if resp.status_code != 200:
            self._raise_for_common_status(resp, "collections request")
        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("Invalid Raindrop collections response") from exc
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise MalformedResponseError("Raindrop collections response missing items")
        return [item for item in items if isinstance(item, dict)]
