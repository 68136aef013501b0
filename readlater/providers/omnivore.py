"""Omnivore integration using its GraphQL API.

A 200 response is not enough to call a save successful: the ``saveUrl``
union reports application errors in an ``errorCodes`` array.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

import httpx

from readlater.exceptions import (
    AuthenticationRequiredError,
    CredentialInvalidError,
    MalformedResponseError,
    ProviderApplicationError,
)
from readlater.providers.base import ProviderBase, ServiceType

if TYPE_CHECKING:
    from readlater.config import Settings
    from readlater.models.provider_config import ProviderConfig
    from readlater.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

SAVE_URL_MUTATION = """
mutation SaveUrl($input: SaveUrlInput!) {
    saveUrl(input: $input) {
        ... on SaveSuccess {
            url
            clientRequestId
        }
        ... on SaveError {
            errorCodes
            message
        }
    }
}
"""


def build_save_payload(url: str, labels: list[str], client_request_id: str) -> dict[str, Any]:
    """GraphQL request document for one save."""
    save_input: dict[str, Any] = {
        "url": url,
        "source": "api",
        "clientRequestId": client_request_id,
    }
    if labels:
        save_input["labels"] = [{"name": label} for label in labels]
    return {"query": SAVE_URL_MUTATION, "variables": {"input": save_input}}


def parse_save_response(response: httpx.Response) -> dict[str, Any]:
    """Extract the ``saveUrl`` object, raising on embedded errors."""
    try:
        payload = response.json()
    except ValueError as exc:
        raise MalformedResponseError("Omnivore returned a non-JSON response") from exc
    if not isinstance(payload, dict):
        raise MalformedResponseError("Omnivore returned an unexpected payload")

    errors = payload.get("errors")
    if errors:
        messages = [str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors]
        raise ProviderApplicationError(f"Omnivore error: {'; '.join(messages)}")

    data = payload.get("data")
    save_url = data.get("saveUrl") if isinstance(data, dict) else None
    if not isinstance(save_url, dict):
        raise MalformedResponseError("Omnivore response missing saveUrl")

    error_codes = save_url.get("errorCodes")
    if error_codes:
        codes = [str(code) for code in error_codes]
        message = save_url.get("message") or ", ".join(codes)
        raise ProviderApplicationError(f"Omnivore error: {message}", error_codes=codes)
    return save_url


class OmnivoreProvider(ProviderBase):
    """Adapter for Omnivore."""

    service_type = ServiceType.OMNIVORE

    def __init__(
        self,
        config: ProviderConfig,
        credential_store: CredentialStore,
        settings: Settings,
    ) -> None:
        super().__init__(config, credential_store, settings)
        self._api_key: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self._api_key is not None

    @property
    def default_labels(self) -> list[str]:
        labels = self.config.settings.get("labels") or []
        return [str(label) for label in labels if label]

    def _apply_secret(self, secret: str) -> None:
        self._api_key = secret.strip()

    async def authenticate(self) -> str | None:
        msg = "Use set_api_key to configure Omnivore"
        raise AuthenticationRequiredError(msg)

    async def set_api_key(self, key: str) -> None:
        """Accept a personal API key. Blank keys are rejected and nothing is stored."""
        key = key.strip()
        if not key:
            raise CredentialInvalidError("Omnivore API key not configured")
        await self._store_secret(key)
        self._api_key = key
        logger.info("Omnivore API key saved for config %s", self.config_id)

    async def save(self, url: str, title: str | None = None) -> str | None:
        # Omnivore fetches the title itself
        return await self.save_with_labels(url, title, self.default_labels)

    async def save_with_labels(
        self, url: str, title: str | None, labels: list[str]
    ) -> str | None:
        logger.info("Saving to Omnivore: %s", url)
        if self._api_key is None:
            logger.error("Omnivore API key not configured")
            raise CredentialInvalidError("Omnivore API key not configured")

        request_id = str(uuid.uuid4())
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                self._settings.omnivore_api_url,
                json=build_save_payload(url, labels, request_id),
                headers={"Authorization": self._api_key},
                timeout=self.timeout,
            )
        if resp.status_code != 200:
            logger.error("Omnivore save failed with status %s", resp.status_code)
            self._raise_for_common_status(resp, "save")

        save_url = parse_save_response(resp)
        logger.info("Successfully saved to Omnivore")
        return str(save_url.get("clientRequestId") or request_id)
