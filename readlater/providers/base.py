"""Base protocol and data classes for read-later providers."""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from readlater.exceptions import (
    CredentialInvalidError,
    ProviderRequestError,
    RateLimitedError,
    ReadLaterError,
)

if TYPE_CHECKING:
    import httpx

    from readlater.config import Settings
    from readlater.models.provider_config import ProviderConfig
    from readlater.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)


class ServiceType(str, enum.Enum):
    """The closed set of supported read-later services."""

    POCKET = "pocket"
    INSTAPAPER = "instapaper"
    OMNIVORE = "omnivore"
    READWISE = "readwise"
    RAINDROP = "raindrop"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def supports_tagging(self) -> bool:
        return self is not ServiceType.READWISE


_DISPLAY_NAMES = {
    ServiceType.POCKET: "Pocket",
    ServiceType.INSTAPAPER: "Instapaper",
    ServiceType.OMNIVORE: "Omnivore",
    ServiceType.READWISE: "Readwise Reader",
    ServiceType.RAINDROP: "Raindrop.io",
}


@dataclass
class SaveResult:
    """Outcome of one save attempt. Broadcast once, never persisted."""

    success: bool
    url: str
    service_type: ServiceType | None
    item_id: str | None = None
    error: ReadLaterError | None = None

    @classmethod
    def succeeded(
        cls, url: str, service_type: ServiceType, item_id: str | None = None
    ) -> SaveResult:
        return cls(success=True, url=url, service_type=service_type, item_id=item_id)

    @classmethod
    def failed(
        cls, url: str, service_type: ServiceType | None, error: ReadLaterError
    ) -> SaveResult:
        return cls(success=False, url=url, service_type=service_type, error=error)

    def raise_for_error(self) -> None:
        """Re-raise the recorded error of a failed save."""
        if self.error is not None:
            raise self.error


@runtime_checkable
class ReadLaterProvider(Protocol):
    """Capability interface every provider adapter implements."""

    service_type: ServiceType

    @property
    def is_authenticated(self) -> bool:
        """Whether a usable credential is loaded. Never performs I/O."""
        ...

    async def load_credentials(self) -> None:
        """Load the stored credential for this configuration into memory."""
        ...

    async def authenticate(self) -> str | None:
        """Start the default handshake.

        Returns an authorization URL when the user must approve access out of
        band, None when the handshake completed. Raises
        AuthenticationRequiredError when setup material must be supplied
        through the provider-specific entry point first.
        """
        ...

    async def save(self, url: str, title: str | None = None) -> str | None:
        """Save one URL. Returns the provider-assigned item id when known."""
        ...


class ProviderBase(ABC):
    """State and helpers shared by the five adapters.

    Subclasses set ``service_type`` and implement ``_apply_secret``,
    ``authenticate`` and ``save``.
    """

    service_type: ServiceType

    def __init__(
        self,
        config: ProviderConfig,
        credential_store: CredentialStore,
        settings: Settings,
    ) -> None:
        self._config = config
        self._credential_store = credential_store
        self._settings = settings

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def config_id(self) -> str:
        return self._config.id

    @property
    def timeout(self) -> float:
        return self._settings.request_timeout_seconds

    @property
    @abstractmethod
    def is_authenticated(self) -> bool: ...

    async def load_credentials(self) -> None:
        try:
            secret = await self._credential_store.get(self.service_type, self.config_id)
        except Exception:
            logger.exception(
                "Failed to load %s credential for config %s",
                self.service_type.value,
                self.config_id,
            )
            return
        if secret is None or not secret.strip():
            return
        self._apply_secret(secret)

    @abstractmethod
    def _apply_secret(self, secret: str) -> None: ...

    @abstractmethod
    async def authenticate(self) -> str | None: ...

    @abstractmethod
    async def save(self, url: str, title: str | None = None) -> str | None: ...

    async def _store_secret(self, secret: str) -> None:
        await self._credential_store.save(secret, self.service_type, self.config_id)

    def _raise_for_common_status(self, response: httpx.Response, action: str) -> None:
        """Map the status codes every provider treats the same way."""
        name = self.service_type.display_name
        if response.status_code in (401, 403):
            msg = f"{name} authentication failed. Reconnect your account in Settings."
            raise CredentialInvalidError(msg)
        if response.status_code == 429:
            raise RateLimitedError(
                f"{name} rate limit exceeded", retry_after=retry_after_seconds(response)
            )
        msg = f"{name} {action} failed with status {response.status_code}"
        raise ProviderRequestError(msg, status_code=response.status_code)


def retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse a numeric Retry-After header."""
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


def response_text(response: httpx.Response, limit: int = 200) -> str:
    """Trimmed response body for error messages."""
    return response.text.strip()[:limit]
