"""Registry of the five read-later provider adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from readlater.providers.base import ServiceType
from readlater.providers.instapaper import InstapaperProvider
from readlater.providers.omnivore import OmnivoreProvider
from readlater.providers.pocket import PocketProvider
from readlater.providers.raindrop import RaindropProvider
from readlater.providers.readwise import ReadwiseProvider

if TYPE_CHECKING:
    from readlater.config import Settings
    from readlater.models.provider_config import ProviderConfig
    from readlater.providers.base import ProviderBase
    from readlater.services.credential_store import CredentialStore

PROVIDERS: dict[
    ServiceType,
    type[PocketProvider]
    | type[InstapaperProvider]
    | type[OmnivoreProvider]
    | type[ReadwiseProvider]
    | type[RaindropProvider],
] = {
    ServiceType.POCKET: PocketProvider,
    ServiceType.INSTAPAPER: InstapaperProvider,
    ServiceType.OMNIVORE: OmnivoreProvider,
    ServiceType.READWISE: ReadwiseProvider,
    ServiceType.RAINDROP: RaindropProvider,
}


def create_provider(
    config: ProviderConfig,
    credential_store: CredentialStore,
    settings: Settings,
) -> ProviderBase:
    """Construct the adapter for a configuration record. Performs no I/O.

    Raises ValueError if the record's service type is unknown.
    """
    service = config.service
    provider_cls = PROVIDERS.get(service) if service is not None else None
    if provider_cls is None:
        msg = f"Unknown service type: {config.service_type!r}. Available: {list_service_types()}"
        raise ValueError(msg)
    return provider_cls(config, credential_store, settings)


def list_service_types() -> list[str]:
    """Return the list of supported service type tags."""
    return [service.value for service in PROVIDERS]
