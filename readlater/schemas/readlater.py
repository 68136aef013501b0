"""Read-later API schemas."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from readlater.models.provider_config import ProviderConfig
    from readlater.providers.base import ProviderBase, SaveResult


class ServiceTypeResponse(BaseModel):
    """A supported read-later service."""

    service_type: str
    display_name: str
    supports_tagging: bool


class ServiceConfigResponse(BaseModel):
    """A configured read-later service. Credentials are never included."""

    id: str
    service_type: str
    display_name: str
    is_enabled: bool
    is_primary: bool
    is_authenticated: bool
    last_synced_at: str | None = None
    created_at: str
    settings: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_config(
        cls, config: ProviderConfig, adapter: ProviderBase | None
    ) -> ServiceConfigResponse:
        service = config.service
        return cls(
            id=config.id,
            service_type=config.service_type,
            display_name=service.display_name if service is not None else config.service_type,
            is_enabled=config.is_enabled,
            is_primary=config.is_primary,
            is_authenticated=adapter.is_authenticated if adapter is not None else False,
            last_synced_at=config.last_synced_at,
            created_at=config.created_at,
            settings=config.settings,
        )


class ServiceCreate(BaseModel):
    """Generic request to configure a service with an already obtained credential."""

    service_type: str = Field(min_length=1, description="Service type tag, e.g. 'pocket'")
    credential: str = Field(default="", description="Opaque credential string")
    settings: dict[str, Any] | None = Field(
        default=None, description="Service-specific settings blob"
    )


class ServiceUpdate(BaseModel):
    """Partial update of a configured service."""

    is_enabled: bool | None = None
    settings: dict[str, Any] | None = None
    last_synced_at: str | None = Field(
        default=None, description="Lax timestamp of the last successful sync"
    )


class SaveRequest(BaseModel):
    """Request to save one URL."""

    url: str = Field(min_length=1, description="Article URL to save")
    title: str | None = Field(default=None, description="Optional article title")
    service_type: str | None = Field(
        default=None, description="Target service type; the primary service when omitted"
    )


class SaveResponse(BaseModel):
    """Outcome of a save."""

    success: bool
    url: str
    service_type: str | None = None
    item_id: str | None = None
    error: str | None = None
    error_kind: str | None = None
    retryable: bool = False

    @classmethod
    def from_result(cls, result: SaveResult) -> SaveResponse:
        error = result.error
        return cls(
            success=result.success,
            url=result.url,
            service_type=result.service_type.value if result.service_type else None,
            item_id=result.item_id,
            error=error.message if error is not None else None,
            error_kind=type(error).__name__ if error is not None else None,
            retryable=error.retryable if error is not None else False,
        )


class AuthorizeResponse(BaseModel):
    """Response with the URL the user must open to grant access."""

    authorization_url: str
    state: str


class PocketAuthorizeRequest(BaseModel):
    """Request to start the Pocket flow."""

    consumer_key: str | None = Field(
        default=None, description="Pocket consumer key; the server-wide key when omitted"
    )


class PocketCallbackResponse(BaseModel):
    config: ServiceConfigResponse
    username: str


class InstapaperConnectRequest(BaseModel):
    """Request to connect Instapaper with account credentials."""

    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class OmnivoreConnectRequest(BaseModel):
    """Request to connect Omnivore with a personal API key."""

    api_key: str = Field(min_length=1)
    labels: list[str] = Field(default_factory=list)


class ReadwiseConnectRequest(BaseModel):
    """Request to connect Readwise Reader with a personal access token."""

    token: str = Field(min_length=1)
    location: str | None = Field(default=None, description="'new', 'later' or 'archive'")
