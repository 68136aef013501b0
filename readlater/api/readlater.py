"""Read-later API endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from readlater.api.deps import (
    get_orchestrator,
    get_pocket_state,
    get_raindrop_state,
    get_settings,
    require_api_token,
)
from readlater.api.errors import error_status
from readlater.config import Settings
from readlater.exceptions import InternalServerError
from readlater.providers.base import ProviderBase, ServiceType
from readlater.providers.instapaper import InstapaperProvider
from readlater.providers.oauth_state import OAuthStateStore
from readlater.providers.omnivore import OmnivoreProvider
from readlater.providers.pocket import PocketProvider
from readlater.providers.raindrop import RaindropProvider
from readlater.providers.readwise import ReadwiseProvider
from readlater.providers.registry import list_service_types
from readlater.schemas.readlater import (
    AuthorizeResponse,
    InstapaperConnectRequest,
    OmnivoreConnectRequest,
    PocketAuthorizeRequest,
    PocketCallbackResponse,
    ReadwiseConnectRequest,
    SaveRequest,
    SaveResponse,
    ServiceConfigResponse,
    ServiceCreate,
    ServiceTypeResponse,
    ServiceUpdate,
)
from readlater.services.save_orchestrator import SaveOrchestrator

if TYPE_CHECKING:
    from readlater.models.provider_config import ProviderConfig

logger = logging.getLogger(__name__)

AdapterT = TypeVar("AdapterT", bound=ProviderBase)

router = APIRouter(
    prefix="/api/readlater",
    tags=["readlater"],
    dependencies=[Depends(require_api_token)],
)


def _config_response(
    orchestrator: SaveOrchestrator, config: ProviderConfig
) -> ServiceConfigResponse:
    return ServiceConfigResponse.from_config(config, orchestrator.get_adapter(config.id))


def _new_adapter(
    orchestrator: SaveOrchestrator,
    adapter_cls: type[AdapterT],
    settings: dict[str, Any] | None = None,
) -> AdapterT:
    adapter = orchestrator.build_adapter(adapter_cls.service_type, settings)
    if not isinstance(adapter, adapter_cls):
        raise InternalServerError(f"Registry returned {type(adapter).__name__} for {adapter_cls}")
    return adapter


def _get_config_or_404(orchestrator: SaveOrchestrator, config_id: str) -> ProviderConfig:
    config = orchestrator.get_config(config_id)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Read-later service not found",
        )
    return config


@router.get("/service-types", response_model=list[ServiceTypeResponse])
async def list_service_types_endpoint() -> list[ServiceTypeResponse]:
    """List the supported read-later services."""
    return [
        ServiceTypeResponse(
            service_type=tag,
            display_name=ServiceType(tag).display_name,
            supports_tagging=ServiceType(tag).supports_tagging,
        )
        for tag in list_service_types()
    ]


@router.get("/services", response_model=list[ServiceConfigResponse])
async def list_services_endpoint(
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> list[ServiceConfigResponse]:
    """List configured read-later services in creation order."""
    return [_config_response(orchestrator, c) for c in orchestrator.configured_services]


@router.post("/services", response_model=ServiceConfigResponse, status_code=201)
async def create_service_endpoint(
    body: ServiceCreate,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> ServiceConfigResponse:
    """Configure a service with an already obtained credential."""
    config = await orchestrator.configure_service(
        body.service_type, body.credential, body.settings
    )
    return _config_response(orchestrator, config)


@router.delete("/services/{config_id}", status_code=204)
async def delete_service_endpoint(
    config_id: str,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> None:
    """Remove a configured service and its stored credential."""
    config = _get_config_or_404(orchestrator, config_id)
    await orchestrator.remove_service(config)


@router.post("/services/{config_id}/primary", response_model=ServiceConfigResponse)
async def set_primary_endpoint(
    config_id: str,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> ServiceConfigResponse:
    """Make a configured service the primary one."""
    config = _get_config_or_404(orchestrator, config_id)
    await orchestrator.set_primary(config)
    return _config_response(orchestrator, config)


@router.patch("/services/{config_id}", response_model=ServiceConfigResponse)
async def update_service_endpoint(
    config_id: str,
    body: ServiceUpdate,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> ServiceConfigResponse:
    """Enable/disable a service, replace its settings or record a sync."""
    config = _get_config_or_404(orchestrator, config_id)
    if body.is_enabled is not None:
        await orchestrator.set_enabled(config, body.is_enabled)
    if body.settings is not None:
        await orchestrator.update_settings(config, body.settings)
    if body.last_synced_at is not None:
        await orchestrator.mark_synced(config, body.last_synced_at)
    return _config_response(orchestrator, config)


@router.post("/save", response_model=SaveResponse)
async def save_endpoint(
    body: SaveRequest,
    response: Response,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> SaveResponse:
    """Save a URL to the requested service, or the primary one.

    A failed save still returns the result body, with the status of its error kind.
    """
    result = await orchestrator.save(body.url, body.title, body.service_type)
    if result.error is not None:
        response.status_code = error_status(result.error)
    return SaveResponse.from_result(result)


@router.get("/last-result", response_model=SaveResponse | None)
async def last_result_endpoint(
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> SaveResponse | None:
    """The most recent save outcome, or null before the first save."""
    result = orchestrator.last_save_result
    return SaveResponse.from_result(result) if result is not None else None


@router.post("/pocket/authorize", response_model=AuthorizeResponse)
async def pocket_authorize(
    body: PocketAuthorizeRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
    state_store: Annotated[OAuthStateStore, Depends(get_pocket_state)],
) -> AuthorizeResponse:
    """Start the Pocket flow: obtain a request code and return the approval URL."""
    consumer_key = body.consumer_key or settings.pocket_consumer_key
    adapter = _new_adapter(orchestrator, PocketProvider, {"consumer_key": consumer_key})
    authorization_url = await adapter.authenticate()
    code = adapter.pending_code
    if code is None:
        raise InternalServerError("Pocket authorization did not yield a request code")
    state_store.set(code, {"consumer_key": adapter.consumer_key})
    return AuthorizeResponse(authorization_url=authorization_url, state=code)


@router.get("/pocket/callback", response_model=PocketCallbackResponse, status_code=201)
async def pocket_callback(
    state: Annotated[str, Query()],
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
    state_store: Annotated[OAuthStateStore, Depends(get_pocket_state)],
) -> PocketCallbackResponse:
    """Finish the Pocket flow once the user approved the request code."""
    pending = state_store.pop(state)
    if pending is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired OAuth state",
        )
    adapter = _new_adapter(orchestrator, PocketProvider, {"consumer_key": pending["consumer_key"]})

    async def finish() -> None:
        username = await adapter.complete_authentication(state)
        adapter.config.settings = {**adapter.config.settings, "username": username}

    config = await orchestrator.connect_service(adapter, finish)
    username = str(config.settings.get("username") or "")
    logger.info("Connected Pocket account %s", username or config.id)
    return PocketCallbackResponse(config=_config_response(orchestrator, config), username=username)


@router.post("/instapaper", response_model=ServiceConfigResponse, status_code=201)
async def instapaper_connect(
    body: InstapaperConnectRequest,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> ServiceConfigResponse:
    """Verify Instapaper account credentials and connect the account."""
    adapter = _new_adapter(orchestrator, InstapaperProvider, {"username": body.username})
    config = await orchestrator.connect_service(
        adapter, lambda: adapter.authenticate_with_credentials(body.username, body.password)
    )
    return _config_response(orchestrator, config)


@router.post("/omnivore", response_model=ServiceConfigResponse, status_code=201)
async def omnivore_connect(
    body: OmnivoreConnectRequest,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> ServiceConfigResponse:
    """Connect Omnivore with a personal API key."""
    labels = [label for label in body.labels if label.strip()]
    adapter = _new_adapter(orchestrator, OmnivoreProvider, {"labels": labels} if labels else None)
    config = await orchestrator.connect_service(adapter, lambda: adapter.set_api_key(body.api_key))
    return _config_response(orchestrator, config)


@router.post("/readwise", response_model=ServiceConfigResponse, status_code=201)
async def readwise_connect(
    body: ReadwiseConnectRequest,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> ServiceConfigResponse:
    """Verify a Readwise token and connect Readwise Reader."""
    adapter = _new_adapter(
        orchestrator, ReadwiseProvider, {"location": body.location} if body.location else None
    )
    config = await orchestrator.connect_service(
        adapter, lambda: adapter.set_access_token(body.token)
    )
    return _config_response(orchestrator, config)


@router.post("/raindrop/authorize", response_model=AuthorizeResponse)
async def raindrop_authorize(
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
    state_store: Annotated[OAuthStateStore, Depends(get_raindrop_state)],
) -> AuthorizeResponse:
    """Start the Raindrop OAuth flow."""
    adapter = _new_adapter(orchestrator, RaindropProvider)
    authorization_url = await adapter.authenticate()
    state = adapter.pending_state
    if state is None:
        raise InternalServerError("Raindrop authorization did not yield a state")
    state_store.set(state, {"service_type": ServiceType.RAINDROP.value})
    return AuthorizeResponse(authorization_url=authorization_url, state=state)


@router.get("/raindrop/callback", response_model=ServiceConfigResponse, status_code=201)
async def raindrop_callback(
    code: Annotated[str, Query()],
    state: Annotated[str, Query()],
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
    state_store: Annotated[OAuthStateStore, Depends(get_raindrop_state)],
) -> ServiceConfigResponse:
    """Handle the Raindrop OAuth callback: exchange the code and connect the account."""
    if state_store.pop(state) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired OAuth state",
        )
    adapter = _new_adapter(orchestrator, RaindropProvider)
    config = await orchestrator.connect_service(
        adapter, lambda: adapter.complete_authentication(code)
    )
    logger.info("Connected Raindrop account as %s", config.id)
    return _config_response(orchestrator, config)


@router.get("/raindrop/{config_id}/collections")
async def raindrop_collections(
    config_id: str,
    orchestrator: Annotated[SaveOrchestrator, Depends(get_orchestrator)],
) -> list[dict[str, object]]:
    """List the Raindrop collections a save can be filed into."""
    _get_config_or_404(orchestrator, config_id)
    adapter = orchestrator.get_adapter(config_id)
    if not isinstance(adapter, RaindropProvider):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Not a Raindrop service",
        )
    collections = await adapter.get_collections()
    return [
        {"id": item.get("_id"), "title": item.get("title"), "count": item.get("count", 0)}
        for item in collections
    ]
