"""Shared API dependencies: settings, DB session, orchestrator, auth."""

from __future__ import annotations

import secrets
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from readlater.config import Settings
from readlater.providers.oauth_state import OAuthStateStore
from readlater.services.save_orchestrator import SaveOrchestrator

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_orchestrator(request: Request) -> SaveOrchestrator:
    """Get the save orchestrator from app state."""
    orchestrator: SaveOrchestrator = request.app.state.orchestrator
    return orchestrator


def get_pocket_state(request: Request) -> OAuthStateStore:
    store: OAuthStateStore = request.app.state.pocket_oauth_state
    return store


def get_raindrop_state(request: Request) -> OAuthStateStore:
    store: OAuthStateStore = request.app.state.raindrop_oauth_state
    return store


async def get_session(request: Request) -> AsyncGenerator[AsyncSession]:
    """Get a database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def require_api_token(
    settings: Annotated[Settings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> None:
    """Require the configured bearer token. Raises 401 if missing or wrong.

    An empty ``api_token`` disables the check; production settings reject it.
    """
    if not settings.api_token:
        return
    if credentials is None or not secrets.compare_digest(
        credentials.credentials.encode(), settings.api_token.encode()
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
