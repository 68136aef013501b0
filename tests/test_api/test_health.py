"""Tests for the health endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from readlater import __version__
from tests.conftest import create_test_client

if TYPE_CHECKING:
    from readlater.config import Settings


class TestHealth:
    async def test_health_ok(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {
            "status": "ok",
            "version": __version__,
            "database": "ok",
            "configured_services": 0,
        }

    async def test_health_needs_no_token(self, test_settings: Settings) -> None:
        test_settings.api_token = "secret-token"
        async with create_test_client(test_settings) as client:
            resp = await client.get("/api/health")
        assert resp.status_code == 200
