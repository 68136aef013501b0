"""Tests for the read-later HTTP API."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from readlater.exceptions import RateLimitedError
from readlater.providers.pocket import PocketProvider
from readlater.providers.raindrop import RaindropProvider
from tests.conftest import create_test_client

if TYPE_CHECKING:
    from httpx import AsyncClient

    from readlater.config import Settings


async def _create(client: AsyncClient, service_type: str, credential: str = "tok") -> dict:
    resp = await client.post(
        "/api/readlater/services",
        json={"service_type": service_type, "credential": credential},
    )
    assert resp.status_code == 201
    return resp.json()


class TestAuth:
    async def test_token_required_when_configured(self, test_settings: Settings) -> None:
        test_settings.api_token = "secret-token"
        async with create_test_client(test_settings) as client:
            missing = await client.get("/api/readlater/services")
            wrong = await client.get(
                "/api/readlater/services", headers={"Authorization": "Bearer nope"}
            )
            ok = await client.get(
                "/api/readlater/services", headers={"Authorization": "Bearer secret-token"}
            )
        assert missing.status_code == 401
        assert missing.headers["WWW-Authenticate"] == "Bearer"
        assert wrong.status_code == 401
        assert ok.status_code == 200


class TestServices:
    async def test_service_types(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.get("/api/readlater/service-types")
        assert resp.status_code == 200
        data = resp.json()
        assert [item["service_type"] for item in data] == [
            "pocket",
            "instapaper",
            "omnivore",
            "readwise",
            "raindrop",
        ]
        readwise = next(item for item in data if item["service_type"] == "readwise")
        assert readwise["display_name"] == "Readwise Reader"
        assert readwise["supports_tagging"] is False

    async def test_create_and_list(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            first = await _create(client, "pocket", "pocket-token")
            second = await _create(client, "readwise", "rw-token")
            resp = await client.get("/api/readlater/services")

        assert first["is_primary"] is True
        assert first["is_authenticated"] is True
        assert second["is_primary"] is False
        assert "credential" not in first
        assert "pocket-token" not in resp.text
        assert [item["id"] for item in resp.json()] == [first["id"], second["id"]]

    async def test_blank_credential_is_unauthenticated(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            created = await _create(client, "omnivore", "")
        assert created["is_authenticated"] is False

    async def test_unknown_service_type(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post(
                "/api/readlater/services",
                json={"service_type": "delicious", "credential": "x"},
            )
        assert resp.status_code == 422

    async def test_set_primary_and_delete(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            first = await _create(client, "pocket")
            second = await _create(client, "readwise")
            third = await _create(client, "omnivore")

            promoted = await client.post(f"/api/readlater/services/{second['id']}/primary")
            assert promoted.status_code == 200
            assert promoted.json()["is_primary"] is True

            deleted = await client.delete(f"/api/readlater/services/{second['id']}")
            assert deleted.status_code == 204

            resp = await client.get("/api/readlater/services")

        remaining = resp.json()
        assert [item["id"] for item in remaining] == [first["id"], third["id"]]
        assert [item["is_primary"] for item in remaining] == [True, False]

    async def test_unknown_config_is_404(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            primary = await client.post("/api/readlater/services/missing/primary")
            deleted = await client.delete("/api/readlater/services/missing")
            patched = await client.patch("/api/readlater/services/missing", json={})
        assert primary.status_code == 404
        assert deleted.status_code == 404
        assert patched.status_code == 404

    async def test_patch_service(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            created = await _create(client, "readwise")
            resp = await client.patch(
                f"/api/readlater/services/{created['id']}",
                json={
                    "is_enabled": False,
                    "settings": {"location": "later"},
                    "last_synced_at": "2026-03-01",
                },
            )
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_enabled"] is False
        assert data["settings"] == {"location": "later"}
        assert data["last_synced_at"] == "2026-03-01 00:00:00.000000+0000"


class TestSave:
    async def test_save_without_services(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post("/api/readlater/save", json={"url": "https://example.com"})
        assert resp.status_code == 404
        data = resp.json()
        assert data["success"] is False
        assert data["service_type"] is None
        assert data["error_kind"] == "ProviderNotConfiguredError"

    async def test_save_to_primary(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        saved: list[tuple[str, str | None]] = []

        async def fake_save(self: PocketProvider, url: str, title: str | None = None) -> str:
            saved.append((url, title))
            return "item-1"

        monkeypatch.setattr(PocketProvider, "save", fake_save)
        async with create_test_client(test_settings) as client:
            await _create(client, "pocket")
            before = await client.get("/api/readlater/last-result")
            resp = await client.post(
                "/api/readlater/save", json={"url": "https://example.com/a", "title": "A"}
            )
            after = await client.get("/api/readlater/last-result")

        assert before.json() is None
        assert resp.status_code == 200
        assert resp.json() == {
            "success": True,
            "url": "https://example.com/a",
            "service_type": "pocket",
            "item_id": "item-1",
            "error": None,
            "error_kind": None,
            "retryable": False,
        }
        assert after.json() == resp.json()
        assert saved == [("https://example.com/a", "A")]

    async def test_rate_limited_save(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def fake_save(self: PocketProvider, url: str, title: str | None = None) -> str:
            raise RateLimitedError("Pocket rate limit exceeded", retry_after=30)

        monkeypatch.setattr(PocketProvider, "save", fake_save)
        async with create_test_client(test_settings) as client:
            await _create(client, "pocket")
            resp = await client.post("/api/readlater/save", json={"url": "https://example.com"})

        assert resp.status_code == 429
        assert resp.json()["retryable"] is True
        assert resp.json()["error_kind"] == "RateLimitedError"

    async def test_save_to_unknown_service_tag(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            resp = await client.post(
                "/api/readlater/save",
                json={"url": "https://example.com", "service_type": "delicious"},
            )
        assert resp.status_code == 422


class TestPocketFlow:
    async def test_authorize_and_callback(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def fake_request(consumer_key: str, redirect_uri: str, settings: Settings) -> str:
            assert consumer_key == "pocket-consumer-key"
            return "req-code"

        async def fake_exchange(consumer_key: str, code: str, settings: Settings) -> dict:
            assert code == "req-code"
            return {"access_token": "pocket-token", "username": "alice"}

        monkeypatch.setattr("readlater.providers.pocket.request_pocket_code", fake_request)
        monkeypatch.setattr("readlater.providers.pocket.exchange_pocket_code", fake_exchange)
        async with create_test_client(test_settings) as client:
            authorize = await client.post("/api/readlater/pocket/authorize", json={})
            callback = await client.get(
                "/api/readlater/pocket/callback", params={"state": "req-code"}
            )
            replay = await client.get(
                "/api/readlater/pocket/callback", params={"state": "req-code"}
            )

        assert authorize.status_code == 200
        assert authorize.json()["state"] == "req-code"
        assert "request_token=req-code" in authorize.json()["authorization_url"]
        assert callback.status_code == 201
        body = callback.json()
        assert body["username"] == "alice"
        assert body["config"]["service_type"] == "pocket"
        assert body["config"]["is_authenticated"] is True
        assert body["config"]["settings"]["username"] == "alice"
        assert replay.status_code == 400

    async def test_authorize_without_consumer_key(self, test_settings: Settings) -> None:
        test_settings.pocket_consumer_key = ""
        async with create_test_client(test_settings) as client:
            resp = await client.post("/api/readlater/pocket/authorize", json={})
        assert resp.status_code == 409
        assert resp.json()["error_kind"] == "AuthenticationRequiredError"


class TestCredentialConnect:
    async def test_instapaper_connect(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def fake_verify(username: str, password: str, settings: Settings) -> bool:
            return password == "right"

        monkeypatch.setattr(
            "readlater.providers.instapaper.verify_instapaper_credentials", fake_verify
        )
        async with create_test_client(test_settings) as client:
            rejected = await client.post(
                "/api/readlater/instapaper", json={"username": "user", "password": "wrong"}
            )
            separator = await client.post(
                "/api/readlater/instapaper", json={"username": "us:er", "password": "right"}
            )
            accepted = await client.post(
                "/api/readlater/instapaper", json={"username": "user", "password": "right"}
            )
            services = await client.get("/api/readlater/services")

        assert rejected.status_code == 401
        assert rejected.json()["error_kind"] == "CredentialInvalidError"
        assert separator.status_code == 401
        assert accepted.status_code == 201
        assert accepted.json()["is_authenticated"] is True
        assert accepted.json()["settings"] == {"username": "user"}
        assert len(services.json()) == 1

    async def test_omnivore_connect(self, test_settings: Settings) -> None:
        async with create_test_client(test_settings) as client:
            blank = await client.post("/api/readlater/omnivore", json={"api_key": "   "})
            created = await client.post(
                "/api/readlater/omnivore", json={"api_key": "omni-key", "labels": ["news", ""]}
            )
            services = await client.get("/api/readlater/services")

        assert blank.status_code == 401
        assert created.status_code == 201
        assert created.json()["settings"] == {"labels": ["news"]}
        assert len(services.json()) == 1

    async def test_readwise_connect(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def fake_verify(token: str, settings: Settings) -> bool:
            return token == "good"

        monkeypatch.setattr("readlater.providers.readwise.verify_readwise_token", fake_verify)
        async with create_test_client(test_settings) as client:
            rejected = await client.post("/api/readlater/readwise", json={"token": "bad"})
            accepted = await client.post(
                "/api/readlater/readwise", json={"token": "good", "location": "later"}
            )

        assert rejected.status_code == 401
        assert accepted.status_code == 201
        assert accepted.json()["settings"] == {"location": "later"}


class TestRaindropFlow:
    async def test_authorize_and_callback(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def fake_exchange(
            code: str,
            client_id: str,
            client_secret: str,
            redirect_uri: str,
            settings: Settings,
        ) -> dict:
            assert (code, client_id, client_secret) == (
                "auth-code",
                "raindrop-client",
                "raindrop-secret",
            )
            assert redirect_uri == settings.oauth_redirect_uri
            return {"access_token": "a1", "refresh_token": "r1"}

        monkeypatch.setattr("readlater.providers.raindrop.exchange_raindrop_code", fake_exchange)
        async with create_test_client(test_settings) as client:
            authorize = await client.post("/api/readlater/raindrop/authorize")
            state = authorize.json()["state"]
            bad_state = await client.get(
                "/api/readlater/raindrop/callback",
                params={"code": "auth-code", "state": "forged"},
            )
            callback = await client.get(
                "/api/readlater/raindrop/callback",
                params={"code": "auth-code", "state": state},
            )

        assert authorize.status_code == 200
        assert f"state={state}" in authorize.json()["authorization_url"]
        assert bad_state.status_code == 400
        assert callback.status_code == 201
        assert callback.json()["service_type"] == "raindrop"
        assert callback.json()["is_authenticated"] is True

    async def test_authorize_without_app_credentials(self, test_settings: Settings) -> None:
        test_settings.raindrop_client_id = ""
        async with create_test_client(test_settings) as client:
            resp = await client.post("/api/readlater/raindrop/authorize")
        assert resp.status_code == 409

    async def test_collections(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def fake_collections(self: RaindropProvider) -> list[dict]:
            return [{"_id": 5, "title": "Reading", "count": 3}]

        monkeypatch.setattr(RaindropProvider, "get_collections", fake_collections)
        async with create_test_client(test_settings) as client:
            raindrop = await _create(client, "raindrop", "a1|r1")
            pocket = await _create(client, "pocket")
            resp = await client.get(f"/api/readlater/raindrop/{raindrop['id']}/collections")
            wrong = await client.get(f"/api/readlater/raindrop/{pocket['id']}/collections")

        assert resp.status_code == 200
        assert resp.json() == [{"id": 5, "title": "Reading", "count": 3}]
        assert wrong.status_code == 404
