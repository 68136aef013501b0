"""Tests for the Mastodon-compatible interaction client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from readlater.exceptions import (
    CredentialInvalidError,
    MalformedResponseError,
    ProviderRequestError,
    RateLimitedError,
)
from readlater.interactions.client import MastodonInteractionClient
from readlater.interactions.models import InteractionKind, PostSnapshot

if TYPE_CHECKING:
    from readlater.config import Settings


class TestInstanceUrl:
    def test_trailing_slash_is_dropped(self, test_settings: Settings) -> None:
        client = MastodonInteractionClient("https://mastodon.social/", "tok", test_settings)
        assert client.instance_url == "https://mastodon.social"

    @pytest.mark.parametrize(
        "url", ["mastodon.social", "ftp://mastodon.social", "https://mastodon.social/@me"]
    )
    def test_invalid_urls(self, test_settings: Settings, url: str) -> None:
        with pytest.raises(ValueError):
            MastodonInteractionClient(url, "tok", test_settings)


class TestSetState:
    @pytest.mark.parametrize(
        ("kind", "active", "action"),
        [
            (InteractionKind.FAVOURITE, True, "favourite"),
            (InteractionKind.FAVOURITE, False, "unfavourite"),
            (InteractionKind.REBLOG, True, "reblog"),
            (InteractionKind.BOOKMARK, False, "unbookmark"),
        ],
    )
    async def test_posts_to_action_endpoint(
        self,
        test_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
        kind: InteractionKind,
        active: bool,
        action: str,
    ) -> None:
        captured: dict[str, object] = {}

        async def mock_post(self: httpx.AsyncClient, url: str, **kwargs: object) -> httpx.Response:
            captured["url"] = url
            captured.update(kwargs)
            return httpx.Response(200, json={"id": "42", "favourites_count": 1})

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        client = MastodonInteractionClient("https://example.social", "tok", test_settings)

        snapshot = await client.set_state("42", kind, active)

        assert captured["url"] == f"https://example.social/api/v1/statuses/42/{action}"
        assert captured["headers"] == {"Authorization": "Bearer tok"}
        assert snapshot == PostSnapshot(id="42", favourites_count=1)

    @pytest.mark.parametrize(
        ("response", "error_type"),
        [
            (httpx.Response(401), CredentialInvalidError),
            (httpx.Response(429, headers={"Retry-After": "9"}), RateLimitedError),
            (httpx.Response(404, text="Record not found"), ProviderRequestError),
            (httpx.Response(200, text="<html>"), MalformedResponseError),
            (httpx.Response(200, json={"error": "nope"}), MalformedResponseError),
        ],
    )
    async def test_failures(
        self,
        test_settings: Settings,
        monkeypatch: pytest.MonkeyPatch,
        response: httpx.Response,
        error_type: type[Exception],
    ) -> None:
        async def mock_post(self: httpx.AsyncClient, url: str, **kwargs: object) -> httpx.Response:
            return response

        monkeypatch.setattr(httpx.AsyncClient, "post", mock_post)
        client = MastodonInteractionClient("https://example.social", "tok", test_settings)
        with pytest.raises(error_type):
            await client.set_state("42", InteractionKind.FAVOURITE, True)


class TestGetStatus:
    async def test_get_status(
        self, test_settings: Settings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def mock_get(self: httpx.AsyncClient, url: str, **kwargs: object) -> httpx.Response:
            assert url == "https://example.social/api/v1/statuses/7"
            return httpx.Response(200, json={"id": "7", "bookmarked": True})

        monkeypatch.setattr(httpx.AsyncClient, "get", mock_get)
        client = MastodonInteractionClient("https://example.social", "tok", test_settings)
        assert await client.get_status("7") == PostSnapshot(id="7", bookmarked=True)
