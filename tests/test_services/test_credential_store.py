"""Tests for the encrypted and in-memory credential stores."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select

from readlater.exceptions import InternalServerError
from readlater.models.credential import StoredCredential
from readlater.providers.base import ServiceType
from readlater.services.credential_store import (
    CredentialStore,
    EncryptedCredentialStore,
    InMemoryCredentialStore,
    join_secret,
    split_secret,
)
from tests.conftest import TEST_SECRET_KEY

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class TestCompositeSecrets:
    def test_join_and_split(self) -> None:
        secret = join_secret(["tok", "secret"], ":")
        assert secret == "tok:secret"
        assert split_secret(secret, ":") == ["tok", "secret"]

    def test_last_part_may_contain_separator(self) -> None:
        secret = join_secret(["user", "pa:ss"], ":")
        assert split_secret(secret, ":") == ["user", "pa:ss"]

    def test_separator_in_leading_part_is_rejected(self) -> None:
        with pytest.raises(ValueError, match="must not contain"):
            join_secret(["us:er", "pass"], ":")

    def test_single_part(self) -> None:
        assert split_secret("access-only", "|") == ["access-only"]


class TestEncryptedCredentialStore:
    @pytest.fixture
    def store(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> EncryptedCredentialStore:
        return EncryptedCredentialStore(session_factory, TEST_SECRET_KEY)

    def test_satisfies_protocol(self, store: EncryptedCredentialStore) -> None:
        assert isinstance(store, CredentialStore)

    async def test_round_trip(self, store: EncryptedCredentialStore) -> None:
        await store.save("tok:secret", ServiceType.INSTAPAPER, "cfg-1")
        assert await store.get(ServiceType.INSTAPAPER, "cfg-1") == "tok:secret"

    async def test_secret_is_encrypted_at_rest(
        self,
        store: EncryptedCredentialStore,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await store.save("plain-token", ServiceType.POCKET, "cfg-1")
        async with session_factory() as session:
            stored = (await session.execute(select(StoredCredential.secret))).scalar_one()
        assert "plain-token" not in stored

    async def test_save_replaces_existing(self, store: EncryptedCredentialStore) -> None:
        await store.save("first", ServiceType.READWISE, "cfg-1")
        await store.save("second", ServiceType.READWISE, "cfg-1")
        assert await store.get(ServiceType.READWISE, "cfg-1") == "second"

    async def test_keys_are_scoped_by_service_and_config(
        self, store: EncryptedCredentialStore
    ) -> None:
        await store.save("a", ServiceType.POCKET, "cfg-1")
        await store.save("b", ServiceType.POCKET, "cfg-2")
        await store.save("c", ServiceType.OMNIVORE, "cfg-1")
        assert await store.get(ServiceType.POCKET, "cfg-1") == "a"
        assert await store.get(ServiceType.POCKET, "cfg-2") == "b"
        assert await store.get(ServiceType.OMNIVORE, "cfg-1") == "c"

    async def test_missing_secret(self, store: EncryptedCredentialStore) -> None:
        assert await store.get(ServiceType.RAINDROP, "nope") is None

    async def test_delete_is_idempotent(self, store: EncryptedCredentialStore) -> None:
        await store.save("a", ServiceType.POCKET, "cfg-1")
        await store.delete(ServiceType.POCKET, "cfg-1")
        await store.delete(ServiceType.POCKET, "cfg-1")
        assert await store.get(ServiceType.POCKET, "cfg-1") is None

    async def test_wrong_key_cannot_decrypt(
        self,
        store: EncryptedCredentialStore,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await store.save("a", ServiceType.POCKET, "cfg-1")
        other = EncryptedCredentialStore(session_factory, "another-secret-key-of-32-characters!")
        with pytest.raises(InternalServerError):
            await other.get(ServiceType.POCKET, "cfg-1")


class TestInMemoryCredentialStore:
    async def test_round_trip_and_delete(self) -> None:
        store = InMemoryCredentialStore()
        assert isinstance(store, CredentialStore)
        await store.save("x|y", ServiceType.RAINDROP, "cfg-1")
        assert await store.get(ServiceType.RAINDROP, "cfg-1") == "x|y"
        assert len(store) == 1
        await store.delete(ServiceType.RAINDROP, "cfg-1")
        await store.delete(ServiceType.RAINDROP, "cfg-1")
        assert await store.get(ServiceType.RAINDROP, "cfg-1") is None
        assert len(store) == 0
