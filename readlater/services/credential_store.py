"""Credential store: provider secrets keyed by (service type, configuration id).

Secrets are encrypted at rest with Fernet, using a key derived from the
application secret. Composite secrets (a token pair, a username and password)
are stored as one delimited string; ``join_secret`` and ``split_secret``
round-trip them exactly.
"""

from __future__ import annotations

import base64
import hashlib
import logging
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import delete, select

from readlater.exceptions import InternalServerError
from readlater.models.credential import StoredCredential
from readlater.services.datetime_service import timestamp_now

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from readlater.providers.base import ServiceType

logger = logging.getLogger(__name__)


def join_secret(parts: Sequence[str], separator: str) -> str:
    """Join the parts of a composite secret.

    Only the last part may contain ``separator``; ``split_secret`` splits on the
    first occurrence and would otherwise move characters between parts.
    """
    for part in parts[:-1]:
        if separator in part:
            msg = f"Secret component must not contain {separator!r}"
            raise ValueError(msg)
    return separator.join(parts)


def split_secret(secret: str, separator: str, parts: int = 2) -> list[str]:
    """Split a composite secret into at most ``parts`` components."""
    return secret.split(separator, parts - 1)


def _derive_key(secret_key: str) -> bytes:
    """Derive a Fernet key from the application secret using SHA-256."""
    digest = hashlib.sha256(secret_key.encode()).digest()
    return base64.urlsafe_b64encode(digest)


@runtime_checkable
class CredentialStore(Protocol):
    """Secure secret storage used by every provider adapter."""

    async def save(self, secret: str, service: ServiceType, config_id: str) -> None:
        """Store or replace the secret for one configuration."""
        ...

    async def get(self, service: ServiceType, config_id: str) -> str | None:
        """Return the stored secret, or None when nothing is stored."""
        ...

    async def delete(self, service: ServiceType, config_id: str) -> None:
        """Erase the secret. Deleting a missing secret is not an error."""
        ...


class EncryptedCredentialStore:
    """Credential store backed by the ``readlater_credentials`` table.

    Each call opens its own session, so independently constructed adapters can
    use one store concurrently.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        secret_key: str,
    ) -> None:
        self._session_factory = session_factory
        self._fernet = Fernet(_derive_key(secret_key))

    def _encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def _decrypt(self, ciphertext: str) -> str:
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as exc:
            raise InternalServerError("Failed to decrypt credential data") from exc

    async def save(self, secret: str, service: ServiceType, config_id: str) -> None:
        async with self._session_factory() as session:
            record = await session.get(StoredCredential, (service.value, config_id))
            ciphertext = self._encrypt(secret)
            if record is None:
                session.add(
                    StoredCredential(
                        service_type=service.value,
                        config_id=config_id,
                        secret=ciphertext,
                        updated_at=timestamp_now(),
                    )
                )
            else:
                record.secret = ciphertext
                record.updated_at = timestamp_now()
            await session.commit()
        logger.debug("Stored credential for %s/%s", service.value, config_id)

    async def get(self, service: ServiceType, config_id: str) -> str | None:
        async with self._session_factory() as session:
            stmt = select(StoredCredential.secret).where(
                StoredCredential.service_type == service.value,
                StoredCredential.config_id == config_id,
            )
            ciphertext = (await session.execute(stmt)).scalar_one_or_none()
        if ciphertext is None:
            return None
        return self._decrypt(ciphertext)

    async def delete(self, service: ServiceType, config_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(StoredCredential).where(
                    StoredCredential.service_type == service.value,
                    StoredCredential.config_id == config_id,
                )
            )
            await session.commit()
        logger.debug("Deleted credential for %s/%s", service.value, config_id)


class InMemoryCredentialStore:
    """Process-local credential store for tests and ephemeral sessions.

    Secrets are kept in plain memory and vanish with the process.
    """

    def __init__(self) -> None:
        self._secrets: dict[tuple[str, str], str] = {}

    async def save(self, secret: str, service: ServiceType, config_id: str) -> None:
        self._secrets[(service.value, config_id)] = secret

    async def get(self, service: ServiceType, config_id: str) -> str | None:
        return self._secrets.get((service.value, config_id))

    async def delete(self, service: ServiceType, config_id: str) -> None:
        self._secrets.pop((service.value, config_id), None)

    def __len__(self) -> int:
        return len(self._secrets)
