"""Save orchestrator: registry of configured read-later services and save dispatch.

The orchestrator owns the configuration records, one adapter per record and
the primary election. It is the only place that changes the primary flag, so
at most one record is ever flagged.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from readlater.exceptions import (
    ProviderNotConfiguredError,
    ProviderRequestError,
    ReadLaterError,
)
from readlater.models.provider_config import ProviderConfig, new_config_id
from readlater.providers.base import SaveResult, ServiceType
from readlater.providers.registry import create_provider
from readlater.services.datetime_service import format_datetime, now_utc, parse_datetime

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from readlater.config import Settings
    from readlater.providers.base import ProviderBase
    from readlater.services.credential_store import CredentialStore
    from readlater.services.event_bus import EventBus

logger = logging.getLogger(__name__)


class SaveOrchestrator:
    """Dispatches saves to the configured providers and manages their records."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        credential_store: CredentialStore,
        event_bus: EventBus,
        settings: Settings,
    ) -> None:
        self._session_factory = session_factory
        self._credential_store = credential_store
        self._event_bus = event_bus
        self._settings = settings
        self._configs: list[ProviderConfig] = []
        self._adapters: dict[str, ProviderBase] = {}
        self._primary_id: str | None = None
        self.is_loading = False
        self.last_save_result: SaveResult | None = None

    @property
    def configured_services(self) -> list[ProviderConfig]:
        """Configured services in creation order."""
        return list(self._configs)

    @property
    def primary_service(self) -> ProviderConfig | None:
        return self.get_config(self._primary_id) if self._primary_id else None

    @property
    def has_configured_services(self) -> bool:
        return bool(self._configs)

    def get_config(self, config_id: str) -> ProviderConfig | None:
        for config in self._configs:
            if config.id == config_id:
                return config
        return None

    def get_adapter(self, config_id: str) -> ProviderBase | None:
        return self._adapters.get(config_id)

    def _require(self, config: ProviderConfig) -> ProviderConfig:
        known = self.get_config(config.id)
        if known is None:
            msg = f"Read-later service {config.id!r} is not configured"
            raise ProviderNotConfiguredError(msg)
        return known

    async def load_configurations(self) -> None:
        """Rebuild the registry from the stored records.

        A storage failure is logged and leaves the registry empty.
        """
        try:
            async with self._session_factory() as session:
                stmt = select(ProviderConfig).order_by(ProviderConfig.created_at)
                records = list((await session.execute(stmt)).scalars().all())
        except SQLAlchemyError:
            logger.exception("Failed to load read-later configurations")
            records = []

        configs: list[ProviderConfig] = []
        adapters: dict[str, ProviderBase] = {}
        for record in records:
            try:
                adapter = create_provider(record, self._credential_store, self._settings)
            except ValueError:
                logger.warning(
                    "Skipping config %s with unknown service type %r",
                    record.id,
                    record.service_type,
                )
                continue
            await adapter.load_credentials()
            configs.append(record)
            adapters[record.id] = adapter

        self._configs = configs
        self._adapters = adapters
        flagged = next((c for c in configs if c.is_primary), None)
        primary = flagged or (configs[0] if configs else None)
        self._primary_id = primary.id if primary is not None else None
        logger.info("Loaded %d read-later configurations", len(configs))

    def _select_adapter(self, service: ServiceType) -> ProviderBase | None:
        primary = self.primary_service
        if primary is not None and primary.is_enabled and primary.service is service:
            return self._adapters.get(primary.id)
        for config in self._configs:
            if config.is_enabled and config.service is service:
                return self._adapters.get(config.id)
        return None

    async def save(
        self,
        url: str,
        title: str | None = None,
        to: ServiceType | str | None = None,
    ) -> SaveResult:
        """Save ``url`` to the requested service, or the primary one.

        Never raises for provider failures: the error is carried on the
        returned, stored and broadcast ``SaveResult``. Raises ValueError for
        an unknown service tag.
        """
        service = ServiceType(to) if to is not None else None
        self.is_loading = True
        try:
            result = await self._dispatch(url, title, service)
        finally:
            self.is_loading = False

        self.last_save_result = result
        self._event_bus.save_results.publish(result)
        return result

    async def _dispatch(
        self, url: str, title: str | None, service: ServiceType | None
    ) -> SaveResult:
        if service is None:
            primary = self.primary_service
            service = primary.service if primary is not None else None
        if service is None:
            return SaveResult.failed(
                url, None, ProviderNotConfiguredError("No read-later service configured")
            )

        adapter = self._select_adapter(service)
        if adapter is None:
            msg = f"{service.display_name} is not configured"
            return SaveResult.failed(url, service, ProviderNotConfiguredError(msg))

        try:
            item_id = await adapter.save(url, title)
        except ReadLaterError as exc:
            logger.warning("Save to %s failed: %s", service.value, exc.message)
            return SaveResult.failed(url, service, exc)
        except httpx.HTTPError as exc:
            logger.warning("Save to %s failed with HTTP error: %s", service.value, exc)
            error = ProviderRequestError(f"{service.display_name} request failed: {exc}")
            return SaveResult.failed(url, service, error)

        logger.info("Saved %s to %s", url, service.value)
        return SaveResult.succeeded(url, service, item_id)

    def build_adapter(
        self,
        service_type: ServiceType | str,
        settings: dict[str, Any] | None = None,
    ) -> ProviderBase:
        """Adapter for a new, not yet persisted configuration. Performs no I/O."""
        service = ServiceType(service_type)
        config = ProviderConfig(
            id=new_config_id(),
            service_type=service.value,
            is_enabled=True,
            is_primary=False,
            created_at=format_datetime(now_utc()),
        )
        config.settings = settings
        return create_provider(config, self._credential_store, self._settings)

    async def configure_service(
        self,
        service_type: ServiceType | str,
        credential: str,
        settings: dict[str, Any] | None = None,
    ) -> ProviderConfig:
        """Persist a new configuration and its credential, and register its adapter.

        The first configured service becomes primary. A blank credential is
        not stored and leaves the adapter unauthenticated.
        """
        adapter = self.build_adapter(service_type, settings)
        if credential.strip():
            await self._credential_store.save(credential, adapter.service_type, adapter.config_id)
        await adapter.load_credentials()
        return await self._register(adapter)

    async def connect_service(
        self,
        adapter: ProviderBase,
        setup: Callable[[], Awaitable[object]],
    ) -> ProviderConfig:
        """Run an adapter's own setup entry point, then register the adapter.

        ``adapter`` comes from ``build_adapter``. Nothing is persisted unless
        ``setup`` succeeds; a credential it stored before failing is erased.
        """
        try:
            await setup()
        except Exception:
            await self._credential_store.delete(adapter.service_type, adapter.config_id)
            raise
        return await self._register(adapter)

    async def _register(self, adapter: ProviderBase) -> ProviderConfig:
        config = adapter.config
        try:
            async with self._session_factory() as session:
                session.add(config)
                await session.commit()
        except Exception:
            await self._credential_store.delete(adapter.service_type, config.id)
            raise

        self._configs.append(config)
        self._adapters[config.id] = adapter
        logger.info("Configured %s as %s", config.service_type, config.id)

        if self._primary_id is None:
            await self.set_primary(config)
        return config

    async def remove_service(self, config: ProviderConfig) -> None:
        """Erase the credential and record; re-elect a primary if needed."""
        target = self._require(config)
        service = target.service
        if service is not None:
            await self._credential_store.delete(service, target.id)
        async with self._session_factory() as session:
            await session.execute(delete(ProviderConfig).where(ProviderConfig.id == target.id))
            await session.commit()

        self._configs = [c for c in self._configs if c.id != target.id]
        self._adapters.pop(target.id, None)
        logger.info("Removed %s config %s", target.service_type, target.id)

        if self._primary_id == target.id:
            self._primary_id = None
            if self._configs:
                await self.set_primary(self._configs[0])

    async def set_primary(self, config: ProviderConfig) -> None:
        """Make ``config`` the only primary, in one transaction."""
        target = self._require(config)
        async with self._session_factory() as session:
            await session.execute(
                update(ProviderConfig)
                .where(ProviderConfig.id != target.id)
                .values(is_primary=False)
            )
            await session.execute(
                update(ProviderConfig).where(ProviderConfig.id == target.id).values(is_primary=True)
            )
            await session.commit()

        for known in self._configs:
            known.is_primary = known.id == target.id
        self._primary_id = target.id

    async def _persist(self, config: ProviderConfig, **values: Any) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(ProviderConfig).where(ProviderConfig.id == config.id).values(**values)
            )
            await session.commit()
        for key, value in values.items():
            setattr(config, key, value)

    async def set_enabled(self, config: ProviderConfig, enabled: bool) -> None:
        """Enable or disable dispatch to a configuration."""
        await self._persist(self._require(config), is_enabled=enabled)

    async def update_settings(self, config: ProviderConfig, settings: dict[str, Any]) -> None:
        """Replace the settings blob and rebuild the adapter around it."""
        target = self._require(config)
        target.settings = settings
        await self._persist(target, config_data=target.config_data)

        adapter = create_provider(target, self._credential_store, self._settings)
        await adapter.load_credentials()
        self._adapters[target.id] = adapter

    async def mark_synced(
        self, config: ProviderConfig, when: str | datetime | None = None
    ) -> None:
        """Record the last successful sync time."""
        moment = parse_datetime(when) if when is not None else now_utc()
        await self._persist(self._require(config), last_synced_at=format_datetime(moment))
