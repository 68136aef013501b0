"""Read-later provider configuration model."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from readlater.models.base import Base
from readlater.providers.base import ServiceType

logger = logging.getLogger(__name__)


def new_config_id() -> str:
    """Return a fresh configuration id."""
    return uuid.uuid4().hex


class ProviderConfig(Base):
    """One connected read-later service instance.

    Secrets never live here; they are resolved through the credential store
    under ``(service_type, id)``.
    """

    __tablename__ = "readlater_configs"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=new_config_id)
    service_type: Mapped[str] = mapped_column(String, nullable=False)
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_synced_at: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str] = mapped_column(Text, nullable=False)
    config_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def service(self) -> ServiceType | None:
        """Parsed service type, or None for a tag this build does not know."""
        try:
            return ServiceType(self.service_type)
        except ValueError:
            return None

    @property
    def settings(self) -> dict[str, Any]:
        """Decoded service-specific settings blob."""
        if not self.config_data:
            return {}
        try:
            data = json.loads(self.config_data)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt settings for config %s", self.id)
            return {}
        return data if isinstance(data, dict) else {}

    @settings.setter
    def settings(self, value: dict[str, Any] | None) -> None:
        self.config_data = json.dumps(value) if value else None

    def __repr__(self) -> str:
        return (
            f"ProviderConfig(id={self.id!r}, service_type={self.service_type!r}, "
            f"is_primary={self.is_primary!r}, is_enabled={self.is_enabled!r})"
        )
