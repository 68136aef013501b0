"""SQLAlchemy ORM models for the read-later bridge."""

from readlater.models.base import Base
from readlater.models.credential import StoredCredential
from readlater.models.provider_config import ProviderConfig

__all__ = [
    "Base",
    "ProviderConfig",
    "StoredCredential",
]
