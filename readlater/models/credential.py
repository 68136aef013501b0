"""Encrypted credential storage model."""

from __future__ import annotations

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from readlater.models.base import Base


class StoredCredential(Base):
    """Ciphertext of one provider secret, addressed by (service type, config id)."""

    __tablename__ = "readlater_credentials"

    service_type: Mapped[str] = mapped_column(String, primary_key=True)
    config_id: Mapped[str] = mapped_column(String, primary_key=True)
    secret: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[str] = mapped_column(Text, nullable=False)
