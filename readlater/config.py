"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Read-later application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Core
    secret_key: str = "change-me-in-production"
    debug: bool = False
    expose_docs: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data/db/readlater.db"

    # Server
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    # API access: empty disables the bearer check (debug only)
    api_token: str = ""

    # Outbound HTTP
    request_timeout_seconds: float = Field(default=15.0, gt=0)

    # OAuth
    oauth_redirect_uri: str = "http://localhost:8000/api/readlater/raindrop/callback"
    pocket_redirect_uri: str = "http://localhost:8000/"
    oauth_state_ttl_seconds: int = Field(default=600, ge=1)

    # Provider application credentials
    pocket_consumer_key: str = ""
    raindrop_client_id: str = ""
    raindrop_client_secret: str = ""

    # Provider endpoints
    pocket_api_url: str = "https://getpocket.com/v3"
    pocket_authorize_url: str = "https://getpocket.com/auth/authorize"
    instapaper_api_url: str = "https://www.instapaper.com/api"
    omnivore_api_url: str = "https://api-prod.omnivore.app/api/graphql"
    readwise_api_url: str = "https://readwise.io/api/v3"
    readwise_api_v2_url: str = "https://readwise.io/api/v2"
    raindrop_api_url: str = "https://api.raindrop.io/rest/v1"
    raindrop_oauth_url: str = "https://raindrop.io/oauth"

    def validate_runtime_security(self) -> None:
        """Validate security-critical production settings."""
        if self.debug:
            return

        violations: list[str] = []
        if self.secret_key == "change-me-in-production" or len(self.secret_key) < 32:
            violations.append(
                "SECRET_KEY must be overridden with a high-entropy value (>=32 chars)"
            )
        if not self.api_token:
            violations.append("API_TOKEN must be configured in production")

        if violations:
            joined = "; ".join(violations)
            raise ValueError(f"Insecure production configuration: {joined}")
