"""
delivery_auth.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the session core and its clients.
- Hide secrets from repr/logging (e.g., ID token secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Env-driven configuration shared by the store, the service layer, the monitors
    and the HTTP surface. Durations are expressed in seconds unless named otherwise.
    """

    model_config = SettingsConfigDict(env_prefix="DELIVERY_AUTH_", case_sensitive=False)

    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "delivery-auth"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Persistent key-value store backing the session cache.
    database_url: str = "sqlite+aiosqlite:///./delivery_auth.db"

    # Remote collaborators
    identity_base_url: str = "http://localhost:9099"
    document_store_base_url: str = "http://localhost:8085"
    http_timeout_seconds: float = 10.0

    # Identity provider ID tokens
    id_token_alg: str = "HS256"
    id_token_issuer: str = "delivery-identity"
    id_token_audience: str = "delivery-app"
    id_token_secret: str = Field(default="dev-only-id-token-secret-change-me-0000", repr=False)

    # Session lifecycle
    session_ttl_hours: float = 24
    inactivity_timeout_seconds: float = 30 * 60
    resume_refresh_threshold_seconds: float = 5 * 60
    auth_poll_interval_seconds: float = 2 * 60
    session_validation_interval_seconds: float = 10 * 60
    user_data_refresh_interval_seconds: float = 60 * 60

    @property
    def session_ttl_ms(self) -> int:
        return int(self.session_ttl_hours * 60 * 60 * 1000)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Timeouts are overridable per environment; tests construct Settings directly with
# sub-second values instead of patching module constants.
