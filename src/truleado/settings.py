"""
truleado.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (JWT secret, provider keys, payment secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Env-driven configuration (prefix `TRULEADO_`).
    Defaults are safe for local dev; external integrations stay disabled until keyed.
    """

    model_config = SettingsConfigDict(env_prefix="TRULEADO_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "truleado-api"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Auth (tokens are minted by the hosted identity provider; we only validate them)
    jwt_alg: str = "HS256"
    jwt_issuer: str = "truleado-auth"
    jwt_audience: str = "truleado-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./truleado.db"

    # Outbound HTTP (analytics, notifications, payments)
    http_timeout_seconds: float = 10.0

    # Social analytics provider
    analytics_provider_url: str = "https://api.social-provider.invalid"
    analytics_api_key: str = Field(default="", repr=False)
    analytics_tokens_per_fetch: int = 1

    # Notification delivery (disabled when no key is configured)
    notify_api_url: str = "https://api.novu.co/v1"
    notify_api_key: str = Field(default="", repr=False)

    # Billing
    payment_gateway_url: str = "https://api.razorpay.com/v1"
    payment_key_id: str = ""
    payment_key_secret: str = Field(default="dev-payment-secret", repr=False)
    token_price_minor_units: int = 10_000
    default_currency: str = "INR"

    # Deliverable tracking
    max_tracking_urls: int = 10


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()
