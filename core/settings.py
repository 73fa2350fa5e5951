"""
Payment gateway settings using pydantic-settings v2 with nested env keys.

Kept apart from core.config.Settings; values are read from ``PAYMENT__*``
variables, e.g. ``PAYMENT__WEBHOOK__SECRET`` or
``PAYMENT__GATEWAY__PRIVATE_SECRET_KEY``.
"""
from __future__ import annotations

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class GatewayTimeouts(BaseModel):
    connect: float = 5.0
    # Customer and checkout-session calls
    default: float = 30.0
    # Payment creation
    payment: float = 45.0


class GatewayRetry(BaseModel):
    max: int = 2
    base_backoff: float = 0.2


class GatewaySettings(BaseModel):
    provider: str = "yuno"
    base_url: str = "https://api-sandbox.y.uno/v1"
    public_api_key: Optional[str] = None
    private_secret_key: Optional[str] = None
    account_id: Optional[str] = None


class WebhookSettings(BaseModel):
    secret: Optional[str] = None
    # First header present wins
    signature_headers: list[str] = Field(default_factory=lambda: ["yuno-signature", "x-yuno-signature"])
    max_retries: int = 3
    # received/processing rows older than this are picked up by the retry task
    retry_stale_seconds: int = 300
    retry_batch_size: int = 50


class CheckoutSettings(BaseModel):
    session_ttl_minutes: int = 15
    default_country: str = "US"


class PaymentSettings(BaseSettings):
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    timeouts: GatewayTimeouts = Field(default_factory=GatewayTimeouts)
    retry: GatewayRetry = Field(default_factory=GatewayRetry)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    checkout: CheckoutSettings = Field(default_factory=CheckoutSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="PAYMENT__",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
