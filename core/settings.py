"""
Payment-related settings using pydantic-settings v2 with nested env keys.

This module is isolated so core.config.Settings stays free of provider details.
"""
from __future__ import annotations

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class PaymentTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class WebhookSettings(BaseModel):
    ip_allowlist: list[str] | None = None  # Optional IPs/CIDRs allowed to post webhooks


class AlipaySettings(BaseModel):
    app_id: Optional[str] = None
    # Path to a key file, or the key text itself
    private_key_path: Optional[str] = None
    alipay_public_key_path: Optional[str] = None
    gateway: str = "https://openapi.alipay.com/gateway.do"
    sign_type: Literal["RSA", "RSA2"] = "RSA2"
    charset: str = "utf-8"
    notify_url: Optional[str] = None
    return_url: Optional[str] = None


class PaymentSettings(BaseSettings):
    default_provider: str = Field(default="alipay", validation_alias="PAYMENT__DEFAULT_PROVIDER")
    timeouts: PaymentTimeouts = Field(default_factory=PaymentTimeouts)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    alipay: AlipaySettings = Field(default_factory=AlipaySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


payment_settings = PaymentSettings()
