"""
Payment DTOs (Pydantic v2) used at application boundaries.
"""
from __future__ import annotations

from typing import Any, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.types import condecimal

# Alipay settles in CNY only
SUPPORTED_CURRENCIES = {"CNY"}

Scene = Literal["qr_code", "pc_web", "wap", "app", "applet", "barcode"]


def _validate_currency(v: str) -> str:
    u = (v or "").upper()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    if u not in SUPPORTED_CURRENCIES:
        raise ValueError("unsupported currency")
    return u


class CreatePayment(BaseModel):
    order_id: str
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str = Field(default="CNY")
    subject: Optional[str] = None
    provider: Optional[str] = None
    scene: Scene = "qr_code"
    # Buyer's payment code, required for barcode
    auth_code: Optional[str] = None
    notify_url: Optional[str] = None
    return_url: Optional[str] = None
    idempotency_key: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency(cls, v: str) -> str:
        return _validate_currency(v)

    @field_validator("auth_code")
    @classmethod
    def _strip_auth_code(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class QueryPayment(BaseModel):
    order_id: str
    provider: Optional[str] = None
    provider_ref: Optional[str] = None


class ClosePayment(BaseModel):
    order_id: str
    provider: Optional[str] = None
    provider_ref: Optional[str] = None


class PaymentIntent(BaseModel):
    intent_id: str
    status: str
    client_secret_or_params: Optional[dict[str, Any]] = None
    provider: str
    provider_ref: Optional[str] = None
    order_id: Optional[str] = None


class RefundRequest(BaseModel):
    order_id: str
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: str = Field(default="CNY")
    reason: Optional[str] = None
    provider: Optional[str] = None
    idempotency_key: Optional[str] = None
    provider_ref: Optional[str] = None  # Alipay trade_no

    @field_validator("currency")
    @classmethod
    def _upper_and_validate_currency_refund(cls, v: str) -> str:
        return _validate_currency(v)


class RefundResult(BaseModel):
    refund_id: str
    status: str
    provider: str
    provider_ref: Optional[str] = None


class WebhookEvent(BaseModel):
    id: str
    type: str
    provider: str
    data: dict[str, Any]
    # raw fields for traceability (optional)
    raw_headers: Optional[dict[str, Any]] = None
    raw_body: Optional[bytes] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)
