"""
Application service orchestrating payment use-cases.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API/scripts), keeping dependencies one-way.
"""
from __future__ import annotations

import hashlib

from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    RefundRequest,
    RefundResult,
    QueryPayment,
    ClosePayment,
    WebhookEvent,
)
from application.ports.payment_gateway import PaymentGateway
from core.logging_config import get_logger


logger = get_logger(__name__)


def _ensure_idempotency_key(req: CreatePayment | RefundRequest) -> None:
    if getattr(req, "idempotency_key", None):
        return
    # Stable, reproducible key derived from business identifiers (no timestamp).
    # sha256 hex is 64 chars, which is also Alipay's out_request_no limit.
    if isinstance(req, CreatePayment):
        base = f"create|{req.order_id}|{req.amount}|{req.currency}|{(req.provider or '').lower()}|{req.scene}"
    else:
        pref = getattr(req, "provider_ref", None) or ""
        base = f"refund|{req.order_id}|{pref}|{req.amount}|{req.currency}|{(req.provider or '').lower()}"
    setattr(req, "idempotency_key", hashlib.sha256(base.encode("utf-8")).hexdigest())


class PaymentService:
    def __init__(self, gateway: PaymentGateway) -> None:
        self.gateway = gateway

    async def create_payment(self, req: CreatePayment) -> PaymentIntent:
        _ensure_idempotency_key(req)
        logger.info(
            "payment_create_request",
            order_id=req.order_id,
            provider=req.provider or self.gateway.provider,
            scene=req.scene,
            idempotency_key=req.idempotency_key,
        )
        intent = await self.gateway.create_payment(req)
        logger.info(
            "payment_create_response",
            order_id=req.order_id,
            provider=intent.provider,
            status=intent.status,
        )
        return intent

    async def query_payment(self, req: QueryPayment) -> PaymentIntent:
        logger.info("payment_query_request", order_id=req.order_id, provider=req.provider or self.gateway.provider)
        return await self.gateway.query_payment(req)

    async def refund(self, req: RefundRequest) -> RefundResult:
        _ensure_idempotency_key(req)
        logger.info("payment_refund_request", order_id=req.order_id, provider=req.provider or self.gateway.provider)
        return await self.gateway.refund(req)

    async def close_payment(self, req: ClosePayment) -> None:
        logger.info("payment_close_request", order_id=req.order_id, provider=req.provider or self.gateway.provider)
        await self.gateway.close_payment(req)

    def handle_webhook(self, headers: dict, body: bytes) -> WebhookEvent:
        event = self.gateway.parse_webhook(headers, body)
        logger.info("payment_webhook_parsed", provider=self.gateway.provider, event_type=event.type, event_id=event.id)
        return event

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.gateway, "aclose", None)
        if callable(close):
            await close()
