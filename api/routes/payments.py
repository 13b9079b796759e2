"""
Payments API routes.

Exposes the Alipay notify endpoint plus thin endpoints to initiate, query,
refund and close payments and to download statements via the application
service. Keep this thin: no gateway details here.
"""
from __future__ import annotations

import ipaddress

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response

from api.dependencies import GatewayFactory, get_gateway_factory
from api.middleware import client_ip
from application.dtos.payments import (
    ClosePayment,
    CreatePayment,
    QueryPayment,
    RefundRequest,
)
from application.ports.payment_gateway import SupportsBillDownload
from application.services.payment_service import PaymentService
from core.logging_config import get_logger
from core.response import success_response
from core.settings import payment_settings
from domain.common.exceptions import BusinessException
from infrastructure.external.payments.alipay.models import Auxiliary


router = APIRouter(prefix="/payments", tags=["Payments"])
logger = get_logger(__name__)

# Plain-text bodies Alipay reads as ack / nack
NOTIFY_ACK = "success"
NOTIFY_NACK = "fail"


def _ip_permitted(remote_ip: str) -> bool:
    allowlist = payment_settings.webhook.ip_allowlist or []
    if not allowlist:
        return True
    try:
        rip = ipaddress.ip_address(remote_ip)
    except ValueError:
        return False
    for entry in allowlist:
        try:
            if "/" in entry:
                if rip in ipaddress.ip_network(entry, strict=False):
                    return True
            elif remote_ip == entry:
                return True
        except ValueError:
            logger.warning("webhook_allowlist_entry_invalid", entry=entry)
    return False


@router.post("/webhooks/{provider}", response_class=PlainTextResponse)
async def payments_webhook(
    provider: str,
    request: Request,
    factory: GatewayFactory = Depends(get_gateway_factory),
):
    ct = (request.headers.get("content-type") or "").lower()
    if "application/x-www-form-urlencoded" not in ct:
        logger.warning("webhook_content_type_unsupported", provider=provider, content_type=ct)
        return PlainTextResponse(NOTIFY_NACK)

    if not _ip_permitted(client_ip(request)):
        logger.warning("webhook_ip_not_allowed", provider=provider, client_ip=client_ip(request))
        raise HTTPException(status_code=403, detail="IP not allowed")

    raw_body = await request.body()
    headers = {k: v for k, v in request.headers.items()}
    service = PaymentService(gateway=factory(provider))
    try:
        event = service.handle_webhook(headers, raw_body)
    except BusinessException as exc:
        logger.warning("webhook_rejected", provider=provider, error_type=exc.error_type, error=exc.message)
        return PlainTextResponse(NOTIFY_NACK)
    finally:
        await service.aclose()

    logger.info("webhook_accepted", provider=provider, event_id=event.id, event_type=event.type)
    return PlainTextResponse(NOTIFY_ACK)


@router.post("/intents", summary="Create payment", response_model=None)
async def create_payment(payload: CreatePayment, factory: GatewayFactory = Depends(get_gateway_factory)):
    service = PaymentService(gateway=factory(payload.provider))
    try:
        intent = await service.create_payment(payload)
    finally:
        await service.aclose()
    return success_response(data=intent.model_dump(mode="json"), message="Payment created")


@router.get("/intents/{order_id}", summary="Query payment")
async def query_payment(
    order_id: str,
    provider: str | None = Query(default=None),
    provider_ref: str | None = Query(default=None),
    factory: GatewayFactory = Depends(get_gateway_factory),
):
    service = PaymentService(gateway=factory(provider))
    try:
        intent = await service.query_payment(QueryPayment(order_id=order_id, provider=provider, provider_ref=provider_ref))
    finally:
        await service.aclose()
    return success_response(data=intent.model_dump(mode="json"), message="Payment status")


@router.post("/refunds", summary="Trigger refund")
async def trigger_refund(payload: RefundRequest, factory: GatewayFactory = Depends(get_gateway_factory)):
    service = PaymentService(gateway=factory(payload.provider))
    try:
        result = await service.refund(payload)
    finally:
        await service.aclose()
    return success_response(data=result.model_dump(mode="json"), message="Refund triggered")


@router.post("/intents/{order_id}/close", summary="Close payment")
async def close_payment(
    order_id: str,
    provider: str | None = Query(default=None),
    provider_ref: str | None = Query(default=None),
    factory: GatewayFactory = Depends(get_gateway_factory),
):
    service = PaymentService(gateway=factory(provider))
    try:
        await service.close_payment(ClosePayment(order_id=order_id, provider=provider, provider_ref=provider_ref))
    finally:
        await service.aclose()
    return success_response(message="Payment closed", data={"order_id": order_id, "provider": provider})


@router.get("/bills", summary="Download statement")
async def download_bill(
    bill_type: str = Query(default="trade"),
    bill_date: str = Query(...),
    provider: str | None = Query(default=None),
    factory: GatewayFactory = Depends(get_gateway_factory),
):
    gw = factory(provider)
    bill = getattr(gw, "bill", None)
    try:
        if not isinstance(bill, SupportsBillDownload):
            raise HTTPException(status_code=400, detail="Statement download not supported")
        file = await bill.build_bill_download(Auxiliary(bill_type=bill_type, bill_date=bill_date))
    finally:
        close = getattr(gw, "aclose", None)
        if callable(close):
            await close()
    return Response(
        content=file.content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{file.filename}"'},
    )
