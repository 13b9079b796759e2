"""
Alipay adapter built on the in-house signed-request engine.

Composes the capability modules (checkout, scan, barcode, trade, bill, notify)
over one engine and maps the unified PaymentGateway port onto them.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx

from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    RefundRequest,
    RefundResult,
    QueryPayment,
    ClosePayment,
    WebhookEvent,
)
from core.settings import AlipaySettings, payment_settings
from domain.payment.events import PaymentFailed, PaymentSucceeded
from infrastructure.external.payments import signer
from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.barcode import BarcodePayment, EventListener
from infrastructure.external.payments.alipay.bill import BillDownload
from infrastructure.external.payments.alipay.checkout import AppletPayment, AppPayment, FormPayment, UrlPayment
from infrastructure.external.payments.alipay.engine import AlipayEngine
from infrastructure.external.payments.alipay.models import Auxiliary, GatewayRequest, Merchant, Order, R
from infrastructure.external.payments.alipay.notify import NotifyValidator
from infrastructure.external.payments.alipay.scan import ScanPayment
from infrastructure.external.payments.alipay.trade import TradeOperations
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import PaymentSceneError
from infrastructure.external.payments.polling import DEFAULT_POLLING_POLICY, PollingPolicy


def merchant_from_settings(cfg: AlipaySettings) -> Merchant:
    if not (cfg.app_id and cfg.private_key_path and cfg.alipay_public_key_path):
        raise RuntimeError("ALIPAY configuration incomplete")
    return Merchant(
        app_id=cfg.app_id,
        private_key=signer.read_key(cfg.private_key_path),
        alipay_public_key=signer.read_key(cfg.alipay_public_key_path),
        sign_type=cfg.sign_type,
        charset=cfg.charset,
        notify_url=cfg.notify_url,
        return_url=cfg.return_url,
    )


class AlipayClient(BasePaymentClient):
    provider = "alipay"

    def __init__(
        self,
        merchant: Optional[Merchant] = None,
        *,
        gateway_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        polling_policy: PollingPolicy = DEFAULT_POLLING_POLICY,
        on_event: Optional[EventListener] = None,
    ):
        super().__init__(
            timeouts=payment_settings.timeouts.model_dump(),
            http_client=http_client,
        )
        cfg = payment_settings.alipay
        self.merchant = merchant or merchant_from_settings(cfg)
        self.engine = AlipayEngine(self.merchant, transport=self, gateway_url=gateway_url or cfg.gateway)

        self.form = FormPayment(self.engine)
        self.url = UrlPayment(self.engine)
        self.app = AppPayment(self.engine)
        self.applet = AppletPayment(self.engine)
        self.scan = ScanPayment(self.engine)
        self.trade = TradeOperations(self.engine)
        self.barcode = BarcodePayment(self.engine, trade=self.trade, policy=polling_policy, on_event=on_event)
        self.bill = BillDownload(self.engine)
        self.notify = NotifyValidator(self.merchant)

    # ----- generic requests ---------------------------------------------
    async def execute(self, request: GatewayRequest[R]) -> R:
        return await self.engine.execute(request)

    def sdk_execute(self, request: GatewayRequest[Any]) -> str:
        return self.engine.sdk_execute(request)

    # ----- unified port -------------------------------------------------
    @staticmethod
    def _order(req: CreatePayment) -> Order:
        return Order(
            out_trade_no=req.order_id,
            total_amount=Decimal(req.amount),
            subject=req.subject or f"order:{req.order_id}",
            auth_code=req.auth_code,
        )

    async def create_payment(self, req: CreatePayment) -> PaymentIntent:  # type: ignore[override]
        order = self._order(req)
        urls = {"notify_url": req.notify_url, "return_url": req.return_url}
        scene = req.scene
        self._log("alipay_create_payment", order_id=req.order_id, scene=scene)

        def intent(status: str, params: Optional[dict[str, Any]] = None, ref: Optional[str] = None) -> PaymentIntent:
            return PaymentIntent(
                intent_id=req.order_id,
                status=self._map_status(status),
                client_secret_or_params=params,
                provider=self.provider,
                provider_ref=ref,
                order_id=req.order_id,
            )

        if scene == "qr_code":
            notify = await self.scan.precreate(order, notify_url=req.notify_url)
            return intent(C.WAIT_BUYER_PAY, {"qr_code": notify.qr_code}, notify.trade_no)
        if scene == "pc_web":
            return intent(C.WAIT_BUYER_PAY, {"page_content": self.form.build_form_payment(order, **urls)})
        if scene == "wap":
            return intent(C.WAIT_BUYER_PAY, {"url": self.url.build_url_payment(order, **urls)})
        if scene == "app":
            return intent(C.WAIT_BUYER_PAY, {"order_string": self.app.build_app_payment(order, **urls)})
        if scene == "applet":
            return intent(C.WAIT_BUYER_PAY, {"order_string": self.applet.build_applet_payment(order, **urls)})
        if scene == "barcode":
            if not req.auth_code:
                raise PaymentSceneError("auth_code required for barcode", provider=self.provider)
            event = await self.barcode.build_barcode_payment(order, notify_url=req.notify_url)
            if isinstance(event, PaymentSucceeded):
                return intent(C.TRADE_SUCCESS, None, event.provider_ref)
            reason = event.reason if isinstance(event, PaymentFailed) else None
            status = C.PAY_TIMEOUT if reason == C.PAYMENT_TIMEOUT_MESSAGE else C.PAY_FAILED
            return intent(status, {"reason": reason}, event.provider_ref)
        raise PaymentSceneError(f"Unsupported scene: {scene}", provider=self.provider)

    async def query_payment(self, query: QueryPayment) -> PaymentIntent:  # type: ignore[override]
        notify = await self.trade.query(Auxiliary(out_trade_no=query.order_id, trade_no=query.provider_ref))
        return PaymentIntent(
            intent_id=query.order_id,
            status=self._map_status(str(notify.trade_status or "")),
            client_secret_or_params=None,
            provider=self.provider,
            provider_ref=notify.trade_no,
            order_id=query.order_id,
        )

    async def refund(self, req: RefundRequest) -> RefundResult:  # type: ignore[override]
        out_request_no = req.idempotency_key or f"refund-{req.order_id}"
        notify = await self.trade.refund(
            Auxiliary(
                out_trade_no=req.order_id,
                trade_no=req.provider_ref,
                refund_amount=Decimal(req.amount),
                refund_reason=req.reason,
                out_request_no=out_request_no,
            )
        )
        fund_change = getattr(notify, "fund_change", None)
        return RefundResult(
            refund_id=out_request_no,
            status=self._map_status("REFUND_SUCCESS" if fund_change == "Y" else "REFUND"),
            provider=self.provider,
            provider_ref=notify.trade_no,
        )

    async def close_payment(self, req: ClosePayment) -> None:  # type: ignore[override]
        await self.trade.close(Auxiliary(out_trade_no=req.order_id, trade_no=req.provider_ref))

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        # Alipay sends form-encoded payloads
        notify = self.notify.validate(body)
        return WebhookEvent(
            id=str(notify.trade_no or notify.out_trade_no or ""),
            type=str(notify.trade_status or notify.notify_type or "trade_status_sync"),
            provider=self.provider,
            data=notify.model_dump(exclude_none=True),
            raw_headers=headers,
            raw_body=body,
        )
