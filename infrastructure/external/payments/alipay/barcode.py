"""
Barcode (in-person) payment with bounded confirmation polling.

Submitted -> Succeeded when the gateway confirms straight away. Otherwise, if
a trade was opened, the trade is queried under the polling policy until it is
paid; when the budget runs out the trade is cancelled once and the attempt is
reported as timed out. The outcome is returned as a domain event and passed to
the optional listener, which also sees PaymentCanceled when the cancel succeeds.
"""
from __future__ import annotations

import inspect
from typing import Any, Callable, Optional

import httpx

from core.logging_config import get_logger
from domain.common.exceptions import BusinessException
from domain.payment.events import PaymentCanceled, PaymentEvent, PaymentFailed, PaymentSucceeded
from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.engine import AlipayEngine
from infrastructure.external.payments.alipay.models import Auxiliary, Notify, Order
from infrastructure.external.payments.alipay.notify import NotifyValidator
from infrastructure.external.payments.alipay.trade import TradeOperations
from infrastructure.external.payments.polling import DEFAULT_POLLING_POLICY, PollingPolicy, poll_until


logger = get_logger(__name__)

EventListener = Callable[[PaymentEvent], Any]


class BarcodePayment:
    def __init__(
        self,
        engine: AlipayEngine,
        *,
        trade: Optional[TradeOperations] = None,
        policy: PollingPolicy = DEFAULT_POLLING_POLICY,
        on_event: Optional[EventListener] = None,
    ) -> None:
        self.engine = engine
        self.trade = trade or TradeOperations(engine)
        self.policy = policy
        self.on_event = on_event

    async def build_barcode_payment(self, order: Order, *, notify_url: Optional[str] = None) -> PaymentEvent:
        order = order.model_copy(
            update={"product_code": C.FACE_TO_FACE_PAYMENT, "scene": order.scene or C.BAR_CODE_SCENE}
        )
        # In-progress codes are expected here, so the result is classified below
        notify = await self.engine.commit(C.BARCODE, order.to_biz_content(), validate=False, notify_url=notify_url)

        if notify.is_success:
            return await self._emit(self._succeeded(order, notify))
        if not notify.trade_no:
            logger.info("barcode_payment_rejected", out_trade_no=order.out_trade_no, code=notify.code, sub_code=notify.sub_code)
            return await self._emit(self._failed(order, notify, notify.sub_message))
        return await self._emit(await self._poll(order, notify.trade_no))

    async def _poll(self, order: Order, trade_no: str) -> PaymentEvent:
        auxiliary = Auxiliary(trade_no=trade_no)
        logger.info("barcode_polling_started", trade_no=trade_no, max_attempts=self.policy.max_attempts)
        result = await poll_until(
            lambda: self.trade.query(auxiliary),
            NotifyValidator.is_success_payment,
            self.policy,
        )
        last: Optional[Notify] = result.last  # type: ignore[assignment]
        if result.done and last is not None:
            logger.info("barcode_polling_succeeded", trade_no=trade_no, attempts=result.attempts)
            return self._succeeded(order, last)

        logger.warning("barcode_polling_timed_out", trade_no=trade_no, attempts=result.attempts)
        if await self._cancel(auxiliary):
            await self._emit(PaymentCanceled(order_id=order.out_trade_no, provider=self.engine.provider, provider_ref=trade_no))
        return self._failed(order, last, C.PAYMENT_TIMEOUT_MESSAGE, trade_no=trade_no)

    async def _cancel(self, auxiliary: Auxiliary) -> bool:
        # Compensation is single-shot; its failure does not change the outcome
        try:
            await self.trade.cancel(auxiliary)
        except (BusinessException, httpx.HTTPError) as exc:
            logger.error("barcode_cancel_failed", trade_no=auxiliary.trade_no, error=str(exc))
            return False
        logger.info("barcode_trade_cancelled", trade_no=auxiliary.trade_no)
        return True

    def _succeeded(self, order: Order, notify: Notify) -> PaymentSucceeded:
        return PaymentSucceeded(
            order_id=order.out_trade_no,
            provider=self.engine.provider,
            provider_ref=notify.trade_no,
            payload=notify,
        )

    def _failed(
        self,
        order: Order,
        notify: Optional[Notify],
        reason: str,
        *,
        trade_no: Optional[str] = None,
    ) -> PaymentFailed:
        return PaymentFailed(
            order_id=order.out_trade_no,
            provider=self.engine.provider,
            provider_ref=trade_no or (notify.trade_no if notify else None),
            payload=notify,
            reason=reason,
        )

    async def _emit(self, event: PaymentEvent) -> PaymentEvent:
        if self.on_event is not None:
            outcome = self.on_event(event)
            if inspect.isawaitable(outcome):
                await outcome
        return event
