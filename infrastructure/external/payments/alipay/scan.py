"""
QR-code payment: pre-create the trade and return the code the buyer scans.
"""
from __future__ import annotations

from typing import Optional

from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.engine import AlipayEngine
from infrastructure.external.payments.alipay.models import Notify, Order
from infrastructure.external.payments.exceptions import MalformedResponseError


class ScanPayment:
    def __init__(self, engine: AlipayEngine) -> None:
        self.engine = engine

    async def precreate(self, order: Order, *, notify_url: Optional[str] = None) -> Notify:
        return await self.engine.commit(C.SCAN, order.to_biz_content(), notify_url=notify_url)

    async def build_scan_payment(self, order: Order, *, notify_url: Optional[str] = None) -> str:
        notify = await self.precreate(order, notify_url=notify_url)
        if not notify.qr_code:
            raise MalformedResponseError("Pre-create response carries no qr_code", provider=self.engine.provider)
        return notify.qr_code
