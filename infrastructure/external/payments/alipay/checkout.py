"""
Page-style payment modes: the signed parameters are handed to the buyer's
browser or a client SDK, so none of these builders touch the network.
"""
from __future__ import annotations

from typing import Optional

from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.engine import AlipayEngine
from infrastructure.external.payments.alipay.models import Order
from infrastructure.external.payments.gateway_data import GatewayData


class _Checkout:
    method: str
    product_code: str

    def __init__(self, engine: AlipayEngine) -> None:
        self.engine = engine

    def init(self, order: Order, **urls: Optional[str]) -> GatewayData:
        """Signed parameters; `notify_url` / `return_url` override the merchant's."""
        order = order.model_copy(update={"product_code": self.product_code})
        return self.engine.build(self.method, order.to_biz_content(), **urls)


class FormPayment(_Checkout):
    """PC website payment: an auto-submitting HTML form."""

    method = C.WEB
    product_code = C.FAST_INSTANT_TRADE_PAY

    def build_form_payment(self, order: Order, **urls: Optional[str]) -> str:
        return self.init(order, **urls).to_form(self.engine.request_url)


class UrlPayment(_Checkout):
    """Mobile website payment: a redirect URL."""

    method = C.WAP
    product_code = C.QUICK_WAP_WAY

    def build_url_payment(self, order: Order, **urls: Optional[str]) -> str:
        return f"{self.engine.request_url}&{self.init(order, **urls).to_url_encoded_body()}"


class AppPayment(_Checkout):
    method = C.APP
    product_code = C.QUICK_MSECURITY_PAY

    def build_app_payment(self, order: Order, **urls: Optional[str]) -> str:
        return self.init(order, **urls).to_url_encoded_body()


class AppletPayment(AppPayment):
    """Mini-program payment uses the app order string."""

    def build_applet_payment(self, order: Order, **urls: Optional[str]) -> str:
        return self.build_app_payment(order, **urls)
