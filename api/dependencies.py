"""
API依赖项 - 支付网关装配
"""
from typing import Callable, Optional

from application.ports.payment_gateway import PaymentGateway
from infrastructure.external.payments import get_payment_gateway


GatewayFactory = Callable[[Optional[str]], PaymentGateway]


def get_gateway_factory() -> GatewayFactory:
    """Composition root for gateways; tests override this dependency."""
    return get_payment_gateway
