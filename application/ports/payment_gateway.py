"""
Payment gateway ports (application/ports) exposing replaceable protocols.

`PaymentGateway` is the unified use-case port. The capability protocols below
describe what a concrete provider mode can do; a provider implements only the
ones it supports and callers check with isinstance().
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from application.dtos.payments import (
    CreatePayment,
    PaymentIntent,
    RefundRequest,
    RefundResult,
    QueryPayment,
    ClosePayment,
    WebhookEvent,
)

if TYPE_CHECKING:  # pragma: no cover
    from domain.payment.events import PaymentEvent


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for third-party payment providers.

    Implementations should be async and side-effect free beyond IO.
    """

    provider: str

    async def create_payment(self, req: CreatePayment) -> PaymentIntent: ...

    async def query_payment(self, query: QueryPayment) -> PaymentIntent: ...

    async def refund(self, req: RefundRequest) -> RefundResult: ...

    async def close_payment(self, req: ClosePayment) -> None: ...

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent: ...


# Capability protocols; `order` / `auxiliary` are provider value objects.
@runtime_checkable
class SupportsFormPayment(Protocol):
    def build_form_payment(self, order: Any) -> str: ...


@runtime_checkable
class SupportsUrlPayment(Protocol):
    def build_url_payment(self, order: Any) -> str: ...


@runtime_checkable
class SupportsAppPayment(Protocol):
    def build_app_payment(self, order: Any) -> str: ...


@runtime_checkable
class SupportsAppletPayment(Protocol):
    def build_applet_payment(self, order: Any) -> str: ...


@runtime_checkable
class SupportsScanPayment(Protocol):
    async def build_scan_payment(self, order: Any) -> str: ...


@runtime_checkable
class SupportsBarcodePayment(Protocol):
    async def build_barcode_payment(self, order: Any) -> "PaymentEvent": ...


@runtime_checkable
class SupportsQuery(Protocol):
    async def query(self, auxiliary: Any) -> Any: ...


@runtime_checkable
class SupportsCancel(Protocol):
    async def cancel(self, auxiliary: Any) -> Any: ...


@runtime_checkable
class SupportsClose(Protocol):
    async def close(self, auxiliary: Any) -> Any: ...


@runtime_checkable
class SupportsRefund(Protocol):
    async def refund(self, auxiliary: Any) -> Any: ...


@runtime_checkable
class SupportsRefundQuery(Protocol):
    async def refund_query(self, auxiliary: Any) -> Any: ...


@runtime_checkable
class SupportsBillDownload(Protocol):
    async def build_bill_download(self, auxiliary: Any) -> Any: ...
