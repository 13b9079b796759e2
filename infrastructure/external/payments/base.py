"""
Base payment client implementing shared concerns: http, logging, mapping.

Concrete providers should subclass and implement provider-specific logic.
Submissions are not retried here: a transport failure propagates to the
caller unchanged.
"""
from __future__ import annotations

from typing import Any, Optional
from contextlib import asynccontextmanager

import httpx

from core.logging_config import get_logger
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
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded;charset=utf-8"


class BasePaymentClient(PaymentGateway):
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[dict[str, float]] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeouts_cfg = timeouts or {"connect": 1.0, "read": 3.0, "write": 3.0, "total": 5.0}
        self._client: Optional[httpx.AsyncClient] = http_client

    @property
    def timeouts(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self._timeouts_cfg["connect"],
            read=self._timeouts_cfg["read"],
            write=self._timeouts_cfg["write"],
            timeout=self._timeouts_cfg["total"],
        )

    @asynccontextmanager
    async def client(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeouts)
        try:
            yield self._client
        finally:
            # Keep open for reuse; explicit aclose() will close.
            ...

    async def aclose(self) -> None:
        """Close underlying HTTP client if created."""
        if self._client is not None:
            try:
                await self._client.aclose()
            finally:
                self._client = None

    async def post_form(self, url: str, body: str) -> str:
        """POST a form-encoded body and return the response text."""
        async with self.client() as http:
            response = await http.post(url, content=body.encode("utf-8"), headers={"Content-Type": FORM_CONTENT_TYPE})
        response.raise_for_status()
        return response.text

    async def fetch(self, url: str) -> bytes:
        async with self.client() as http:
            response = await http.get(url)
        response.raise_for_status()
        return response.content

    # Default implementations raise to force override where needed
    async def create_payment(self, req: CreatePayment) -> PaymentIntent:  # type: ignore[override]
        raise NotImplementedError

    async def query_payment(self, query: QueryPayment) -> PaymentIntent:  # type: ignore[override]
        raise NotImplementedError

    async def refund(self, req: RefundRequest) -> RefundResult:  # type: ignore[override]
        raise NotImplementedError

    async def close_payment(self, req: ClosePayment) -> None:  # type: ignore[override]
        raise NotImplementedError

    def parse_webhook(self, headers: dict[str, Any], body: bytes) -> WebhookEvent:  # type: ignore[override]
        raise NotImplementedError

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
