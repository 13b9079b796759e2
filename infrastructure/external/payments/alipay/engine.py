"""
Alipay signed-request engine.

One commit is: copy the merchant for the call, merge it into a fresh
GatewayData, sign the canonical string, POST the form body, unwrap the JSON
envelope and validate the gateway result code. Nothing here is shared between
calls except the merchant template and the HTTP transport.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, TypeVar

from pydantic import BaseModel

from core.logging_config import get_logger
from infrastructure.external.payments import signer
from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.models import GatewayRequest, Merchant, Notify
from infrastructure.external.payments.exceptions import GatewayOperationError, MalformedResponseError
from infrastructure.external.payments.gateway_data import SIGN, GatewayData, StringCase


logger = get_logger(__name__)

DEFAULT_GATEWAY = "https://openapi.alipay.com/gateway.do"

R = TypeVar("R", bound=BaseModel)


class Transport(Protocol):
    async def post_form(self, url: str, body: str) -> str: ...

    async def fetch(self, url: str) -> bytes: ...


class AlipayEngine:
    provider = "alipay"

    def __init__(self, merchant: Merchant, *, transport: Transport, gateway_url: str = DEFAULT_GATEWAY) -> None:
        self.merchant = merchant
        self.transport = transport
        self.gateway_url = gateway_url

    @property
    def request_url(self) -> str:
        return f"{self.gateway_url}?charset={self.merchant.charset}"

    # ----- assemble -----------------------------------------------------
    def sign(self, data: GatewayData) -> str:
        return signer.sign(
            data.to_canonical_string(),
            self.merchant.private_key,
            self.merchant.sign_type,
            self.merchant.charset,
        )

    def build(
        self,
        method: str,
        biz_content: Optional[str],
        *,
        notify_url: Optional[str] = None,
        return_url: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> GatewayData:
        """Signed parameter set for `method`."""
        merchant = self.merchant.for_call(method, biz_content)
        overrides = {k: v for k, v in (("notify_url", notify_url), ("return_url", return_url)) if v}
        if overrides:
            merchant = merchant.model_copy(update=overrides)
        data = GatewayData()
        data.add_object(merchant, StringCase.SNAKE)
        if params:
            data.add_object(params, StringCase.SNAKE)
            # Extra public params land after the merchant fields; restore key order
            data = GatewayData({key: data.get(key) for key in sorted(data.keys())})
        data.add(SIGN, self.sign(data))
        return data

    # ----- submit / unwrap ----------------------------------------------
    async def submit(self, data: GatewayData) -> str:
        return await self.transport.post_form(self.request_url, data.to_url_encoded_body())

    def unwrap(self, body: str, key: str) -> tuple[GatewayData, str]:
        """Split the envelope into the result entries and the top-level sign."""
        envelope = GatewayData().from_json(body)
        sign = envelope.get_string(SIGN)
        payload = envelope.get(key)
        if payload is None:
            payload = envelope.get(C.ERROR_RESPONSE)
        if payload is None:
            raise MalformedResponseError(
                f"Response has no '{key}' object",
                provider=self.provider,
                details={"keys": envelope.keys()},
            )
        result = GatewayData()
        if isinstance(payload, str):
            result.from_json(payload)
        else:
            result.from_structured(payload)
        return result, sign

    def ensure_success(self, notify: Notify) -> Notify:
        if not notify.is_success:
            raise GatewayOperationError(
                notify.sub_message,
                provider=self.provider,
                provider_code=notify.code,
                sub_code=notify.sub_code,
            )
        return notify

    async def commit(
        self,
        method: str,
        biz_content: Optional[str],
        *,
        validate: bool = True,
        response_key: Optional[str] = None,
        notify_url: Optional[str] = None,
    ) -> Notify:
        data = self.build(method, biz_content, notify_url=notify_url)
        body = await self.submit(data)
        result, sign = self.unwrap(body, response_key or C.response_key(method))
        notify = result.to_object(Notify, StringCase.SNAKE)
        # Covers the envelope, not the unwrapped result; kept for reference only
        notify.sign = sign or None
        logger.info(
            "alipay_commit",
            method=method,
            code=notify.code,
            sub_code=notify.sub_code,
            trade_no=notify.trade_no,
        )
        if validate:
            self.ensure_success(notify)
        return notify

    # ----- generic requests ---------------------------------------------
    async def execute(self, request: GatewayRequest[R]) -> R:
        """Run an arbitrary API method and materialize `request.result_type`."""
        data = self.build(
            request.method,
            request.biz_json(),
            notify_url=request.notify_url,
            return_url=request.return_url,
            params=request.params,
        )
        body = await self.submit(data)
        result, sign = self.unwrap(body, request.expected_key)
        result.add(SIGN, sign)
        result.add("body", body)
        logger.info("alipay_execute", method=request.method, code=result.get_string("code"))
        return result.to_object(request.result_type, StringCase.SNAKE)

    def sdk_execute(self, request: GatewayRequest[Any]) -> str:
        """Signed order string handed to a client SDK; nothing is sent."""
        data = self.build(
            request.method,
            request.biz_json(),
            notify_url=request.notify_url,
            return_url=request.return_url,
            params=request.params,
        )
        return data.to_url_encoded_body()
