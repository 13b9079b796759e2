"""Pytest bootstrap configuration.

Generates throwaway RSA key pairs for the merchant and for the gateway side,
and provides an in-process fake of the Alipay gateway built on
httpx.MockTransport so no test touches the network.
"""
import json
from typing import Any, Callable, Optional, Union
from urllib.parse import parse_qsl

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from infrastructure.external.payments import signer
from infrastructure.external.payments.alipay.client import AlipayClient
from infrastructure.external.payments.alipay.models import Merchant
from infrastructure.external.payments.gateway_data import GatewayData
from infrastructure.external.payments.polling import PollingPolicy


APP_ID = "2021000000000001"
GATEWAY_URL = "https://gateway.test/gateway.do"


def _key_pair() -> tuple[str, str]:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return private_pem, public_pem


@pytest.fixture(scope="session")
def merchant_keys() -> tuple[str, str]:
    return _key_pair()


@pytest.fixture(scope="session")
def alipay_keys() -> tuple[str, str]:
    return _key_pair()


@pytest.fixture
def merchant(merchant_keys, alipay_keys) -> Merchant:
    return Merchant(
        app_id=APP_ID,
        private_key=merchant_keys[0],
        alipay_public_key=alipay_keys[1],
        notify_url="https://shop.test/notify",
        return_url="https://shop.test/return",
    )


Reply = Union[dict, str, Callable[[dict], Any]]


class FakeAlipay:
    """Records every submitted form and answers from a per-method script.

    A script entry is a response object, a raw body string, a callable taking
    the parsed form, or a list of those consumed one per call.
    """

    def __init__(self) -> None:
        self.requests: list[dict[str, str]] = []
        self.urls: list[str] = []
        self.downloads: dict[str, bytes] = {}
        self._script: dict[str, Any] = {}

    def on(self, method: str, *replies: Reply) -> "FakeAlipay":
        self._script[method] = list(replies) if len(replies) > 1 else replies[0]
        return self

    def calls(self, method: str) -> list[dict[str, str]]:
        return [r for r in self.requests if r.get("method") == method]

    def biz(self, form: dict[str, str]) -> dict[str, Any]:
        return json.loads(form["biz_content"])

    def _next(self, method: str) -> Any:
        reply = self._script[method]
        if isinstance(reply, list):
            return reply.pop(0) if len(reply) > 1 else reply[0]
        return reply

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=self.downloads[str(request.url)])
        form = dict(parse_qsl(request.content.decode("utf-8"), keep_blank_values=True))
        self.requests.append(form)
        self.urls.append(str(request.url))
        reply = self._next(form["method"])
        if callable(reply):
            reply = reply(form)
        if isinstance(reply, httpx.Response):
            return reply
        if isinstance(reply, str):
            return httpx.Response(200, text=reply)
        key = form["method"].replace(".", "_") + "_response"
        return httpx.Response(200, json={key: reply, "sign": "ENVELOPE_SIGN"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def fake_alipay() -> FakeAlipay:
    return FakeAlipay()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_client(merchant, fake_alipay, recording_sleep):
    def _make(
        policy: Optional[PollingPolicy] = None,
        on_event=None,
        merchant_override: Optional[Merchant] = None,
    ) -> AlipayClient:
        return AlipayClient(
            merchant_override or merchant,
            gateway_url=GATEWAY_URL,
            http_client=httpx.AsyncClient(transport=fake_alipay.transport),
            polling_policy=policy or PollingPolicy(max_attempts=3, interval=5.0, sleep=recording_sleep),
            on_event=on_event,
        )

    return _make


def signed_notify(alipay_private_key: str, fields: dict[str, str], sign_type: str = "RSA2") -> dict[str, str]:
    """Notify form signed the way the gateway signs it: sorted keys, signature fields excluded."""
    data = GatewayData({k: fields[k] for k in sorted(fields)})
    payload = dict(fields)
    payload["sign_type"] = sign_type
    payload["sign"] = signer.sign(data.to_canonical_string(), alipay_private_key, sign_type)
    return payload


def verify_request(form: dict[str, str], public_key: str) -> bool:
    """Check a submitted request form against the merchant public key."""
    data = GatewayData({k: form[k] for k in sorted(form)})
    return signer.verify(data.to_canonical_string(), form["sign"], public_key, form["sign_type"], form["charset"])


@pytest.fixture
def sign_notify(alipay_keys):
    def _sign(fields: dict[str, str], sign_type: str = "RSA2") -> dict[str, str]:
        return signed_notify(alipay_keys[0], fields, sign_type)

    return _sign


@pytest.fixture
def request_verifies(merchant_keys):
    def _verify(form: dict[str, str]) -> bool:
        return verify_request(form, merchant_keys[1])

    return _verify
