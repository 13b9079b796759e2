import json
from decimal import Decimal
from urllib.parse import urlencode

import httpx
import pytest

from application.dtos.payments import ClosePayment, CreatePayment, QueryPayment, RefundRequest
from application.ports.payment_gateway import PaymentGateway
from domain.common.exceptions import DomainValidationException
from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.exceptions import GatewayOperationError, SignatureMismatchError


def test_client_implements_the_port(make_client):
    assert isinstance(make_client(), PaymentGateway)


@pytest.mark.asyncio
async def test_qr_code_scene_precreates(make_client, fake_alipay):
    fake_alipay.on(C.SCAN, {"code": "10000", "msg": "Success", "out_trade_no": "O1", "qr_code": "https://qr.alipay.com/abc"})
    client = make_client()

    intent = await client.create_payment(CreatePayment(order_id="O1", amount=Decimal("0.01"), subject="tea"))

    assert intent.status == "pending"
    assert intent.client_secret_or_params == {"qr_code": "https://qr.alipay.com/abc"}
    assert fake_alipay.biz(fake_alipay.calls(C.SCAN)[0])["total_amount"] == "0.01"
    await client.aclose()


@pytest.mark.asyncio
async def test_page_scenes_build_without_network(make_client, fake_alipay):
    client = make_client()

    web = await client.create_payment(CreatePayment(order_id="O1", amount=Decimal("1"), scene="pc_web"))
    wap = await client.create_payment(CreatePayment(order_id="O1", amount=Decimal("1"), scene="wap"))
    app = await client.create_payment(CreatePayment(order_id="O1", amount=Decimal("1"), scene="app"))

    assert "<form" in web.client_secret_or_params["page_content"]
    assert wap.client_secret_or_params["url"].startswith("https://gateway.test/gateway.do?charset=utf-8&")
    assert "method=alipay.trade.app.pay" in app.client_secret_or_params["order_string"]
    assert fake_alipay.requests == []


@pytest.mark.asyncio
async def test_request_level_notify_url_overrides_merchant(make_client, fake_alipay):
    client = make_client()

    intent = await client.create_payment(
        CreatePayment(order_id="O1", amount=Decimal("1"), scene="app", notify_url="https://shop.test/other")
    )

    assert "notify_url=https%3A%2F%2Fshop.test%2Fother" in intent.client_secret_or_params["order_string"]
    assert client.merchant.notify_url == "https://shop.test/notify"


@pytest.mark.asyncio
async def test_notify_url_override_reuses_the_pooled_http_client(make_client, fake_alipay, monkeypatch):
    fake_alipay.on(C.SCAN, {"code": "10000", "msg": "Success", "out_trade_no": "O1", "qr_code": "https://qr.alipay.com/q"})
    fake_alipay.on(C.BARCODE, {"code": "10000", "msg": "Success", "trade_no": "T1"})
    client = make_client()
    pooled = client._client
    created = []
    original_init = httpx.AsyncClient.__init__

    def counting_init(self, *args, **kwargs):
        created.append(self)
        original_init(self, *args, **kwargs)

    monkeypatch.setattr(httpx.AsyncClient, "__init__", counting_init)

    await client.create_payment(
        CreatePayment(order_id="O1", amount=Decimal("1"), scene="qr_code", notify_url="https://shop.test/other")
    )
    await client.create_payment(
        CreatePayment(
            order_id="O2", amount=Decimal("1"), scene="barcode", auth_code="28763443825664394", notify_url="https://shop.test/bar"
        )
    )

    assert created == []
    assert client._client is pooled
    assert fake_alipay.calls(C.SCAN)[0]["notify_url"] == "https://shop.test/other"
    assert fake_alipay.calls(C.BARCODE)[0]["notify_url"] == "https://shop.test/bar"
    assert client.merchant.notify_url == "https://shop.test/notify"
    await client.aclose()


@pytest.mark.asyncio
async def test_barcode_scene_requires_auth_code(make_client, fake_alipay):
    client = make_client()

    with pytest.raises(DomainValidationException):
        await client.create_payment(CreatePayment(order_id="O1", amount=Decimal("1"), scene="barcode"))
    assert fake_alipay.requests == []


@pytest.mark.asyncio
async def test_barcode_scene_maps_outcome(make_client, fake_alipay):
    fake_alipay.on(C.BARCODE, {"code": "10000", "msg": "Success", "trade_no": "T1"})
    client = make_client()

    intent = await client.create_payment(
        CreatePayment(order_id="O1", amount=Decimal("1"), scene="barcode", auth_code=" 28763443825664394 ")
    )

    assert intent.status == "succeeded"
    assert intent.provider_ref == "T1"
    assert fake_alipay.biz(fake_alipay.calls(C.BARCODE)[0])["auth_code"] == "28763443825664394"
    await client.aclose()


@pytest.mark.asyncio
async def test_barcode_rejection_maps_to_failed(make_client, fake_alipay):
    fake_alipay.on(
        C.BARCODE,
        {"code": "40004", "msg": "Business Failed", "sub_code": "ACQ.PAYMENT_AUTH_CODE_INVALID", "sub_msg": "auth code invalid"},
    )
    client = make_client()

    intent = await client.create_payment(
        CreatePayment(order_id="O1", amount=Decimal("1"), scene="barcode", auth_code="28763443825664394")
    )

    assert intent.status == "failed"
    assert intent.client_secret_or_params == {"reason": "auth code invalid"}
    await client.aclose()


@pytest.mark.asyncio
async def test_barcode_timeout_maps_to_timed_out(make_client, fake_alipay):
    fake_alipay.on(C.BARCODE, {"code": "10003", "msg": "order success pay inprocess", "trade_no": "T1"})
    fake_alipay.on(C.QUERY, {"code": "10000", "msg": "Success", "trade_no": "T1", "trade_status": "WAIT_BUYER_PAY"})
    fake_alipay.on(C.CANCEL, {"code": "10000", "msg": "Success", "trade_no": "T1", "action": "close"})
    client = make_client()

    intent = await client.create_payment(
        CreatePayment(order_id="O1", amount=Decimal("1"), scene="barcode", auth_code="28763443825664394")
    )

    assert intent.status == "timed_out"
    assert intent.provider_ref == "T1"
    assert intent.client_secret_or_params == {"reason": "payment timed out"}
    await client.aclose()


@pytest.mark.asyncio
async def test_query_maps_trade_status(make_client, fake_alipay):
    fake_alipay.on(C.QUERY, {"code": "10000", "msg": "Success", "trade_no": "T1", "trade_status": "TRADE_CLOSED"})
    client = make_client()

    intent = await client.query_payment(QueryPayment(order_id="O1"))

    assert intent.status == "canceled"
    assert intent.provider_ref == "T1"
    await client.aclose()


@pytest.mark.asyncio
async def test_refund_uses_idempotency_key_as_request_number(make_client, fake_alipay):
    fake_alipay.on(C.REFUND, {"code": "10000", "msg": "Success", "trade_no": "T1", "fund_change": "Y"})
    client = make_client()

    result = await client.refund(RefundRequest(order_id="O1", amount=Decimal("2"), idempotency_key="R-1"))

    assert result.refund_id == "R-1"
    assert result.status == "refunded"
    assert fake_alipay.biz(fake_alipay.calls(C.REFUND)[0])["out_request_no"] == "R-1"
    await client.aclose()


@pytest.mark.asyncio
async def test_close_surfaces_gateway_error(make_client, fake_alipay):
    fake_alipay.on(C.CLOSE, {"code": "40004", "msg": "Business Failed", "sub_code": "ACQ.TRADE_NOT_EXIST", "sub_msg": "trade not exist"})
    client = make_client()

    with pytest.raises(GatewayOperationError):
        await client.close_payment(ClosePayment(order_id="O1"))
    await client.aclose()


def test_parse_webhook_authenticates_form(make_client, merchant, sign_notify):
    client = make_client()
    payload = sign_notify(
        {
            "app_id": merchant.app_id,
            "version": "1.0",
            "charset": "utf-8",
            "notify_type": "trade_status_sync",
            "trade_no": "T1",
            "out_trade_no": "O1",
            "trade_status": "TRADE_SUCCESS",
        }
    )

    event = client.parse_webhook({}, urlencode(payload).encode())

    assert event.id == "T1"
    assert event.type == "TRADE_SUCCESS"
    assert event.provider == "alipay"
    assert json.dumps(event.data)

    payload["trade_status"] = "TRADE_FINISHED"
    with pytest.raises(SignatureMismatchError):
        client.parse_webhook({}, urlencode(payload).encode())
