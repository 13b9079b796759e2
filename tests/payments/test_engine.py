import json

import httpx
import pytest
from pydantic import BaseModel

from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.models import GatewayRequest, Notify
from infrastructure.external.payments.exceptions import GatewayOperationError, MalformedResponseError


@pytest.mark.asyncio
async def test_commit_signs_request_and_returns_result(make_client, fake_alipay, request_verifies):
    fake_alipay.on(C.QUERY, {"code": "10000", "msg": "Success", "trade_no": "T1", "trade_status": "TRADE_SUCCESS"})
    client = make_client()

    notify = await client.engine.commit(C.QUERY, '{"out_trade_no":"O1"}')

    assert notify.is_success
    assert notify.trade_no == "T1"
    form = fake_alipay.calls(C.QUERY)[0]
    assert request_verifies(form)
    assert form["app_id"] == client.merchant.app_id
    assert form["biz_content"] == '{"out_trade_no":"O1"}'
    assert fake_alipay.urls[0].endswith("gateway.do?charset=utf-8")
    # request parameters are sent in key order
    params = [k for k in form if k != "sign"]
    assert params == sorted(params)
    await client.aclose()


@pytest.mark.asyncio
async def test_commit_surfaces_gateway_error_verbatim(make_client, fake_alipay):
    fake_alipay.on(
        C.QUERY,
        {"code": "40004", "msg": "Business Failed", "sub_code": "ACQ.TRADE_NOT_EXIST", "sub_msg": "ORDER_NOT_EXIST"},
    )
    client = make_client()

    with pytest.raises(GatewayOperationError) as excinfo:
        await client.engine.commit(C.QUERY, '{"out_trade_no":"missing"}')

    assert excinfo.value.message == "ORDER_NOT_EXIST"
    assert excinfo.value.provider_code == "40004"
    assert excinfo.value.sub_code == "ACQ.TRADE_NOT_EXIST"
    await client.aclose()


@pytest.mark.asyncio
async def test_commit_reads_error_response_envelope(make_client, fake_alipay):
    body = json.dumps({"error_response": {"code": "40002", "msg": "Invalid Arguments", "sub_msg": "invalid app_id"}})
    fake_alipay.on(C.CLOSE, body)
    client = make_client()

    with pytest.raises(GatewayOperationError) as excinfo:
        await client.engine.commit(C.CLOSE, '{"trade_no":"T1"}')

    assert excinfo.value.message == "invalid app_id"
    await client.aclose()


@pytest.mark.asyncio
async def test_commit_accepts_string_encoded_result(make_client, fake_alipay):
    inner = json.dumps({"code": "10000", "msg": "Success", "trade_no": "T9"})
    fake_alipay.on(C.CANCEL, json.dumps({"alipay_trade_cancel_response": inner, "sign": "S"}))
    client = make_client()

    notify = await client.engine.commit(C.CANCEL, '{"trade_no":"T9"}')

    assert notify.trade_no == "T9"
    await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        "<html>502 Bad Gateway</html>",
        json.dumps({"unexpected_response": {"code": "10000"}}),
        json.dumps({"alipay_trade_query_response": [1, 2]}),
    ],
)
async def test_commit_rejects_malformed_responses(make_client, fake_alipay, body):
    fake_alipay.on(C.QUERY, body)
    client = make_client()

    with pytest.raises(MalformedResponseError):
        await client.engine.commit(C.QUERY, '{"trade_no":"T1"}')
    await client.aclose()


@pytest.mark.asyncio
async def test_transport_errors_propagate_unretried(make_client, fake_alipay):
    fake_alipay.on(C.QUERY, httpx.Response(502, text="bad gateway"))
    client = make_client()

    with pytest.raises(httpx.HTTPStatusError):
        await client.engine.commit(C.QUERY, '{"trade_no":"T1"}')
    assert len(fake_alipay.calls(C.QUERY)) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_each_call_gets_its_own_parameters(make_client, fake_alipay):
    fake_alipay.on(C.QUERY, {"code": "10000", "trade_no": "T1"})
    fake_alipay.on(C.CLOSE, {"code": "10000", "trade_no": "T1"})
    client = make_client()

    await client.engine.commit(C.QUERY, '{"trade_no":"T1"}')
    await client.engine.commit(C.CLOSE, '{"trade_no":"T1"}')

    assert [f["method"] for f in fake_alipay.requests] == [C.QUERY, C.CLOSE]
    assert client.merchant.method is None
    assert client.merchant.biz_content is None
    await client.aclose()


class _RefundQueryResult(BaseModel):
    code: str
    out_request_no: str
    refund_amount: str
    sign: str | None = None
    body: str | None = None


@pytest.mark.asyncio
async def test_execute_materializes_requested_type(make_client, fake_alipay, request_verifies):
    fake_alipay.on(C.REFUND_QUERY, {"code": "10000", "out_request_no": "R1", "refund_amount": "1.00"})
    client = make_client()

    result = await client.execute(
        GatewayRequest(
            method=C.REFUND_QUERY,
            result_type=_RefundQueryResult,
            biz_content={"out_trade_no": "O1", "out_request_no": "R1"},
            params={"app_auth_token": "TOKEN"},
        )
    )

    assert result.out_request_no == "R1"
    assert result.sign == "ENVELOPE_SIGN"
    assert "alipay_trade_fastpay_refund_query_response" in result.body
    form = fake_alipay.calls(C.REFUND_QUERY)[0]
    assert form["app_auth_token"] == "TOKEN"
    assert request_verifies(form)
    await client.aclose()


def test_sdk_execute_builds_signed_order_string(make_client):
    client = make_client()
    order_string = client.sdk_execute(GatewayRequest(method=C.APP, result_type=Notify, biz_content={"subject": "s"}))

    assert "method=alipay.trade.app.pay" in order_string
    assert "&sign=" in order_string
