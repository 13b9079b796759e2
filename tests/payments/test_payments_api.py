from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

from api.dependencies import get_gateway_factory
from infrastructure.external.payments.alipay import constants as C


FORM = {"Content-Type": "application/x-www-form-urlencoded"}


@pytest.fixture
def api(make_client):
    from main import app

    app.dependency_overrides[get_gateway_factory] = lambda: (lambda provider=None: make_client())
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def _notify(merchant, sign_notify, **overrides):
    fields = {
        "app_id": merchant.app_id,
        "version": "1.0",
        "charset": "utf-8",
        "notify_type": "trade_status_sync",
        "trade_no": "T1",
        "out_trade_no": "O1",
        "trade_status": "TRADE_SUCCESS",
    }
    fields.update(overrides)
    return sign_notify(fields)


def test_routes_registered():
    from main import app

    routes = app.openapi()["paths"]
    assert "/api/v1/payments/webhooks/{provider}" in routes
    assert "/api/v1/payments/bills" in routes


def test_webhook_acknowledges_verified_notify(api, merchant, sign_notify):
    resp = api.post("/api/v1/payments/webhooks/alipay", content=urlencode(_notify(merchant, sign_notify)), headers=FORM)

    assert resp.status_code == 200
    assert resp.text == "success"
    assert resp.headers["X-Request-ID"]


def test_webhook_rejects_forged_notify(api, merchant, sign_notify):
    payload = _notify(merchant, sign_notify)
    payload["total_amount"] = "1000.00"

    resp = api.post("/api/v1/payments/webhooks/alipay", content=urlencode(payload), headers=FORM)

    assert resp.status_code == 200
    assert resp.text == "fail"


def test_webhook_requires_form_encoding(api, merchant, sign_notify):
    resp = api.post("/api/v1/payments/webhooks/alipay", json=_notify(merchant, sign_notify))

    assert resp.text == "fail"


def test_gateway_errors_map_to_error_envelope(api, fake_alipay):
    fake_alipay.on(C.QUERY, {"code": "40004", "msg": "Business Failed", "sub_code": "ACQ.TRADE_NOT_EXIST", "sub_msg": "ORDER_NOT_EXIST"})

    resp = api.get("/api/v1/payments/intents/O1")

    assert resp.status_code == 502
    body = resp.json()
    assert body["code"] == 60000
    assert body["message"] == "ORDER_NOT_EXIST"
    assert body["error"]["type"] == "GatewayOperationError"


def test_create_intent_returns_qr_code(api, fake_alipay):
    fake_alipay.on(C.SCAN, {"code": "10000", "msg": "Success", "out_trade_no": "O1", "qr_code": "https://qr.alipay.com/q"})

    resp = api.post("/api/v1/payments/intents", json={"order_id": "O1", "amount": "9.90", "scene": "qr_code"})

    assert resp.status_code == 200
    assert resp.json()["data"]["client_secret_or_params"] == {"qr_code": "https://qr.alipay.com/q"}


def test_validation_errors_are_enveloped(api, fake_alipay):
    resp = api.post("/api/v1/payments/refunds", json={"order_id": "O1", "amount": "-1"})

    assert resp.status_code == 422
    assert resp.json()["code"] == 10003
    assert resp.json()["error"]["field"] == "amount"
    assert fake_alipay.requests == []


def test_bill_download_streams_file(api, fake_alipay):
    url = "https://dwbillcenter.alipay.com/downloadBillFile.resource?fileType=csv.zip"
    fake_alipay.on(C.BILL_DOWNLOAD, {"code": "10000", "msg": "Success", "bill_download_url": url})
    fake_alipay.downloads[url] = b"zip"

    resp = api.get("/api/v1/payments/bills", params={"bill_type": "trade", "bill_date": "2024-01-01"})

    assert resp.status_code == 200
    assert resp.content == b"zip"
    assert ".csv.zip" in resp.headers["content-disposition"]
