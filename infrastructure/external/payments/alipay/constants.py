"""
Alipay open platform constants: API methods, product codes and status values.
"""
from __future__ import annotations


# API methods
WEB = "alipay.trade.page.pay"
WAP = "alipay.trade.wap.pay"
APP = "alipay.trade.app.pay"
SCAN = "alipay.trade.precreate"
BARCODE = "alipay.trade.pay"
QUERY = "alipay.trade.query"
CANCEL = "alipay.trade.cancel"
CLOSE = "alipay.trade.close"
REFUND = "alipay.trade.refund"
REFUND_QUERY = "alipay.trade.fastpay.refund.query"
BILL_DOWNLOAD = "alipay.data.dataservice.bill.downloadurl.query"

# Product codes
FAST_INSTANT_TRADE_PAY = "FAST_INSTANT_TRADE_PAY"
QUICK_WAP_WAY = "QUICK_WAP_WAY"
QUICK_MSECURITY_PAY = "QUICK_MSECURITY_PAY"
FACE_TO_FACE_PAYMENT = "FACE_TO_FACE_PAYMENT"

BAR_CODE_SCENE = "bar_code"

# Gateway result codes
SUCCESS_CODE = "10000"
PAYING_CODE = "10003"

# trade_status
WAIT_BUYER_PAY = "WAIT_BUYER_PAY"
TRADE_SUCCESS = "TRADE_SUCCESS"
TRADE_FINISHED = "TRADE_FINISHED"
TRADE_CLOSED = "TRADE_CLOSED"
PAID_STATUSES = frozenset({TRADE_SUCCESS, TRADE_FINISHED})

ERROR_RESPONSE = "error_response"

# Fields an asynchronous notify must carry before it is authenticated
NOTIFY_REQUIRED_FIELDS = ("app_id", "version", "charset", "trade_no", "sign", "sign_type")

PAYMENT_TIMEOUT_MESSAGE = "payment timed out"

# Barcode outcomes without a trade_status of their own
PAY_TIMEOUT = "PAY_TIMEOUT"
PAY_FAILED = "PAY_FAILED"


def response_key(method: str) -> str:
    """`alipay.trade.query` -> `alipay_trade_query_response`."""
    return method.replace(".", "_") + "_response"
