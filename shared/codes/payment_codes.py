"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    TIMEOUT = 60003
    MALFORMED_RESPONSE = 60005


# Provider→internal status mapping (extend per needs)
PROVIDER_STATUS_TO_INTERNAL = {
    "alipay": {
        # Per trade_status
        "WAIT_BUYER_PAY": "pending",
        "TRADE_SUCCESS": "succeeded",
        "TRADE_FINISHED": "succeeded",
        "TRADE_CLOSED": "canceled",
        "EXPIRED": "expired",
        # Barcode outcomes
        "PAY_TIMEOUT": "timed_out",
        "PAY_FAILED": "failed",
        "REFUND": "refund_pending",
        "REFUND_SUCCESS": "refunded",
    },
}
