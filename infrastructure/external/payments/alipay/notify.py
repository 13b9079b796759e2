"""
Authentication of asynchronous notifies pushed by Alipay.

A notify is only trusted once its signature verifies against the Alipay public
key; trade status is never inspected before that.
"""
from __future__ import annotations

from typing import Any, Mapping

from core.logging_config import get_logger
from infrastructure.external.payments import signer
from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.alipay.models import Merchant, Notify
from infrastructure.external.payments.exceptions import MalformedResponseError, SignatureMismatchError
from infrastructure.external.payments.gateway_data import SIGN, SIGN_TYPE, GatewayData, StringCase


logger = get_logger(__name__)


class NotifyValidator:
    provider = "alipay"

    def __init__(self, merchant: Merchant) -> None:
        self.merchant = merchant

    def parse(self, payload: bytes | str | Mapping[str, Any]) -> GatewayData:
        if isinstance(payload, Mapping):
            raw = GatewayData().from_structured(payload)
        else:
            raw = GatewayData().from_form(payload, self.merchant.charset)
        # Field order of a form post is not significant; verify in key order
        return GatewayData({key: raw.get(key) for key in sorted(raw.keys())})

    def validate(self, payload: bytes | str | Mapping[str, Any]) -> Notify:
        """Return the authenticated Notify or raise SignatureMismatchError."""
        data = self.parse(payload)
        missing = [name for name in C.NOTIFY_REQUIRED_FIELDS if name not in data]
        if missing:
            raise MalformedResponseError(
                "Notify is missing required fields",
                provider=self.provider,
                details={"missing": missing},
            )
        notify = data.to_object(Notify, StringCase.SNAKE)

        data.remove(SIGN)
        data.remove(SIGN_TYPE)
        ok = signer.verify(
            data.to_canonical_string(),
            notify.sign or "",
            self.merchant.alipay_public_key,
            self.merchant.sign_type,
            self.merchant.charset,
        )
        if not ok:
            logger.warning("alipay_notify_signature_mismatch", trade_no=notify.trade_no, notify_id=notify.notify_id)
            raise SignatureMismatchError("Notify signature mismatch", provider=self.provider)
        if notify.app_id != self.merchant.app_id:
            logger.warning("alipay_notify_app_mismatch", app_id=notify.app_id)
            raise SignatureMismatchError(
                "Notify app_id does not belong to this merchant",
                provider=self.provider,
                details={"app_id": notify.app_id},
            )
        logger.info("alipay_notify_verified", trade_no=notify.trade_no, trade_status=notify.trade_status)
        return notify

    @staticmethod
    def is_waiting_payment(notify: Notify) -> bool:
        return notify.trade_status == C.WAIT_BUYER_PAY

    @staticmethod
    def is_success_payment(notify: Notify) -> bool:
        return notify.trade_status in C.PAID_STATUSES
