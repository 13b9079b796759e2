"""
Alipay value objects: merchant credentials, order, auxiliary parameters and notify.

Merchant wire fields are declared in key order so the canonical string built
from a merchant already follows Alipay's lexical ordering.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, Mapping, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, condecimal, field_serializer

from infrastructure.external.payments.alipay import constants as C
from infrastructure.external.payments.exceptions import AuxiliaryValidationError


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _now() -> str:
    return datetime.now().strftime(TIMESTAMP_FORMAT)


class Merchant(BaseModel):
    app_auth_token: Optional[str] = None
    app_id: str
    biz_content: Optional[str] = None
    charset: str = "utf-8"
    format: str = "JSON"
    method: Optional[str] = None
    notify_url: Optional[str] = None
    return_url: Optional[str] = None
    sign_type: str = "RSA2"
    timestamp: str = Field(default_factory=_now)
    version: str = "1.0"

    # Credentials never go on the wire
    private_key: str = Field(exclude=True, repr=False)
    alipay_public_key: str = Field(exclude=True, repr=False)

    def for_call(self, method: str, biz_content: Optional[str]) -> "Merchant":
        """Per-call copy with the operation fixed before anything is signed."""
        return self.model_copy(update={"method": method, "biz_content": biz_content, "timestamp": _now()})


def _biz_json(model: BaseModel) -> str:
    return model.model_dump_json(exclude_none=True)


class Order(BaseModel):
    out_trade_no: str
    total_amount: condecimal(gt=0)  # type: ignore[valid-type]
    subject: str
    product_code: Optional[str] = None
    body: Optional[str] = None
    timeout_express: Optional[str] = None
    auth_code: Optional[str] = None  # barcode only
    scene: Optional[str] = None  # barcode only
    store_id: Optional[str] = None
    passback_params: Optional[str] = None

    @field_serializer("total_amount")
    def _yuan(self, amount: Decimal) -> str:
        # Alipay uses yuan units as string, with 2 decimals
        return f"{amount:.2f}"

    def to_biz_content(self) -> str:
        return _biz_json(self)


class AuxiliaryKind(str, Enum):
    QUERY = "query"
    CANCEL = "cancel"
    CLOSE = "close"
    REFUND = "refund"
    REFUND_QUERY = "refund_query"
    BILL_DOWNLOAD = "bill_download"


class Auxiliary(BaseModel):
    out_trade_no: Optional[str] = None
    trade_no: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    refund_reason: Optional[str] = None
    out_request_no: Optional[str] = None
    bill_type: Optional[str] = None
    bill_date: Optional[str] = None

    @field_serializer("refund_amount")
    def _yuan(self, amount: Optional[Decimal]) -> Optional[str]:
        return None if amount is None else f"{amount:.2f}"

    def validate_for(self, kind: AuxiliaryKind) -> None:
        """Raise AuxiliaryValidationError when `kind` lacks its required fields."""
        if kind is AuxiliaryKind.BILL_DOWNLOAD:
            if not self.bill_type:
                raise AuxiliaryValidationError("bill_type is required", kind=kind.value, field="bill_type")
            if not self.bill_date:
                raise AuxiliaryValidationError("bill_date is required", kind=kind.value, field="bill_date")
            return
        if not (self.out_trade_no or self.trade_no):
            raise AuxiliaryValidationError(
                "out_trade_no or trade_no is required", kind=kind.value, field="out_trade_no"
            )
        if kind is AuxiliaryKind.REFUND:
            if self.refund_amount is None or self.refund_amount <= 0:
                raise AuxiliaryValidationError(
                    "refund_amount must be positive", kind=kind.value, field="refund_amount"
                )
        if kind is AuxiliaryKind.REFUND_QUERY and not self.out_request_no:
            raise AuxiliaryValidationError(
                "out_request_no is required", kind=kind.value, field="out_request_no"
            )

    def to_biz_content(self) -> str:
        return _biz_json(self)


class Notify(BaseModel):
    """A gateway response or an asynchronous notify, before or after authentication."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    code: Optional[str] = None
    msg: Optional[str] = None
    sub_code: Optional[str] = None
    sub_msg: Optional[str] = None

    app_id: Optional[str] = None
    version: Optional[str] = None
    charset: Optional[str] = None
    sign: Optional[str] = None
    sign_type: Optional[str] = None
    notify_id: Optional[str] = None
    notify_time: Optional[str] = None
    notify_type: Optional[str] = None

    trade_no: Optional[str] = None
    out_trade_no: Optional[str] = None
    trade_status: Optional[str] = None
    total_amount: Optional[str] = None
    receipt_amount: Optional[str] = None
    buyer_logon_id: Optional[str] = None
    buyer_id: Optional[str] = None
    gmt_payment: Optional[str] = None

    refund_fee: Optional[str] = None
    out_request_no: Optional[str] = None
    refund_amount: Optional[str] = None

    qr_code: Optional[str] = None
    bill_download_url: Optional[str] = None

    # Raw response text, filled by generic execute
    body: Optional[str] = None

    @property
    def sub_message(self) -> str:
        return self.sub_msg or self.msg or ""

    @property
    def is_success(self) -> bool:
        return self.code == C.SUCCESS_CODE


R = TypeVar("R", bound=BaseModel)


@dataclass
class GatewayRequest(Generic[R]):
    """An arbitrary API call: method, biz payload and the type to materialize."""

    method: str
    result_type: type[R]
    biz_content: BaseModel | Mapping[str, Any] | None = None
    response_key: Optional[str] = None
    notify_url: Optional[str] = None
    return_url: Optional[str] = None
    params: dict[str, Any] = field(default_factory=dict)

    def biz_json(self) -> Optional[str]:
        if self.biz_content is None:
            return None
        if isinstance(self.biz_content, BaseModel):
            return _biz_json(self.biz_content)
        return json.dumps(dict(self.biz_content), ensure_ascii=False, separators=(",", ":"))

    @property
    def expected_key(self) -> str:
        return self.response_key or C.response_key(self.method)


@dataclass
class BillFile:
    url: str
    filename: str
    content: bytes
