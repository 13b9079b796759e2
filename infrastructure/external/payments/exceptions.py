"""
Exceptions for payment providers mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException, DomainValidationException
from shared.codes.payment_codes import PaymentCode


class GatewayOperationError(BusinessException):
    """Provider answered a commit with a non-success code."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        provider_code: str | None = None,
        sub_code: str | None = None,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider, "provider_code": provider_code, "sub_code": sub_code}
        if details:
            full_details.update(details)
        self.provider_code = provider_code
        self.sub_code = sub_code
        super().__init__(
            code=PaymentCode.PROVIDER_ERROR,
            message=message,
            error_type="GatewayOperationError",
            details=full_details,
        )


class SignatureMismatchError(BusinessException):
    def __init__(self, message: str, *, provider: str, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="SignatureMismatch",
            details=full_details,
        )


class MalformedResponseError(BusinessException):
    def __init__(self, message: str, *, provider: str | None = None, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.MALFORMED_RESPONSE,
            message=message,
            error_type="MalformedResponse",
            details=full_details,
        )


class AuxiliaryValidationError(DomainValidationException):
    def __init__(self, message: str, *, kind: str, field: str | None = None):
        super().__init__(
            message,
            field=field,
            details={"kind": kind},
            error_type="AuxiliaryValidationError",
        )


class PaymentSceneError(DomainValidationException):
    def __init__(self, message: str, *, provider: str, field: str | None = "scene"):
        super().__init__(
            message,
            field=field,
            details={"provider": provider},
            error_type="PaymentSceneError",
        )
