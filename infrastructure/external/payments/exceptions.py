"""
Exceptions for the payment gateway mapped to unified BusinessException variants.
"""
from __future__ import annotations

from typing import Any, Optional
from domain.common.exceptions import BusinessException
from shared.codes.payment_codes import PaymentCode


class GatewayRejectedError(BusinessException):
    """The gateway answered with an error status; its status and message are
    surfaced to the caller unchanged."""

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        status_code: int,
        gateway_response: Optional[Any] = None,
    ):
        super().__init__(
            code=PaymentCode.GATEWAY_REJECTED,
            message=message,
            error_type="GatewayRejected",
            details={"provider": provider, "status_code": status_code, "gateway_response": gateway_response},
            http_status=status_code,
        )
        self.status_code = status_code


class GatewayUnavailableError(BusinessException):
    """The gateway could not be reached (connect error, timeout, protocol error)."""

    def __init__(self, message: str = "Payment service unavailable", *, provider: str, timeout: bool = False):
        super().__init__(
            code=PaymentCode.GATEWAY_TIMEOUT if timeout else PaymentCode.GATEWAY_UNAVAILABLE,
            message=message,
            error_type="GatewayUnavailable",
            details={"provider": provider, "timeout": timeout},
            http_status=503,
        )
