"""Domain-level business exceptions, shared by domain and infrastructure.

The core layer only maps these to HTTP responses; the domain layer never
depends back on core.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """Base business exception."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
        http_status: Optional[int] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        # Explicit override for errors whose HTTP status comes from elsewhere
        # (e.g. a gateway rejection surfaced verbatim)
        self.http_status = http_status
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class InvalidStateTransitionException(BusinessException):
    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            code=BusinessCode.INVALID_STATE,
            message=f"Cannot move {entity} from {current} to {target}",
            error_type="InvalidStateTransition",
            details={"entity": entity, "current": current, "target": target},
            field="status",
        )


class CustomerNotFoundException(BusinessException):
    def __init__(self, customer_id: Optional[int] = None):
        details = {"customer_id": customer_id} if customer_id is not None else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Customer not found",
            error_type="CustomerNotFound",
            details=details,
        )


class CustomerNotReadyException(BusinessException):
    """Customer exists locally but has no gateway customer id yet."""

    def __init__(self, customer_id: int):
        super().__init__(
            code=PaymentCode.CUSTOMER_NOT_READY,
            message="Customer not properly set up for payments. Complete customer registration first.",
            error_type="CustomerNotReady",
            details={"customer_id": customer_id},
        )


class OrderNotFoundException(BusinessException):
    def __init__(self, order_id: Optional[int] = None):
        details = {"order_id": order_id} if order_id is not None else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Order not found",
            error_type="OrderNotFound",
            details=details,
        )


class PaymentNotFoundException(BusinessException):
    def __init__(self, payment_id: Optional[int] = None):
        details = {"payment_id": payment_id} if payment_id is not None else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Payment not found",
            error_type="PaymentNotFound",
            details=details,
        )


class TransactionRecordNotFoundException(BusinessException):
    """Lookup by local transaction id failed (read API)."""

    def __init__(self, transaction_id: Optional[int] = None):
        details = {"transaction_id": transaction_id} if transaction_id is not None else None
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Transaction not found",
            error_type="TransactionNotFound",
            details=details,
        )


class TransactionNotFoundException(BusinessException):
    """A webhook referenced a provider transaction id we have not persisted."""

    def __init__(self, provider_transaction_id: str):
        super().__init__(
            code=PaymentCode.TRANSACTION_NOT_FOUND,
            message=f"Transaction not found for provider id {provider_transaction_id}",
            error_type="TransactionNotFound",
            details={"provider_transaction_id": provider_transaction_id},
        )


class DuplicateEventException(BusinessException):
    def __init__(self, provider: str, provider_event_id: str):
        super().__init__(
            code=PaymentCode.DUPLICATE_EVENT,
            message=f"Webhook event {provider_event_id} already recorded",
            error_type="DuplicateEvent",
            details={"provider": provider, "provider_event_id": provider_event_id},
        )


class InvalidSignatureException(BusinessException):
    def __init__(self, message: str = "Invalid signature"):
        super().__init__(
            code=PaymentCode.SIGNATURE_INVALID,
            message=message,
            error_type="SignatureInvalid",
        )


class MalformedEventException(BusinessException):
    def __init__(self, reason: str):
        super().__init__(
            code=PaymentCode.MALFORMED_EVENT,
            message=f"Invalid event structure: {reason}",
            error_type="MalformedEvent",
            details={"reason": reason},
        )


class StoreUnavailableException(BusinessException):
    def __init__(self, message: str = "Persistence store unavailable"):
        super().__init__(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message=message,
            error_type="StoreUnavailable",
        )


class DuplicateTransactionException(BusinessException):
    """Unique provider_transaction_id or idempotency_key already taken."""

    def __init__(self, provider_transaction_id: Optional[str] = None, idempotency_key: Optional[str] = None):
        super().__init__(
            code=BusinessCode.BUSINESS_ERROR,
            message="Transaction already recorded",
            error_type="DuplicateTransaction",
            details={
                "provider_transaction_id": provider_transaction_id,
                "idempotency_key": idempotency_key,
            },
        )
        self.provider_transaction_id = provider_transaction_id
        self.idempotency_key = idempotency_key


class CustomerAlreadyExistsException(BusinessException):
    def __init__(self, email: str):
        super().__init__(
            code=BusinessCode.BUSINESS_ERROR,
            message="Customer with this email already exists",
            error_type="CustomerAlreadyExists",
            details={"email": email},
            field="email",
        )


class RateLimitException(BusinessException):
    def __init__(self, retry_after: int, limit: int):
        super().__init__(
            code=BusinessCode.TOO_MANY_REQUESTS,
            message="Too many payment requests, please try again later",
            error_type="RateLimited",
            details={"retry_after": retry_after, "limit": limit},
        )
        self.retry_after = retry_after
