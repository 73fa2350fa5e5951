"""
Business codes carried in every response envelope.

Generic codes live here; gateway and webhook codes are in
`shared.codes.payment_codes`. HTTP statuses are derived from these codes in
`core.exceptions`, never chosen by the raising layer.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    SUCCESS = 0

    # Request errors (1xxxx)
    PARAM_ERROR = 10000
    PARAM_VALIDATION_ERROR = 10003

    # Domain errors (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006
    INVALID_STATE = 20007  # order/payment status cannot move

    # Access (3xxxx); authentication itself is handled upstream
    UNAUTHORIZED = 30001
    FORBIDDEN = 30002

    # Infrastructure (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003  # database or broker unreachable

    # Throttling (5xxxx)
    TOO_MANY_REQUESTS = 50001


__all__ = ["BusinessCode"]
