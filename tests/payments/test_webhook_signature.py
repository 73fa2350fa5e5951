import hashlib
import hmac

import pytest

from application.services.status_mapper import map_gateway_status
from application.services.webhook_signature import compute_signature, extract_signature, verify_signature
from domain.payment.status import GatewayStatus, InternalStatus


BODY = b'{"type":"payment.succeeded","data":{"id":"pay_1"}}'


def test_valid_signature():
    signature = hmac.new(b"s3cret", BODY, hashlib.sha256).hexdigest()
    assert compute_signature(BODY, "s3cret") == signature
    assert verify_signature(BODY, signature, "s3cret") is True
    assert verify_signature(BODY, signature.upper(), "s3cret") is True
    assert verify_signature(BODY, f"sha256={signature}", "s3cret") is True


@pytest.mark.parametrize(
    "body, signature, secret",
    [
        (BODY, None, "s3cret"),
        (BODY, "", "s3cret"),
        (BODY, "zz-not-hex", "s3cret"),
        (BODY, compute_signature(BODY, "other"), "s3cret"),
        (BODY + b" ", compute_signature(BODY, "s3cret"), "s3cret"),
        (BODY, compute_signature(BODY, "s3cret"), None),
        (BODY, compute_signature(BODY, "s3cret"), ""),
        ("not bytes", "abcd", "s3cret"),
    ],
)
def test_invalid_signature_returns_false(body, signature, secret):
    assert verify_signature(body, signature, secret) is False


def test_extract_signature_prefers_first_configured_header():
    names = ["yuno-signature", "x-yuno-signature"]
    assert extract_signature({"x-yuno-signature": "b"}, names) == "b"
    assert extract_signature({"yuno-signature": "a", "x-yuno-signature": "b"}, names) == "a"
    assert extract_signature({}, names) is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("CREATED", InternalStatus.PENDING),
        ("PENDING", InternalStatus.PROCESSING),
        ("succeeded", InternalStatus.COMPLETED),
        (" Failed ", InternalStatus.FAILED),
        ("CANCELLED", InternalStatus.CANCELLED),
        (GatewayStatus.REFUNDED, InternalStatus.REFUNDED),
    ],
)
def test_gateway_status_mapping(raw, expected):
    assert map_gateway_status(raw) == expected


@pytest.mark.parametrize("raw", ["VERIFIED", "", None, 42])
def test_unknown_gateway_status_falls_back_to_pending(raw):
    assert map_gateway_status(raw) == InternalStatus.PENDING
