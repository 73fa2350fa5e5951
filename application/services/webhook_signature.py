"""
Webhook signature verification.

The signature is an HMAC-SHA256 hex digest over the exact request body
bytes, so this must run before the body is parsed or re-serialized.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Mapping, Optional, Sequence


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """Constant-time check of ``signature`` against HMAC-SHA256(secret, raw_body).

    Never raises; any missing or malformed input yields False.
    """
    if not secret or not signature or not isinstance(raw_body, (bytes, bytearray)):
        return False
    candidate = signature.strip()
    # Some senders prefix the digest with the algorithm name
    if candidate.lower().startswith("sha256="):
        candidate = candidate[len("sha256="):]
    try:
        bytes.fromhex(candidate)
    except ValueError:
        return False
    expected = compute_signature(bytes(raw_body), secret)
    return hmac.compare_digest(expected, candidate.lower())


def extract_signature(headers: Mapping[str, str], header_names: Sequence[str]) -> Optional[str]:
    """Return the first non-empty signature among the accepted header names."""
    for name in header_names:
        value = headers.get(name) or headers.get(name.lower())
        if value:
            return value
    return None
