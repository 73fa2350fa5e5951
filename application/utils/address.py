"""Builders for the nested customer fields sent to the gateway.

Each builder returns only the fields that are present and valid; an input
with nothing usable yields None so the caller can omit the key entirely.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

# input name -> gateway name
_ADDRESS_FIELDS = (
    ("street", "address_line_1"),
    ("address_line_1", "address_line_1"),
    ("address_line_2", "address_line_2"),
    ("city", "city"),
    ("state", "state"),
    ("zip", "zip_code"),
    ("zip_code", "zip_code"),
    ("country", "country"),
)


def _as_mapping(value: Any) -> Mapping[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return value
    model_dump = getattr(value, "model_dump", None)
    if callable(model_dump):
        return model_dump(exclude_none=True)
    return {}


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def build_partial_address(address: Any) -> Optional[dict[str, str]]:
    """Validated subset of an address in the gateway's field names.

    ``country`` is kept only when it is a two-letter code (upper-cased).
    """
    source = _as_mapping(address)
    result: dict[str, str] = {}
    for src, dst in _ADDRESS_FIELDS:
        if dst in result:
            continue
        value = _clean(source.get(src))
        if value is None:
            continue
        if dst == "country":
            if len(value) != 2 or not value.isalpha():
                continue
            value = value.upper()
        result[dst] = value
    return result or None


def build_document(document: Any) -> Optional[dict[str, str]]:
    source = _as_mapping(document)
    doc_type = _clean(source.get("type") or source.get("document_type"))
    number = _clean(source.get("number") or source.get("document_number"))
    if not doc_type or not number:
        return None
    return {"document_type": doc_type, "document_number": number}


def build_phone(phone: Any) -> Optional[dict[str, str]]:
    source = _as_mapping(phone)
    country_code = _clean(source.get("country_code") or source.get("countryCode"))
    number = _clean(source.get("number"))
    if not country_code or not number:
        return None
    return {"country_code": country_code, "number": number}


def drop_empty(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of ``payload`` without None values."""
    return {k: v for k, v in payload.items() if v is not None}
