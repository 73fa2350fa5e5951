"""
Gateway status vocabulary -> internal status vocabulary.
"""
from __future__ import annotations

from typing import Optional

from core.logging_config import get_logger
from domain.payment.status import GATEWAY_TO_INTERNAL, GatewayStatus, InternalStatus


logger = get_logger(__name__)


def map_gateway_status(raw: "str | GatewayStatus | None", *, context: Optional[dict] = None) -> InternalStatus:
    """Translate a gateway status; unknown values fall back to ``pending``.

    Unmapped values are logged so the vocabulary can be extended later.
    """
    status = GatewayStatus.parse(raw)
    if status is None:
        logger.warning("gateway_status_unmapped", raw_status=raw, fallback=InternalStatus.PENDING.value, **(context or {}))
        return InternalStatus.PENDING
    return GATEWAY_TO_INTERNAL[status]
