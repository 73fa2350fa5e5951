"""
Webhook event repository interface.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from .entity import WebhookEvent


class WebhookEventRepository(ABC):

    @abstractmethod
    async def add(self, event: WebhookEvent) -> WebhookEvent:
        """Insert a new event. Raises ``DuplicateEventException`` when
        (provider, provider_event_id) is already recorded."""
        pass

    @abstractmethod
    async def get_by_id(self, event_id: int) -> Optional[WebhookEvent]:
        pass

    @abstractmethod
    async def get_by_provider_event_id(self, provider: str, provider_event_id: str) -> Optional[WebhookEvent]:
        pass

    @abstractmethod
    async def list_retryable(self, stale_before: datetime, limit: int = 50) -> List[WebhookEvent]:
        """Failed/retrying events still under their retry bound, plus events
        stuck in ``received``/``processing`` since before ``stale_before``."""
        pass

    @abstractmethod
    async def update(self, event: WebhookEvent) -> WebhookEvent:
        pass
