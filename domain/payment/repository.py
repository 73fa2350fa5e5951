"""
Payment repository interface - what the domain needs, not how it is stored.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Payment


class PaymentRepository(ABC):

    @abstractmethod
    async def create(self, payment: Payment) -> Payment:
        """Persist a new payment and return it with its id."""
        pass

    @abstractmethod
    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        pass

    @abstractmethod
    async def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def find_open_for_order(self, order_id: int) -> Optional[Payment]:
        """Latest purchase for the order that has not reached a final state."""
        pass

    @abstractmethod
    async def list_by_owner(self, owner_id: int, skip: int = 0, limit: int = 100) -> List[Payment]:
        pass

    @abstractmethod
    async def update(self, payment: Payment) -> Payment:
        pass
