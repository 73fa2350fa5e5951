"""
Order repository interface.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Order


class OrderRepository(ABC):

    @abstractmethod
    async def create(self, order: Order) -> Order:
        pass

    @abstractmethod
    async def get_by_id(self, order_id: int) -> Optional[Order]:
        pass

    @abstractmethod
    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        pass

    @abstractmethod
    async def list_by_owner(self, owner_id: int, skip: int = 0, limit: int = 100) -> List[Order]:
        """Orders of one customer, newest first."""
        pass

    @abstractmethod
    async def update(self, order: Order) -> Order:
        pass
