"""
Customer repository interface.
"""
from abc import ABC, abstractmethod
from typing import Optional

from .entity import Customer


class CustomerRepository(ABC):

    @abstractmethod
    async def create(self, customer: Customer) -> Customer:
        pass

    @abstractmethod
    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[Customer]:
        pass

    @abstractmethod
    async def update(self, customer: Customer) -> Customer:
        pass
