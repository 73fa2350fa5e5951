"""
Transaction repository interface.
"""
from abc import ABC, abstractmethod
from typing import List, Optional

from .entity import Transaction


class TransactionRepository(ABC):

    @abstractmethod
    async def create(self, transaction: Transaction) -> Transaction:
        """Raises ``DuplicateTransactionException`` when the provider transaction id
        or the idempotency key is already taken."""
        pass

    @abstractmethod
    async def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_by_provider_transaction_id(self, provider_transaction_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def list_by_payment(self, payment_id: int) -> List[Transaction]:
        pass

    @abstractmethod
    async def update(self, transaction: Transaction) -> Transaction:
        pass
