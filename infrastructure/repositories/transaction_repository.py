"""
Transaction repository - SQLAlchemy implementation.
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from domain.common.exceptions import DuplicateTransactionException
from domain.common.values import Currency
from domain.payment.status import InternalStatus
from domain.transaction.entity import Transaction
from domain.transaction.repository import TransactionRepository
from infrastructure.models.transaction import TransactionModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyTransactionRepository(TransactionRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: TransactionModel) -> Transaction:
        return Transaction(
            id=model.id,
            payment_id=model.payment_id,
            provider=model.provider,
            provider_transaction_id=model.provider_transaction_id,
            amount=Decimal(str(model.amount)),
            currency=Currency(model.currency),
            status=InternalStatus(model.status),
            gateway_status=model.gateway_status,
            provider_response=model.provider_response,
            failure_reason=model.failure_reason,
            processed_at=model.processed_at,
            idempotency_key=model.idempotency_key,
            provider_fee=Decimal(str(model.provider_fee or 0)),
            net_amount=Decimal(str(model.net_amount)),
            metadata=dict(model.extra_metadata or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Transaction) -> TransactionModel:
        return TransactionModel(
            id=entity.id,
            payment_id=entity.payment_id,
            provider=entity.provider,
            provider_transaction_id=entity.provider_transaction_id,
            idempotency_key=entity.idempotency_key,
            amount=entity.amount,
            currency=entity.currency.value,
            provider_fee=entity.provider_fee,
            net_amount=entity.net_amount,
            status=entity.status.value,
            gateway_status=entity.gateway_status,
            provider_response=entity.provider_response,
            failure_reason=entity.failure_reason,
            extra_metadata=dict(entity.metadata or {}),
            processed_at=entity.processed_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, transaction: Transaction) -> Transaction:
        try:
            db_tx = self._to_model(transaction)
            self.session.add(db_tx)
            await self.session.flush()
            await self.session.refresh(db_tx)
        except IntegrityError:
            await self.session.rollback()
            logger.warning(
                "transaction_create_conflict",
                provider_transaction_id=transaction.provider_transaction_id,
                idempotency_key=transaction.idempotency_key,
            )
            raise DuplicateTransactionException(
                provider_transaction_id=transaction.provider_transaction_id,
                idempotency_key=transaction.idempotency_key,
            )
        logger.info(
            "transaction_created",
            transaction_id=db_tx.id,
            payment_id=db_tx.payment_id,
            provider_transaction_id=db_tx.provider_transaction_id,
            status=db_tx.status,
        )
        return self._to_entity(db_tx)

    async def get_by_id(self, transaction_id: int) -> Optional[Transaction]:
        result = await self.session.execute(
            select(TransactionModel).where(TransactionModel.id == transaction_id)
        )
        db_tx = result.scalar_one_or_none()
        return self._to_entity(db_tx) if db_tx else None

    async def get_by_provider_transaction_id(self, provider_transaction_id: str) -> Optional[Transaction]:
        result = await self.session.execute(
            select(TransactionModel).where(
                TransactionModel.provider_transaction_id == provider_transaction_id
            )
        )
        db_tx = result.scalar_one_or_none()
        return self._to_entity(db_tx) if db_tx else None

    async def get_by_idempotency_key(self, idempotency_key: str) -> Optional[Transaction]:
        result = await self.session.execute(
            select(TransactionModel).where(TransactionModel.idempotency_key == idempotency_key)
        )
        db_tx = result.scalar_one_or_none()
        return self._to_entity(db_tx) if db_tx else None

    async def list_by_payment(self, payment_id: int) -> List[Transaction]:
        result = await self.session.execute(
            select(TransactionModel)
            .where(TransactionModel.payment_id == payment_id)
            .order_by(TransactionModel.created_at.desc(), TransactionModel.id.desc())
        )
        return [self._to_entity(t) for t in result.scalars().all()]

    async def update(self, transaction: Transaction) -> Transaction:
        result = await self.session.execute(
            select(TransactionModel).where(TransactionModel.id == transaction.id)
        )
        db_tx = result.scalar_one_or_none()

        if not db_tx:
            raise ValueError(f"Transaction with id {transaction.id} not found")

        # Monetary fields are immutable after creation
        db_tx.status = transaction.status.value
        db_tx.gateway_status = transaction.gateway_status
        db_tx.provider_response = transaction.provider_response
        db_tx.failure_reason = transaction.failure_reason
        db_tx.processed_at = transaction.processed_at
        db_tx.extra_metadata = dict(transaction.metadata or {})
        db_tx.updated_at = transaction.updated_at

        await self.session.flush()
        await self.session.refresh(db_tx)

        logger.info(
            "transaction_updated",
            transaction_id=db_tx.id,
            status=db_tx.status,
            gateway_status=db_tx.gateway_status,
        )
        return self._to_entity(db_tx)
