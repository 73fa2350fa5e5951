"""
Customer repository - SQLAlchemy implementation.
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from domain.common.exceptions import CustomerAlreadyExistsException
from domain.customer.entity import Customer
from domain.customer.repository import CustomerRepository
from infrastructure.models.customer import CustomerModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyCustomerRepository(CustomerRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: CustomerModel) -> Customer:
        return Customer(
            id=model.id,
            name=model.name,
            email=model.email,
            merchant_customer_id=model.merchant_customer_id,
            gateway_customer_id=model.gateway_customer_id,
            phone=model.phone,
            document=model.document,
            address=model.address,
            billing_address=model.billing_address,
            shipping_address=model.shipping_address,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Customer) -> CustomerModel:
        return CustomerModel(
            id=entity.id,
            name=entity.name,
            email=entity.email,
            merchant_customer_id=entity.merchant_customer_id,
            gateway_customer_id=entity.gateway_customer_id,
            phone=entity.phone,
            document=entity.document,
            address=entity.address,
            billing_address=entity.billing_address,
            shipping_address=entity.shipping_address,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, customer: Customer) -> Customer:
        try:
            db_customer = self._to_model(customer)
            self.session.add(db_customer)
            await self.session.flush()
            await self.session.refresh(db_customer)
        except IntegrityError:
            await self.session.rollback()
            logger.warning("customer_create_conflict", email=customer.email)
            raise CustomerAlreadyExistsException(customer.email)
        logger.info("customer_created", customer_id=db_customer.id)
        return self._to_entity(db_customer)

    async def get_by_id(self, customer_id: int) -> Optional[Customer]:
        result = await self.session.execute(
            select(CustomerModel).where(CustomerModel.id == customer_id)
        )
        db_customer = result.scalar_one_or_none()
        return self._to_entity(db_customer) if db_customer else None

    async def get_by_email(self, email: str) -> Optional[Customer]:
        result = await self.session.execute(
            select(CustomerModel).where(CustomerModel.email == email.strip().lower())
        )
        db_customer = result.scalar_one_or_none()
        return self._to_entity(db_customer) if db_customer else None

    async def update(self, customer: Customer) -> Customer:
        result = await self.session.execute(
            select(CustomerModel).where(CustomerModel.id == customer.id)
        )
        db_customer = result.scalar_one_or_none()

        if not db_customer:
            raise ValueError(f"Customer with id {customer.id} not found")

        db_customer.name = customer.name
        db_customer.gateway_customer_id = customer.gateway_customer_id
        db_customer.phone = customer.phone
        db_customer.document = customer.document
        db_customer.address = customer.address
        db_customer.billing_address = customer.billing_address
        db_customer.shipping_address = customer.shipping_address
        db_customer.updated_at = customer.updated_at

        await self.session.flush()
        await self.session.refresh(db_customer)
        return self._to_entity(db_customer)
