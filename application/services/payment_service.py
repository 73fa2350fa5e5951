"""
Application service orchestrating customer, checkout and payment use-cases.

This class depends only on the application PaymentGateway port and DTOs.
Gateway implementations are provided by infrastructure and must be injected
from the composition root (API/tasks), keeping dependencies one-way.

Gateway calls are made outside any unit of work; local state is written
only after the gateway has answered, so a failed call persists nothing.
"""
from __future__ import annotations

import hashlib
from datetime import timedelta
from typing import Callable, List, Optional

from application.dtos.payments import (
    CheckoutSessionOut,
    CheckoutSessionRequest,
    CreateCheckoutSessionIn,
    CreateCustomerIn,
    CreateCustomerOut,
    CreatePaymentIn,
    CustomerOut,
    GatewayCustomerRequest,
    GatewayPaymentRequest,
    PaymentInitiationOut,
    PaymentOut,
    TransactionOut,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.status_mapper import map_gateway_status
from application.utils.address import build_document, build_partial_address, build_phone, drop_empty
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.common.exceptions import (
    CustomerAlreadyExistsException,
    CustomerNotFoundException,
    CustomerNotReadyException,
    DuplicateTransactionException,
    OrderNotFoundException,
    PaymentNotFoundException,
    TransactionRecordNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.values import utcnow
from domain.customer.entity import Customer
from domain.order.entity import Order
from domain.payment.entity import Payment
from domain.payment.status import GatewayStatus
from domain.transaction.entity import Transaction


logger = get_logger(__name__)


def _ensure_idempotency_key(key: Optional[str], order: Order, provider: str) -> str:
    if key:
        return key
    # Stable, reproducible key derived from business identifiers (no timestamp)
    base = f"create|{order.id}|{order.total_amount}|{order.currency.value}|{provider.lower()}"
    return hashlib.sha256(base.encode("utf-8")).hexdigest()


class PaymentApplicationService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        settings: Optional[PaymentSettings] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self.gateway = gateway
        self._settings = settings or payment_settings

    # ----- customers -----

    async def create_customer(self, data: CreateCustomerIn) -> CreateCustomerOut:
        """Register a customer at the gateway, idempotent by email."""
        email = str(data.email).strip().lower()
        async with self._uow_factory(readonly=True) as uow:
            customer = await uow.customer_repository.get_by_email(email)

        if customer is not None and customer.is_payment_ready():
            logger.info("customer_already_registered", customer_id=customer.id)
            return CreateCustomerOut(customer=CustomerOut.model_validate(customer), created=False)

        if customer is None:
            customer = await self._register_local_customer(data, email)

        req = GatewayCustomerRequest(
            merchant_customer_id=customer.merchant_customer_id,
            first_name=customer.first_name,
            last_name=customer.last_name,
            email=customer.email,
            country=customer.country or self._settings.checkout.default_country,
            document=build_document(customer.document),
            phone=build_phone(customer.phone),
            billing_address=build_partial_address(customer.billing_address or customer.address),
            shipping_address=build_partial_address(customer.shipping_address or customer.address),
        )
        gateway_customer = await self.gateway.create_customer(req)

        customer.link_gateway_customer(gateway_customer.id)
        async with self._uow_factory() as uow:
            customer = await uow.customer_repository.update(customer)
        logger.info(
            "customer_registered",
            customer_id=customer.id,
            gateway_customer_id=customer.gateway_customer_id,
        )
        return CreateCustomerOut(customer=CustomerOut.model_validate(customer), created=True)

    async def _register_local_customer(self, data: CreateCustomerIn, email: str) -> Customer:
        customer = Customer.register(
            name=data.name,
            email=email,
            phone=build_phone(data.phone),
            document=build_document(data.document),
            address=build_partial_address(data.address),
            billing_address=build_partial_address(data.billing_address),
            shipping_address=build_partial_address(data.shipping_address),
        )
        try:
            async with self._uow_factory() as uow:
                return await uow.customer_repository.create(customer)
        except CustomerAlreadyExistsException:
            # Concurrent registration of the same email
            async with self._uow_factory(readonly=True) as uow:
                existing = await uow.customer_repository.get_by_email(email)
            if existing is None:
                raise
            return existing

    async def get_customer(self, customer_id: int) -> CustomerOut:
        async with self._uow_factory(readonly=True) as uow:
            customer = await uow.customer_repository.get_by_id(customer_id)
        if customer is None:
            raise CustomerNotFoundException(customer_id)
        return CustomerOut.model_validate(customer)

    async def _load_order_and_customer(self, order_id: int) -> tuple[Order, Customer]:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            customer = await uow.customer_repository.get_by_id(order.owner_id)
        if customer is None:
            raise CustomerNotFoundException(order.owner_id)
        if not customer.is_payment_ready():
            raise CustomerNotReadyException(customer.id)
        return order, customer

    # ----- checkout -----

    async def create_checkout_session(self, data: CreateCheckoutSessionIn) -> CheckoutSessionOut:
        order, customer = await self._load_order_and_customer(data.order_id)
        country = (data.country or customer.country or self._settings.checkout.default_country).upper()
        description = f"Payment for order {order.order_number}"

        customer_payload = drop_empty({
            "first_name": customer.first_name,
            "last_name": customer.last_name,
            "email": customer.email,
            "phone": build_phone(customer.phone),
            "document": build_document(customer.document),
            "billing_address": build_partial_address(
                order.billing_address or customer.billing_address or customer.address
            ),
            "shipping_address": build_partial_address(
                order.shipping_address or customer.shipping_address or customer.address
            ),
        })
        session = await self.gateway.create_checkout_session(
            CheckoutSessionRequest(
                country=country,
                amount=order.total_amount,
                currency=order.currency,
                customer_id=customer.gateway_customer_id,
                customer=customer_payload,
                merchant_order_id=order.order_number,
                payment_description=description,
                account_id=self._settings.gateway.account_id,
            )
        )

        expires_at = utcnow() + timedelta(minutes=self._settings.checkout.session_ttl_minutes)
        session_meta = {
            "checkout_session": session.checkout_session,
            "client_secret": session.client_secret,
            "expires_at": expires_at.isoformat(),
            "country": country,
        }
        async with self._uow_factory() as uow:
            payment = await uow.payment_repository.find_open_for_order(order.id)
            if payment is None:
                payment = Payment.new(
                    owner_id=order.owner_id,
                    order_id=order.id,
                    amount=order.total_amount,
                    currency=order.currency,
                    description=description,
                    metadata=session_meta,
                )
                payment = await uow.payment_repository.create(payment)
            else:
                payment.merge_metadata(session_meta)
                payment = await uow.payment_repository.update(payment)
            await self._attach_to_order(uow, order.id, payment.id)

        logger.info(
            "checkout_session_created",
            order_id=order.id,
            payment_id=payment.id,
            checkout_session=session.checkout_session,
        )
        return CheckoutSessionOut(
            checkout_session=session.checkout_session,
            client_secret=session.client_secret,
            payment_id=payment.id,
            expires_at=expires_at,
        )

    @staticmethod
    async def _attach_to_order(uow: AbstractUnitOfWork, order_id: int, payment_id: int) -> None:
        order = await uow.order_repository.get_by_id(order_id)
        if order is not None and order.payment_id != payment_id:
            order.attach_payment(payment_id)
            await uow.order_repository.update(order)

    # ----- payments -----

    async def initiate_payment(
        self,
        data: CreatePaymentIn,
        idempotency_key: Optional[str] = None,
    ) -> PaymentInitiationOut:
        """Create a payment at the gateway at most once per idempotency key."""
        order, _customer = await self._load_order_and_customer(data.order_id)
        key = _ensure_idempotency_key(idempotency_key, order, self.gateway.provider)
        log = logger.bind(order_id=order.id, idempotency_key=key)

        async with self._uow_factory(readonly=True) as uow:
            existing = await uow.transaction_repository.get_by_idempotency_key(key)
            if existing is not None:
                payment = await uow.payment_repository.get_by_id(existing.payment_id)
        if existing is not None:
            log.info("payment_create_replayed", transaction_id=existing.id)
            return self._initiation_out(existing, payment, key, replayed=True)

        log.info("payment_create_request", provider=self.gateway.provider, amount=str(order.total_amount))
        gateway_payment = await self.gateway.create_payment(
            GatewayPaymentRequest(
                merchant_order_id=order.order_number,
                description=f"Payment for order {order.order_number}",
                amount=order.total_amount,
                currency=order.currency,
                customer_session=data.customer_session,
                one_time_token=data.one_time_token,
                account_id=self._settings.gateway.account_id,
                idempotency_key=key,
            )
        )
        raw_status = gateway_payment.status or GatewayStatus.CREATED.value
        status = map_gateway_status(raw_status, context={"gateway_payment_id": gateway_payment.id})
        log.info("payment_create_response", gateway_payment_id=gateway_payment.id, status=raw_status)

        try:
            async with self._uow_factory() as uow:
                replay = await uow.transaction_repository.get_by_provider_transaction_id(gateway_payment.id)
                if replay is not None:
                    payment = await uow.payment_repository.get_by_id(replay.payment_id)
                    return self._initiation_out(replay, payment, key, replayed=True)

                payment = await uow.payment_repository.find_open_for_order(order.id)
                if payment is None:
                    payment = Payment.new(
                        owner_id=order.owner_id,
                        order_id=order.id,
                        amount=order.total_amount,
                        currency=order.currency,
                        description=f"Payment for order {order.order_number}",
                    )
                    payment = await uow.payment_repository.create(payment)
                payment.gateway_payment_id = gateway_payment.id
                payment.advance_status(status)
                payment.merge_metadata({"idempotency_key": key, "customer_session": data.customer_session})
                payment = await uow.payment_repository.update(payment)

                tx = await uow.transaction_repository.create(
                    Transaction.new(
                        payment_id=payment.id,
                        provider_transaction_id=gateway_payment.id,
                        amount=order.total_amount,
                        currency=order.currency,
                        status=status,
                        gateway_status=raw_status,
                        provider_response=gateway_payment.raw,
                        idempotency_key=key,
                    )
                )
                await self._attach_to_order(uow, order.id, payment.id)
        except DuplicateTransactionException:
            # A concurrent request with the same key or gateway id won the insert
            async with self._uow_factory(readonly=True) as uow:
                tx = await uow.transaction_repository.get_by_idempotency_key(key)
                if tx is None:
                    tx = await uow.transaction_repository.get_by_provider_transaction_id(gateway_payment.id)
                if tx is None:
                    raise
                payment = await uow.payment_repository.get_by_id(tx.payment_id)
            log.info("payment_create_replayed", transaction_id=tx.id)
            return self._initiation_out(tx, payment, key, replayed=True)

        log.info("payment_created", payment_id=payment.id, transaction_id=tx.id, status=status.value)
        return self._initiation_out(tx, payment, key, client_secret=gateway_payment.client_secret)

    @staticmethod
    def _initiation_out(
        tx: Transaction,
        payment: Optional[Payment],
        key: str,
        *,
        replayed: bool = False,
        client_secret: Optional[str] = None,
    ) -> PaymentInitiationOut:
        return PaymentInitiationOut(
            payment_id=tx.payment_id,
            transaction_id=tx.id,
            gateway_payment_id=tx.provider_transaction_id,
            status=(payment.status if payment is not None else tx.status).value,
            client_secret=client_secret,
            idempotency_key=tx.idempotency_key or key,
            replayed=replayed,
        )

    async def get_payment(self, payment_id: int) -> PaymentOut:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundException(payment_id)
        return PaymentOut.model_validate(payment)

    async def list_transactions(self, payment_id: int) -> List[TransactionOut]:
        async with self._uow_factory(readonly=True) as uow:
            payment = await uow.payment_repository.get_by_id(payment_id)
            if payment is None:
                raise PaymentNotFoundException(payment_id)
            transactions = await uow.transaction_repository.list_by_payment(payment_id)
        return [TransactionOut.model_validate(tx) for tx in transactions]

    async def get_transaction(self, transaction_id: int) -> TransactionOut:
        async with self._uow_factory(readonly=True) as uow:
            tx = await uow.transaction_repository.get_by_id(transaction_id)
        if tx is None:
            raise TransactionRecordNotFoundException(transaction_id)
        return TransactionOut.model_validate(tx)

    async def aclose(self) -> None:
        # Best-effort close underlying resources
        close = getattr(self.gateway, "aclose", None)
        if callable(close):
            await close()
