"""
Customer API routes.
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_payment_service
from application.dtos.payments import CreateCustomerIn, CreateCustomerOut, CustomerOut
from application.services.payment_service import PaymentApplicationService
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/customers", tags=["Customers"])


@router.post("", summary="Create customer", response_model=ApiResponse[CreateCustomerOut])
async def create_customer(
    payload: CreateCustomerIn,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    """
    Register the customer at the gateway.

    Idempotent by email: a customer that already has a gateway id is returned
    unchanged with ``created = false``.
    """
    result = await service.create_customer(payload)
    message = "Customer created" if result.created else "Customer already exists"
    return success_response(data=result, message=message)


@router.get("/{customer_id}", summary="Get customer", response_model=ApiResponse[CustomerOut])
async def get_customer(
    customer_id: int,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    customer = await service.get_customer(customer_id)
    return success_response(data=customer)
