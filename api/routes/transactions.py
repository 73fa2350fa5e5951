"""
Transaction API routes.
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_payment_service
from application.dtos.payments import TransactionOut
from application.services.payment_service import PaymentApplicationService
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("/{transaction_id}", summary="Get transaction", response_model=ApiResponse[TransactionOut])
async def get_transaction(
    transaction_id: int,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    transaction = await service.get_transaction(transaction_id)
    return success_response(data=transaction)
