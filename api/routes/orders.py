"""
Order API routes.
"""
from typing import List

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_order_service
from application.dtos.payments import CreateOrderIn, OrderOut
from application.services.order_service import OrderApplicationService
from core.config import settings
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post("", summary="Create order", response_model=ApiResponse[OrderOut])
async def create_order(
    payload: CreateOrderIn,
    service: OrderApplicationService = Depends(get_order_service),
):
    """Totals are computed from the items; the client never sends them."""
    order = await service.create_order(payload)
    return success_response(data=order, message="Order created")


@router.get("", summary="List a customer's orders", response_model=ApiResponse[List[OrderOut]])
async def list_orders(
    customer_id: int = Query(..., description="Owner of the orders"),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: OrderApplicationService = Depends(get_order_service),
):
    orders = await service.list_orders(customer_id, skip=skip, limit=limit)
    return success_response(data=orders)


@router.get("/{order_id}", summary="Get order", response_model=ApiResponse[OrderOut])
async def get_order(
    order_id: int,
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.get_order(order_id)
    return success_response(data=order)


@router.post("/{order_id}/cancel", summary="Cancel order", response_model=ApiResponse[OrderOut])
async def cancel_order(
    order_id: int,
    service: OrderApplicationService = Depends(get_order_service),
):
    order = await service.cancel_order(order_id)
    return success_response(data=order, message="Order cancelled")
