# Orders Router for the Campaign Storefront
# Order lookup and brand-driven status changes (shipping, delivery, cancellation)

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from database.config import get_db
from database.models import User
from database.commerce_models import OrderStatusDB
from schemas.commerce import OrderResponse, OrderStatus, OrderStatusUpdate
from auth.dependencies import get_current_user
from auth.roles import Permission
from auth.decorators import require_permission
from services.order_service import OrderService
from services.task_dispatcher import TaskDispatcher, get_task_dispatcher

router = APIRouter(prefix="/api/orders", tags=["Orders"])


@router.get("/my-orders", response_model=List[OrderResponse])
async def get_my_orders(
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.VIEW_OWN_ORDERS)),
):
    """Orders placed by the signed-in customer."""
    return OrderService(db, dispatcher).list_for_customer(current_user.id)


@router.get("/brand/orders", response_model=List[OrderResponse])
async def get_brand_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.MANAGE_ORDERS)),
):
    """Orders containing the brand's products."""
    status_db = OrderStatusDB(status_filter.value) if status_filter else None
    return OrderService(db, dispatcher).list_for_brand(current_user.id, status_db, page, limit)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order_details(
    order_id: str,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(get_current_user),
):
    """Get order details. Only the buyer, the selling brand or an admin can view."""
    return OrderService(db, dispatcher).get_order(current_user, order_id)


# ============================================================================
# ORDER STATUS UPDATES
# ============================================================================

@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.MANAGE_ORDERS)),
):
    """
    Move an order along paid -> shipped -> delivered, or cancel it.
    Delivery may complete products and campaigns whose targets are met.
    """
    return OrderService(db, dispatcher).update_status(
        current_user, order_id, request.status.value, request.note
    )
