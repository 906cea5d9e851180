# Checkout Router for the Campaign Storefront
# Guests and signed-in users buy campaign products, optionally through a referral code

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
import math

from database.config import get_db
from database.models import User
from schemas.commerce import (
    CheckoutRequest,
    CheckoutResponse,
    OrderResponse,
    QuoteLine,
    QuoteRequest,
    QuoteResponse,
)
from auth.dependencies import get_optional_current_user
from services.checkout_service import CartLine, CheckoutService, CustomerInfo
from services.task_dispatcher import TaskDispatcher, get_task_dispatcher

router = APIRouter(prefix="/api/checkout", tags=["Checkout"])


def _cart(items) -> list:
    return [CartLine(product_id=item.product_id, quantity=item.quantity) for item in items]


def _delivery_days(estimated: Optional[datetime]) -> int:
    if not estimated:
        return 0
    return max(0, math.ceil((estimated - datetime.utcnow()).total_seconds() / 86400))


@router.post("/quote", response_model=QuoteResponse)
async def quote_cart(
    request: QuoteRequest,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: Optional[User] = Depends(get_optional_current_user),
):
    """Validate the cart and price it without reserving stock."""
    quote = CheckoutService(db, dispatcher).quote(
        _cart(request.items),
        request.referral_code,
        current_user.id if current_user else None,
    )
    return QuoteResponse(
        items=[
            QuoteLine(
                product_id=line.product.id,
                name=line.product.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in quote.lines
        ],
        subtotal=quote.subtotal,
        shipping_cost=quote.shipping_cost,
        total_amount=quote.total_amount,
    )


@router.post("", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def checkout(
    request: CheckoutRequest,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: Optional[User] = Depends(get_optional_current_user),
):
    """
    Place an order.

    Stock is reserved atomically per product; the order, customer stats,
    campaign revenue and referral attribution commit together.
    """
    customer = CustomerInfo(
        name=request.customer.name,
        email=request.customer.email,
        phone=request.customer.phone,
        shipping_address=request.customer.shipping_address,
    )
    order = CheckoutService(db, dispatcher).checkout(
        _cart(request.items),
        customer,
        referral_code=request.referral_code,
        customer_user_id=current_user.id if current_user else None,
        payment_reference=request.payment_reference,
    )
    days = _delivery_days(order.estimated_delivery_date)
    return CheckoutResponse(
        order=OrderResponse.model_validate(order),
        message=f"Payment completed successfully! Order will be delivered in {days} days.",
    )
