# Pydantic Schemas for the Campaign Storefront

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class AttributionStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================

class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    original_price: Optional[Decimal] = Field(None, ge=0)
    campaign_price: Decimal = Field(..., gt=0)
    target_quantity: Optional[int] = Field(None, ge=1)
    stock_quantity: int = Field(0, ge=0)
    delivery_days: Optional[int] = Field(None, ge=1)


class ProductResponse(BaseModel):
    id: str
    campaign_id: str
    brand_id: str
    name: str
    description: Optional[str] = None
    original_price: Optional[Decimal] = None
    campaign_price: Decimal
    target_quantity: Optional[int] = None
    sold_quantity: int
    stock_quantity: int
    available_stock: int
    delivery_days: Optional[int] = None
    status: ProductStatus

    class Config:
        from_attributes = True


# ============================================================================
# CHECKOUT SCHEMAS
# ============================================================================

class CartItem(BaseModel):
    product_id: str
    quantity: int


class CustomerDetails(BaseModel):
    # Optional here so checkout can answer with its own message
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    shipping_address: Optional[dict] = None


class CheckoutRequest(BaseModel):
    items: List[CartItem] = []
    customer: CustomerDetails = CustomerDetails()
    referral_code: Optional[str] = Field(None, max_length=32)
    payment_reference: Optional[str] = None


class QuoteRequest(BaseModel):
    items: List[CartItem] = []
    referral_code: Optional[str] = Field(None, max_length=32)


class QuoteLine(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal


class QuoteResponse(BaseModel):
    items: List[QuoteLine]
    subtotal: Decimal
    shipping_cost: Decimal
    total_amount: Decimal


class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    campaign_id: str
    product_name: str
    quantity: int
    price_at_purchase: Decimal
    subtotal: Decimal

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    subtotal: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    status: OrderStatus
    status_history: List[dict] = []
    influencer_id: Optional[str] = None
    referral_code: Optional[str] = None
    commission_amount: Decimal
    attribution_status: Optional[AttributionStatus] = None
    estimated_delivery_date: Optional[datetime] = None
    items: List[OrderItemResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CheckoutResponse(BaseModel):
    order: OrderResponse
    message: str


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None
