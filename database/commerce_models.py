# Database Models for the Campaign Storefront
# Products sold through campaigns, customer orders and referral attribution

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text, JSON, Enum, Numeric, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from database.models import Base, generate_uuid


# ============================================================================
# ENUMS
# ============================================================================

class ProductStatusDB(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"


class OrderStatusDB(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class AttributionStatusDB(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


# ============================================================================
# PRODUCT
# ============================================================================

class Product(Base):
    """Product sold through a campaign.

    Campaign products are capped by target_quantity and count sales in
    sold_quantity. Products without a target fall back to stock_quantity.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("sold_quantity >= 0", name="ck_product_sold_non_negative"),
        CheckConstraint("stock_quantity >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint(
            "target_quantity IS NULL OR sold_quantity <= target_quantity",
            name="ck_product_sold_within_target",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    brand_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text)
    original_price = Column(Numeric(12, 3))
    campaign_price = Column(Numeric(12, 3), nullable=False)

    target_quantity = Column(Integer)
    sold_quantity = Column(Integer, nullable=False, default=0)
    stock_quantity = Column(Integer, nullable=False, default=0)
    delivery_days = Column(Integer)

    status = Column(Enum(ProductStatusDB, values_callable=lambda x: [e.value for e in x], name="productstatusdb"), nullable=False, default=ProductStatusDB.ACTIVE)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    campaign = relationship("Campaign", back_populates="products")

    @property
    def available_stock(self) -> int:
        if self.target_quantity is not None:
            return max(self.target_quantity - (self.sold_quantity or 0), 0)
        return self.stock_quantity or 0


# ============================================================================
# CUSTOMER
# ============================================================================

class Customer(Base):
    """Storefront buyer, keyed by email so guest and signed-in purchases merge."""
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))

    total_purchases = Column(Integer, nullable=False, default=0)
    total_spent = Column(Numeric(14, 3), nullable=False, default=0)
    last_purchase_date = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


# ============================================================================
# ORDER
# ============================================================================

class Order(Base):
    """Checkout transaction. Only status and status_history change after creation."""
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_number = Column(String(50), unique=True, nullable=False, index=True)

    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), index=True)
    customer_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50))
    shipping_address = Column(JSON)

    subtotal = Column(Numeric(14, 3), nullable=False)
    shipping_cost = Column(Numeric(14, 3), nullable=False, default=0)
    total_amount = Column(Numeric(14, 3), nullable=False)

    status = Column(Enum(OrderStatusDB, values_callable=lambda x: [e.value for e in x], name="orderstatusdb"), nullable=False, default=OrderStatusDB.PENDING)
    status_history = Column(JSON, nullable=False, default=list)  # [{"status", "timestamp", "note"}]
    payment_reference = Column(String(100))

    # Attribution
    influencer_id = Column(String(36), ForeignKey("influencer_profiles.id", ondelete="SET NULL"), index=True)
    referral_code = Column(String(32))
    commission_amount = Column(Numeric(14, 3), nullable=False, default=0)
    attribution_status = Column(Enum(AttributionStatusDB, values_callable=lambda x: [e.value for e in x], name="attributionstatusdb"))

    estimated_delivery_date = Column(DateTime)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    customer = relationship("Customer")
    influencer = relationship("InfluencerProfile")


class OrderItem(Base):
    """Line snapshot taken at checkout."""
    __tablename__ = "order_items"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False, index=True)
    campaign_id = Column(String(36), ForeignKey("campaigns.id"), nullable=False)

    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    price_at_purchase = Column(Numeric(12, 3), nullable=False)
    subtotal = Column(Numeric(14, 3), nullable=False)
    commission_rate = Column(Numeric(5, 2), nullable=False, default=0)
    commission_amount = Column(Numeric(14, 3), nullable=False, default=0)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
