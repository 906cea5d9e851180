# Checkout Attribution Engine
#
# One transaction per checkout: stock reservation, order + lines, customer
# upsert, campaign revenue and the attributed collaboration's counters.
# Stock is reserved with a conditional UPDATE so two buyers of the last unit
# cannot both succeed; the loser rolls back everything it wrote.

import logging
import random
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config.app_config import DEFAULT_DELIVERY_DAYS, SHIPPING_RATE, UPSERT_ATTEMPTS
from core.money import percent_of, round3, sum3, to_decimal
from database.commerce_models import (
    AttributionStatusDB,
    Customer,
    Order,
    OrderItem,
    OrderStatusDB,
    Product,
    ProductStatusDB,
)
from database.marketplace_models import Campaign, CampaignMetrics, CampaignStatusDB
from database.models import InfluencerProfile
from services.collaboration_store import CollaborationStore
from services.errors import InsufficientStock, StateConflict, ValidationError
from services.notification_service import NotificationType
from services.task_dispatcher import SEND_ORDER_STATUS_EMAIL, PendingTasks, TaskDispatcher

logger = logging.getLogger(__name__)


@dataclass
class CartLine:
    product_id: str
    quantity: int


@dataclass
class CustomerInfo:
    name: str
    email: str
    phone: Optional[str] = None
    shipping_address: Optional[dict] = None


@dataclass
class PricedLine:
    product: Product
    campaign: Campaign
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    commission_rate: Decimal = Decimal("0")


@dataclass
class Quote:
    lines: List[PricedLine]
    subtotal: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    influencer: Optional[InfluencerProfile] = None
    commission_amount: Decimal = Decimal("0")
    campaign_revenue: Dict[str, Decimal] = field(default_factory=dict)
    campaign_commission: Dict[str, Decimal] = field(default_factory=dict)


def generate_order_number() -> str:
    """Generate unique order number in format: ORD-YYYY-XXXXXX"""
    year = datetime.now().year
    random_part = ''.join([str(random.randint(0, 9)) for _ in range(6)])
    return f"ORD-{year}-{random_part}"


def compute_totals(line_totals: List[Decimal]) -> Dict[str, Decimal]:
    subtotal = sum3(line_totals)
    shipping = round3(subtotal * SHIPPING_RATE)
    return {
        "subtotal": subtotal,
        "shipping_cost": shipping,
        "total_amount": sum3([subtotal, shipping]),
    }


def compute_commission(line_totals_and_rates) -> Decimal:
    """round3 of sum(line_total * rate / 100). Summed exactly, rounded once, so line order is irrelevant."""
    raw = sum(
        (to_decimal(total) * to_decimal(rate) / Decimal(100) for total, rate in line_totals_and_rates),
        Decimal("0"),
    )
    return round3(raw)


class CheckoutService:
    def __init__(self, db: Session, dispatcher: TaskDispatcher):
        self.db = db
        self.tasks = PendingTasks(dispatcher)

    # =========================================================================
    # VALIDATION AND PRICING
    # =========================================================================

    def quote(
        self,
        cart: List[CartLine],
        referral_code: Optional[str] = None,
        customer_user_id: Optional[str] = None,
    ) -> Quote:
        """Validate the cart against current stock and price it. Writes nothing."""
        if not cart:
            raise ValidationError("Cart is empty")

        merged: "OrderedDict[str, int]" = OrderedDict()
        for line in cart:
            if line.quantity is None or line.quantity < 1:
                raise ValidationError("Quantity must be at least 1")
            merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity

        products = {
            p.id: p for p in self.db.query(Product).filter(Product.id.in_(list(merged.keys()))).all()
        }

        priced = []
        for product_id, quantity in merged.items():
            product = products.get(product_id)
            if not product or product.status != ProductStatusDB.ACTIVE:
                raise StateConflict("One or more products unavailable")
            campaign = product.campaign
            if not campaign or campaign.status != CampaignStatusDB.ACTIVE:
                raise StateConflict("One or more products unavailable")
            if quantity > product.available_stock:
                raise InsufficientStock(
                    f"Insufficient stock for {product.name}. Only {product.available_stock} left"
                )

            unit_price = round3(product.campaign_price)
            priced.append(PricedLine(
                product=product,
                campaign=campaign,
                quantity=quantity,
                unit_price=unit_price,
                line_total=round3(unit_price * quantity),
            ))

        totals = compute_totals([line.line_total for line in priced])
        quote = Quote(lines=priced, **totals)

        quote.influencer = self.resolve_attribution(referral_code, customer_user_id)
        for line in priced:
            quote.campaign_revenue[line.campaign.id] = sum3(
                [quote.campaign_revenue.get(line.campaign.id, Decimal("0")), line.line_total]
            )
            if quote.influencer is None:
                continue
            line.commission_rate = to_decimal(line.campaign.commission_rate or 0)

        if quote.influencer is not None:
            by_campaign: Dict[str, list] = {}
            for line in priced:
                by_campaign.setdefault(line.campaign.id, []).append((line.line_total, line.commission_rate))
            quote.campaign_commission = {cid: compute_commission(pairs) for cid, pairs in by_campaign.items()}
            quote.commission_amount = compute_commission(
                [(line.line_total, line.commission_rate) for line in priced]
            )

        return quote

    def resolve_attribution(self, referral_code: Optional[str], customer_user_id: Optional[str]) -> Optional[InfluencerProfile]:
        """The influencer owning the referral code, unless they are the buyer."""
        if not referral_code or not referral_code.strip():
            return None
        influencer = self.db.query(InfluencerProfile).filter(
            InfluencerProfile.referral_code == referral_code.strip().upper()
        ).first()
        if not influencer:
            logger.info(f"Referral code {referral_code!r} did not match an influencer")
            return None
        if customer_user_id and influencer.user_id == customer_user_id:
            logger.info(f"Self-referral by user {customer_user_id} ignored")
            return None
        return influencer

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    def checkout(
        self,
        cart: List[CartLine],
        customer: CustomerInfo,
        referral_code: Optional[str] = None,
        customer_user_id: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> Order:
        if not customer or not customer.name or not customer.email:
            raise ValidationError("Customer name and email are required")

        quote = self.quote(cart, referral_code, customer_user_id)
        now = datetime.utcnow()

        # Lock order: products by id, then customer, order, campaigns by id
        campaign_ids = sorted(quote.campaign_revenue)
        try:
            for line in sorted(quote.lines, key=lambda l: l.product.id):
                self._reserve_stock(line.product, line.quantity)

            items_bought = sum(line.quantity for line in quote.lines)
            customer_row = self._upsert_customer(customer, customer_user_id, quote.total_amount, items_bought, now)
            order = self._create_order(quote, customer, customer_row, customer_user_id, payment_reference, now)

            for campaign_id in campaign_ids:
                self._increment_campaign_revenue(campaign_id, quote.campaign_revenue[campaign_id])

            if quote.influencer is not None:
                store = CollaborationStore(self.db)
                for campaign_id in campaign_ids:
                    store.increment_attribution(
                        campaign_id,
                        quote.influencer.id,
                        revenue=quote.campaign_revenue[campaign_id],
                        commission=quote.campaign_commission.get(campaign_id, Decimal("0")),
                        conversions=1,
                    )

            self.db.commit()
        except Exception:
            self.db.rollback()
            self.tasks.discard()
            raise

        self.db.refresh(order)
        logger.info(
            f"Order {order.order_number} placed: total {order.total_amount}, "
            f"commission {order.commission_amount} to {order.influencer_id or 'nobody'}"
        )

        self.tasks.add(SEND_ORDER_STATUS_EMAIL, order_id=order.id, status=order.status.value)
        if quote.influencer is not None:
            self.tasks.notify(
                recipient_id=quote.influencer.user_id,
                recipient_type="influencer",
                type=NotificationType.ORDER_ATTRIBUTED.value,
                title="New referral sale",
                body=f"Order {order.order_number} earned you {order.commission_amount} in commission",
                related_id=order.id,
                data={"commission_amount": str(order.commission_amount)},
            )
        self.tasks.flush()
        return order

    def _reserve_stock(self, product: Product, quantity: int) -> None:
        if product.target_quantity is not None:
            updated = self.db.query(Product).filter(
                Product.id == product.id,
                Product.status == ProductStatusDB.ACTIVE,
                Product.sold_quantity + quantity <= Product.target_quantity,
            ).update({"sold_quantity": Product.sold_quantity + quantity}, synchronize_session="fetch")
        else:
            updated = self.db.query(Product).filter(
                Product.id == product.id,
                Product.status == ProductStatusDB.ACTIVE,
                Product.stock_quantity >= quantity,
            ).update({"stock_quantity": Product.stock_quantity - quantity}, synchronize_session="fetch")

        if not updated:
            logger.warning(f"Stock reservation of {quantity} x {product.id} lost to a concurrent checkout")
            raise InsufficientStock("Insufficient stock for some items")

        # Sold out: hide from the storefront. Delivery still decides when it turns inactive.
        if product.target_quantity is not None:
            self.db.query(Product).filter(
                Product.id == product.id,
                Product.status == ProductStatusDB.ACTIVE,
                Product.sold_quantity >= Product.target_quantity,
            ).update({"status": ProductStatusDB.OUT_OF_STOCK}, synchronize_session="fetch")
        else:
            self.db.query(Product).filter(
                Product.id == product.id,
                Product.status == ProductStatusDB.ACTIVE,
                Product.stock_quantity <= 0,
            ).update({"status": ProductStatusDB.OUT_OF_STOCK}, synchronize_session="fetch")

    def _upsert_customer(
        self,
        info: CustomerInfo,
        user_id: Optional[str],
        spent: Decimal,
        items_bought: int,
        now: datetime,
    ) -> Customer:
        """total_purchases counts items, not orders."""
        email = info.email.strip().lower()
        for _ in range(UPSERT_ATTEMPTS):
            values = {
                "name": info.name,
                "last_purchase_date": now,
                "total_purchases": Customer.total_purchases + items_bought,
                "total_spent": Customer.total_spent + spent,
            }
            if info.phone:
                values["phone"] = info.phone
            if user_id:
                values["user_id"] = user_id
            updated = self.db.query(Customer).filter(Customer.email == email).update(
                values, synchronize_session="fetch"
            )
            if updated:
                return self.db.query(Customer).filter(Customer.email == email).first()

            try:
                with self.db.begin_nested():
                    customer = Customer(
                        email=email,
                        name=info.name,
                        phone=info.phone,
                        user_id=user_id,
                        total_purchases=items_bought,
                        total_spent=spent,
                        last_purchase_date=now,
                    )
                    self.db.add(customer)
                    self.db.flush()
                return customer
            except IntegrityError:
                logger.warning(f"Concurrent customer insert for {email}, retrying as update")

        raise StateConflict("Could not record customer, please retry")

    def _build_order(
        self,
        quote: Quote,
        info: CustomerInfo,
        customer: Customer,
        customer_user_id: Optional[str],
        payment_reference: Optional[str],
        now: datetime,
        order_number: str,
    ) -> Order:
        delivery_days = max(
            (line.product.delivery_days or DEFAULT_DELIVERY_DAYS for line in quote.lines),
            default=DEFAULT_DELIVERY_DAYS,
        )
        attributed = quote.influencer is not None

        order = Order(
            order_number=order_number,
            customer_id=customer.id,
            customer_user_id=customer_user_id,
            customer_name=info.name,
            customer_email=info.email.strip().lower(),
            customer_phone=info.phone,
            shipping_address=info.shipping_address,
            subtotal=quote.subtotal,
            shipping_cost=quote.shipping_cost,
            total_amount=quote.total_amount,
            status=OrderStatusDB.PAID,
            status_history=[{
                "status": OrderStatusDB.PAID.value,
                "timestamp": now.isoformat(),
                "note": "Payment completed",
            }],
            payment_reference=payment_reference,
            influencer_id=quote.influencer.id if attributed else None,
            referral_code=quote.influencer.referral_code if attributed else None,
            commission_amount=quote.commission_amount,
            attribution_status=AttributionStatusDB.PENDING if attributed else None,
            estimated_delivery_date=now + timedelta(days=delivery_days),
        )
        for line in quote.lines:
            order.items.append(OrderItem(
                product_id=line.product.id,
                campaign_id=line.campaign.id,
                product_name=line.product.name,
                quantity=line.quantity,
                price_at_purchase=line.unit_price,
                subtotal=line.line_total,
                commission_rate=line.commission_rate,
                commission_amount=percent_of(line.line_total, line.commission_rate),
            ))
        return order

    def _create_order(
        self,
        quote: Quote,
        info: CustomerInfo,
        customer: Customer,
        customer_user_id: Optional[str],
        payment_reference: Optional[str],
        now: datetime,
    ) -> Order:
        """Insert the order under a fresh number, drawing again when the unique index rejects it."""
        for _ in range(UPSERT_ATTEMPTS):
            number = generate_order_number()
            order = self._build_order(quote, info, customer, customer_user_id, payment_reference, now, number)
            try:
                with self.db.begin_nested():
                    self.db.add(order)
                    self.db.flush()
                return order
            except IntegrityError:
                if not self.db.query(Order.id).filter(Order.order_number == number).first():
                    raise
                logger.warning(f"Order number {number} already taken, drawing another")
        raise StateConflict("Could not allocate an order number, please retry")

    def _increment_campaign_revenue(self, campaign_id: str, revenue: Decimal) -> None:
        for _ in range(UPSERT_ATTEMPTS):
            updated = self.db.query(CampaignMetrics).filter(CampaignMetrics.campaign_id == campaign_id).update(
                {
                    "revenue": CampaignMetrics.revenue + revenue,
                    "conversions": CampaignMetrics.conversions + 1,
                },
                synchronize_session="fetch",
            )
            if updated:
                return
            try:
                with self.db.begin_nested():
                    self.db.add(CampaignMetrics(campaign_id=campaign_id, revenue=revenue, conversions=1))
                    self.db.flush()
                return
            except IntegrityError:
                logger.warning(f"Concurrent metrics insert for campaign {campaign_id}, retrying as update")
        raise StateConflict("Could not record campaign revenue, please retry")

