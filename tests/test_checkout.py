"""Checkout pricing, attribution and stock reservation."""

import re
from decimal import Decimal

import pytest

from database.commerce_models import AttributionStatusDB, Customer, Order, OrderStatusDB, Product, ProductStatusDB
from database.marketplace_models import CampaignMetrics, CampaignStatusDB, Collaboration, CollaborationStatusDB
from services import checkout_service
from services.collaboration_store import CollaborationStore
from services.checkout_service import (
    CartLine,
    CheckoutService,
    CustomerInfo,
    compute_commission,
    compute_totals,
    generate_order_number,
)
from services.errors import InsufficientStock, StateConflict, ValidationError
from services.task_dispatcher import SEND_NOTIFICATION, SEND_ORDER_STATUS_EMAIL


BUYER = CustomerInfo(name="Sam Buyer", email="Sam@Example.com", phone="+254700000000")


class TestPricing:

    def test_totals_round_at_each_step(self):
        totals = compute_totals([Decimal("59.997")])
        assert totals == {
            "subtotal": Decimal("59.997"),
            "shipping_cost": Decimal("3.000"),
            "total_amount": Decimal("62.997"),
        }

    def test_commission_rounded_once(self):
        assert compute_commission([(Decimal("59.997"), Decimal("10"))]) == Decimal("6.000")

    def test_commission_independent_of_line_order(self):
        lines = [(Decimal("10.005"), Decimal("7.5")), (Decimal("3.333"), Decimal("12")), (Decimal("99.999"), Decimal("2.25"))]
        assert compute_commission(lines) == compute_commission(list(reversed(lines)))

    def test_order_number_format(self):
        assert re.fullmatch(r"ORD-\d{4}-\d{6}", generate_order_number())


class TestQuote:

    def test_empty_cart(self, db, dispatcher):
        with pytest.raises(ValidationError, match="Cart is empty"):
            CheckoutService(db, dispatcher).quote([])

    def test_inactive_product(self, db, dispatcher, factory, active_campaign):
        product = factory.product(active_campaign, target=5, status=ProductStatusDB.INACTIVE)
        with pytest.raises(StateConflict, match="One or more products unavailable"):
            CheckoutService(db, dispatcher).quote([CartLine(product.id, 1)])

    def test_campaign_must_be_active(self, db, dispatcher, factory, brand):
        draft = factory.campaign(brand, status=CampaignStatusDB.DRAFT)
        product = factory.product(draft, target=5)
        with pytest.raises(StateConflict, match="One or more products unavailable"):
            CheckoutService(db, dispatcher).quote([CartLine(product.id, 1)])

    def test_quantity_above_available_stock(self, db, dispatcher, factory, active_campaign):
        product = factory.product(active_campaign, target=2)
        with pytest.raises(InsufficientStock, match=rf"Insufficient stock for {product.name}\. Only 2 left"):
            CheckoutService(db, dispatcher).quote([CartLine(product.id, 3)])

    def test_quantity_must_be_positive(self, db, dispatcher, factory, active_campaign):
        product = factory.product(active_campaign, target=2)
        with pytest.raises(ValidationError):
            CheckoutService(db, dispatcher).quote([CartLine(product.id, 0)])


class TestCheckout:

    def test_attributed_checkout(self, db, dispatcher, active_campaign, factory, influencer):
        product = factory.product(active_campaign, price=Decimal("19.999"), target=10, delivery_days=3)

        order = CheckoutService(db, dispatcher).checkout(
            [CartLine(product.id, 3)], BUYER, referral_code="jane10", payment_reference="PAY-1"
        )

        assert order.subtotal == Decimal("59.997")
        assert order.shipping_cost == Decimal("3.000")
        assert order.total_amount == Decimal("62.997")
        assert order.commission_amount == Decimal("6.000")
        assert order.influencer_id == influencer.id
        assert order.referral_code == "JANE10"
        assert order.attribution_status == AttributionStatusDB.PENDING
        assert order.status == OrderStatusDB.PAID
        assert order.status_history[0]["status"] == "paid"
        assert order.customer_email == "sam@example.com"
        assert (order.estimated_delivery_date - order.created_at).days in (2, 3)

        item = order.items[0]
        assert item.price_at_purchase == Decimal("19.999")
        assert item.subtotal == Decimal("59.997")
        assert item.commission_amount == Decimal("6.000")

        db.refresh(product)
        assert product.sold_quantity == 3

        metrics = db.query(CampaignMetrics).filter(CampaignMetrics.campaign_id == active_campaign.id).one()
        assert metrics.revenue == Decimal("59.997")
        assert metrics.conversions == 1

        # the influencer never joined; the sale creates their collaboration
        collaboration = db.query(Collaboration).filter(
            Collaboration.campaign_id == active_campaign.id,
            Collaboration.influencer_id == influencer.id,
        ).one()
        assert collaboration.status == CollaborationStatusDB.ACTIVE
        assert collaboration.revenue == Decimal("59.997")
        assert collaboration.commission_earned == Decimal("6.000")
        assert collaboration.conversions == 1

        assert dispatcher.of(SEND_ORDER_STATUS_EMAIL) == [{"order_id": order.id, "status": "paid"}]
        notice = dispatcher.of(SEND_NOTIFICATION)[0]
        assert notice["recipient_id"] == influencer.user_id
        assert notice["type"] == "order_attributed"

    def test_existing_collaboration_is_incremented(self, db, dispatcher, active_campaign, factory, influencer, collaboration):
        product = factory.product(active_campaign, price=Decimal("10"), target=10)
        service = CheckoutService(db, dispatcher)
        service.checkout([CartLine(product.id, 1)], BUYER, referral_code="JANE10")
        service.checkout([CartLine(product.id, 2)], BUYER, referral_code="JANE10")

        db.refresh(collaboration)
        assert collaboration.revenue == Decimal("30.000")
        assert collaboration.commission_earned == Decimal("3.000")
        assert collaboration.conversions == 2
        assert db.query(Collaboration).count() == 1

    def test_cancelled_collaboration_still_receives_revenue(self, db, dispatcher, active_campaign, factory, influencer):
        cancelled = factory.collaboration(active_campaign, influencer, status=CollaborationStatusDB.REQUEST, seed=False)
        assert CollaborationStore(db).set_status(
            cancelled.id, [CollaborationStatusDB.REQUEST], CollaborationStatusDB.CANCELLED
        )
        db.commit()

        product = factory.product(active_campaign, price=Decimal("10"), target=10)
        CheckoutService(db, dispatcher).checkout([CartLine(product.id, 1)], BUYER, referral_code="JANE10")

        db.expire_all()
        assert db.query(Collaboration).count() == 1
        collaboration = db.query(Collaboration).one()
        assert collaboration.id == cancelled.id
        assert collaboration.status == CollaborationStatusDB.CANCELLED
        assert collaboration.revenue == Decimal("10.000")
        assert collaboration.conversions == 1

    def test_rows_are_locked_in_id_order(self, db, dispatcher, active_campaign, factory, monkeypatch):
        products = [factory.product(active_campaign, target=10) for _ in range(3)]
        cart = [CartLine(p.id, 1) for p in sorted(products, key=lambda p: p.id, reverse=True)]
        service = CheckoutService(db, dispatcher)

        reserved = []
        reserve = service._reserve_stock

        def recording_reserve(product, quantity):
            reserved.append(product.id)
            reserve(product, quantity)

        monkeypatch.setattr(service, "_reserve_stock", recording_reserve)
        service.checkout(cart, BUYER)

        assert reserved == sorted(p.id for p in products)

    def test_order_number_collision_draws_again(self, db, dispatcher, active_campaign, factory, monkeypatch):
        product = factory.product(active_campaign, target=10)
        service = CheckoutService(db, dispatcher)
        first = service.checkout([CartLine(product.id, 1)], BUYER)

        numbers = iter([first.order_number, "ORD-2026-000001"])
        monkeypatch.setattr(checkout_service, "generate_order_number", lambda: next(numbers))
        second = service.checkout([CartLine(product.id, 1)], BUYER)

        assert second.order_number == "ORD-2026-000001"
        assert db.query(Order).count() == 2
        assert len(second.items) == 1
        db.refresh(product)
        assert product.sold_quantity == 2

    def test_self_referral_is_not_attributed(self, db, dispatcher, active_campaign, factory, influencer):
        product = factory.product(active_campaign, target=10)
        order = CheckoutService(db, dispatcher).checkout(
            [CartLine(product.id, 1)], BUYER, referral_code="JANE10", customer_user_id=influencer.user_id
        )

        assert order.influencer_id is None
        assert order.commission_amount == Decimal("0")
        assert order.attribution_status is None
        assert db.query(Collaboration).count() == 0
        assert dispatcher.of(SEND_NOTIFICATION) == []

    def test_unknown_referral_code(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, target=10)
        order = CheckoutService(db, dispatcher).checkout([CartLine(product.id, 1)], BUYER, referral_code="NOPE")
        assert order.influencer_id is None

    def test_customer_details_required(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, target=10)
        with pytest.raises(ValidationError, match="Customer name and email are required"):
            CheckoutService(db, dispatcher).checkout([CartLine(product.id, 1)], CustomerInfo(name="", email=""))

    def test_customer_record_accumulates(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, price=Decimal("10"), target=10)
        service = CheckoutService(db, dispatcher)
        service.checkout([CartLine(product.id, 1)], BUYER)
        service.checkout([CartLine(product.id, 1)], CustomerInfo(name="Sam B.", email="sam@example.com"))

        customer = db.query(Customer).one()
        assert customer.email == "sam@example.com"
        assert customer.total_purchases == 2
        assert customer.total_spent == Decimal("21.000")
        assert customer.name == "Sam B."

    def test_customer_purchases_count_items(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, price=Decimal("10"), target=10)
        other = factory.product(active_campaign, price=Decimal("5"), target=10)
        service = CheckoutService(db, dispatcher)
        service.checkout([CartLine(product.id, 3)], BUYER)
        service.checkout([CartLine(product.id, 1), CartLine(other.id, 2)], BUYER)

        assert db.query(Customer).one().total_purchases == 6

    def test_selling_the_target_marks_product_out_of_stock(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, target=2)
        CheckoutService(db, dispatcher).checkout([CartLine(product.id, 2)], BUYER)

        db.refresh(product)
        assert product.sold_quantity == 2
        assert product.status == ProductStatusDB.OUT_OF_STOCK

    def test_plain_stock_is_decremented(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, stock=5)
        CheckoutService(db, dispatcher).checkout([CartLine(product.id, 2)], BUYER)
        db.refresh(product)
        assert product.stock_quantity == 3
        assert product.status == ProductStatusDB.ACTIVE

    def test_duplicate_cart_lines_are_merged(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, target=3)
        with pytest.raises(InsufficientStock):
            CheckoutService(db, dispatcher).checkout([CartLine(product.id, 2), CartLine(product.id, 2)], BUYER)


class TestOversell:

    def test_two_buyers_of_the_last_unit(self, db, other_session, dispatcher, active_campaign, factory, monkeypatch):
        product = factory.product(active_campaign, target=1)
        cart = [CartLine(product.id, 1)]
        db.commit()  # both sessions share one SQLite connection

        late = CheckoutService(other_session, dispatcher)
        stale_quote = late.quote(cart)  # both buyers see one unit left
        other_session.rollback()

        CheckoutService(db, dispatcher).checkout(cart, BUYER)
        db.commit()

        monkeypatch.setattr(late, "quote", lambda *args, **kwargs: stale_quote)
        with pytest.raises(InsufficientStock, match="Insufficient stock for some items"):
            late.checkout(cart, CustomerInfo(name="Alex", email="alex@example.com"))

        db.expire_all()
        assert db.query(Product).filter(Product.id == product.id).one().sold_quantity == 1
        assert db.query(Order).count() == 1
        assert db.query(Customer).filter(Customer.email == "alex@example.com").count() == 0

    def test_sold_never_exceeds_target(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, target=5)
        service = CheckoutService(db, dispatcher)
        for quantity in (2, 2, 2, 1, 1):
            try:
                service.checkout([CartLine(product.id, quantity)], BUYER)
            except (InsufficientStock, StateConflict):
                pass
            db.expire_all()
            current = db.query(Product).filter(Product.id == product.id).one()
            assert current.sold_quantity <= current.target_quantity
        assert current.sold_quantity == 5
