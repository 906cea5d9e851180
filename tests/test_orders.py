"""Brand-side order management."""

import pytest

from database.commerce_models import AttributionStatusDB, OrderStatusDB
from database.models import UserType
from services.checkout_service import CartLine, CheckoutService, CustomerInfo
from services.errors import AccessDenied, NotFound, StateConflict, ValidationError
from services.order_service import OrderService
from services.task_dispatcher import SEND_ORDER_STATUS_EMAIL


@pytest.fixture
def order(db, dispatcher, active_campaign, factory, influencer):
    product = factory.product(active_campaign, target=10)
    buyer = factory.user(UserType.CUSTOMER)
    return CheckoutService(db, dispatcher).checkout(
        [CartLine(product.id, 2)],
        CustomerInfo(name="Sam Buyer", email="sam@example.com"),
        referral_code="JANE10",
        customer_user_id=buyer.id,
    )


@pytest.fixture
def orders(db, dispatcher):
    return OrderService(db, dispatcher)


class TestStatusUpdates:

    def test_ship_then_deliver(self, orders, order, brand, dispatcher):
        orders.update_status(brand, order.id, "shipped", note="DHL 123")
        updated = orders.update_status(brand, order.id, "delivered")

        assert updated.status == OrderStatusDB.DELIVERED
        assert [entry["status"] for entry in updated.status_history] == ["paid", "shipped", "delivered"]
        assert updated.status_history[1]["note"] == "DHL 123"
        assert dispatcher.of(SEND_ORDER_STATUS_EMAIL)[-2:] == [
            {"order_id": order.id, "status": "shipped"},
            {"order_id": order.id, "status": "delivered"},
        ]

    def test_backwards_transition_rejected(self, orders, order, brand):
        orders.update_status(brand, order.id, "shipped")
        orders.update_status(brand, order.id, "delivered")
        with pytest.raises(StateConflict, match="Cannot change order status from 'delivered' to 'paid'"):
            orders.update_status(brand, order.id, "paid")

    def test_cannot_cancel_after_shipping(self, orders, order, brand):
        orders.update_status(brand, order.id, "shipped")
        with pytest.raises(StateConflict):
            orders.update_status(brand, order.id, "cancelled")

    def test_cancel_voids_attribution(self, orders, order, brand, db):
        assert order.attribution_status == AttributionStatusDB.PENDING
        cancelled = orders.update_status(brand, order.id, "cancelled", note="Customer request")

        assert cancelled.status == OrderStatusDB.CANCELLED
        assert cancelled.attribution_status == AttributionStatusDB.CANCELLED
        product = cancelled.items[0].product
        db.refresh(product)
        assert product.sold_quantity == 2

    def test_unknown_status(self, orders, order, brand):
        with pytest.raises(ValidationError, match="Invalid order status: lost"):
            orders.update_status(brand, order.id, "lost")

    def test_other_brand_denied(self, orders, order, factory, dispatcher):
        stranger = factory.brand()
        sent = len(dispatcher.sent)
        with pytest.raises(AccessDenied):
            orders.update_status(stranger, order.id, "shipped")
        assert len(dispatcher.sent) == sent

    def test_missing_order(self, orders, brand):
        with pytest.raises(NotFound, match="Order not found"):
            orders.update_status(brand, "missing", "shipped")


class TestQueries:

    def test_brand_sees_its_orders(self, orders, order, brand, factory):
        assert [o.id for o in orders.list_for_brand(brand.id)] == [order.id]
        assert orders.list_for_brand(brand.id, status=OrderStatusDB.SHIPPED) == []
        assert orders.list_for_brand(factory.brand().id) == []

    def test_customer_sees_own_orders(self, db, dispatcher, orders, active_campaign, factory):
        buyer = factory.user(UserType.INFLUENCER)
        product = factory.product(active_campaign, target=10)
        placed = CheckoutService(db, dispatcher).checkout(
            [CartLine(product.id, 1)],
            CustomerInfo(name=buyer.name, email=buyer.email),
            customer_user_id=buyer.id,
        )

        assert [o.id for o in orders.list_for_customer(buyer.id)] == [placed.id]
        assert orders.get_order(buyer, placed.id).id == placed.id

    def test_get_order_access(self, orders, order, brand, factory):
        assert orders.get_order(brand, order.id).id == order.id
        with pytest.raises(AccessDenied):
            orders.get_order(factory.brand(), order.id)
        with pytest.raises(NotFound):
            orders.get_order(brand, "missing")
