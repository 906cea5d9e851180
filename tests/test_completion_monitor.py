"""Product and campaign completion: delivery cascade and progress signal."""

import pytest

from database.commerce_models import Product, ProductStatusDB
from database.marketplace_models import (
    Campaign,
    CampaignStatusDB,
    Collaboration,
    CollaborationStatusDB,
    DeliverableStatusDB,
)
from services.checkout_service import CartLine, CheckoutService, CustomerInfo
from services.collaboration_store import CollaborationStore
from services.completion_monitor import CompletionMonitor
from services.errors import AccessDenied, StateConflict
from services.order_service import OrderService
from services.progress import recompute_progress
from services.task_dispatcher import SEND_NOTIFICATION, PendingTasks


def place_order(db, dispatcher, product, quantity):
    return CheckoutService(db, dispatcher).checkout(
        [CartLine(product_id=product.id, quantity=quantity)],
        CustomerInfo(name="Sam Buyer", email="sam@example.com"),
    )


def deliver(db, dispatcher, brand, order):
    service = OrderService(db, dispatcher)
    service.update_status(brand, order.id, "shipped")
    return service.update_status(brand, order.id, "delivered")


def state(db, campaign_id):
    db.expire_all()
    campaign = db.query(Campaign).filter(Campaign.id == campaign_id).one()
    products = db.query(Product).filter(Product.campaign_id == campaign_id).order_by(Product.id).all()
    return campaign.status, campaign.completed_at, [(p.id, p.status, p.sold_quantity) for p in products]


class TestDeliveryCascade:

    def test_last_unit_delivered_completes_product_and_campaign(self, db, dispatcher, brand, active_campaign, factory):
        product = factory.product(active_campaign, target=10)
        first = place_order(db, dispatcher, product, 9)
        last = place_order(db, dispatcher, product, 1)

        deliver(db, dispatcher, brand, first)
        db.refresh(product)
        assert product.status == ProductStatusDB.OUT_OF_STOCK
        db.refresh(active_campaign)
        assert active_campaign.status == CampaignStatusDB.ACTIVE

        deliver(db, dispatcher, brand, last)
        db.expire_all()
        assert db.query(Product).filter(Product.id == product.id).one().status == ProductStatusDB.INACTIVE
        campaign = db.query(Campaign).filter(Campaign.id == active_campaign.id).one()
        assert campaign.status == CampaignStatusDB.COMPLETED
        assert campaign.completed_at is not None

        completed = [n for n in dispatcher.of(SEND_NOTIFICATION) if n["type"] == "campaign_completed"]
        assert len(completed) == 1
        assert completed[0]["recipient_id"] == brand.id

    def test_campaign_waits_for_every_product(self, db, dispatcher, brand, active_campaign, factory):
        sold_out = factory.product(active_campaign, target=1)
        still_selling = factory.product(active_campaign, target=5)

        deliver(db, dispatcher, brand, place_order(db, dispatcher, sold_out, 1))
        assert state(db, active_campaign.id)[0] == CampaignStatusDB.ACTIVE

        db.query(Product).filter(Product.id == still_selling.id).update(
            {"status": ProductStatusDB.DISCONTINUED}, synchronize_session="fetch"
        )
        monitor = CompletionMonitor(db, PendingTasks(dispatcher))
        assert monitor.check_campaign(active_campaign.id) is True
        db.commit()
        assert state(db, active_campaign.id)[0] == CampaignStatusDB.COMPLETED

    def test_rerun_is_a_no_op(self, db, dispatcher, brand, active_campaign, factory):
        product = factory.product(active_campaign, target=2)
        order = deliver(db, dispatcher, brand, place_order(db, dispatcher, product, 2))
        before = state(db, active_campaign.id)
        sent_before = len(dispatcher.sent)

        tasks = PendingTasks(dispatcher)
        monitor = CompletionMonitor(db, tasks)
        assert monitor.on_order_delivered(order) == []
        db.commit()
        tasks.flush()

        assert state(db, active_campaign.id) == before
        assert len(dispatcher.sent) == sent_before

    def test_products_without_target_never_close(self, db, dispatcher, brand, active_campaign, factory):
        product = factory.product(active_campaign, stock=3)
        deliver(db, dispatcher, brand, place_order(db, dispatcher, product, 1))

        monitor = CompletionMonitor(db, PendingTasks(dispatcher))
        assert monitor.check_product(product.id) is None
        assert state(db, active_campaign.id)[0] == CampaignStatusDB.ACTIVE

    def test_delivered_quantity_ignores_undelivered_orders(self, db, dispatcher, brand, active_campaign, factory):
        product = factory.product(active_campaign, target=10)
        deliver(db, dispatcher, brand, place_order(db, dispatcher, product, 2))
        place_order(db, dispatcher, product, 3)

        assert CompletionMonitor(db, PendingTasks(dispatcher)).delivered_quantity(product.id) == 2

    def test_cancelled_campaign_is_not_completed(self, db, dispatcher, brand, active_campaign, factory):
        product = factory.product(active_campaign, target=1)
        order = place_order(db, dispatcher, product, 1)
        db.query(Campaign).filter(Campaign.id == active_campaign.id).update(
            {"status": CampaignStatusDB.CANCELLED}, synchronize_session="fetch"
        )
        db.commit()

        deliver(db, dispatcher, brand, order)
        assert state(db, active_campaign.id)[0] == CampaignStatusDB.CANCELLED


class TestProgressSignal:

    def _approve_all(self, db, collaboration):
        store = CollaborationStore(db)
        for deliverable in collaboration.deliverables:
            store.require_transition(deliverable.id, [DeliverableStatusDB.PENDING], DeliverableStatusDB.SUBMITTED)
            store.require_transition(deliverable.id, [DeliverableStatusDB.SUBMITTED], DeliverableStatusDB.APPROVED)
        recompute_progress(db, collaboration.id)
        db.commit()

    def test_lists_and_completes_campaign(self, db, dispatcher, brand, active_campaign, collaboration):
        tasks = PendingTasks(dispatcher)
        monitor = CompletionMonitor(db, tasks)
        assert monitor.progress_completed_campaigns(brand.id) == []

        self._approve_all(db, collaboration)
        assert [c.id for c in monitor.progress_completed_campaigns(brand.id)] == [active_campaign.id]

        campaign = monitor.complete_from_progress(brand, active_campaign.id)
        db.commit()
        tasks.flush()

        assert campaign.status == CampaignStatusDB.COMPLETED
        db.expire_all()
        assert db.query(Collaboration).filter(Collaboration.id == collaboration.id).one().status == CollaborationStatusDB.COMPLETED
        assert dispatcher.of(SEND_NOTIFICATION)[-1]["type"] == "campaign_completed"

        # completing again changes nothing
        sent = len(dispatcher.sent)
        assert monitor.complete_from_progress(brand, active_campaign.id).status == CampaignStatusDB.COMPLETED
        tasks.flush()
        assert len(dispatcher.sent) == sent

    def test_incomplete_collaboration_blocks(self, db, dispatcher, brand, active_campaign, collaboration):
        monitor = CompletionMonitor(db, PendingTasks(dispatcher))
        with pytest.raises(StateConflict, match="100% progress"):
            monitor.complete_from_progress(brand, active_campaign.id)

    def test_other_brand(self, db, dispatcher, factory, active_campaign, collaboration):
        monitor = CompletionMonitor(db, PendingTasks(dispatcher))
        with pytest.raises(AccessDenied):
            monitor.complete_from_progress(factory.brand(), active_campaign.id)

    def test_completion_takes_products_off_sale(self, db, dispatcher, brand, active_campaign, factory, collaboration):
        on_sale = factory.product(active_campaign, target=10)
        sold_out = factory.product(active_campaign, target=1)
        place_order(db, dispatcher, sold_out, 1)
        self._approve_all(db, collaboration)

        CompletionMonitor(db, PendingTasks(dispatcher)).complete_from_progress(brand, active_campaign.id)
        db.commit()

        statuses = {pid: status for pid, status, _ in state(db, active_campaign.id)[2]}
        assert statuses == {on_sale.id: ProductStatusDB.INACTIVE, sold_out.id: ProductStatusDB.INACTIVE}


class TestEndCampaign:

    def test_ends_campaign_with_open_work(self, db, dispatcher, brand, active_campaign, factory, collaboration):
        product = factory.product(active_campaign, target=10)
        discontinued = factory.product(active_campaign, target=10, status=ProductStatusDB.DISCONTINUED)
        tasks = PendingTasks(dispatcher)

        campaign = CompletionMonitor(db, tasks).end_campaign(brand, active_campaign.id)
        db.commit()
        tasks.flush()

        assert campaign.status == CampaignStatusDB.COMPLETED
        assert campaign.completed_at is not None
        assert campaign.end_date is not None
        status, _, products = state(db, active_campaign.id)
        assert status == CampaignStatusDB.COMPLETED
        assert {pid: s for pid, s, _ in products} == {
            product.id: ProductStatusDB.INACTIVE,
            discontinued.id: ProductStatusDB.DISCONTINUED,
        }
        # progress is irrelevant when the brand ends the campaign
        ended = db.query(Collaboration).filter(Collaboration.id == collaboration.id).one()
        assert ended.status == CollaborationStatusDB.COMPLETED
        assert ended.progress == 0
        assert dispatcher.of(SEND_NOTIFICATION)[-1]["type"] == "campaign_completed"

    def test_cannot_end_twice(self, db, dispatcher, brand, active_campaign):
        monitor = CompletionMonitor(db, PendingTasks(dispatcher))
        monitor.end_campaign(brand, active_campaign.id)
        db.commit()
        with pytest.raises(StateConflict, match="not active or already completed"):
            monitor.end_campaign(brand, active_campaign.id)

    def test_draft_campaign(self, db, dispatcher, brand, factory):
        draft = factory.campaign(brand, status=CampaignStatusDB.DRAFT)
        with pytest.raises(StateConflict):
            CompletionMonitor(db, PendingTasks(dispatcher)).end_campaign(brand, draft.id)

    def test_other_brand(self, db, dispatcher, factory, active_campaign):
        with pytest.raises(AccessDenied):
            CompletionMonitor(db, PendingTasks(dispatcher)).end_campaign(factory.brand(), active_campaign.id)
        assert state(db, active_campaign.id)[0] == CampaignStatusDB.ACTIVE
