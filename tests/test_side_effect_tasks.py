"""Post-commit side effects: dispatch, notifications, order emails."""

import logging

import pytest
import requests

from core.email_service import EmailDeliveryError, EmailService
from database.models import Notification
from services.checkout_service import CartLine, CheckoutService, CustomerInfo
from services.task_dispatcher import SEND_NOTIFICATION, PendingTasks, TaskDispatcher
from tasks.side_effects import deliver_notification, email_order_status


class BrokenBroker:
    def send_task(self, name, kwargs=None):
        raise ConnectionError("broker unreachable")


class RecordingBroker:
    def __init__(self):
        self.sent = []

    def send_task(self, name, kwargs=None):
        self.sent.append((name, kwargs))


class RecordingEmailService(EmailService):
    def __init__(self):
        super().__init__(api_url="https://mail.test/send", api_key="key", sender="shop@example.com")
        self.payloads = []

    def _send(self, payload):
        self.payloads.append(payload)
        return {"id": "msg-1"}


class TestDispatch:

    def test_tasks_go_to_the_broker(self):
        broker = RecordingBroker()
        TaskDispatcher(celery_app=broker).dispatch(SEND_NOTIFICATION, recipient_id="u1")
        assert broker.sent == [(SEND_NOTIFICATION, {"recipient_id": "u1"})]

    def test_broker_failure_is_logged_not_raised(self, caplog):
        with caplog.at_level(logging.ERROR):
            TaskDispatcher(celery_app=BrokenBroker()).dispatch(SEND_NOTIFICATION, recipient_id="u1")
        assert "Failed to dispatch" in caplog.text

    def test_pending_tasks_wait_for_flush(self, dispatcher):
        pending = PendingTasks(dispatcher)
        pending.notify("u1", "brand", "system", "Hello", "World")
        assert dispatcher.sent == []

        pending.flush()
        assert dispatcher.names() == [SEND_NOTIFICATION]
        pending.flush()
        assert len(dispatcher.sent) == 1

    def test_discarded_tasks_are_never_sent(self, dispatcher):
        pending = PendingTasks(dispatcher)
        pending.notify("u1", "brand", "system", "Hello", "World")
        pending.discard()
        pending.flush()
        assert dispatcher.sent == []


class TestNotificationTask:

    def test_creates_notification(self, db, brand):
        deliver_notification(db, brand.id, "brand", "application_received", "New application", "Jane applied",
                             related_id="c1", data={"campaign_id": "c1"})
        db.commit()

        row = db.query(Notification).one()
        assert row.user_id == brand.id
        assert row.type == "application_received"
        assert row.message == "Jane applied"
        assert row.data == {"campaign_id": "c1"}
        assert row.read is False

    def test_unknown_type_stored_as_system(self, db, brand):
        deliver_notification(db, brand.id, "brand", "mystery", "Hi", "There")
        assert db.query(Notification).one().type == "system"


class TestOrderEmailTask:

    @pytest.fixture
    def order(self, db, dispatcher, active_campaign, factory):
        product = factory.product(active_campaign, target=5, delivery_days=2)
        return CheckoutService(db, dispatcher).checkout(
            [CartLine(product.id, 1)], CustomerInfo(name="Sam Buyer", email="sam@example.com")
        )

    def test_sends_status_email(self, db, order):
        mailer = RecordingEmailService()
        assert email_order_status(db, order.id, "shipped", email_service=mailer) == {"id": "msg-1"}

        [payload] = mailer.payloads
        assert payload["to"] == "sam@example.com"
        assert payload["subject"] == f"Order {order.order_number} has shipped"
        assert "Estimated delivery" in payload["text"]

    def test_missing_order_is_skipped(self, db):
        assert email_order_status(db, "missing", "paid", email_service=RecordingEmailService()) is None

    def test_disabled_without_api_key(self, db, order):
        assert EmailService(api_url="https://mail.test/send", api_key="").send_order_status_email(order, None, "paid") is None

    def test_api_errors_surface_for_retry(self, order, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr(requests, "post", refuse)
        with pytest.raises(EmailDeliveryError):
            EmailService(api_url="https://mail.test/send", api_key="key").send_order_status_email(order, order.customer, "paid")
