# Side-effect tasks
# Queued after a primary write commits. Each one is safe to run more than
# once: notifications may duplicate, metrics and emails converge.

import logging
from typing import Optional

from config.app_config import SIDE_EFFECT_MAX_RETRIES, SIDE_EFFECT_RETRY_BACKOFF
from core.email_service import EmailService
from database.commerce_models import Order
from database.config import get_db_context
from services.metrics_service import recompute_campaign_metrics as rebuild_metrics
from services.notification_service import NotificationService
from services.task_dispatcher import RECOMPUTE_CAMPAIGN_METRICS, SEND_NOTIFICATION, SEND_ORDER_STATUS_EMAIL
from tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def _retry(task, exc: Exception):
    retries = task.request.retries
    if retries >= task.max_retries:
        logger.error(f"{task.name} gave up after {retries} retries: {exc}")
        raise exc
    countdown = SIDE_EFFECT_RETRY_BACKOFF * (2 ** retries)
    logger.warning(f"{task.name} failed ({exc}), retry {retries + 1} in {countdown}s")
    raise task.retry(exc=exc, countdown=countdown)


# ============================================================================
# TASK BODIES (take a session so they can run inside tests)
# ============================================================================

def deliver_notification(db, recipient_id: str, recipient_type: str, type: str, title: str, body: str,
                         related_id: Optional[str] = None, data: Optional[dict] = None):
    return NotificationService(db).notify(
        recipient_id=recipient_id,
        recipient_type=recipient_type,
        type=type,
        title=title,
        body=body,
        related_id=related_id,
        data=data,
    )


def email_order_status(db, order_id: str, status: str, email_service: Optional[EmailService] = None):
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        logger.warning(f"Order {order_id} not found, '{status}' email skipped")
        return None
    return (email_service or EmailService()).send_order_status_email(order, order.customer, status)


# ============================================================================
# CELERY TASKS
# ============================================================================

@celery_app.task(name=SEND_NOTIFICATION, bind=True, max_retries=SIDE_EFFECT_MAX_RETRIES)
def send_notification(self, recipient_id, recipient_type, type, title, body, related_id=None, data=None):
    try:
        with get_db_context() as db:
            deliver_notification(db, recipient_id, recipient_type, type, title, body, related_id, data)
    except Exception as e:
        _retry(self, e)


@celery_app.task(name=RECOMPUTE_CAMPAIGN_METRICS, bind=True, max_retries=SIDE_EFFECT_MAX_RETRIES)
def recompute_campaign_metrics(self, campaign_id):
    try:
        with get_db_context() as db:
            rebuild_metrics(db, campaign_id)
    except Exception as e:
        _retry(self, e)


@celery_app.task(name=SEND_ORDER_STATUS_EMAIL, bind=True, max_retries=SIDE_EFFECT_MAX_RETRIES)
def send_order_status_email(self, order_id, status):
    try:
        with get_db_context() as db:
            email_order_status(db, order_id, status)
    except Exception as e:
        _retry(self, e)
