# Campaign / Product Completion Monitor
#
# Two independent completion signals:
#   1. Delivery cascade: delivered quantity reaches a product's target ->
#      product inactive -> when every product of the campaign is closed, the
#      campaign completes. Runs when an order is delivered.
#   2. Progress: every collaboration of an active campaign reports 100%.
#      Surfaced to the brand, who completes the campaign explicitly.
# A brand may also end an active campaign early. All paths end in the same
# guarded active -> completed update, which also closes the remaining
# products, so re-running one without new data changes nothing.

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from database.commerce_models import Order, OrderItem, OrderStatusDB, Product, ProductStatusDB
from database.marketplace_models import Campaign, CampaignStatusDB, Collaboration, CollaborationStatusDB
from database.models import User
from services.collaboration_store import CollaborationStore
from services.errors import AccessDenied, NotFound, StateConflict
from services.notification_service import NotificationType
from services.task_dispatcher import PendingTasks

logger = logging.getLogger(__name__)

CLOSED_PRODUCT_STATES = [ProductStatusDB.INACTIVE, ProductStatusDB.OUT_OF_STOCK, ProductStatusDB.DISCONTINUED]


class CompletionMonitor:
    """Runs inside the caller's transaction; notifications go to `tasks`."""

    def __init__(self, db: Session, tasks: PendingTasks):
        self.db = db
        self.tasks = tasks

    # =========================================================================
    # DELIVERY CASCADE
    # =========================================================================

    def on_order_delivered(self, order: Order) -> List[str]:
        """Returns the ids of campaigns completed by this delivery."""
        completed = []
        product_ids = sorted({item.product_id for item in order.items})
        for product_id in product_ids:
            campaign_id = self.check_product(product_id)
            if campaign_id and self.check_campaign(campaign_id):
                completed.append(campaign_id)
        return completed

    def delivered_quantity(self, product_id: str) -> int:
        total = self.db.query(func.coalesce(func.sum(OrderItem.quantity), 0)).join(Order).filter(
            OrderItem.product_id == product_id,
            Order.status == OrderStatusDB.DELIVERED,
        ).scalar()
        return int(total or 0)

    def check_product(self, product_id: str) -> Optional[str]:
        """
        Close the product once its delivered quantity reaches the target.

        Returns the campaign id when the product is closed (now or earlier),
        so the campaign check can run; None otherwise.
        """
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            return None
        if product.status == ProductStatusDB.INACTIVE:
            return product.campaign_id
        if product.target_quantity is None:
            return None

        delivered = self.delivered_quantity(product_id)
        if delivered < product.target_quantity:
            return None

        updated = self.db.query(Product).filter(
            Product.id == product_id,
            Product.status.in_([ProductStatusDB.ACTIVE, ProductStatusDB.OUT_OF_STOCK]),
        ).update({"status": ProductStatusDB.INACTIVE}, synchronize_session="fetch")
        if updated:
            logger.info(f"Product {product_id} inactive: delivered {delivered}/{product.target_quantity}")
        return product.campaign_id

    def check_campaign(self, campaign_id: str) -> bool:
        """Complete an active campaign whose products are all closed. True if this call completed it."""
        open_products = self.db.query(Product).filter(
            Product.campaign_id == campaign_id,
            Product.status.notin_(CLOSED_PRODUCT_STATES),
        ).count()
        if open_products:
            return False
        if not self.db.query(Product.id).filter(Product.campaign_id == campaign_id).first():
            return False
        return self._complete(campaign_id, reason="All campaign products have sold out and been delivered")

    # =========================================================================
    # PROGRESS SIGNAL
    # =========================================================================

    def progress_completed_campaigns(self, brand_id: str) -> List[Campaign]:
        """Active campaigns of the brand whose live collaborations are all at 100%."""
        campaigns = self.db.query(Campaign).filter(
            Campaign.brand_id == brand_id,
            Campaign.status == CampaignStatusDB.ACTIVE,
        ).all()
        return [c for c in campaigns if self._all_collaborations_done(c.id)]

    def _all_collaborations_done(self, campaign_id: str) -> bool:
        progress = self.db.query(Collaboration.progress).filter(
            Collaboration.campaign_id == campaign_id,
            Collaboration.status.in_([CollaborationStatusDB.ACTIVE, CollaborationStatusDB.COMPLETED]),
        ).all()
        return bool(progress) and all(p >= 100 for (p,) in progress)

    def complete_from_progress(self, brand: User, campaign_id: str) -> Campaign:
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")
        if campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")
        if campaign.status == CampaignStatusDB.COMPLETED:
            return campaign
        if campaign.status != CampaignStatusDB.ACTIVE:
            raise StateConflict("Only active campaigns can be completed")
        if not self._all_collaborations_done(campaign_id):
            raise StateConflict("All collaborations must reach 100% progress first")

        self._complete(campaign_id, reason="All deliverables have been approved")
        self.db.refresh(campaign)
        return campaign

    def end_campaign(self, brand: User, campaign_id: str) -> Campaign:
        """Brand ends an active campaign early, whatever its progress."""
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")
        if campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")
        if campaign.status != CampaignStatusDB.ACTIVE:
            raise StateConflict("Campaign is not active or already completed")

        if not self._complete(campaign_id, reason="Ended by the brand", values={"end_date": datetime.utcnow()}):
            raise StateConflict("Campaign is not active or already completed")
        self.db.refresh(campaign)
        return campaign

    # =========================================================================
    # SHARED
    # =========================================================================

    def _complete(self, campaign_id: str, reason: str, values: Optional[dict] = None) -> bool:
        updated = self.db.query(Campaign).filter(
            Campaign.id == campaign_id,
            Campaign.status == CampaignStatusDB.ACTIVE,
        ).update({
            "status": CampaignStatusDB.COMPLETED,
            "completed_at": datetime.utcnow(),
            **(values or {}),
        }, synchronize_session="fetch")
        if not updated:
            return False

        CollaborationStore(self.db).mark_active_completed(campaign_id)
        self.db.query(Product).filter(
            Product.campaign_id == campaign_id,
            Product.status.in_([ProductStatusDB.ACTIVE, ProductStatusDB.OUT_OF_STOCK]),
        ).update({"status": ProductStatusDB.INACTIVE}, synchronize_session="fetch")

        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        logger.info(f"Campaign {campaign_id} completed: {reason}")
        self.tasks.notify(
            recipient_id=campaign.brand_id,
            recipient_type="brand",
            type=NotificationType.CAMPAIGN_COMPLETED.value,
            title="Campaign completed",
            body=f"{campaign.title} is complete. {reason}.",
            related_id=campaign_id,
            data={"campaign_id": campaign_id},
        )
        return True
