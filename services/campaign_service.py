# Campaign management for brands: campaigns, deliverable templates, products

import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from core.money import round3, to_decimal
from database.commerce_models import Product, ProductStatusDB
from database.marketplace_models import Campaign, CampaignDeliverableTemplate, CampaignStatusDB
from database.models import User
from services.errors import AccessDenied, NotFound, StateConflict, ValidationError
from services.state_machine import CAMPAIGN_TRANSITIONS, ensure_transition

logger = logging.getLogger(__name__)

# completed is reached through the completion checks only
BRAND_SETTABLE_STATUSES = {CampaignStatusDB.ACTIVE, CampaignStatusDB.CANCELLED}


def validate_commission_rate(rate) -> Decimal:
    rate = to_decimal(rate if rate is not None else 0)
    if rate < 0 or rate > 100:
        raise ValidationError("Commission rate must be between 0 and 100")
    return rate


class CampaignService:
    def __init__(self, db: Session):
        self.db = db

    def get_campaign(self, campaign_id: str) -> Campaign:
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")
        return campaign

    def get_owned(self, brand: User, campaign_id: str) -> Campaign:
        campaign = self.get_campaign(campaign_id)
        if campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")
        return campaign

    def list_for_brand(self, brand_id: str, status: Optional[CampaignStatusDB] = None) -> List[Campaign]:
        query = self.db.query(Campaign).filter(Campaign.brand_id == brand_id)
        if status:
            query = query.filter(Campaign.status == status)
        return query.order_by(Campaign.created_at.desc()).all()

    def create_campaign(self, brand: User, data: Dict[str, Any]) -> Campaign:
        if not data.get("title"):
            raise ValidationError("Campaign title is required")
        start, end = data.get("start_date"), data.get("end_date")
        if start and end and end < start:
            raise ValidationError("Campaign end date must be after its start date")

        campaign = Campaign(
            brand_id=brand.id,
            title=data["title"],
            description=data.get("description"),
            status=CampaignStatusDB(data.get("status") or CampaignStatusDB.DRAFT.value),
            budget=round3(data.get("budget") or 0),
            commission_rate=validate_commission_rate(data.get("commission_rate")),
            start_date=start,
            end_date=end,
            required_channels=data.get("required_channels") or [],
            min_followers=data.get("min_followers") or 0,
        )
        for position, template in enumerate(data.get("deliverables") or []):
            campaign.deliverable_templates.append(CampaignDeliverableTemplate(
                position=position,
                platform=template["platform"],
                task_description=template.get("task_description"),
                num_posts=template.get("num_posts") or 0,
                num_reels=template.get("num_reels") or 0,
                num_videos=template.get("num_videos") or 0,
                due_date=template.get("due_date"),
            ))

        try:
            self.db.add(campaign)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(campaign)
        logger.info(f"Campaign {campaign.id} created by brand {brand.id}")
        return campaign

    def add_product(self, brand: User, campaign_id: str, data: Dict[str, Any]) -> Product:
        campaign = self.get_owned(brand, campaign_id)
        if campaign.status in (CampaignStatusDB.COMPLETED, CampaignStatusDB.CANCELLED):
            raise StateConflict("Cannot add products to a closed campaign")

        price = data.get("campaign_price")
        if price is None or to_decimal(price) <= 0:
            raise ValidationError("Campaign price must be greater than 0")
        target = data.get("target_quantity")
        if target is not None and target < 1:
            raise ValidationError("Target quantity must be at least 1")

        product = Product(
            campaign_id=campaign.id,
            brand_id=brand.id,
            name=data["name"],
            description=data.get("description"),
            original_price=round3(data["original_price"]) if data.get("original_price") is not None else None,
            campaign_price=round3(price),
            target_quantity=target,
            sold_quantity=0,
            stock_quantity=data.get("stock_quantity") or 0,
            delivery_days=data.get("delivery_days"),
            status=ProductStatusDB.ACTIVE,
        )
        try:
            self.db.add(product)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(product)
        return product

    def change_status(self, brand: User, campaign_id: str, new_status: str) -> Campaign:
        campaign = self.get_owned(brand, campaign_id)
        try:
            target = CampaignStatusDB(new_status)
        except ValueError:
            raise ValidationError(f"Invalid campaign status: {new_status}")
        if target not in BRAND_SETTABLE_STATUSES:
            raise ValidationError("Campaigns can only be activated or cancelled directly")

        current = campaign.status
        ensure_transition(current, target, CAMPAIGN_TRANSITIONS, "campaign status")

        try:
            updated = self.db.query(Campaign).filter(
                Campaign.id == campaign_id,
                Campaign.status == current,
            ).update({"status": target}, synchronize_session="fetch")
            if not updated:
                raise StateConflict("Campaign was updated by another request, please reload")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(campaign)
        logger.info(f"Campaign {campaign_id}: {current.value} -> {target.value}")
        return campaign
