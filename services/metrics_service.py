# Campaign metrics recompute
# Revenue and conversions are incremented at checkout; everything else here is
# rebuilt from collaborations and published content.

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database.marketplace_models import (
    Campaign,
    CampaignContent,
    CampaignMetrics,
    Collaboration,
    CollaborationStatusDB,
    ContentStatusDB,
)

logger = logging.getLogger(__name__)


def recompute_campaign_metrics(db: Session, campaign_id: str) -> Optional[CampaignMetrics]:
    """Rebuild progress, reach, clicks and engagement for a campaign. Flushes, caller commits."""
    if not db.query(Campaign.id).filter(Campaign.id == campaign_id).first():
        logger.warning(f"Metrics recompute skipped, campaign {campaign_id} no longer exists")
        return None

    live = [CollaborationStatusDB.ACTIVE, CollaborationStatusDB.COMPLETED]
    progress, engagement, reach, collab_clicks = db.query(
        func.avg(Collaboration.progress),
        func.avg(Collaboration.engagement_rate),
        func.coalesce(func.sum(Collaboration.reach), 0),
        func.coalesce(func.sum(Collaboration.clicks), 0),
    ).filter(
        Collaboration.campaign_id == campaign_id,
        Collaboration.status.in_(live),
    ).one()

    views = db.query(
        func.coalesce(func.sum(CampaignContent.views), 0),
    ).filter(
        CampaignContent.campaign_id == campaign_id,
        CampaignContent.status == ContentStatusDB.PUBLISHED,
    ).scalar()

    values = {
        "overall_progress": int(round(progress or 0)),
        "engagement_rate": float(engagement or 0.0),
        "reach": int(reach or 0) + int(views or 0),
        "clicks": int(collab_clicks or 0),
    }

    metrics = db.query(CampaignMetrics).filter(CampaignMetrics.campaign_id == campaign_id).first()
    if metrics is None:
        try:
            with db.begin_nested():
                metrics = CampaignMetrics(campaign_id=campaign_id, revenue=0, conversions=0, **values)
                db.add(metrics)
                db.flush()
            return metrics
        except IntegrityError:
            metrics = db.query(CampaignMetrics).filter(CampaignMetrics.campaign_id == campaign_id).first()

    # Plain assignment: these columns are only ever written here
    for key, value in values.items():
        setattr(metrics, key, value)
    db.flush()
    return metrics
