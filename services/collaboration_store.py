# Collaboration Store
# Owns collaborations and their deliverables. Every deliverable status change
# goes through transition_deliverable, a conditional update keyed on the
# current status.

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config.app_config import UPSERT_ATTEMPTS
from database.marketplace_models import (
    Campaign,
    Collaboration,
    CollaborationStatusDB,
    Deliverable,
    DeliverableStatusDB,
)
from services.errors import DuplicateCollaboration, NotFound, StateConflict

logger = logging.getLogger(__name__)


class CollaborationStore:
    """Data access for collaborations. Flushes, never commits."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get_collaboration(self, collaboration_id: str) -> Collaboration:
        collaboration = self.db.query(Collaboration).filter(Collaboration.id == collaboration_id).first()
        if not collaboration:
            raise NotFound("Collaboration not found")
        return collaboration

    def find_live_collaboration(self, campaign_id: str, influencer_id: str) -> Optional[Collaboration]:
        return self.db.query(Collaboration).filter(
            Collaboration.campaign_id == campaign_id,
            Collaboration.influencer_id == influencer_id,
            Collaboration.status != CollaborationStatusDB.CANCELLED,
        ).first()

    def list_for_campaign(
        self,
        campaign_id: str,
        statuses: Optional[Iterable[CollaborationStatusDB]] = None,
    ) -> List[Collaboration]:
        query = self.db.query(Collaboration).filter(Collaboration.campaign_id == campaign_id)
        if statuses:
            query = query.filter(Collaboration.status.in_(list(statuses)))
        return query.order_by(Collaboration.created_at).all()

    def find_deliverable(self, collaboration_id: str, deliverable_id: str) -> Deliverable:
        self.get_collaboration(collaboration_id)
        deliverable = self.db.query(Deliverable).filter(
            Deliverable.id == deliverable_id,
            Deliverable.collaboration_id == collaboration_id,
        ).first()
        if not deliverable:
            raise NotFound("Deliverable not found")
        return deliverable

    def get_deliverable(self, deliverable_id: str) -> Deliverable:
        deliverable = self.db.query(Deliverable).filter(Deliverable.id == deliverable_id).first()
        if not deliverable:
            raise NotFound("Deliverable not found")
        return deliverable

    # =========================================================================
    # CREATION
    # =========================================================================

    def create_collaboration(
        self,
        campaign_id: str,
        influencer_id: str,
        initial_status: CollaborationStatusDB,
    ) -> Collaboration:
        """Fails with DuplicateCollaboration if a non-cancelled one exists for the pair."""
        if self.find_live_collaboration(campaign_id, influencer_id):
            raise DuplicateCollaboration("A collaboration already exists for this campaign and influencer")

        collaboration = Collaboration(
            campaign_id=campaign_id,
            influencer_id=influencer_id,
            status=initial_status,
            progress=0,
        )
        try:
            with self.db.begin_nested():
                self.db.add(collaboration)
                self.db.flush()
        except IntegrityError:
            # lost the race against a concurrent create for the same pair
            raise DuplicateCollaboration("A collaboration already exists for this campaign and influencer")

        logger.info(f"Collaboration {collaboration.id} created for campaign {campaign_id} ({initial_status.value})")
        return collaboration

    def seed_deliverables_from_template(self, collaboration_id: str) -> List[Deliverable]:
        """
        Copy the campaign's deliverable template into an empty collaboration.
        No-op once any deliverable exists.
        """
        collaboration = self.get_collaboration(collaboration_id)
        existing = self._deliverables(collaboration_id)
        if existing:
            return existing

        campaign = self.db.query(Campaign).filter(Campaign.id == collaboration.campaign_id).first()
        templates = campaign.deliverable_templates if campaign else []
        if not templates:
            return []

        try:
            with self.db.begin_nested():
                for template in templates:
                    self.db.add(Deliverable(
                        collaboration_id=collaboration_id,
                        position=template.position,
                        platform=template.platform,
                        task_description=template.task_description,
                        num_posts=template.num_posts or 0,
                        num_reels=template.num_reels or 0,
                        num_videos=template.num_videos or 0,
                        due_date=template.due_date,
                        status=DeliverableStatusDB.PENDING,
                    ))
                self.db.flush()
        except IntegrityError:
            logger.info(f"Deliverables for collaboration {collaboration_id} were seeded concurrently")

        self.db.expire(collaboration, ["deliverables"])
        return self._deliverables(collaboration_id)

    def _deliverables(self, collaboration_id: str) -> List[Deliverable]:
        return self.db.query(Deliverable).filter(
            Deliverable.collaboration_id == collaboration_id
        ).order_by(Deliverable.position).all()

    # =========================================================================
    # CONDITIONAL UPDATES
    # =========================================================================

    def set_status(
        self,
        collaboration_id: str,
        expected: Iterable[CollaborationStatusDB],
        new_status: CollaborationStatusDB,
    ) -> bool:
        """Move the collaboration to new_status if it is currently in one of `expected`."""
        updated = self.db.query(Collaboration).filter(
            Collaboration.id == collaboration_id,
            Collaboration.status.in_(list(expected)),
        ).update({
            "status": new_status,
            "version": Collaboration.version + 1,
        }, synchronize_session="fetch")
        return updated == 1

    def transition_deliverable(
        self,
        deliverable_id: str,
        expected: Iterable[DeliverableStatusDB],
        new_status: DeliverableStatusDB,
        values: Optional[Dict[str, Any]] = None,
        expected_content_id: Optional[str] = None,
    ) -> bool:
        """
        Compare-and-swap on Deliverable.status.

        Returns False when the deliverable is no longer in an expected status
        (or no longer points at expected_content_id); the caller decides
        whether that is a conflict.
        """
        changes = dict(values or {})
        changes["status"] = new_status
        changes["version"] = Deliverable.version + 1

        query = self.db.query(Deliverable).filter(
            Deliverable.id == deliverable_id,
            Deliverable.status.in_(list(expected)),
        )
        if expected_content_id is not None:
            query = query.filter(Deliverable.current_content_id == expected_content_id)

        updated = query.update(changes, synchronize_session="fetch")
        if updated:
            logger.info(f"Deliverable {deliverable_id} -> {new_status.value}")
        return updated == 1

    def require_transition(self, deliverable_id: str, expected, new_status, values=None, expected_content_id=None) -> None:
        if not self.transition_deliverable(deliverable_id, expected, new_status, values, expected_content_id):
            raise StateConflict("Deliverable was changed by another request, please reload and retry")

    # =========================================================================
    # ATTRIBUTION COUNTERS
    # =========================================================================

    def find_latest_collaboration(self, campaign_id: str, influencer_id: str) -> Optional[Collaboration]:
        """The live collaboration for the pair, else the most recent cancelled one."""
        live = self.find_live_collaboration(campaign_id, influencer_id)
        if live:
            return live
        return self.db.query(Collaboration).filter(
            Collaboration.campaign_id == campaign_id,
            Collaboration.influencer_id == influencer_id,
        ).order_by(Collaboration.created_at.desc(), Collaboration.id.desc()).first()

    def increment_attribution(
        self,
        campaign_id: str,
        influencer_id: str,
        revenue: Decimal,
        commission: Decimal,
        conversions: int = 1,
    ) -> Collaboration:
        """
        Add attributed revenue to the pair's collaboration whatever its status.

        A declined (cancelled) collaboration keeps its status and only gains
        counters. An active one is created only when the influencer never had
        a collaboration with the campaign.
        """
        for _ in range(UPSERT_ATTEMPTS):
            existing = self.find_latest_collaboration(campaign_id, influencer_id)
            if existing:
                self.db.query(Collaboration).filter(Collaboration.id == existing.id).update({
                    "revenue": Collaboration.revenue + revenue,
                    "commission_earned": Collaboration.commission_earned + commission,
                    "conversions": Collaboration.conversions + conversions,
                }, synchronize_session="fetch")
                return existing

            try:
                with self.db.begin_nested():
                    collaboration = Collaboration(
                        campaign_id=campaign_id,
                        influencer_id=influencer_id,
                        status=CollaborationStatusDB.ACTIVE,
                        progress=0,
                        timeliness_score=100,
                        revenue=revenue,
                        commission_earned=commission,
                        conversions=conversions,
                    )
                    self.db.add(collaboration)
                    self.db.flush()
                logger.info(f"Collaboration {collaboration.id} created by attributed sale on campaign {campaign_id}")
                return collaboration
            except IntegrityError:
                logger.warning(f"Concurrent collaboration insert for campaign {campaign_id}, retrying as update")

        raise StateConflict("Could not record attribution, please retry")

    def mark_active_completed(self, campaign_id: str) -> int:
        return self.db.query(Collaboration).filter(
            Collaboration.campaign_id == campaign_id,
            Collaboration.status == CollaborationStatusDB.ACTIVE,
        ).update({
            "status": CollaborationStatusDB.COMPLETED,
            "version": Collaboration.version + 1,
        }, synchronize_session="fetch")

    def campaign_progress_values(self, campaign_id: str) -> List[int]:
        return [
            p for (p,) in self.db.query(Collaboration.progress).filter(
                Collaboration.campaign_id == campaign_id,
                Collaboration.status.in_([CollaborationStatusDB.ACTIVE, CollaborationStatusDB.COMPLETED]),
            ).all()
        ]
