# Collaboration lifecycle: applications, invitations and responses
#
#   influencer applies        -> request           (brand accepts/declines)
#   influencer invites brand  -> influencer-invite (brand accepts/declines)
#   brand invites influencer  -> brand-invite      (influencer accepts/declines)
# Accepting moves the collaboration to active and seeds its deliverables.

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from database.marketplace_models import Campaign, CampaignStatusDB, Collaboration, CollaborationStatusDB
from database.models import InfluencerProfile, User
from services.collaboration_store import CollaborationStore
from services.errors import AccessDenied, DuplicateCollaboration, NotFound, StateConflict, ValidationError
from services.notification_service import NotificationType
from services.task_dispatcher import PendingTasks, TaskDispatcher
from services.usage_limiter import LimitedAction, UsageLimiter

logger = logging.getLogger(__name__)

BRAND_ANSWERABLE = [CollaborationStatusDB.REQUEST, CollaborationStatusDB.INFLUENCER_INVITE]


class CollaborationLifecycle:
    def __init__(self, db: Session, dispatcher: TaskDispatcher, limiter: UsageLimiter):
        self.db = db
        self.store = CollaborationStore(db)
        self.tasks = PendingTasks(dispatcher)
        self.limiter = limiter

    def _get_campaign(self, campaign_id: str) -> Campaign:
        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")
        return campaign

    def _check_limit(self, influencer: InfluencerProfile, action: str) -> None:
        result = self.limiter.check_limit(influencer.user_id, "influencer", action)
        if not result.allowed:
            raise AccessDenied(result.reason or "Usage limit reached for your plan")

    def _check_eligible(self, campaign: Campaign, influencer: InfluencerProfile) -> None:
        if campaign.status != CampaignStatusDB.ACTIVE:
            raise StateConflict("Campaign is not accepting collaborations")
        if campaign.min_followers and (influencer.total_followers or 0) < campaign.min_followers:
            raise ValidationError(f"This campaign requires at least {campaign.min_followers} followers")

    def _commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.tasks.discard()
            raise
        self.tasks.flush()

    # =========================================================================
    # INFLUENCER ACTIONS
    # =========================================================================

    def apply(self, influencer: InfluencerProfile, campaign_id: str) -> Collaboration:
        campaign = self._get_campaign(campaign_id)

        existing = self.store.find_live_collaboration(campaign_id, influencer.id)
        if existing:
            if existing.status == CollaborationStatusDB.BRAND_INVITE:
                # applying to a campaign that already invited you accepts the invite
                return self.respond_to_invite(influencer, existing.id, accept=True)
            if existing.status in (CollaborationStatusDB.ACTIVE, CollaborationStatusDB.COMPLETED):
                raise DuplicateCollaboration("You are already active in this campaign")
            raise DuplicateCollaboration("You have already applied to this campaign")

        self._check_eligible(campaign, influencer)
        self._check_limit(influencer, LimitedAction.APPLY_TO_CAMPAIGN)

        try:
            collaboration = self.store.create_collaboration(campaign_id, influencer.id, CollaborationStatusDB.REQUEST)
        except Exception:
            self.db.rollback()
            raise

        self.tasks.notify(
            recipient_id=campaign.brand_id,
            recipient_type="brand",
            type=NotificationType.APPLICATION_RECEIVED.value,
            title="New campaign application",
            body=f"{influencer.display_name} applied to {campaign.title}",
            related_id=collaboration.id,
            data={"campaign_id": campaign_id, "influencer_id": influencer.id},
        )
        self._commit()
        return collaboration

    def invite_brand(self, influencer: InfluencerProfile, campaign_id: str) -> Collaboration:
        campaign = self._get_campaign(campaign_id)
        self._check_eligible(campaign, influencer)
        self._check_limit(influencer, LimitedAction.INVITE_BRAND)

        try:
            collaboration = self.store.create_collaboration(
                campaign_id, influencer.id, CollaborationStatusDB.INFLUENCER_INVITE
            )
        except Exception:
            self.db.rollback()
            raise

        self.tasks.notify(
            recipient_id=campaign.brand_id,
            recipient_type="brand",
            type=NotificationType.INVITATION_RECEIVED.value,
            title="Collaboration proposal",
            body=f"{influencer.display_name} wants to collaborate on {campaign.title}",
            related_id=collaboration.id,
            data={"campaign_id": campaign_id, "influencer_id": influencer.id},
        )
        self._commit()
        return collaboration

    def respond_to_invite(self, influencer: InfluencerProfile, collaboration_id: str, accept: bool) -> Collaboration:
        collaboration = self.store.get_collaboration(collaboration_id)
        if collaboration.influencer_id != influencer.id:
            raise AccessDenied("Access denied")
        return self._respond(
            collaboration,
            expected=[CollaborationStatusDB.BRAND_INVITE],
            accept=accept,
            recipient_id=collaboration.campaign.brand_id,
            recipient_type="brand",
            actor_name=influencer.display_name,
        )

    # =========================================================================
    # BRAND ACTIONS
    # =========================================================================

    def invite_influencer(self, brand: User, campaign_id: str, influencer_id: str) -> Collaboration:
        campaign = self._get_campaign(campaign_id)
        if campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")
        influencer = self.db.query(InfluencerProfile).filter(InfluencerProfile.id == influencer_id).first()
        if not influencer:
            raise NotFound("Influencer not found")
        if campaign.status in (CampaignStatusDB.COMPLETED, CampaignStatusDB.CANCELLED):
            raise StateConflict("Campaign is closed")

        try:
            collaboration = self.store.create_collaboration(
                campaign_id, influencer.id, CollaborationStatusDB.BRAND_INVITE
            )
        except Exception:
            self.db.rollback()
            raise

        self.tasks.notify(
            recipient_id=influencer.user_id,
            recipient_type="influencer",
            type=NotificationType.INVITATION_RECEIVED.value,
            title="Campaign invitation",
            body=f"You have been invited to {campaign.title}",
            related_id=collaboration.id,
            data={"campaign_id": campaign_id},
        )
        self._commit()
        return collaboration

    def respond_to_request(self, brand: User, collaboration_id: str, accept: bool) -> Collaboration:
        collaboration = self.store.get_collaboration(collaboration_id)
        if collaboration.campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")
        return self._respond(
            collaboration,
            expected=BRAND_ANSWERABLE,
            accept=accept,
            recipient_id=collaboration.influencer.user_id,
            recipient_type="influencer",
            actor_name=collaboration.campaign.title,
        )

    def _respond(
        self,
        collaboration: Collaboration,
        expected: List[CollaborationStatusDB],
        accept: bool,
        recipient_id: str,
        recipient_type: str,
        actor_name: str,
    ) -> Collaboration:
        if collaboration.status not in expected:
            raise StateConflict(f"Collaboration is already {collaboration.status.value}")

        new_status = CollaborationStatusDB.ACTIVE if accept else CollaborationStatusDB.CANCELLED
        try:
            if not self.store.set_status(collaboration.id, expected, new_status):
                raise StateConflict("Collaboration was answered by another request")
            if accept:
                self.store.seed_deliverables_from_template(collaboration.id)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Collaboration {collaboration.id} -> {new_status.value}")
        self.tasks.notify(
            recipient_id=recipient_id,
            recipient_type=recipient_type,
            type=(NotificationType.COLLABORATION_ACCEPTED if accept else NotificationType.COLLABORATION_DECLINED).value,
            title="Collaboration accepted" if accept else "Collaboration declined",
            body=f"{actor_name} {'accepted' if accept else 'declined'} the collaboration",
            related_id=collaboration.id,
            data={"campaign_id": collaboration.campaign_id},
        )
        self._commit()
        self.db.refresh(collaboration)
        return collaboration

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_for_user(self, user: User, collaboration_id: str) -> Collaboration:
        collaboration = self.store.get_collaboration(collaboration_id)
        if collaboration.campaign.brand_id != user.id and collaboration.influencer.user_id != user.id:
            raise AccessDenied("Access denied")
        return collaboration

    def campaign_deliverables(self, brand: User, campaign_id: str) -> List[Collaboration]:
        """Live collaborations of the campaign, seeding deliverables on first access."""
        campaign = self._get_campaign(campaign_id)
        if campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")

        collaborations = self.store.list_for_campaign(
            campaign_id, [CollaborationStatusDB.ACTIVE, CollaborationStatusDB.COMPLETED]
        )
        try:
            for collaboration in collaborations:
                if not collaboration.deliverables:
                    self.store.seed_deliverables_from_template(collaboration.id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return collaborations

    def list_for_influencer(self, influencer: InfluencerProfile, status: Optional[CollaborationStatusDB] = None) -> List[Collaboration]:
        query = self.db.query(Collaboration).filter(Collaboration.influencer_id == influencer.id)
        if status:
            query = query.filter(Collaboration.status == status)
        return query.order_by(Collaboration.created_at.desc()).all()
