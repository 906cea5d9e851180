# Content submission, review and publication
#
# Content and its linked Deliverable are kept in step by the reconcile_*
# helpers, which run inside the same transaction as the primary change.
# Notifications and metrics recompute are queued and sent after commit.

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from core.media_storage import MediaFile, MediaStorage, UploadError
from database.commerce_models import Product, ProductStatusDB
from database.marketplace_models import (
    Campaign,
    CampaignContent,
    CampaignStatusDB,
    Collaboration,
    CollaborationStatusDB,
    ContentStatusDB,
    Deliverable,
    DeliverableStatusDB,
)
from database.models import InfluencerProfile, User
from services.collaboration_store import CollaborationStore
from services.errors import AccessDenied, NotFound, StateConflict, UpstreamFailure, ValidationError
from services.notification_service import NotificationType
from services.progress import recompute_progress
from services.state_machine import CONTENT_TRANSITIONS, DELIVERABLE_TRANSITIONS, ensure_transition
from services.task_dispatcher import RECOMPUTE_CAMPAIGN_METRICS, PendingTasks, TaskDispatcher

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {
    "approve": ContentStatusDB.APPROVED,
    "reject": ContentStatusDB.REJECTED,
}

# Submissions against any other deliverable status are stored but leave the deliverable alone
RESUBMITTABLE = (DeliverableStatusDB.PENDING, DeliverableStatusDB.REJECTED)


class ContentWorkflow:
    """
    Drives content through submitted -> approved/rejected -> published and
    mirrors each step onto the linked deliverable.
    """

    def __init__(self, db: Session, dispatcher: TaskDispatcher, storage: Optional[MediaStorage] = None):
        self.db = db
        self.storage = storage
        self.store = CollaborationStore(db)
        self.tasks = PendingTasks(dispatcher)

    # =========================================================================
    # SUBMIT
    # =========================================================================

    def submit_content(
        self,
        influencer: InfluencerProfile,
        campaign_id: str,
        content_type: str,
        platforms: List[str],
        description: str,
        product_id: str,
        files: List[MediaFile],
        caption: Optional[str] = None,
        deliverable_id: Optional[str] = None,
    ) -> CampaignContent:
        if not all([campaign_id, content_type, platforms, description, product_id]):
            raise ValidationError(
                "Missing required fields: campaign_id, content_type, platforms, description, product_id"
            )
        if not files:
            raise ValidationError("Media files are required")

        campaign = self.db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if not campaign:
            raise NotFound("Campaign not found")
        if campaign.status != CampaignStatusDB.ACTIVE:
            raise StateConflict("Campaign is not active")

        product = self.db.query(Product).filter(
            Product.id == product_id,
            Product.campaign_id == campaign_id,
            Product.status == ProductStatusDB.ACTIVE,
        ).first()
        if not product:
            raise ValidationError("Product not found or not available for this campaign")

        deliverable = None
        if deliverable_id:
            deliverable = self._deliverable_for_submission(deliverable_id, campaign_id, influencer.id)

        media = self._upload_all(files, f"content/{campaign_id}")

        try:
            content = CampaignContent(
                campaign_id=campaign_id,
                influencer_id=influencer.id,
                product_id=product_id,
                deliverable_id=deliverable.id if deliverable else None,
                content_type=content_type,
                platforms=platforms,
                caption=caption,
                description=description,
                media=media,
                status=ContentStatusDB.SUBMITTED,
            )
            self.db.add(content)
            self.db.flush()

            if deliverable and deliverable.status in RESUBMITTABLE:
                moved = self.store.transition_deliverable(
                    deliverable.id,
                    expected=[DeliverableStatusDB.PENDING, DeliverableStatusDB.REJECTED],
                    new_status=DeliverableStatusDB.SUBMITTED,
                    values={
                        "submitted_at": datetime.utcnow(),
                        "content_url": media[0]["url"] if media else f"Content ID: {content.id}",
                        "deliverable_type": content_type,
                        "current_content_id": content.id,
                    },
                )
                if not moved:
                    raise StateConflict("Failed to update deliverable status. Content submission cancelled.")
                recompute_progress(self.db, deliverable.collaboration_id)
            elif deliverable:
                logger.info(
                    f"Deliverable {deliverable.id} is '{deliverable.status.value}'; "
                    f"content {content.id} kept as an additional submission"
                )

            self.db.commit()
        except Exception:
            # rollback discards the content row; uploaded objects are removed by hand
            self.db.rollback()
            self.tasks.discard()
            self._delete_uploaded(media)
            raise

        self.db.refresh(content)
        logger.info(f"Content {content.id} submitted for campaign {campaign_id} by influencer {influencer.id}")

        self.tasks.notify(
            recipient_id=campaign.brand_id,
            recipient_type="brand",
            type=NotificationType.CONTENT_SUBMITTED.value,
            title="New content submitted",
            body=f"{influencer.display_name} submitted content for {campaign.title}",
            related_id=content.id,
            data={"campaign_id": campaign_id, "deliverable_id": content.deliverable_id},
        )
        self.tasks.flush()
        return content

    def _deliverable_for_submission(self, deliverable_id: str, campaign_id: str, influencer_id: str) -> Deliverable:
        deliverable = self.db.query(Deliverable).join(Collaboration).filter(
            Deliverable.id == deliverable_id,
            Collaboration.campaign_id == campaign_id,
            Collaboration.influencer_id == influencer_id,
        ).first()
        if not deliverable:
            raise NotFound("Deliverable not found")
        if deliverable.collaboration.status != CollaborationStatusDB.ACTIVE:
            raise StateConflict("Collaboration is not active")
        return deliverable

    def _upload_all(self, files: List[MediaFile], folder: str) -> List[Dict[str, str]]:
        if self.storage is None:
            raise UpstreamFailure("Media storage is not configured")
        media = []
        for file in files:
            try:
                url = self.storage.upload(file, folder)
            except UploadError as e:
                self._delete_uploaded(media)
                raise UpstreamFailure(f"Media upload failed: {e}") from e
            media.append({"url": url, "type": file.media_type})
        return media

    def _delete_uploaded(self, media: List[Dict[str, str]]) -> None:
        for item in media:
            if not self.storage.delete(item["url"]):
                logger.error(f"Orphaned upload left in storage: {item['url']}")

    # =========================================================================
    # REVIEW
    # =========================================================================

    def review_content(
        self,
        brand: User,
        content_id: str,
        action: str,
        review_notes: Optional[str] = None,
    ) -> CampaignContent:
        content = self._get_content(content_id)
        campaign = content.campaign
        if campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")

        target = REVIEW_ACTIONS.get(action)
        if target is None:
            raise ValidationError('Invalid action. Use "approve" or "reject"')
        if content.status != ContentStatusDB.SUBMITTED:
            raise StateConflict("Only submitted content can be reviewed")
        ensure_transition(content.status, target, CONTENT_TRANSITIONS, "content status")

        notes = review_notes or ("Content approved" if target == ContentStatusDB.APPROVED else "Content rejected")
        now = datetime.utcnow()

        try:
            updated = self.db.query(CampaignContent).filter(
                CampaignContent.id == content.id,
                CampaignContent.status == ContentStatusDB.SUBMITTED,
            ).update({
                "status": target,
                "review_notes": notes,
                "brand_feedback": notes,
                "reviewed_at": now,
            }, synchronize_session="fetch")
            if not updated:
                raise StateConflict("Content was reviewed by another request")

            if self._tracked_deliverable(content):
                self.reconcile_deliverable(
                    content,
                    DeliverableStatusDB(target.value),
                    {"review_feedback": notes, "reviewed_at": now},
                )

            self.db.commit()
        except Exception:
            self.db.rollback()
            self.tasks.discard()
            raise

        self.db.refresh(content)
        logger.info(f"Content {content.id} {target.value} by brand {brand.id}")

        self.tasks.add(RECOMPUTE_CAMPAIGN_METRICS, campaign_id=campaign.id)
        approved = target == ContentStatusDB.APPROVED
        self.tasks.notify(
            recipient_id=content.influencer.user_id,
            recipient_type="influencer",
            type=(NotificationType.CONTENT_APPROVED if approved else NotificationType.CONTENT_REJECTED).value,
            title="Content approved" if approved else "Content needs changes",
            body=f"Your content for {campaign.title} was {'approved' if approved else 'rejected'}: {notes}",
            related_id=content.id,
            data={"campaign_id": campaign.id, "status": target.value},
        )
        self.tasks.flush()
        return content

    # =========================================================================
    # PUBLISH
    # =========================================================================

    def publish_content(
        self,
        influencer: InfluencerProfile,
        content_id: str,
        external_post_url: Optional[str],
    ) -> CampaignContent:
        content = self._get_content(content_id)
        if content.influencer_id != influencer.id:
            raise AccessDenied("Access denied")
        if not external_post_url:
            raise ValidationError("External post URL is required when publishing content")
        if content.status == ContentStatusDB.PUBLISHED:
            raise StateConflict("Content is already published")

        deliverable = self._tracked_deliverable(content)
        if not self._can_publish(content, deliverable):
            raise StateConflict("Only approved content can be published")

        previous_status = content.status
        now = datetime.utcnow()
        try:
            updated = self.db.query(CampaignContent).filter(
                CampaignContent.id == content.id,
                CampaignContent.status == previous_status,
            ).update({
                "status": ContentStatusDB.PUBLISHED,
                "external_post_url": external_post_url,
                "published_at": now,
            }, synchronize_session="fetch")
            if not updated:
                raise StateConflict("Content was changed by another request")

            if deliverable:
                self.reconcile_deliverable(
                    content,
                    DeliverableStatusDB.PUBLISHED,
                    {"content_url": external_post_url},
                )

            self.db.commit()
        except Exception:
            self.db.rollback()
            self.tasks.discard()
            raise

        self.db.refresh(content)
        if previous_status != ContentStatusDB.APPROVED:
            logger.warning(f"Content {content.id} published from '{previous_status.value}' via its approved deliverable")
        logger.info(f"Content {content.id} published at {external_post_url}")

        campaign = content.campaign
        self.tasks.add(RECOMPUTE_CAMPAIGN_METRICS, campaign_id=campaign.id)
        self.tasks.notify(
            recipient_id=campaign.brand_id,
            recipient_type="brand",
            type=NotificationType.CONTENT_PUBLISHED.value,
            title="Content published",
            body=f"{influencer.display_name} published content for {campaign.title}",
            related_id=content.id,
            data={"campaign_id": campaign.id, "external_post_url": external_post_url},
        )
        self.tasks.flush()
        return content

    @staticmethod
    def _can_publish(content: CampaignContent, deliverable: Optional[Deliverable]) -> bool:
        if content.status == ContentStatusDB.APPROVED:
            return True
        # Content status can drift behind its deliverable (e.g. bulk approval)
        if deliverable is None:
            return False
        return deliverable.status in (DeliverableStatusDB.APPROVED, DeliverableStatusDB.PUBLISHED)

    def _tracked_deliverable(self, content: CampaignContent) -> Optional[Deliverable]:
        """The linked deliverable, if this content is its current submission."""
        if not content.deliverable_id:
            return None
        deliverable = self.db.query(Deliverable).filter(Deliverable.id == content.deliverable_id).first()
        if deliverable is None or deliverable.current_content_id not in (None, content.id):
            return None
        return deliverable

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def reconcile_deliverable(
        self,
        content: CampaignContent,
        target: DeliverableStatusDB,
        values: Dict[str, Any],
    ) -> None:
        """
        Bring the content's deliverable to `target` and recompute progress.

        A deliverable already at `target` only receives `values`. Any other
        status must be a legal predecessor of `target`, checked and written
        in one conditional update.
        """
        deliverable = self.store.get_deliverable(content.deliverable_id)

        # A deliverable whose latest submission is another content is not ours to touch
        if deliverable.current_content_id not in (None, content.id):
            raise StateConflict("Content has been superseded by a newer submission")

        if deliverable.status == target and target != DeliverableStatusDB.PUBLISHED:
            # already there (e.g. approved through bulk update); nothing to move
            self.db.query(Deliverable).filter(Deliverable.id == deliverable.id).update(
                values, synchronize_session="fetch"
            )
            return

        if target == DeliverableStatusDB.PUBLISHED:
            expected = [DeliverableStatusDB.APPROVED, DeliverableStatusDB.PUBLISHED]
        else:
            ensure_transition(deliverable.status, target, DELIVERABLE_TRANSITIONS, "deliverable status")
            expected = [deliverable.status]

        expected_content_id = content.id if deliverable.current_content_id else None
        self.store.require_transition(
            deliverable.id,
            expected=expected,
            new_status=target,
            values=values,
            expected_content_id=expected_content_id,
        )
        recompute_progress(self.db, deliverable.collaboration_id)

    def reconcile_content(self, deliverable: Deliverable, target: DeliverableStatusDB, notes: Optional[str]) -> None:
        """Mirror a brand decision made on the deliverable onto its latest, unpublished content."""
        if not deliverable.current_content_id or target not in (DeliverableStatusDB.APPROVED, DeliverableStatusDB.REJECTED):
            return
        self.db.query(CampaignContent).filter(
            CampaignContent.id == deliverable.current_content_id,
            CampaignContent.status == ContentStatusDB.SUBMITTED,
        ).update({
            "status": ContentStatusDB(target.value),
            "review_notes": notes,
            "brand_feedback": notes,
            "reviewed_at": datetime.utcnow(),
        }, synchronize_session="fetch")

    # =========================================================================
    # BULK DELIVERABLE REVIEW
    # =========================================================================

    def update_deliverables(self, brand: User, collaboration_id: str, updates: List[Dict[str, Any]]) -> Collaboration:
        """
        Apply brand decisions to several deliverables of one collaboration.

        Each update is {"deliverable_id", "status", "review_feedback"}; status
        must be approved or rejected. All updates commit together.
        """
        collaboration = self.store.get_collaboration(collaboration_id)
        if collaboration.campaign.brand_id != brand.id:
            raise AccessDenied("Access denied")
        if not updates:
            raise ValidationError("No deliverable updates supplied")

        now = datetime.utcnow()
        reviewed = []
        try:
            for update in updates:
                try:
                    target = DeliverableStatusDB(update.get("status"))
                except ValueError:
                    raise ValidationError(f"Invalid deliverable status: {update.get('status')}")
                if target not in (DeliverableStatusDB.APPROVED, DeliverableStatusDB.REJECTED):
                    raise ValidationError("Deliverables can only be approved or rejected")

                deliverable = self.store.find_deliverable(collaboration_id, update.get("deliverable_id"))
                ensure_transition(deliverable.status, target, DELIVERABLE_TRANSITIONS, "deliverable status")

                feedback = update.get("review_feedback")
                self.store.require_transition(
                    deliverable.id,
                    expected=[deliverable.status],
                    new_status=target,
                    values={"review_feedback": feedback, "reviewed_at": now},
                )
                self.reconcile_content(deliverable, target, feedback)
                reviewed.append(target)

            recompute_progress(self.db, collaboration_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            self.tasks.discard()
            raise

        self.db.refresh(collaboration)
        logger.info(f"Brand {brand.id} reviewed {len(reviewed)} deliverables of collaboration {collaboration_id}")

        campaign = collaboration.campaign
        self.tasks.add(RECOMPUTE_CAMPAIGN_METRICS, campaign_id=campaign.id)
        self.tasks.notify(
            recipient_id=collaboration.influencer.user_id,
            recipient_type="influencer",
            type=NotificationType.CONTENT_APPROVED.value if all(
                s == DeliverableStatusDB.APPROVED for s in reviewed
            ) else NotificationType.CONTENT_REJECTED.value,
            title="Deliverables reviewed",
            body=f"{len(reviewed)} deliverable(s) reviewed for {campaign.title}",
            related_id=collaboration.id,
            data={"campaign_id": campaign.id, "progress": collaboration.progress},
        )
        self.tasks.flush()
        return collaboration

    # =========================================================================
    # QUERIES AND INTERACTIONS
    # =========================================================================

    def _get_content(self, content_id: str) -> CampaignContent:
        content = self.db.query(CampaignContent).filter(CampaignContent.id == content_id).first()
        if not content:
            raise NotFound("Content not found")
        return content

    def get_content_for(self, user: User, content_id: str) -> CampaignContent:
        content = self._get_content(content_id)
        if content.campaign.brand_id != user.id and content.influencer.user_id != user.id:
            raise AccessDenied("Access denied")
        return content

    def pending_for_brand(self, brand_id: str, page: int = 1, limit: int = 20) -> List[CampaignContent]:
        return self.db.query(CampaignContent).join(Campaign).filter(
            Campaign.brand_id == brand_id,
            CampaignContent.status == ContentStatusDB.SUBMITTED,
        ).order_by(CampaignContent.created_at).offset((page - 1) * limit).limit(limit).all()

    def published_for_campaign(self, campaign_id: str, page: int = 1, limit: int = 20) -> List[CampaignContent]:
        return self.db.query(CampaignContent).filter(
            CampaignContent.campaign_id == campaign_id,
            CampaignContent.status == ContentStatusDB.PUBLISHED,
        ).order_by(desc(CampaignContent.published_at)).offset((page - 1) * limit).limit(limit).all()

    def track_interaction(self, content_id: str, interaction: str) -> CampaignContent:
        """Count a view or click on published content."""
        if interaction not in ("view", "click"):
            raise ValidationError('Invalid interaction. Use "view" or "click"')
        content = self._get_content(content_id)
        if content.status != ContentStatusDB.PUBLISHED:
            raise StateConflict("Only published content can be tracked")

        try:
            if interaction == "view":
                self.db.query(CampaignContent).filter(CampaignContent.id == content_id).update(
                    {"views": CampaignContent.views + 1}, synchronize_session="fetch"
                )
            else:
                self.db.query(CampaignContent).filter(CampaignContent.id == content_id).update(
                    {"clicks": CampaignContent.clicks + 1}, synchronize_session="fetch"
                )
                self.db.query(Collaboration).filter(
                    Collaboration.campaign_id == content.campaign_id,
                    Collaboration.influencer_id == content.influencer_id,
                    Collaboration.status != CollaborationStatusDB.CANCELLED,
                ).update({"clicks": Collaboration.clicks + 1}, synchronize_session="fetch")
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(content)
        return content
