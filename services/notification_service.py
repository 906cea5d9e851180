# Notification Service for the Collabmart Platform
# Persists in-app notifications. Called from the side-effect worker only.

from sqlalchemy.orm import Session
from sqlalchemy import desc
from typing import Optional, List
from datetime import datetime
from enum import Enum
import logging

from database.models import Notification

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    APPLICATION_RECEIVED = "application_received"
    INVITATION_RECEIVED = "invitation_received"
    COLLABORATION_ACCEPTED = "collaboration_accepted"
    COLLABORATION_DECLINED = "collaboration_declined"
    CONTENT_SUBMITTED = "content_submitted"
    CONTENT_APPROVED = "content_approved"
    CONTENT_REJECTED = "content_rejected"
    CONTENT_PUBLISHED = "content_published"
    CAMPAIGN_COMPLETED = "campaign_completed"
    ORDER_ATTRIBUTED = "order_attributed"
    SYSTEM = "system"


class NotificationService:
    """
    Service for creating and reading user notifications.
    Writes are flushed, committing is left to the caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        recipient_id: str,
        recipient_type: str,
        type: NotificationType | str,
        title: str,
        body: str,
        related_id: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Notification:
        """
        Create a notification for a user.

        Args:
            recipient_id: User id of the recipient
            recipient_type: brand, influencer or customer
            type: Notification type (unknown values are stored as "system")
            title: Short notification title
            body: Full notification message
            related_id: Id of the campaign/content/order the notification is about
            data: Optional additional data as JSON
        """
        try:
            type_value = NotificationType(type).value
        except ValueError:
            logger.warning(f"Unknown notification type {type!r}, storing as system")
            type_value = NotificationType.SYSTEM.value

        notification = Notification(
            user_id=recipient_id,
            recipient_type=recipient_type,
            type=type_value,
            title=title,
            message=body,
            related_id=related_id,
            data=data or {},
        )
        self.db.add(notification)
        self.db.flush()
        return notification

    def list_for_user(self, user_id: str, unread_only: bool = False, page: int = 1, limit: int = 20) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read == False)
        offset = (page - 1) * limit
        return query.order_by(desc(Notification.created_at)).offset(offset).limit(limit).all()

    def mark_read(self, notification_id: str, user_id: str) -> bool:
        """
        Mark a notification as read.

        Returns:
            True if notification was marked read, False if not found
        """
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()

        if notification:
            notification.read = True
            notification.read_at = datetime.utcnow()
            return True
        return False

    def mark_all_read(self, user_id: str) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read == False
        ).update({
            "read": True,
            "read_at": datetime.utcnow()
        }, synchronize_session="fetch")

    def get_unread_count(self, user_id: str) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.read == False
        ).count()
