# Database Models for the Influencer Collaboration Marketplace
# Campaigns, collaborations, deliverables and submitted content

from sqlalchemy import (
    Column, String, Integer, DateTime, ForeignKey, Text, JSON, Enum, Float, Numeric,
    CheckConstraint, UniqueConstraint, Index, text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from database.models import Base, generate_uuid


# ============================================================================
# ENUMS
# ============================================================================

class CampaignStatusDB(str, enum.Enum):
    DRAFT = "draft"
    REQUEST = "request"
    INFLUENCER_INVITE = "influencer-invite"
    BRAND_INVITE = "brand-invite"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CollaborationStatusDB(str, enum.Enum):
    REQUEST = "request"
    INFLUENCER_INVITE = "influencer-invite"
    BRAND_INVITE = "brand-invite"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliverableStatusDB(str, enum.Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


class ContentStatusDB(str, enum.Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


# ============================================================================
# CAMPAIGN
# ============================================================================

class Campaign(Base):
    """Brand-initiated marketing effort. Owns deliverable templates and products."""
    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_campaign_commission_rate"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    brand_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(Enum(CampaignStatusDB, values_callable=lambda x: [e.value for e in x], name="campaignstatusdb"), default=CampaignStatusDB.DRAFT, nullable=False)

    budget = Column(Numeric(12, 3), default=0)
    commission_rate = Column(Numeric(5, 2), default=0, nullable=False)  # percent of attributed revenue

    start_date = Column(DateTime)
    end_date = Column(DateTime)
    required_channels = Column(JSON)  # ["instagram", "tiktok"]
    min_followers = Column(Integer, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
    completed_at = Column(DateTime)

    # Relationships
    brand = relationship("User")
    deliverable_templates = relationship(
        "CampaignDeliverableTemplate",
        back_populates="campaign",
        order_by="CampaignDeliverableTemplate.position",
        cascade="all, delete-orphan",
    )
    products = relationship("Product", back_populates="campaign", cascade="all, delete-orphan")
    collaborations = relationship("Collaboration", back_populates="campaign", cascade="all, delete-orphan")
    metrics = relationship("CampaignMetrics", back_populates="campaign", uselist=False, cascade="all, delete-orphan")


class CampaignDeliverableTemplate(Base):
    """One deliverable definition copied into every new collaboration of the campaign."""
    __tablename__ = "campaign_deliverable_templates"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    platform = Column(String(50), nullable=False)
    task_description = Column(Text)
    num_posts = Column(Integer, default=0)
    num_reels = Column(Integer, default=0)
    num_videos = Column(Integer, default=0)
    due_date = Column(DateTime)

    campaign = relationship("Campaign", back_populates="deliverable_templates")


class CampaignMetrics(Base):
    """Campaign-level aggregates. Revenue is incremented at checkout, the rest is recomputed."""
    __tablename__ = "campaign_metrics"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), unique=True, nullable=False)

    revenue = Column(Numeric(14, 3), default=0, nullable=False)
    overall_progress = Column(Integer, default=0)
    engagement_rate = Column(Float, default=0.0)
    reach = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    conversions = Column(Integer, default=0)

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    campaign = relationship("Campaign", back_populates="metrics")


# ============================================================================
# COLLABORATION
# ============================================================================

class Collaboration(Base):
    """Working relationship between one influencer and one campaign."""
    __tablename__ = "collaborations"
    __table_args__ = (
        # At most one live collaboration per pair; cancelled rows are history.
        Index(
            "uq_collaboration_live_pair",
            "campaign_id",
            "influencer_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        CheckConstraint("progress >= 0 AND progress <= 100", name="ck_collaboration_progress"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    influencer_id = Column(String(36), ForeignKey("influencer_profiles.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(Enum(CollaborationStatusDB, values_callable=lambda x: [e.value for e in x], name="collaborationstatusdb"), nullable=False, default=CollaborationStatusDB.REQUEST)
    progress = Column(Integer, nullable=False, default=0)

    # Cumulative metrics
    revenue = Column(Numeric(14, 3), nullable=False, default=0)
    commission_earned = Column(Numeric(14, 3), nullable=False, default=0)
    engagement_rate = Column(Float, default=0.0)
    reach = Column(Integer, default=0)
    clicks = Column(Integer, default=0)
    conversions = Column(Integer, nullable=False, default=0)
    timeliness_score = Column(Integer, default=100)

    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    campaign = relationship("Campaign", back_populates="collaborations")
    influencer = relationship("InfluencerProfile", back_populates="collaborations")
    deliverables = relationship(
        "Deliverable",
        back_populates="collaboration",
        order_by="Deliverable.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Deliverable(Base):
    """One contractually required content item within a collaboration."""
    __tablename__ = "deliverables"
    __table_args__ = (
        UniqueConstraint("collaboration_id", "position", name="uq_deliverable_position"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    collaboration_id = Column(String(36), ForeignKey("collaborations.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    platform = Column(String(50))
    task_description = Column(Text)
    deliverable_type = Column(String(50))  # post, reel, video, story
    num_posts = Column(Integer, default=0)
    num_reels = Column(Integer, default=0)
    num_videos = Column(Integer, default=0)
    due_date = Column(DateTime)

    status = Column(Enum(DeliverableStatusDB, values_callable=lambda x: [e.value for e in x], name="deliverablestatusdb"), nullable=False, default=DeliverableStatusDB.PENDING)
    content_url = Column(String(1000))
    submitted_at = Column(DateTime)
    reviewed_at = Column(DateTime)
    review_feedback = Column(Text)

    # Latest content submitted against this deliverable (weak, no FK)
    current_content_id = Column(String(36))
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    collaboration = relationship("Collaboration", back_populates="deliverables")


# ============================================================================
# CONTENT
# ============================================================================

class CampaignContent(Base):
    """Media submitted by an influencer for a campaign, optionally fulfilling a deliverable.

    Rejected submissions are kept as history; the deliverable only reflects the latest one.
    """
    __tablename__ = "campaign_content"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    campaign_id = Column(String(36), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    influencer_id = Column(String(36), ForeignKey("influencer_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"))
    deliverable_id = Column(String(36), ForeignKey("deliverables.id", ondelete="SET NULL"), index=True)

    content_type = Column(String(50), nullable=False)
    platforms = Column(JSON)  # ["instagram"]
    caption = Column(Text)
    description = Column(Text)
    media = Column(JSON)  # [{"url": ..., "type": "image"|"video"}]

    status = Column(Enum(ContentStatusDB, values_callable=lambda x: [e.value for e in x], name="contentstatusdb"), nullable=False, default=ContentStatusDB.SUBMITTED)
    review_notes = Column(Text)
    brand_feedback = Column(Text)
    reviewed_at = Column(DateTime)

    external_post_url = Column(String(1000))
    published_at = Column(DateTime)

    # Performance counters
    views = Column(Integer, nullable=False, default=0)
    clicks = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    campaign = relationship("Campaign")
    influencer = relationship("InfluencerProfile")
    product = relationship("Product")

    @property
    def media_urls(self):
        return [m["url"] for m in (self.media or [])]
