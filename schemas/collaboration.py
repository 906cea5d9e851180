# Pydantic Schemas for Campaigns, Collaborations and Content

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ============================================================================
# ENUMS
# ============================================================================

class CampaignStatus(str, Enum):
    DRAFT = "draft"
    REQUEST = "request"
    INFLUENCER_INVITE = "influencer-invite"
    BRAND_INVITE = "brand-invite"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CollaborationStatus(str, Enum):
    REQUEST = "request"
    INFLUENCER_INVITE = "influencer-invite"
    BRAND_INVITE = "brand-invite"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DeliverableStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


class ContentStatus(str, Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


# ============================================================================
# CAMPAIGN SCHEMAS
# ============================================================================

class DeliverableTemplateCreate(BaseModel):
    platform: str
    task_description: Optional[str] = None
    num_posts: int = Field(0, ge=0)
    num_reels: int = Field(0, ge=0)
    num_videos: int = Field(0, ge=0)
    due_date: Optional[datetime] = None


class CampaignCreate(BaseModel):
    """Schema for a brand creating a campaign."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    status: CampaignStatus = CampaignStatus.DRAFT
    budget: Decimal = Field(Decimal("0"), ge=0)
    commission_rate: Decimal = Field(Decimal("0"), ge=0, le=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    required_channels: List[str] = []
    min_followers: int = Field(0, ge=0)
    deliverables: List[DeliverableTemplateCreate] = []

    @field_validator("status")
    @classmethod
    def initial_status(cls, v):
        if v not in (CampaignStatus.DRAFT, CampaignStatus.ACTIVE):
            raise ValueError("New campaigns start as draft or active")
        return v


class CampaignStatusUpdate(BaseModel):
    status: CampaignStatus


class DeliverableTemplateResponse(BaseModel):
    id: str
    position: int
    platform: str
    task_description: Optional[str] = None
    num_posts: int = 0
    num_reels: int = 0
    num_videos: int = 0
    due_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class CampaignResponse(BaseModel):
    id: str
    brand_id: str
    title: str
    description: Optional[str] = None
    status: CampaignStatus
    budget: Decimal
    commission_rate: Decimal
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    required_channels: Optional[List[str]] = None
    min_followers: Optional[int] = 0
    deliverable_templates: List[DeliverableTemplateResponse] = []
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# COLLABORATION SCHEMAS
# ============================================================================

class InviteInfluencerRequest(BaseModel):
    influencer_id: str


class RespondRequest(BaseModel):
    accept: bool


class DeliverableResponse(BaseModel):
    id: str
    collaboration_id: str
    position: int
    platform: Optional[str] = None
    task_description: Optional[str] = None
    deliverable_type: Optional[str] = None
    num_posts: int = 0
    num_reels: int = 0
    num_videos: int = 0
    due_date: Optional[datetime] = None
    status: DeliverableStatus
    content_url: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    review_feedback: Optional[str] = None

    class Config:
        from_attributes = True


class CollaborationResponse(BaseModel):
    id: str
    campaign_id: str
    influencer_id: str
    status: CollaborationStatus
    progress: int
    revenue: Decimal
    commission_earned: Decimal
    engagement_rate: Optional[float] = 0.0
    reach: Optional[int] = 0
    clicks: Optional[int] = 0
    conversions: int = 0
    deliverables: List[DeliverableResponse] = []
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeliverableUpdateItem(BaseModel):
    deliverable_id: str
    status: DeliverableStatus
    review_feedback: Optional[str] = None


class DeliverableBulkUpdate(BaseModel):
    updates: List[DeliverableUpdateItem] = Field(..., min_length=1)


# ============================================================================
# CONTENT SCHEMAS
# ============================================================================

class MediaItem(BaseModel):
    url: str
    type: str


class ContentReviewRequest(BaseModel):
    action: str = Field(..., description='"approve" or "reject"')
    review_notes: Optional[str] = None


class ContentPublishRequest(BaseModel):
    external_post_url: Optional[str] = None


class InteractionRequest(BaseModel):
    interaction: str = Field(..., description='"view" or "click"')


class ContentResponse(BaseModel):
    id: str
    campaign_id: str
    influencer_id: str
    product_id: Optional[str] = None
    deliverable_id: Optional[str] = None
    content_type: str
    platforms: Optional[List[str]] = None
    caption: Optional[str] = None
    description: Optional[str] = None
    media: List[MediaItem] = []
    status: ContentStatus
    review_notes: Optional[str] = None
    brand_feedback: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    external_post_url: Optional[str] = None
    published_at: Optional[datetime] = None
    views: int = 0
    clicks: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================

class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: Optional[str] = None
    related_id: Optional[str] = None
    data: Optional[dict] = None
    read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
