# Schemas module for the Collabmart Platform
# Organizes all Pydantic schemas in a modular structure

from schemas.collaboration import (
    # Enums
    CampaignStatus,
    CollaborationStatus,
    DeliverableStatus,
    ContentStatus,

    # Campaign schemas
    DeliverableTemplateCreate,
    CampaignCreate,
    CampaignStatusUpdate,
    CampaignResponse,

    # Collaboration schemas
    InviteInfluencerRequest,
    RespondRequest,
    DeliverableResponse,
    CollaborationResponse,
    DeliverableUpdateItem,
    DeliverableBulkUpdate,

    # Content schemas
    ContentReviewRequest,
    ContentPublishRequest,
    InteractionRequest,
    ContentResponse,

    # Notification schemas
    NotificationResponse,
)

from schemas.commerce import (
    ProductStatus,
    OrderStatus,
    ProductCreate,
    ProductResponse,
    CartItem,
    CustomerDetails,
    CheckoutRequest,
    QuoteRequest,
    QuoteResponse,
    OrderResponse,
    CheckoutResponse,
    OrderStatusUpdate,
)

__all__ = [
    # Enums
    "CampaignStatus",
    "CollaborationStatus",
    "DeliverableStatus",
    "ContentStatus",
    "ProductStatus",
    "OrderStatus",

    # Campaign
    "DeliverableTemplateCreate",
    "CampaignCreate",
    "CampaignStatusUpdate",
    "CampaignResponse",

    # Collaboration
    "InviteInfluencerRequest",
    "RespondRequest",
    "DeliverableResponse",
    "CollaborationResponse",
    "DeliverableUpdateItem",
    "DeliverableBulkUpdate",

    # Content
    "ContentReviewRequest",
    "ContentPublishRequest",
    "InteractionRequest",
    "ContentResponse",

    # Storefront
    "ProductCreate",
    "ProductResponse",
    "CartItem",
    "CustomerDetails",
    "CheckoutRequest",
    "QuoteRequest",
    "QuoteResponse",
    "OrderResponse",
    "CheckoutResponse",
    "OrderStatusUpdate",

    # Notification
    "NotificationResponse",
]
