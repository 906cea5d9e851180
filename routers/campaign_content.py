"""
Campaign Content Router
Influencers submit and publish campaign content; brands review it.
"""

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from database.config import get_db
from database.models import User, InfluencerProfile
from schemas.collaboration import (
    ContentPublishRequest,
    ContentResponse,
    ContentReviewRequest,
    InteractionRequest,
)
from auth.dependencies import get_current_user
from auth.roles import Permission
from auth.decorators import require_influencer, require_permission
from core.media_storage import MediaFile, MediaStorage, get_media_storage
from services.content_workflow import ContentWorkflow
from services.task_dispatcher import TaskDispatcher, get_task_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/campaign-content", tags=["Campaign Content"])


def _split_platforms(platforms: Optional[List[str]]) -> List[str]:
    # accepts repeated form fields as well as "instagram,tiktok"
    result = []
    for value in platforms or []:
        result.extend(p.strip() for p in value.split(",") if p.strip())
    return result


# ============================================================================
# INFLUENCER ENDPOINTS
# ============================================================================

@router.post("/submit", response_model=ContentResponse, status_code=status.HTTP_201_CREATED)
async def submit_content(
    campaign_id: Optional[str] = Form(None),
    content_type: Optional[str] = Form(None),
    platforms: Optional[List[str]] = Form(None),
    description: Optional[str] = Form(None),
    product_id: Optional[str] = Form(None),
    caption: Optional[str] = Form(None),
    deliverable_id: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    storage: MediaStorage = Depends(get_media_storage),
    influencer: InfluencerProfile = Depends(require_influencer(Permission.SUBMIT_CONTENT)),
):
    """
    Submit content for a campaign with its media files.

    When deliverable_id is given the deliverable moves to submitted in the
    same transaction. Uploaded media is removed again if anything fails.
    """
    media_files = []
    for upload in files or []:
        media_files.append(MediaFile(
            filename=upload.filename or "upload",
            content_type=upload.content_type or "application/octet-stream",
            data=await upload.read(),
        ))

    workflow = ContentWorkflow(db, dispatcher, storage)
    return workflow.submit_content(
        influencer,
        campaign_id=campaign_id,
        content_type=content_type,
        platforms=_split_platforms(platforms),
        description=description,
        product_id=product_id,
        files=media_files,
        caption=caption,
        deliverable_id=deliverable_id,
    )


@router.post("/{content_id}/publish", response_model=ContentResponse)
async def publish_content(
    content_id: str,
    request: ContentPublishRequest,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    influencer: InfluencerProfile = Depends(require_influencer(Permission.PUBLISH_CONTENT)),
):
    """Mark approved content as live on the influencer's channel."""
    return ContentWorkflow(db, dispatcher).publish_content(influencer, content_id, request.external_post_url)


# ============================================================================
# BRAND ENDPOINTS
# ============================================================================

@router.get("/pending", response_model=List[ContentResponse])
async def list_pending_content(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.REVIEW_CONTENT)),
):
    """Content waiting for the brand's review, oldest first."""
    return ContentWorkflow(db, dispatcher).pending_for_brand(current_user.id, page, limit)


@router.post("/{content_id}/review", response_model=ContentResponse)
async def review_content(
    content_id: str,
    request: ContentReviewRequest,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.REVIEW_CONTENT)),
):
    return ContentWorkflow(db, dispatcher).review_content(
        current_user, content_id, request.action, request.review_notes
    )


# ============================================================================
# PUBLIC ENDPOINTS
# ============================================================================

@router.get("/campaigns/{campaign_id}/published", response_model=List[ContentResponse])
async def list_published_content(
    campaign_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
):
    return ContentWorkflow(db, dispatcher).published_for_campaign(campaign_id, page, limit)


@router.post("/{content_id}/track", response_model=ContentResponse)
async def track_interaction(
    content_id: str,
    request: InteractionRequest,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
):
    """Count a view or click on published content."""
    return ContentWorkflow(db, dispatcher).track_interaction(content_id, request.interaction)


@router.get("/{content_id}", response_model=ContentResponse)
async def get_content(
    content_id: str,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(get_current_user),
):
    return ContentWorkflow(db, dispatcher).get_content_for(current_user, content_id)
