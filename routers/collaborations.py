# Collaborations Router for the Collabmart Platform
# Applications, invitations and deliverable review between brands and influencers

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database.config import get_db
from database.models import User, InfluencerProfile
from database.marketplace_models import CollaborationStatusDB
from schemas.collaboration import (
    CollaborationResponse,
    CollaborationStatus,
    DeliverableBulkUpdate,
    InviteInfluencerRequest,
    RespondRequest,
)
from auth.dependencies import get_current_user
from auth.roles import Permission
from auth.decorators import get_current_influencer, require_influencer, require_permission
from services.collaboration_lifecycle import CollaborationLifecycle
from services.content_workflow import ContentWorkflow
from services.task_dispatcher import TaskDispatcher, get_task_dispatcher
from services.usage_limiter import UsageLimiter, get_usage_limiter

router = APIRouter(prefix="/api/collaborations", tags=["Collaborations"])


def get_lifecycle(
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    limiter: UsageLimiter = Depends(get_usage_limiter),
) -> CollaborationLifecycle:
    return CollaborationLifecycle(db, dispatcher, limiter)


# ============================================================================
# INFLUENCER ENDPOINTS
# ============================================================================

@router.post("/campaigns/{campaign_id}/apply", response_model=CollaborationResponse, status_code=status.HTTP_201_CREATED)
async def apply_to_campaign(
    campaign_id: str,
    lifecycle: CollaborationLifecycle = Depends(get_lifecycle),
    influencer: InfluencerProfile = Depends(require_influencer(Permission.APPLY_TO_CAMPAIGNS)),
):
    """
    Apply to a campaign. If the brand already invited this influencer the
    invitation is accepted instead.
    """
    return lifecycle.apply(influencer, campaign_id)


@router.post("/campaigns/{campaign_id}/propose", response_model=CollaborationResponse, status_code=status.HTTP_201_CREATED)
async def propose_to_brand(
    campaign_id: str,
    lifecycle: CollaborationLifecycle = Depends(get_lifecycle),
    influencer: InfluencerProfile = Depends(require_influencer(Permission.APPLY_TO_CAMPAIGNS)),
):
    """Influencer invites the brand to collaborate on a campaign."""
    return lifecycle.invite_brand(influencer, campaign_id)


@router.post("/{collaboration_id}/respond-invite", response_model=CollaborationResponse)
async def respond_to_brand_invite(
    collaboration_id: str,
    request: RespondRequest,
    lifecycle: CollaborationLifecycle = Depends(get_lifecycle),
    influencer: InfluencerProfile = Depends(require_influencer(Permission.APPLY_TO_CAMPAIGNS)),
):
    return lifecycle.respond_to_invite(influencer, collaboration_id, request.accept)


@router.get("/mine", response_model=List[CollaborationResponse])
async def list_my_collaborations(
    status_filter: Optional[CollaborationStatus] = Query(None, alias="status"),
    lifecycle: CollaborationLifecycle = Depends(get_lifecycle),
    influencer: InfluencerProfile = Depends(get_current_influencer),
):
    status_db = CollaborationStatusDB(status_filter.value) if status_filter else None
    return lifecycle.list_for_influencer(influencer, status_db)


# ============================================================================
# BRAND ENDPOINTS
# ============================================================================

@router.post("/campaigns/{campaign_id}/invite", response_model=CollaborationResponse, status_code=status.HTTP_201_CREATED)
async def invite_influencer(
    campaign_id: str,
    request: InviteInfluencerRequest,
    lifecycle: CollaborationLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(require_permission(Permission.MANAGE_COLLABORATIONS)),
):
    return lifecycle.invite_influencer(current_user, campaign_id, request.influencer_id)


@router.post("/{collaboration_id}/respond-request", response_model=CollaborationResponse)
async def respond_to_request(
    collaboration_id: str,
    request: RespondRequest,
    lifecycle: CollaborationLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(require_permission(Permission.MANAGE_COLLABORATIONS)),
):
    """Accept or decline an influencer's application or proposal."""
    return lifecycle.respond_to_request(current_user, collaboration_id, request.accept)


@router.put("/{collaboration_id}/deliverables", response_model=CollaborationResponse)
async def update_deliverables(
    collaboration_id: str,
    request: DeliverableBulkUpdate,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.REVIEW_CONTENT)),
):
    """Approve or reject several deliverables at once. Progress is recomputed."""
    updates = [
        {
            "deliverable_id": item.deliverable_id,
            "status": item.status.value,
            "review_feedback": item.review_feedback,
        }
        for item in request.updates
    ]
    return ContentWorkflow(db, dispatcher).update_deliverables(current_user, collaboration_id, updates)


# ============================================================================
# SHARED
# ============================================================================

@router.get("/{collaboration_id}", response_model=CollaborationResponse)
async def get_collaboration(
    collaboration_id: str,
    lifecycle: CollaborationLifecycle = Depends(get_lifecycle),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.get_for_user(current_user, collaboration_id)
