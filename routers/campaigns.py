# Campaigns Router for the Collabmart Platform
# Brand-side campaign management: campaigns, products and completion

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional

from database.config import get_db
from database.models import User
from database.marketplace_models import CampaignStatusDB
from schemas.collaboration import (
    CampaignCreate,
    CampaignResponse,
    CampaignStatus,
    CampaignStatusUpdate,
    CollaborationResponse,
)
from schemas.commerce import ProductCreate, ProductResponse
from auth.roles import UserType as UserTypeRole, Permission
from auth.decorators import require_permission, require_user_type
from services.campaign_service import CampaignService
from services.collaboration_lifecycle import CollaborationLifecycle
from services.completion_monitor import CompletionMonitor
from services.task_dispatcher import PendingTasks, TaskDispatcher, get_task_dispatcher
from services.usage_limiter import UsageLimiter, get_usage_limiter

router = APIRouter(prefix="/api/campaigns", tags=["Campaigns"])


# ============================================================================
# CAMPAIGN ENDPOINTS
# ============================================================================

@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(
    request: CampaignCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_CAMPAIGNS)),
):
    """Create a campaign with its deliverable template."""
    data = request.model_dump()
    data["status"] = request.status.value
    return CampaignService(db).create_campaign(current_user, data)


@router.get("", response_model=List[CampaignResponse])
async def list_my_campaigns(
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND)),
):
    """List the signed-in brand's campaigns, newest first."""
    status_db = CampaignStatusDB(status_filter.value) if status_filter else None
    return CampaignService(db).list_for_brand(current_user.id, status_db)


@router.get("/progress-completed", response_model=List[CampaignResponse])
async def list_progress_completed(
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_user_type(UserTypeRole.BRAND)),
):
    """Active campaigns whose collaborations have all reached 100% progress."""
    monitor = CompletionMonitor(db, PendingTasks(dispatcher))
    return monitor.progress_completed_campaigns(current_user.id)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_CAMPAIGNS)),
):
    return CampaignService(db).get_campaign(campaign_id)


@router.put("/{campaign_id}/status", response_model=CampaignResponse)
async def update_campaign_status(
    campaign_id: str,
    request: CampaignStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_CAMPAIGNS)),
):
    """Activate or cancel a campaign."""
    return CampaignService(db).change_status(current_user, campaign_id, request.status.value)


@router.post("/{campaign_id}/complete", response_model=CampaignResponse)
async def complete_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.MANAGE_CAMPAIGNS)),
):
    """
    Complete a campaign once every collaboration is at 100% progress.
    Completing an already completed campaign is a no-op.
    """
    tasks = PendingTasks(dispatcher)
    monitor = CompletionMonitor(db, tasks)
    try:
        campaign = monitor.complete_from_progress(current_user, campaign_id)
        db.commit()
    except Exception:
        db.rollback()
        tasks.discard()
        raise
    tasks.flush()
    db.refresh(campaign)
    return campaign


@router.post("/{campaign_id}/end", response_model=CampaignResponse)
async def end_campaign(
    campaign_id: str,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    current_user: User = Depends(require_permission(Permission.MANAGE_CAMPAIGNS)),
):
    """End an active campaign now: live collaborations complete and products are taken off sale."""
    tasks = PendingTasks(dispatcher)
    monitor = CompletionMonitor(db, tasks)
    try:
        campaign = monitor.end_campaign(current_user, campaign_id)
        db.commit()
    except Exception:
        db.rollback()
        tasks.discard()
        raise
    tasks.flush()
    db.refresh(campaign)
    return campaign


@router.get("/{campaign_id}/deliverables", response_model=List[CollaborationResponse])
async def get_campaign_deliverables(
    campaign_id: str,
    db: Session = Depends(get_db),
    dispatcher: TaskDispatcher = Depends(get_task_dispatcher),
    limiter: UsageLimiter = Depends(get_usage_limiter),
    current_user: User = Depends(require_permission(Permission.MANAGE_COLLABORATIONS)),
):
    """Live collaborations of the campaign with their deliverables."""
    return CollaborationLifecycle(db, dispatcher, limiter).campaign_deliverables(current_user, campaign_id)


# ============================================================================
# PRODUCT ENDPOINTS
# ============================================================================

@router.post("/{campaign_id}/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def add_product(
    campaign_id: str,
    request: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.MANAGE_CAMPAIGNS)),
):
    return CampaignService(db).add_product(current_user, campaign_id, request.model_dump())


@router.get("/{campaign_id}/products", response_model=List[ProductResponse])
async def list_products(
    campaign_id: str,
    db: Session = Depends(get_db),
):
    """Public storefront listing of a campaign's products."""
    return CampaignService(db).get_campaign(campaign_id).products
