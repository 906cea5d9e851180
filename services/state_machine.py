# Status graphs for campaigns, collaborations, deliverables, content and orders
#
# Deliverable: pending -> submitted -> {approved, rejected}; approved -> published;
#              rejected -> submitted when new content is submitted.
# Content:     submitted -> {approved, rejected}; approved -> published.

from typing import Dict, Set

from database.commerce_models import OrderStatusDB
from database.marketplace_models import (
    CampaignStatusDB,
    CollaborationStatusDB,
    ContentStatusDB,
    DeliverableStatusDB,
)
from services.errors import StateConflict


DELIVERABLE_TRANSITIONS: Dict[DeliverableStatusDB, Set[DeliverableStatusDB]] = {
    DeliverableStatusDB.PENDING: {DeliverableStatusDB.SUBMITTED},
    DeliverableStatusDB.SUBMITTED: {DeliverableStatusDB.APPROVED, DeliverableStatusDB.REJECTED},
    DeliverableStatusDB.REJECTED: {DeliverableStatusDB.SUBMITTED},
    DeliverableStatusDB.APPROVED: {DeliverableStatusDB.PUBLISHED},
    DeliverableStatusDB.PUBLISHED: set(),
}

CONTENT_TRANSITIONS: Dict[ContentStatusDB, Set[ContentStatusDB]] = {
    ContentStatusDB.SUBMITTED: {ContentStatusDB.APPROVED, ContentStatusDB.REJECTED},
    ContentStatusDB.APPROVED: {ContentStatusDB.PUBLISHED},
    ContentStatusDB.REJECTED: set(),
    ContentStatusDB.PUBLISHED: set(),
}

CAMPAIGN_TRANSITIONS: Dict[CampaignStatusDB, Set[CampaignStatusDB]] = {
    CampaignStatusDB.DRAFT: {CampaignStatusDB.ACTIVE, CampaignStatusDB.CANCELLED},
    CampaignStatusDB.REQUEST: {CampaignStatusDB.ACTIVE, CampaignStatusDB.CANCELLED},
    CampaignStatusDB.INFLUENCER_INVITE: {CampaignStatusDB.ACTIVE, CampaignStatusDB.CANCELLED},
    CampaignStatusDB.BRAND_INVITE: {CampaignStatusDB.ACTIVE, CampaignStatusDB.CANCELLED},
    CampaignStatusDB.ACTIVE: {CampaignStatusDB.COMPLETED, CampaignStatusDB.CANCELLED},
    CampaignStatusDB.COMPLETED: set(),
    CampaignStatusDB.CANCELLED: set(),
}

COLLABORATION_TRANSITIONS: Dict[CollaborationStatusDB, Set[CollaborationStatusDB]] = {
    CollaborationStatusDB.REQUEST: {CollaborationStatusDB.ACTIVE, CollaborationStatusDB.CANCELLED},
    CollaborationStatusDB.BRAND_INVITE: {CollaborationStatusDB.ACTIVE, CollaborationStatusDB.CANCELLED},
    CollaborationStatusDB.INFLUENCER_INVITE: {CollaborationStatusDB.ACTIVE, CollaborationStatusDB.CANCELLED},
    CollaborationStatusDB.ACTIVE: {CollaborationStatusDB.COMPLETED, CollaborationStatusDB.CANCELLED},
    CollaborationStatusDB.COMPLETED: set(),
    CollaborationStatusDB.CANCELLED: set(),
}

ORDER_TRANSITIONS: Dict[OrderStatusDB, Set[OrderStatusDB]] = {
    OrderStatusDB.PENDING: {OrderStatusDB.PAID, OrderStatusDB.CANCELLED},
    OrderStatusDB.PAID: {OrderStatusDB.SHIPPED, OrderStatusDB.CANCELLED},
    OrderStatusDB.SHIPPED: {OrderStatusDB.DELIVERED},
    OrderStatusDB.DELIVERED: set(),
    OrderStatusDB.CANCELLED: set(),
}


def sources_for(target, transitions: Dict) -> Set:
    """Every status from which `target` may be reached in one step."""
    return {source for source, targets in transitions.items() if target in targets}


def ensure_transition(current, target, transitions: Dict, entity: str = "status") -> None:
    if target not in transitions.get(current, set()):
        raise StateConflict(
            f"Cannot change {entity} from '{current.value}' to '{target.value}'"
        )
