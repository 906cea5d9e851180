# Role-Based Access Control for the Collabmart Platform
# Maps each marketplace user type to what it may do

from enum import Enum
from typing import List, Set

from database.models import UserType


class Permission(str, Enum):
    """Fine-grained permissions for the platform."""

    # Brand permissions
    MANAGE_CAMPAIGNS = "manage_campaigns"
    REVIEW_CONTENT = "review_content"
    MANAGE_COLLABORATIONS = "manage_collaborations"
    MANAGE_ORDERS = "manage_orders"

    # Influencer permissions
    APPLY_TO_CAMPAIGNS = "apply_to_campaigns"
    SUBMIT_CONTENT = "submit_content"
    PUBLISH_CONTENT = "publish_content"

    # Customer permissions
    VIEW_OWN_ORDERS = "view_own_orders"

    # Common permissions
    VIEW_CAMPAIGNS = "view_campaigns"
    VIEW_NOTIFICATIONS = "view_notifications"


# Role to permissions mapping
ROLE_PERMISSIONS: dict[UserType, Set[Permission]] = {
    UserType.BRAND: {
        Permission.MANAGE_CAMPAIGNS,
        Permission.REVIEW_CONTENT,
        Permission.MANAGE_COLLABORATIONS,
        Permission.MANAGE_ORDERS,
        Permission.VIEW_CAMPAIGNS,
        Permission.VIEW_NOTIFICATIONS,
    },

    UserType.INFLUENCER: {
        Permission.APPLY_TO_CAMPAIGNS,
        Permission.SUBMIT_CONTENT,
        Permission.PUBLISH_CONTENT,
        Permission.VIEW_CAMPAIGNS,
        Permission.VIEW_NOTIFICATIONS,
        Permission.VIEW_OWN_ORDERS,
    },

    UserType.CUSTOMER: {
        Permission.VIEW_OWN_ORDERS,
        Permission.VIEW_NOTIFICATIONS,
    },

    UserType.ADMIN: {
        # Admin has ALL permissions
        *Permission.__members__.values()
    },
}


def get_permissions_for_role(user_type: UserType) -> Set[Permission]:
    """Get all permissions for a given user type."""
    return ROLE_PERMISSIONS.get(user_type, set())


def has_any_permission(user_type: UserType, permissions: List[Permission]) -> bool:
    """Check if a user type has any of the given permissions."""
    user_permissions = get_permissions_for_role(user_type)
    return any(p in user_permissions for p in permissions)
