# Auth module for the Collabmart Platform
# Provides role-based access control and authentication dependencies

from auth.roles import (
    UserType,
    Permission,
    ROLE_PERMISSIONS,
    get_permissions_for_role,
    has_any_permission,
)

from auth.decorators import (
    AuthError,
    require_user_type,
    require_permission,
    get_current_influencer,
    require_influencer,
)

__all__ = [
    # Roles
    "UserType",
    "Permission",
    "ROLE_PERMISSIONS",
    "get_permissions_for_role",
    "has_any_permission",

    # Dependencies
    "AuthError",
    "require_user_type",
    "require_permission",
    "get_current_influencer",
    "require_influencer",
]
