# Authentication and Authorization Dependencies for the Collabmart Platform
# Dependency factories that gate endpoints by user type or permission

from fastapi import HTTPException, status, Depends
from sqlalchemy.orm import Session

from database.config import get_db
from database.models import User, InfluencerProfile
from auth.roles import UserType, Permission, has_any_permission
from auth.dependencies import get_current_user


class AuthError(HTTPException):
    """Custom exception for authentication/authorization errors."""

    def __init__(self, detail: str, status_code: int = status.HTTP_403_FORBIDDEN):
        super().__init__(status_code=status_code, detail=detail)


def require_user_type(*allowed_types: UserType):
    """
    Dependency that requires the user to be one of the specified types.

    Usage:
        @router.post("/campaigns")
        async def create_campaign(
            user: User = Depends(require_user_type(UserType.BRAND))
        ):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        user_type = _get_user_type(current_user)

        # Admin can access everything
        if user_type == UserType.ADMIN:
            return current_user

        if user_type not in allowed_types:
            allowed_names = ", ".join(t.value for t in allowed_types)
            raise AuthError(
                detail=f"This endpoint requires user type: {allowed_names}",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


def require_permission(*permissions: Permission):
    """
    Dependency that requires the user to have one of the given permissions.

    Usage:
        @router.post("/content/{content_id}/review")
        async def review(user: User = Depends(require_permission(Permission.REVIEW_CONTENT))):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        user_type = _get_user_type(current_user)

        if not has_any_permission(user_type, list(permissions)):
            raise AuthError(
                detail="You don't have permission to perform this action",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


async def get_current_influencer(
    current_user: User = Depends(require_user_type(UserType.INFLUENCER)),
    db: Session = Depends(get_db),
) -> InfluencerProfile:
    """Resolve the influencer profile of the signed-in influencer."""
    return _influencer_profile(current_user, db)


def require_influencer(*permissions: Permission):
    """
    Resolve the signed-in influencer's profile, provided their role grants
    one of the given permissions.

    Usage:
        @router.post("/{content_id}/publish")
        async def publish(influencer: InfluencerProfile = Depends(require_influencer(Permission.PUBLISH_CONTENT))):
            ...
    """
    async def dependency(
        current_user: User = Depends(require_user_type(UserType.INFLUENCER)),
        db: Session = Depends(get_db),
    ) -> InfluencerProfile:
        if not has_any_permission(_get_user_type(current_user), list(permissions)):
            raise AuthError(
                detail="You don't have permission to perform this action",
                status_code=status.HTTP_403_FORBIDDEN
            )
        return _influencer_profile(current_user, db)

    return dependency


def _influencer_profile(user: User, db: Session) -> InfluencerProfile:
    profile = db.query(InfluencerProfile).filter(
        InfluencerProfile.user_id == user.id
    ).first()

    if not profile:
        raise AuthError(
            detail="Please complete your influencer profile first",
            status_code=status.HTTP_400_BAD_REQUEST
        )

    return profile


def _get_user_type(user: User) -> UserType:
    """Helper to extract UserType from User object."""
    value = user.user_type.value if hasattr(user.user_type, "value") else user.user_type
    try:
        return UserType(str(value).lower())
    except ValueError:
        return UserType.CUSTOMER
