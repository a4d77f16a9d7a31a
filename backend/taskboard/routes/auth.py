"""
Auth routes for the Taskboard API.

Sign-in happens against Firebase; the API only exposes who the caller is.
"""

from fastapi import APIRouter, Depends

from taskboard.auth import get_current_user
from taskboard.models import User
from taskboard.schemas import ApiResponse, UserRead

router = APIRouter()


@router.get("/profile", response_model=ApiResponse[UserRead])
async def get_profile(user: User = Depends(get_current_user)) -> ApiResponse[UserRead]:
    """Return the authenticated user, including the role used for access checks."""
    return ApiResponse(data=UserRead.model_validate(user))
