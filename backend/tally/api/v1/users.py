"""User management API routes."""

from fastapi import APIRouter, Depends, Request

from tally.api.deps import get_current_user, get_user_service
from tally.models.user import User
from tally.schemas.user import UserResponse, UserUpdate
from tally.services.user_service import UserService

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_profile(current_user: User = Depends(get_current_user)):
    """Get current user profile."""
    return current_user


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Update name fields and the theme preference."""
    return await service.update_profile(current_user, data)


@router.delete("/me", status_code=204)
async def delete_account(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    """Delete the account with all its items and categories."""
    await service.delete_account(current_user)
    request.session.clear()
