"""Category API routes."""

from fastapi import APIRouter, Depends

from tally.api.deps import get_category_service, get_current_user
from tally.models.user import User
from tally.schemas.category import CategoryCreate, CategoryResponse, CategoryUpdate
from tally.services.category_service import CategoryService

router = APIRouter()


@router.get("", response_model=list[CategoryResponse])
async def list_categories(
    current_user: User = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    """List the user's categories, seeding the defaults for a user with none."""
    return await service.ensure_default_categories(current_user)


@router.post("", response_model=CategoryResponse, status_code=201)
async def create_category(
    data: CategoryCreate,
    current_user: User = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    return await service.create_category(data, current_user)


@router.patch("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    current_user: User = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    return await service.update_category(category_id, data, current_user)


@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: int,
    current_user: User = Depends(get_current_user),
    service: CategoryService = Depends(get_category_service),
):
    """Delete a category. Its items stay, uncategorized."""
    await service.delete_category(category_id, current_user)
