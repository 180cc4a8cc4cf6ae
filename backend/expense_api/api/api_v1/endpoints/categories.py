"""
Category endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from expense_api.api.deps import get_current_user
from expense_api.api.responses import success
from expense_api.core.database import get_db
from expense_api.core.errors import NotFoundError
from expense_api.models.user import User
from expense_api.repositories.category_repository import CategoryRepository
from expense_api.schemas.category import CategoryCreate, CategoryUpdate

router = APIRouter()


@router.get("")
async def list_categories(
    include_inactive: bool = Query(False, alias="includeInactive"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    categories = CategoryRepository(db).find_all(include_inactive=include_inactive)
    return success(categories=[c.to_dict() for c in categories], count=len(categories))


@router.get("/{category_id}")
async def get_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    category = CategoryRepository(db).find_by_id(category_id)
    if category is None:
        raise NotFoundError(f"Category not found: {category_id}")
    return success(category=category.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    category = CategoryRepository(db).create(payload.model_dump())
    return success(category=category.to_dict())


@router.put("/{category_id}")
async def update_category(
    category_id: int,
    payload: CategoryUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    category = CategoryRepository(db).update(category_id, payload.model_dump(exclude_unset=True))
    return success(category=category.to_dict())


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Deactivate a category; existing expenses keep referencing it"""
    CategoryRepository(db).delete(category_id)
    return success(message="Category deactivated", id=category_id)
