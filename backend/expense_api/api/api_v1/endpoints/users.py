"""
Current user profile endpoints
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import logging

from expense_api.api.deps import get_current_user
from expense_api.api.responses import success
from expense_api.core.database import get_db
from expense_api.models.user import User
from expense_api.repositories.user_repository import UserRepository
from expense_api.schemas.user import UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    return success(user=user.to_dict())


@router.put("/me")
async def update_me(
    payload: UserUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updated = UserRepository(db).update_user(user.id, payload.model_dump(exclude_unset=True))
    return success(user=updated.to_dict())


@router.delete("/me")
async def delete_me(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """
    Delete the account together with its expenses, subscriptions and sessions
    """
    UserRepository(db).delete_user(user.id)
    logger.info(f"User {user.id} deleted their account")
    return success(message="Account deleted")
