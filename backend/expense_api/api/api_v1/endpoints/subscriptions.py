"""
Subscription endpoints
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from expense_api.api.deps import get_current_user, require_permission
from expense_api.api.responses import success
from expense_api.core.database import get_db
from expense_api.models.user import User
from expense_api.repositories.subscription_repository import SubscriptionRepository
from expense_api.schemas.subscription import SubscriptionCreate, SubscriptionUpdate

router = APIRouter()


@router.get("/monthly-total")
async def monthly_total(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Monthly cost of all active subscriptions"""
    repository = SubscriptionRepository(db)
    return success(
        monthlyTotal=repository.calculate_monthly_total(user.id),
        activeSubscriptions=len(repository.find_all(user.id, active_only=True)),
    )


@router.get("")
async def list_subscriptions(
    active_only: bool = Query(False, alias="activeOnly"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    subscriptions = SubscriptionRepository(db).find_all(user.id, active_only=active_only)
    return success(
        subscriptions=[s.to_dict() for s in subscriptions],
        count=len(subscriptions),
        activeOnly=active_only,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    payload: SubscriptionCreate,
    user: User = Depends(require_permission("subscriptions")),
    db: Session = Depends(get_db),
):
    subscription = SubscriptionRepository(db).create(payload.model_dump(), user.id)
    return success(subscription=subscription.to_dict())


@router.get("/{subscription_id}")
async def get_subscription(
    subscription_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return success(subscription=SubscriptionRepository(db).get(subscription_id, user.id).to_dict())


@router.put("/{subscription_id}")
async def update_subscription(
    subscription_id: int,
    payload: SubscriptionUpdate,
    user: User = Depends(require_permission("subscriptions")),
    db: Session = Depends(get_db),
):
    subscription = SubscriptionRepository(db).update(
        subscription_id, payload.model_dump(exclude_unset=True), user.id
    )
    return success(subscription=subscription.to_dict())


@router.patch("/{subscription_id}/toggle")
async def toggle_subscription(
    subscription_id: int,
    user: User = Depends(require_permission("subscriptions")),
    db: Session = Depends(get_db),
):
    subscription = SubscriptionRepository(db).toggle_status(subscription_id, user.id)
    return success(subscription=subscription.to_dict())


@router.delete("/{subscription_id}")
async def delete_subscription(
    subscription_id: int,
    user: User = Depends(require_permission("subscriptions")),
    db: Session = Depends(get_db),
):
    SubscriptionRepository(db).delete(subscription_id, user.id)
    return success(message="Subscription deleted", id=subscription_id)
