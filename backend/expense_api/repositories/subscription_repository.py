"""
Subscription data access, always scoped to the owning user
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from expense_api.core.errors import NotFoundError, ValidationError
from expense_api.core.utils import now_rfc3339
from expense_api.models.subscription import Subscription
from expense_api.repositories.category_repository import CategoryRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "amount", "billing_cycle", "start_date", "category", "is_active")


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db
        self.categories = CategoryRepository(db)

    def create(self, data: Dict[str, Any], user_id: str) -> Subscription:
        now = now_rfc3339()
        subscription = Subscription(
            user_id=user_id,
            name=data["name"],
            amount=data["amount"],
            billing_cycle=data["billing_cycle"],
            start_date=data["start_date"],
            category=data["category"],
            category_id=self.categories.resolve_category_id(data["category"]),
            is_active=data.get("is_active", True),
            created_at=now,
            updated_at=now,
        )
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Created subscription {subscription.id} for user {user_id}")
        return subscription

    def find_by_id(self, subscription_id: int, user_id: str) -> Optional[Subscription]:
        return (
            self.db.query(Subscription)
            .filter(Subscription.id == subscription_id, Subscription.user_id == user_id)
            .first()
        )

    def get(self, subscription_id: int, user_id: str) -> Subscription:
        subscription = self.find_by_id(subscription_id, user_id)
        if subscription is None:
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        return subscription

    def find_all(self, user_id: str, active_only: bool = False) -> List[Subscription]:
        query = self.db.query(Subscription).filter(Subscription.user_id == user_id)
        if active_only:
            query = query.filter(Subscription.is_active.is_(True))
        return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()

    def update(self, subscription_id: int, changes: Dict[str, Any], user_id: str) -> Subscription:
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if not changes:
            raise ValidationError("No fields to update")

        subscription = self.get(subscription_id, user_id)
        if "category" in changes:
            changes["category_id"] = self.categories.resolve_category_id(changes["category"])

        subscription.update_from_dict(changes)
        subscription.updated_at = now_rfc3339()
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def toggle_status(self, subscription_id: int, user_id: str) -> Subscription:
        subscription = self.get(subscription_id, user_id)
        subscription.is_active = not subscription.is_active
        subscription.updated_at = now_rfc3339()
        self.db.commit()
        self.db.refresh(subscription)
        logger.info(f"Subscription {subscription_id} is_active -> {subscription.is_active}")
        return subscription

    def delete(self, subscription_id: int, user_id: str) -> None:
        deleted = (
            self.db.query(Subscription)
            .filter(Subscription.id == subscription_id, Subscription.user_id == user_id)
            .delete(synchronize_session=False)
        )
        if not deleted:
            self.db.rollback()
            raise NotFoundError(f"Subscription not found: {subscription_id}")
        self.db.commit()

    def calculate_monthly_total(self, user_id: str) -> float:
        """Sum of active subscriptions, annual ones counted as amount / 12"""
        return sum(s.monthly_amount for s in self.find_all(user_id, active_only=True))

    def set_receipt_path(self, subscription_id: int, receipt_path: str, user_id: str) -> Subscription:
        subscription = self.get(subscription_id, user_id)
        subscription.receipt_path = receipt_path
        subscription.updated_at = now_rfc3339()
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def get_receipt_path(self, subscription_id: int, user_id: str) -> Optional[str]:
        return self.get(subscription_id, user_id).receipt_path
