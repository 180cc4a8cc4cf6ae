"""
Expense data access, always scoped to the owning user
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from expense_api.core.errors import NotFoundError, ValidationError
from expense_api.core.utils import now_rfc3339
from expense_api.models.expense import Expense
from expense_api.repositories.category_repository import CategoryRepository

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("date", "amount", "category", "description", "receipt_url")


class ExpenseRepository:
    def __init__(self, db: Session):
        self.db = db
        self.categories = CategoryRepository(db)

    def create(self, data: Dict[str, Any], user_id: str) -> Expense:
        now = now_rfc3339()
        expense = Expense(
            user_id=user_id,
            date=data["date"],
            amount=data["amount"],
            category=data["category"],
            category_id=self.categories.resolve_category_id(data["category"]),
            description=data.get("description"),
            receipt_url=data.get("receipt_url") or None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        logger.info(f"Created expense {expense.id} for user {user_id}")
        return expense

    def find_by_id(self, expense_id: int, user_id: str) -> Optional[Expense]:
        return (
            self.db.query(Expense)
            .filter(Expense.id == expense_id, Expense.user_id == user_id)
            .first()
        )

    def get(self, expense_id: int, user_id: str) -> Expense:
        expense = self.find_by_id(expense_id, user_id)
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense

    def find_all(self, user_id: str, month: Optional[str] = None, category: Optional[str] = None) -> List[Expense]:
        query = self.db.query(Expense).filter(Expense.user_id == user_id)
        if month:
            query = query.filter(Expense.date.like(f"{month}%"))
        if category:
            query = query.filter(Expense.category == category)
        return query.order_by(Expense.date.desc(), Expense.created_at.desc()).all()

    def update(self, expense_id: int, changes: Dict[str, Any], user_id: str) -> Expense:
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if not changes:
            raise ValidationError("No fields to update")

        expense = self.get(expense_id, user_id)
        if "receipt_url" in changes and changes["receipt_url"] == "":
            changes["receipt_url"] = None
        if "category" in changes:
            changes["category_id"] = self.categories.resolve_category_id(changes["category"])

        expense.update_from_dict(changes)
        expense.updated_at = now_rfc3339()
        self.db.commit()
        self.db.refresh(expense)
        return expense

    def delete(self, expense_id: int, user_id: str) -> None:
        deleted = (
            self.db.query(Expense)
            .filter(Expense.id == expense_id, Expense.user_id == user_id)
            .delete(synchronize_session=False)
        )
        if not deleted:
            self.db.rollback()
            raise NotFoundError(f"Expense not found: {expense_id}")
        self.db.commit()
        logger.info(f"Deleted expense {expense_id} for user {user_id}")

    def set_receipt_url(self, expense_id: int, receipt_url: Optional[str], user_id: str) -> Expense:
        expense = self.get(expense_id, user_id)
        expense.receipt_url = receipt_url or None
        expense.updated_at = now_rfc3339()
        self.db.commit()
        self.db.refresh(expense)
        return expense

    def get_receipt_url(self, expense_id: int, user_id: str) -> Optional[str]:
        return self.get(expense_id, user_id).receipt_url

    def clear_receipt_url(self, receipt_url: str, user_id: str) -> int:
        """Detach a deleted receipt from every expense of the user that points at it"""
        count = (
            self.db.query(Expense)
            .filter(Expense.user_id == user_id, Expense.receipt_url == receipt_url)
            .update({"receipt_url": None, "updated_at": now_rfc3339()})
        )
        self.db.commit()
        return count

    def replace_receipt_url(self, old_url: str, new_url: str) -> int:
        """Repoint receipts moved between storage backends"""
        count = (
            self.db.query(Expense)
            .filter(Expense.receipt_url == old_url)
            .update({"receipt_url": new_url})
        )
        self.db.commit()
        return count

    def monthly_summary(self, user_id: str, month: str) -> Dict[str, Any]:
        """
        Totals for one month (YYYY-MM), overall and per category
        """
        rows = (
            self.db.query(
                Expense.category,
                func.sum(Expense.amount),
                func.count(Expense.id),
            )
            .filter(Expense.user_id == user_id, Expense.date.like(f"{month}%"))
            .group_by(Expense.category)
            .order_by(func.sum(Expense.amount).desc())
            .all()
        )

        by_category = [
            {"category": category, "total": total or 0, "count": count}
            for category, total, count in rows
        ]
        return {
            "month": month,
            "total": sum(item["total"] for item in by_category),
            "count": sum(item["count"] for item in by_category),
            "by_category": by_category,
        }
