"""
Category data access
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from expense_api.core.errors import ConflictError, NotFoundError, ValidationError
from expense_api.core.migrations import FALLBACK_CATEGORY
from expense_api.core.utils import now_rfc3339
from expense_api.models.category import Category

logger = logging.getLogger(__name__)


class CategoryRepository:
    """Categories are shared by all users"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: Dict[str, Any]) -> Category:
        if self.find_by_name(data["name"]) is not None:
            raise ConflictError(f"Category already exists: {data['name']}")

        display_order = data.get("display_order")
        if display_order is None:
            max_order = self.db.query(func.max(Category.display_order)).scalar()
            display_order = (max_order or 0) + 1

        now = now_rfc3339()
        category = Category(
            name=data["name"],
            icon=data["icon"],
            display_order=display_order,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(category)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Category already exists: {data['name']}")
        self.db.refresh(category)

        logger.info(f"Created category {category.id} ({category.name})")
        return category

    def find_by_id(self, category_id: int) -> Optional[Category]:
        return self.db.query(Category).filter(Category.id == category_id).first()

    def find_by_name(self, name: str) -> Optional[Category]:
        return self.db.query(Category).filter(Category.name == name).first()

    def find_all(self, include_inactive: bool = False) -> List[Category]:
        query = self.db.query(Category)
        if not include_inactive:
            query = query.filter(Category.is_active.is_(True))
        return query.order_by(Category.display_order.asc(), Category.id.asc()).all()

    def update(self, category_id: int, changes: Dict[str, Any]) -> Category:
        if not changes:
            raise ValidationError("No fields to update")

        category = self.find_by_id(category_id)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")

        new_name = changes.get("name")
        if new_name and new_name != category.name:
            existing = self.find_by_name(new_name)
            if existing is not None and existing.id != category.id:
                raise ConflictError(f"Category already exists: {new_name}")

        category.update_from_dict(changes)
        category.updated_at = now_rfc3339()
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f"Category already exists: {new_name}")
        self.db.refresh(category)
        return category

    def delete(self, category_id: int) -> None:
        """Soft delete: the category stays referenced but is hidden from lists"""
        category = self.find_by_id(category_id)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")

        category.is_active = False
        category.updated_at = now_rfc3339()
        self.db.commit()
        logger.info(f"Deactivated category {category_id}")

    def resolve_category_id(self, name: str) -> Optional[int]:
        """
        Id of the category with this name, falling back to the catch-all category
        """
        category = self.find_by_name(name)
        if category is None:
            category = self.find_by_name(FALLBACK_CATEGORY)
        return category.id if category is not None else None
