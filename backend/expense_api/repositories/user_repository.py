"""
User data access
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from expense_api.core.errors import NotFoundError, ValidationError
from expense_api.core.utils import generate_nanoid, now_rfc3339
from expense_api.models.user import User
from expense_api.schemas.user import GoogleUser

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "picture_url")


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_or_create_user(self, google_user: GoogleUser) -> User:
        """
        Return the user for a Google account, creating it on first login

        Returning users get their e-mail, name and picture refreshed from Google.
        """
        user = self.get_user_by_google_id(google_user.id)
        now = now_rfc3339()

        if user is not None:
            user.email = google_user.email
            user.name = google_user.name or user.name
            user.picture_url = google_user.picture
            user.updated_at = now
            self.db.commit()
            self.db.refresh(user)
            logger.debug(f"Existing user signed in: {user.id}")
            return user

        user = User(
            id=generate_nanoid(),
            google_id=google_user.id,
            email=google_user.email,
            name=google_user.name or google_user.email,
            picture_url=google_user.picture,
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Created user {user.id}")
        return user

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_google_id(self, google_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.google_id == google_id).first()

    def update_user(self, user_id: str, changes: Dict[str, Any]) -> User:
        changes = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS}
        if not changes:
            raise ValidationError("No fields to update")

        user = self.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User not found: {user_id}")

        user.update_from_dict(changes)
        user.updated_at = now_rfc3339()
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete_user(self, user_id: str) -> None:
        """Delete a user; expenses, subscriptions and sessions cascade"""
        deleted = self.db.query(User).filter(User.id == user_id).delete(synchronize_session=False)
        if not deleted:
            self.db.rollback()
            raise NotFoundError(f"User not found: {user_id}")
        self.db.commit()
        self.db.expire_all()
        logger.info(f"Deleted user {user_id}")
