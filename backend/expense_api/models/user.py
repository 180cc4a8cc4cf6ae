"""
User and session models
"""

from sqlalchemy import Column, String, Text, ForeignKey

from .base import BaseModel


class User(BaseModel):
    """
    A Google account that owns expenses, subscriptions and receipts
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True)  # nanoid
    google_id = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    picture_url = Column(Text, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email})>"


class UserSession(BaseModel):
    __tablename__ = "sessions"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(String, nullable=False, index=True)
    created_at = Column(String, nullable=False)
