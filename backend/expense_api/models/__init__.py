"""
Database models package
"""

from .base import Base, BaseModel
from .user import User, UserSession
from .expense import Expense
from .subscription import Subscription, BILLING_CYCLES
from .category import Category

__all__ = [
    "Base", "BaseModel", "User", "UserSession", "Expense", "Subscription", "Category",
    "BILLING_CYCLES",
]
