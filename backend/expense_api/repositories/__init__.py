"""
Data access layer
"""

from .user_repository import UserRepository
from .expense_repository import ExpenseRepository
from .subscription_repository import SubscriptionRepository
from .category_repository import CategoryRepository

__all__ = ["UserRepository", "ExpenseRepository", "SubscriptionRepository", "CategoryRepository"]
