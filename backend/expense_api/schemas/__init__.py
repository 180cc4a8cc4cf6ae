"""
Pydantic schemas for API request validation
"""

from .expense import ExpenseCreate, ExpenseUpdate
from .subscription import SubscriptionCreate, SubscriptionUpdate
from .category import CategoryCreate, CategoryUpdate
from .user import GoogleUser, UserUpdate
from .auth import OAuthStartRequest, OAuthCallbackRequest
from .receipt import ReceiptUrlRequest

__all__ = [
    "ExpenseCreate", "ExpenseUpdate",
    "SubscriptionCreate", "SubscriptionUpdate",
    "CategoryCreate", "CategoryUpdate",
    "GoogleUser", "UserUpdate",
    "OAuthStartRequest", "OAuthCallbackRequest",
    "ReceiptUrlRequest",
]
