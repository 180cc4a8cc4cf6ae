"""
Pydantic schemas for expense validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional

from expense_api.core.utils import is_valid_date

MAX_AMOUNT = 9_999_999_999
MAX_DESCRIPTION_LENGTH = 500


def reject_null(v):
    """Explicit nulls are not allowed for columns that cannot be cleared"""
    if v is None:
        raise ValueError("Value cannot be null")
    return v


def _check_receipt_url(v):
    if v and not v.startswith("https://"):
        raise ValueError("Receipt URL must use HTTPS")
    return v


class ExpenseCreate(BaseModel):
    """Schema for creating an expense"""

    date: str = Field(..., description="Expense date (YYYY-MM-DD)")
    amount: float = Field(..., gt=0, le=MAX_AMOUNT, description="Expense amount")
    category: str = Field(..., min_length=1, max_length=50, description="Category name")
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    receipt_url: Optional[str] = Field(None, description="HTTPS URL of the stored receipt")

    @validator("date")
    def validate_date(cls, v):
        if not is_valid_date(v):
            raise ValueError("Date must be a valid date in YYYY-MM-DD format")
        return v

    @validator("category")
    def validate_category(cls, v):
        if not v.strip():
            raise ValueError("Category cannot be empty")
        return v.strip()

    @validator("receipt_url")
    def validate_receipt_url(cls, v):
        return _check_receipt_url(v)


class ExpenseUpdate(BaseModel):
    """Schema for updating an expense; an empty receipt_url clears it"""

    date: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0, le=MAX_AMOUNT)
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=MAX_DESCRIPTION_LENGTH)
    receipt_url: Optional[str] = None

    @validator("date", "amount", "category", pre=True)
    def validate_not_null(cls, v):
        return reject_null(v)

    @validator("date")
    def validate_date(cls, v):
        if v is not None and not is_valid_date(v):
            raise ValueError("Date must be a valid date in YYYY-MM-DD format")
        return v

    @validator("category")
    def validate_category(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Category cannot be empty")
        return v.strip() if v is not None else v

    @validator("receipt_url")
    def validate_receipt_url(cls, v):
        return _check_receipt_url(v)
