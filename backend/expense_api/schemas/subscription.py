"""
Pydantic schemas for subscription validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, Literal

from expense_api.core.utils import is_valid_date
from expense_api.schemas.expense import MAX_AMOUNT, reject_null


class SubscriptionCreate(BaseModel):
    """Schema for creating a subscription"""

    name: str = Field(..., min_length=1, max_length=100, description="Service name")
    amount: float = Field(..., gt=0, le=MAX_AMOUNT)
    billing_cycle: Literal["monthly", "annual"] = Field(..., description="monthly or annual")
    start_date: str = Field(..., description="Start date (YYYY-MM-DD)")
    category: str = Field(..., min_length=1, max_length=50)
    is_active: bool = True

    @validator("start_date")
    def validate_start_date(cls, v):
        if not is_valid_date(v):
            raise ValueError("Start date must be a valid date in YYYY-MM-DD format")
        return v

    @validator("name", "category")
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip()


class SubscriptionUpdate(BaseModel):
    """Schema for updating a subscription"""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    amount: Optional[float] = Field(None, gt=0, le=MAX_AMOUNT)
    billing_cycle: Optional[Literal["monthly", "annual"]] = None
    start_date: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1, max_length=50)
    is_active: Optional[bool] = None

    @validator("start_date")
    def validate_start_date(cls, v):
        if v is not None and not is_valid_date(v):
            raise ValueError("Start date must be a valid date in YYYY-MM-DD format")
        return v

    @validator("name", "amount", "billing_cycle", "start_date", "category", "is_active", pre=True)
    def validate_not_null(cls, v):
        return reject_null(v)

    @validator("name", "category")
    def validate_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Value cannot be empty")
        return v.strip() if v is not None else v
