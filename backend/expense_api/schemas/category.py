"""
Pydantic schemas for category validation
"""

from pydantic import BaseModel, Field, validator
from typing import Optional

from expense_api.schemas.expense import reject_null

MAX_CATEGORY_NAME_LENGTH = 50


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=MAX_CATEGORY_NAME_LENGTH)
    icon: str = Field(..., min_length=1, max_length=16, description="Emoji icon")
    display_order: Optional[int] = Field(None, ge=0, description="Defaults to the end of the list")

    @validator("name")
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError("Category name cannot be empty")
        return v.strip()


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=MAX_CATEGORY_NAME_LENGTH)
    icon: Optional[str] = Field(None, min_length=1, max_length=16)
    display_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None

    @validator("name")
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("Category name cannot be empty")
        return v.strip() if v is not None else v

    @validator("name", "icon", "display_order", "is_active", pre=True)
    def validate_not_null(cls, v):
        return reject_null(v)
