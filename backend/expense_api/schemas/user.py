"""
Pydantic schemas for users
"""

from pydantic import BaseModel, Field, EmailStr, validator
from typing import Optional

from expense_api.schemas.expense import reject_null


class GoogleUser(BaseModel):
    """Profile returned by the Google userinfo endpoint"""

    id: str
    email: EmailStr
    verified_email: bool = False
    name: str = ""
    picture: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    picture_url: Optional[str] = Field(None, max_length=2048)

    @validator("name", pre=True)
    def validate_not_null(cls, v):
        return reject_null(v)
