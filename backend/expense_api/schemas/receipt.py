"""
Pydantic schemas for receipt file operations
"""

from pydantic import BaseModel, Field


class ReceiptUrlRequest(BaseModel):
    receipt_url: str = Field(
        ...,
        min_length=1,
        alias="receiptUrl",
        description="Receipt URL returned by an upload",
    )

    class Config:
        populate_by_name = True
