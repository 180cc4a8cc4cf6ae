"""
Expense model
"""

from sqlalchemy import Column, Integer, String, Float, Text, ForeignKey, CheckConstraint

from .base import BaseModel


class Expense(BaseModel):
    """
    A single dated expense, optionally with a receipt stored in object storage
    """
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint("receipt_url IS NULL OR receipt_url LIKE 'https://%'", name="ck_expenses_receipt_url"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(String, nullable=False, index=True)  # YYYY-MM-DD
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    description = Column(Text, nullable=True)
    receipt_url = Column(Text, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)

    def __repr__(self) -> str:
        return f"<Expense(id={self.id}, date={self.date}, amount={self.amount})>"
