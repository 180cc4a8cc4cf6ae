"""
Subscription model
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, Text, ForeignKey, CheckConstraint

from .base import BaseModel

BILLING_CYCLES = ("monthly", "annual")


class Subscription(BaseModel):
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("billing_cycle IN ('monthly', 'annual')", name="ck_subscriptions_billing_cycle"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    billing_cycle = Column(String, nullable=False)
    start_date = Column(String, nullable=False)
    category = Column(String, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    receipt_path = Column(Text, nullable=True)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)

    @property
    def monthly_amount(self) -> float:
        """Amount normalized to one month"""
        if self.billing_cycle == "annual":
            return self.amount / 12
        return self.amount

    def __repr__(self) -> str:
        return f"<Subscription(id={self.id}, name={self.name}, cycle={self.billing_cycle})>"
