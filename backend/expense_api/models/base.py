"""
Base model class with common functionality
"""

from sqlalchemy.orm import declarative_base
from typing import Any

# Create the base class
Base = declarative_base()


class BaseModel(Base):
    """
    Base model class shared by all database models

    Columns map the schema built by expense_api.core.migrations; dates and
    timestamps are stored as text, so to_dict needs no conversion.
    """
    __abstract__ = True

    def to_dict(self) -> dict[str, Any]:
        """
        Convert model instance to dictionary
        """
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}

    def update_from_dict(self, data: dict[str, Any]) -> None:
        """
        Update model instance from dictionary
        """
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"
