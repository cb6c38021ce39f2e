"""
Declarative base shared by all Bookmark Admin models.

BaseModel adds the integer primary key and a column-to-dict projection
used for JSON output.
"""

from typing import Any, Dict

from sqlalchemy import Column, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BaseModel(Base):
    """Abstract model with an ``id`` primary key."""

    __abstract__ = True

    id = Column(Integer, primary_key=True, autoincrement=True)

    def to_dict(self) -> Dict[str, Any]:
        """
        Map every column name to its current value.

        Returns:
            Dictionary of column values, JSON-serializable for the column
            types used in this project
        """
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}

    def __repr__(self) -> str:
        parts = [f"id={self.id}"]
        name = getattr(self, "name", None)
        if name is not None:
            parts.append(f"name='{name}'")
        return f"{self.__class__.__name__}({', '.join(parts)})"
