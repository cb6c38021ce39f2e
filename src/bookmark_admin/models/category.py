"""
Category model for the link directory.

Categories form a tree through a flat parent pointer: ``parent_id`` is
the id of the parent category, or 0 for top-level categories (never
NULL). Sibling order is given by ``order_index``.

The tree itself is never loaded through ORM relationships; services read
the whole table as CategoryRecord rows and build a CategoryIndex from them.
"""

from sqlalchemy import Column, Index, Integer, String, Text

from ..utils.constants import (
    MAX_NAME_LENGTH,
    MAX_SLUG_LENGTH,
    MAX_TITLE_LENGTH,
    ROOT_CATEGORY_ID,
    TABLE_CATEGORY,
)
from .base import BaseModel


class Category(BaseModel):
    """
    Category model representing one node of the link directory tree.

    Attributes:
        parent_id: Parent category id, 0 for top-level categories
        name: Display name (unique)
        slug: URL-friendly identifier (unique)
        order_index: Position among siblings
        title: Optional page title
        content: Optional description text
    """

    __tablename__ = TABLE_CATEGORY

    parent_id = Column(Integer, nullable=False, default=ROOT_CATEGORY_ID)
    name = Column(String(MAX_NAME_LENGTH), nullable=False, unique=True)
    slug = Column(String(MAX_SLUG_LENGTH), nullable=False, unique=True)
    order_index = Column(Integer, nullable=False, default=0)
    title = Column(String(MAX_TITLE_LENGTH), nullable=True)
    content = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_category_parent_order", "parent_id", "order_index"),
    )

    def to_record(self):
        """
        Project this row onto the fields used by the tree engine.

        Returns:
            CategoryRecord with id, parent_id, name, slug and order_index
        """
        # Lazy import to avoid circular dependency
        from ..services.category_tree import CategoryRecord

        return CategoryRecord(
            id=self.id,
            parent_id=self.parent_id,
            name=self.name,
            slug=self.slug,
            order_index=self.order_index,
        )

    def __repr__(self) -> str:
        """String representation of category."""
        return f"<Category(id={self.id}, name='{self.name}', parent_id={self.parent_id})>"
