"""Services package - business logic layer for Bookmark Admin.

Architecture:
- Services: Stateless functions organized by concern
- Transactions: Managed via session_scope() context manager
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Input validation before database operations

Service Modules:
- category_tree: In-memory CategoryIndex built from a snapshot of the table
- category_service: Category CRUD, move and cascade delete
- category_export_service: Flat CSV export of the categories table

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- logging_utils: Structured operation logging
"""

from . import (
    category_export_service,
    category_service,
    category_tree,
    database,
)
from .category_tree import CategoryIndex, CategoryNode, CategoryRecord, MoveError, MoveValidation
from .exceptions import (
    CategoryMoveError,
    CategoryNotFound,
    CategoryNotFoundBySlug,
    CircularReferenceError,
    DanglingParentReference,
    DatabaseError,
    HierarchyIntegrityError,
    ServiceError,
    ValidationError,
)

__all__ = [
    "category_export_service",
    "category_service",
    "category_tree",
    "database",
    "CategoryIndex",
    "CategoryNode",
    "CategoryRecord",
    "MoveError",
    "MoveValidation",
    "ServiceError",
    "CategoryNotFound",
    "CategoryNotFoundBySlug",
    "ValidationError",
    "CategoryMoveError",
    "HierarchyIntegrityError",
    "DanglingParentReference",
    "CircularReferenceError",
    "DatabaseError",
]
