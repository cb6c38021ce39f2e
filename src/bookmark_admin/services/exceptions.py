"""Service layer exception classes for Bookmark Admin.

This module defines all custom exceptions used by the service layer to provide
consistent error handling across the application.

Exception Hierarchy:
    ServiceError (base)
    ├── CategoryNotFound
    ├── CategoryNotFoundBySlug
    ├── ValidationError
    │   └── CategoryMoveError
    ├── HierarchyIntegrityError
    │   ├── DanglingParentReference
    │   └── CircularReferenceError
    └── DatabaseError
"""

from typing import Dict, List, Optional


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class CategoryNotFound(ServiceError):
    """Raised when a category cannot be found by ID.

    Args:
        category_id: The category ID that was not found

    Example:
        >>> raise CategoryNotFound(123)
        CategoryNotFound: Category with ID 123 not found
    """

    def __init__(self, category_id: int):
        self.category_id = category_id
        super().__init__(f"Category with ID {category_id} not found")


class CategoryNotFoundBySlug(ServiceError):
    """Raised when a category cannot be found by slug."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Category '{slug}' not found")


class ValidationError(ServiceError):
    """Raised when data validation fails.

    Args:
        errors: Human readable messages, one per failed rule
        field_errors: Optional mapping of field name to the messages for that field,
            so callers can report exactly which input was rejected

    Example:
        >>> raise ValidationError(["name: This field is required"], {"name": ["..."]})
        ValidationError: Validation failed: name: This field is required
    """

    def __init__(self, errors: List[str], field_errors: Optional[Dict[str, List[str]]] = None):
        self.errors = errors
        self.field_errors = field_errors or {}
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class CategoryMoveError(ValidationError):
    """Raised when a category cannot be placed under the requested parent.

    Args:
        reason: MoveError value describing the failed rule
        category_id: The category being moved
        parent_id: The requested parent
        message: Human readable explanation
    """

    def __init__(self, reason, category_id: int, parent_id: int, message: str):
        self.reason = reason
        self.category_id = category_id
        self.parent_id = parent_id
        super().__init__([message], {"parent_id": [message]})


class HierarchyIntegrityError(ServiceError):
    """Raised when stored category rows do not form a valid tree."""

    pass


class DanglingParentReference(HierarchyIntegrityError):
    """Raised when a category points at a parent id that does not exist.

    Args:
        category_id: The category holding the bad reference
        parent_id: The parent id that could not be resolved
    """

    def __init__(self, category_id: int, parent_id: int):
        self.category_id = category_id
        self.parent_id = parent_id
        super().__init__(
            f"Category {category_id} references missing parent category {parent_id}"
        )


class CircularReferenceError(HierarchyIntegrityError):
    """Raised when following parent references loops back on itself.

    Args:
        category_id: The category whose ancestor chain loops
        parent_id: The parent reference where the loop was detected
    """

    def __init__(self, category_id: int, parent_id: int):
        self.category_id = category_id
        self.parent_id = parent_id
        super().__init__(
            f"Category {category_id} is part of a circular parent chain "
            f"(detected at parent {parent_id})"
        )


class DatabaseError(ServiceError):
    """Raised when a database operation fails."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")
