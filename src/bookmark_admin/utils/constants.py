"""
Constants for the Bookmark Admin backend.

This module defines system-wide constants including:
- Application metadata
- Category tree constants (root sentinel, ordering)
- Validation limits and error messages
- Export column definitions
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Bookmark Admin"
APP_VERSION = "0.1.0"

# ============================================================================
# Category Tree
# ============================================================================

# parent_id of top-level categories; also the id of the synthetic root node
ROOT_CATEGORY_ID = 0
ROOT_CATEGORY_NAME = "Root"
ROOT_CATEGORY_SLUG = "root"

# order_index given to the first child of a parent with no children
FIRST_ORDER_INDEX = 1

# ============================================================================
# Validation Constants
# ============================================================================

# String length limits
MAX_NAME_LENGTH = 255
MAX_SLUG_LENGTH = 255
MAX_TITLE_LENGTH = 255

# ============================================================================
# Database Constants
# ============================================================================

DATABASE_FILENAME = "bookmark_admin.db"

TABLE_CATEGORY = "categories"

# ============================================================================
# Export
# ============================================================================

EXPORT_FILE_PREFIX = "categories"
SUPPORTED_EXPORT_FORMATS: List[str] = ["csv"]

# Columns exported for each category, in order
CATEGORY_EXPORT_FIELDS: List[str] = ["id", "parent_id", "name", "order_index"]

# Header label for each exported column
CATEGORY_EXPORT_LABELS: Dict[str, str] = {
    "id": "Id",
    "parent_id": "Parent",
    "name": "Name",
    "order_index": "Order Index",
}

# ============================================================================
# Date/Time Formats
# ============================================================================

DATE_FORMAT = "%Y-%m-%d"

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_IDS = "ids must be a non-empty list of positive integers"
ERROR_DUPLICATE_NAME = "A category with this name already exists"
ERROR_DUPLICATE_SLUG = "A category with this slug already exists"

# Move validation messages, formatted with the category / parent ids
ERROR_MOVE_SOURCE_NOT_FOUND = "The category that you want to move with id {id} was not found"
ERROR_MOVE_DESTINATION_NOT_FOUND = (
    "The category with id {parent_id}, where you want to move the item, was not found"
)
ERROR_MOVE_WITHIN_CHILD = (
    "You can not move the category in itself or in one of its children. "
    "Trying to move category with id {id} to the category with id {parent_id}"
)
