"""
Input checks shared by the category services.

String checks return ``(is_valid, message)`` tuples so a service can
collect every failed rule per field before raising one ValidationError.
"""

from typing import Any, Iterable, List, Optional, Tuple

from .constants import ERROR_REQUIRED_FIELD


def validate_required_string(value: Optional[str], field_name: str = "Field") -> Tuple[bool, str]:
    """
    Reject None, empty and whitespace-only strings.

    Returns:
        (True, "") or (False, "<field_name>: This field is required")
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False, f"{field_name}: {ERROR_REQUIRED_FIELD}"
    return True, ""


def validate_string_length(
    value: Optional[str], max_length: int, field_name: str = "Field"
) -> Tuple[bool, str]:
    """
    Reject strings longer than max_length. Empty values pass.

    Returns:
        (True, "") or (False, "<field_name>: Must be N characters or less")
    """
    if value and len(value) > max_length:
        return False, f"{field_name}: Must be {max_length} characters or less"
    return True, ""


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Strip surrounding whitespace; blank strings become None."""
    if value is None:
        return None
    return value.strip() or None


def is_positive_integer(value: Any) -> bool:
    """Return True for positive ints and for strings made only of digits (not zero)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    if isinstance(value, str):
        stripped = value.strip()
        return stripped.isdigit() and int(stripped) > 0
    return False


def transform_to_positive_integers(values: Optional[Iterable[Any]]) -> Optional[List[int]]:
    """
    Convert a list of ids to ints, rejecting the whole list on any bad value.

    Used by batch operations (e.g. deleting several categories) where
    the ids come from user input.

    Args:
        values: Ids as ints or digit strings

    Returns:
        List of ints in input order, or None if the list is empty or any
        value is not a positive integer
    """
    if not values:
        return None

    result = []
    for value in values:
        if not is_positive_integer(value):
            return None
        result.append(int(value))
    return result
