"""Slug generation utilities for category naming.

Slugs are URL-safe, deterministic and human readable. Accented characters
are transliterated to ASCII before punctuation is stripped.

Examples:
    >>> create_slug("Web Development")
    'web-development'

    >>> create_slug("Café & Bistro")
    'cafe-bistro'
"""

import re
import unicodedata
from typing import Callable, Optional


def create_slug(name: str) -> str:
    """Generate a URL-friendly slug from a category name.

    Algorithm:
        1. Normalize Unicode to NFD (decompose accented characters)
        2. Encode to ASCII, ignoring non-ASCII characters
        3. Lowercase
        4. Remove everything except word characters, whitespace and hyphens
        5. Replace whitespace and underscores with hyphens
        6. Collapse repeated hyphens and strip them from both ends

    Args:
        name: Display name to slugify

    Returns:
        Lowercase slug with hyphens, or "" for an empty name
    """
    if not name:
        return ""

    normalized = unicodedata.normalize("NFD", name)
    slug = normalized.encode("ascii", "ignore").decode("ascii")
    slug = slug.strip().lower()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")


def make_unique_slug(
    base_slug: str,
    is_taken: Callable[[str], bool],
    max_attempts: Optional[int] = 1000,
) -> str:
    """
    Append a numeric suffix until the slug is free.

    Args:
        base_slug: Slug to start from (e.g. "news")
        is_taken: Callback returning True if a slug is already used
        max_attempts: Upper bound on suffixes tried

    Returns:
        base_slug, or base_slug with "-2", "-3", ... appended

    Raises:
        ValueError: If no free slug is found within max_attempts
    """
    slug = base_slug
    counter = 1

    while is_taken(slug):
        counter += 1
        if max_attempts is not None and counter > max_attempts:
            raise ValueError(f"Unable to generate unique slug for '{base_slug}'")
        slug = f"{base_slug}-{counter}"

    return slug
