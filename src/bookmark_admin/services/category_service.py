"""
Category Service - CRUD and tree operations for link directory categories.

Every operation that needs tree context reads a fresh snapshot of the
categories table, builds a CategoryIndex from it, checks the request
against that index and then writes rows. Indexes are never cached between
calls.

Session Management Pattern:
- All functions accept optional `session` parameter
- If session is provided, use it directly (allows callers to manage transactions)
- If session is None, create a new session_scope for the operation

Known race: the snapshot read and the write are not protected by row
locks, so a concurrent writer can change the parent chain between the
check and the write. Parent-changing writes therefore rebuild the index
from the same transaction after flushing; if the combined result is no
longer a tree, CircularReferenceError is raised and the transaction must
be rolled back (session_scope does this automatically).
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models.category import Category
from ..utils.constants import (
    ERROR_DUPLICATE_NAME,
    ERROR_DUPLICATE_SLUG,
    ERROR_INVALID_IDS,
    ERROR_MOVE_DESTINATION_NOT_FOUND,
    MAX_NAME_LENGTH,
    MAX_SLUG_LENGTH,
    MAX_TITLE_LENGTH,
    ROOT_CATEGORY_ID,
)
from ..utils.slug_utils import create_slug, make_unique_slug
from ..utils.validators import (
    sanitize_string,
    transform_to_positive_integers,
    validate_required_string,
    validate_string_length,
)
from .category_tree import CategoryIndex, CategoryRecord
from .database import session_scope
from .exceptions import CategoryNotFound, CategoryNotFoundBySlug, ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


# ============================================================================
# Snapshot / Index
# ============================================================================


def _fetch_records(session: Session) -> List[CategoryRecord]:
    rows = (
        session.query(
            Category.id,
            Category.parent_id,
            Category.name,
            Category.slug,
            Category.order_index,
        )
        .order_by(Category.parent_id, Category.order_index, Category.id)
        .all()
    )
    return [
        CategoryRecord(
            id=row.id,
            parent_id=row.parent_id,
            name=row.name,
            slug=row.slug,
            order_index=row.order_index,
        )
        for row in rows
    ]


def get_category_records(session: Optional[Session] = None) -> List[CategoryRecord]:
    """
    Read every category as a CategoryRecord, ordered by parent_id, order_index.

    Args:
        session: Optional database session

    Returns:
        List of CategoryRecord
    """
    if session is not None:
        return _fetch_records(session)

    with session_scope() as sess:
        return _fetch_records(sess)


def load_category_index(session: Optional[Session] = None) -> CategoryIndex:
    """
    Build a CategoryIndex from a fresh snapshot of the categories table.

    Args:
        session: Optional database session

    Returns:
        CategoryIndex for this snapshot

    Raises:
        DanglingParentReference: If a stored parent_id points nowhere
        CircularReferenceError: If stored parent ids form a loop
    """
    return CategoryIndex.build(get_category_records(session=session))


def _verify_tree_integrity(session: Session) -> None:
    """Rebuild from the current transaction; raises if the rows no longer form a tree."""
    CategoryIndex.build(_fetch_records(session))


# ============================================================================
# Validation helpers
# ============================================================================


def _name_taken(session: Session, name: str, exclude_id: Optional[int] = None) -> bool:
    query = session.query(Category.id).filter(Category.name == name)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def _slug_taken(session: Session, slug: str, exclude_id: Optional[int] = None) -> bool:
    query = session.query(Category.id).filter(Category.slug == slug)
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first() is not None


def _check_name(
    session: Session,
    name: Optional[str],
    field_errors: Dict[str, List[str]],
    exclude_id: Optional[int] = None,
) -> None:
    is_valid, error = validate_required_string(name, "name")
    if is_valid:
        is_valid, error = validate_string_length(name, MAX_NAME_LENGTH, "name")
    if is_valid and _name_taken(session, name, exclude_id):
        is_valid, error = False, f"name: {ERROR_DUPLICATE_NAME}"
    if not is_valid:
        field_errors.setdefault("name", []).append(error)


def _check_slug(
    session: Session,
    slug: Optional[str],
    field_errors: Dict[str, List[str]],
    exclude_id: Optional[int] = None,
) -> None:
    is_valid, error = validate_required_string(slug, "slug")
    if is_valid:
        is_valid, error = validate_string_length(slug, MAX_SLUG_LENGTH, "slug")
    if is_valid and _slug_taken(session, slug, exclude_id):
        is_valid, error = False, f"slug: {ERROR_DUPLICATE_SLUG}"
    if not is_valid:
        field_errors.setdefault("slug", []).append(error)


def _check_title(title: Optional[str], field_errors: Dict[str, List[str]]) -> None:
    is_valid, error = validate_string_length(title, MAX_TITLE_LENGTH, "title")
    if not is_valid:
        field_errors.setdefault("title", []).append(error)


def _raise_for_field_errors(operation: str, field_errors: Dict[str, List[str]], **context) -> None:
    if not field_errors:
        return
    log_operation(
        logger,
        operation=operation,
        outcome="validation_failed",
        level=logging.WARNING,
        fields=sorted(field_errors),
        **context,
    )
    errors = [message for messages in field_errors.values() for message in messages]
    raise ValidationError(errors, field_errors)


# ============================================================================
# Read Operations
# ============================================================================


def get_category_tree(
    except_category_id: Optional[int] = None,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """
    Get the category tree, optionally without one category and its subtree.

    Args:
        except_category_id: Category to leave out (for parent pickers), 0/None for none
        session: Optional database session

    Returns:
        Dict with "tree" (root node as nested dicts) and "total" (category count)
    """

    def _impl(sess: Session) -> Dict[str, Any]:
        index = load_category_index(session=sess)
        tree = index.get_tree_excluding(except_category_id)
        return {"tree": tree.to_dict(), "total": len(index)}

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def get_category(category_id: int, session: Optional[Session] = None) -> Category:
    """
    Get a category by ID.

    Args:
        category_id: Category ID
        session: Optional database session

    Returns:
        Category instance

    Raises:
        CategoryNotFound: If category doesn't exist
    """

    def _impl(sess: Session) -> Category:
        category = sess.query(Category).filter(Category.id == category_id).first()
        if category is None:
            raise CategoryNotFound(category_id)
        return category

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def get_category_by_slug(slug: str, session: Optional[Session] = None) -> Category:
    """
    Get a category by slug.

    Raises:
        CategoryNotFoundBySlug: If category doesn't exist
    """

    def _impl(sess: Session) -> Category:
        category = sess.query(Category).filter(Category.slug == slug).first()
        if category is None:
            raise CategoryNotFoundBySlug(slug)
        return category

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


# ============================================================================
# Write Operations
# ============================================================================


def create_category(
    name: str,
    slug: Optional[str] = None,
    parent_id: Optional[int] = ROOT_CATEGORY_ID,
    title: Optional[str] = None,
    content: Optional[str] = None,
    session: Optional[Session] = None,
) -> Category:
    """
    Create a new category as the last child of parent_id.

    Args:
        name: Display name (unique)
        slug: URL identifier (unique); generated from name when not provided
        parent_id: Parent category id, 0/None for a top-level category
        title: Optional page title
        content: Optional description
        session: Optional database session

    Returns:
        Created Category instance

    Raises:
        ValidationError: If name/slug are empty, too long or duplicate,
            no free slug can be generated from name, or the parent does not exist
    """
    name = sanitize_string(name)
    slug = sanitize_string(slug)
    parent_id = parent_id or ROOT_CATEGORY_ID

    def _impl(sess: Session) -> Category:
        field_errors: Dict[str, List[str]] = {}
        _check_name(sess, name, field_errors)

        final_slug = slug
        if final_slug is None and name:
            base_slug = create_slug(name)
            if base_slug:
                try:
                    final_slug = make_unique_slug(base_slug, lambda s: _slug_taken(sess, s))
                except ValueError as e:
                    field_errors["slug"] = [f"slug: {e}"]
        if "slug" not in field_errors:
            _check_slug(sess, final_slug, field_errors)
        _check_title(title, field_errors)

        index = load_category_index(session=sess)
        if parent_id != ROOT_CATEGORY_ID and index.get_by_id(parent_id) is None:
            field_errors["parent_id"] = [
                ERROR_MOVE_DESTINATION_NOT_FOUND.format(parent_id=parent_id)
            ]

        _raise_for_field_errors("create_category", field_errors, parent_id=parent_id)

        category = Category(
            name=name,
            slug=final_slug,
            parent_id=parent_id,
            order_index=index.next_order_index(parent_id),
            title=sanitize_string(title),
            content=content,
        )
        sess.add(category)
        sess.flush()
        sess.refresh(category)

        log_operation(
            logger,
            operation="create_category",
            outcome="success",
            category_id=category.id,
            parent_id=parent_id,
            order_index=category.order_index,
        )
        return category

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def update_category(
    category_id: int,
    name: Optional[str] = None,
    slug: Optional[str] = None,
    parent_id: Optional[int] = None,
    title: Optional[str] = None,
    content: Optional[str] = None,
    session: Optional[Session] = None,
) -> Category:
    """
    Update a category's fields, optionally giving it a new parent.

    Passing the current parent (or leaving parent_id as None) keeps the
    category where it is. A new parent puts the category last among its
    new siblings.

    Args:
        category_id: Category ID to update
        name: New name (optional)
        slug: New slug (optional)
        parent_id: New parent id (optional, 0 for top level)
        title: New title (optional)
        content: New content (optional)
        session: Optional database session

    Returns:
        Updated Category instance

    Raises:
        CategoryNotFound: If category doesn't exist
        CategoryMoveError: If the new parent is missing, the category itself
            or one of its descendants
        ValidationError: If name/slug are empty, too long or duplicate
        CircularReferenceError: If a concurrent write made the move create a loop
    """
    new_name = sanitize_string(name) if name is not None else None
    new_slug = sanitize_string(slug) if slug is not None else None

    def _impl(sess: Session) -> Category:
        category = sess.query(Category).filter(Category.id == category_id).first()
        if category is None:
            raise CategoryNotFound(category_id)

        field_errors: Dict[str, List[str]] = {}
        if name is not None:
            _check_name(sess, new_name, field_errors, exclude_id=category_id)
        if slug is not None:
            _check_slug(sess, new_slug, field_errors, exclude_id=category_id)
        if title is not None:
            _check_title(title, field_errors)

        index = None
        new_parent_id = category.parent_id
        if parent_id is not None:
            new_parent_id = parent_id or ROOT_CATEGORY_ID
            index = load_category_index(session=sess)
            validation = index.validate_move(category_id, new_parent_id)
            if not validation.valid:
                if field_errors:
                    field_errors["parent_id"] = [validation.message]
                else:
                    log_operation(
                        logger,
                        operation="update_category",
                        outcome=validation.error.value,
                        level=logging.WARNING,
                        category_id=category_id,
                        parent_id=new_parent_id,
                    )
                    validation.raise_if_invalid(category_id, new_parent_id)

        _raise_for_field_errors("update_category", field_errors, category_id=category_id)

        parent_changed = index is not None and new_parent_id != category.parent_id
        if parent_changed:
            category.parent_id = new_parent_id
            category.order_index = index.next_order_index(new_parent_id)

        if new_name is not None:
            category.name = new_name
        if new_slug is not None:
            category.slug = new_slug
        if title is not None:
            category.title = sanitize_string(title)
        if content is not None:
            category.content = content

        sess.flush()
        if parent_changed:
            _verify_tree_integrity(sess)
        sess.refresh(category)

        log_operation(
            logger,
            operation="update_category",
            outcome="success",
            category_id=category_id,
            parent_id=category.parent_id,
            parent_changed=parent_changed,
        )
        return category

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def reorder_siblings(
    parent_id: int,
    category_id: int,
    order_index: int,
    session: Optional[Session] = None,
) -> None:
    """
    Renumber the children of parent_id to free order_index for category_id.

    Siblings (category_id excluded) at or after order_index are renumbered
    order_index + 1, order_index + 2, ...; siblings before it are renumbered
    1, 2, ... Both groups keep their relative order. The caller sets the
    moved category's own order_index.

    Args:
        parent_id: Parent whose children are renumbered (0 for top level)
        category_id: Category being placed, left untouched
        order_index: Slot reserved for category_id
        session: Optional database session
    """

    def _impl(sess: Session) -> None:
        siblings = (
            sess.query(Category)
            .filter(Category.parent_id == parent_id, Category.id != category_id)
            .order_by(Category.order_index, Category.id)
            .all()
        )
        after = order_index
        before = 0
        for sibling in siblings:
            if sibling.order_index >= order_index:
                after += 1
                sibling.order_index = after
            else:
                before += 1
                sibling.order_index = before
        sess.flush()

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def move_category(
    category_id: int,
    new_parent_id: Optional[int],
    order_index: Optional[int] = None,
    session: Optional[Session] = None,
) -> Category:
    """
    Move a category under a new parent, optionally at a given position.

    Args:
        category_id: Category to move
        new_parent_id: New parent id (0/None for top level)
        order_index: Position among the new siblings; appended last when None
        session: Optional database session

    Returns:
        Moved Category instance

    Raises:
        CategoryMoveError: If the category or the parent is missing, or the
            parent is inside the category's own subtree
        CircularReferenceError: If a concurrent write made the move create a loop
    """
    new_parent_id = new_parent_id or ROOT_CATEGORY_ID

    def _impl(sess: Session) -> Category:
        index = load_category_index(session=sess)
        validation = index.validate_move(category_id, new_parent_id)
        if not validation.valid:
            log_operation(
                logger,
                operation="move_category",
                outcome=validation.error.value,
                level=logging.WARNING,
                category_id=category_id,
                parent_id=new_parent_id,
            )
            validation.raise_if_invalid(category_id, new_parent_id)

        category = sess.query(Category).filter(Category.id == category_id).first()
        if category is None:
            # Deleted between snapshot and lookup
            raise CategoryNotFound(category_id)

        if order_index is None:
            if new_parent_id != category.parent_id:
                category.order_index = index.next_order_index(new_parent_id)
            category.parent_id = new_parent_id
        else:
            category.parent_id = new_parent_id
            reorder_siblings(new_parent_id, category_id, order_index, session=sess)
            category.order_index = order_index

        sess.flush()
        _verify_tree_integrity(sess)
        sess.refresh(category)

        log_operation(
            logger,
            operation="move_category",
            outcome="success",
            category_id=category_id,
            parent_id=new_parent_id,
            order_index=category.order_index,
        )
        return category

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def _delete_ids(session: Session, category_ids: Iterable[int]) -> None:
    ids = list(category_ids)
    if ids:
        session.query(Category).filter(Category.id.in_(ids)).delete(
            synchronize_session="fetch"
        )


def delete_category(category_id: int, session: Optional[Session] = None) -> List[int]:
    """
    Delete a category together with all of its descendants.

    Args:
        category_id: Category ID to delete
        session: Optional database session

    Returns:
        Sorted list of deleted category ids

    Raises:
        CategoryNotFound: If category doesn't exist
    """

    def _impl(sess: Session) -> List[int]:
        exists = sess.query(Category.id).filter(Category.id == category_id).first()
        if exists is None:
            raise CategoryNotFound(category_id)

        index = load_category_index(session=sess)
        deleted = {category_id} | index.collect_deletion_set([category_id])
        _delete_ids(sess, deleted)

        log_operation(
            logger,
            operation="delete_category",
            outcome="success",
            category_id=category_id,
            deleted_count=len(deleted),
        )
        return sorted(deleted)

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def delete_categories(ids: Iterable[Any], session: Optional[Session] = None) -> List[int]:
    """
    Delete several categories together with all of their descendants.

    Ids that no longer exist are skipped, so repeating a delete is harmless.

    Args:
        ids: Category ids as ints or digit strings
        session: Optional database session

    Returns:
        Sorted list of deleted category ids (only ids that existed)

    Raises:
        ValidationError: If ids is empty or holds anything but positive integers
    """
    category_ids = transform_to_positive_integers(list(ids) if ids is not None else None)
    if category_ids is None:
        message = f"ids: {ERROR_INVALID_IDS}"
        raise ValidationError([message], {"ids": [message]})

    def _impl(sess: Session) -> List[int]:
        index = load_category_index(session=sess)
        requested = {category_id for category_id in category_ids if category_id in index}
        deleted = requested | index.collect_deletion_set(requested)
        _delete_ids(sess, deleted)

        log_operation(
            logger,
            operation="delete_categories",
            outcome="success",
            requested_count=len(category_ids),
            deleted_count=len(deleted),
        )
        return sorted(deleted)

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)
