"""
Category tree engine: in-memory index over the flat categories table.

The categories table stores a tree as parent pointers (``parent_id``, 0
for top-level rows). CategoryIndex turns one snapshot of that table into:

- a tree hanging off a synthetic root node (id 0),
- lookup maps by id and by slug,
- per-node direct / recursive children ids and counts,
- node depth (``level``, root = 0).

It answers ancestor and descendant queries and validates relocations
(a category may not be moved under itself or one of its descendants).

An index is a request-scoped value: build it from a fresh snapshot, use it,
drop it. It is never mutated after ``build`` and never shared between
requests; callers that write to the table must rebuild to see the change.

Nodes only reference their children. Parents are resolved through the
id map, so there are no back-pointers between nodes.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set

from ..utils.constants import (
    ERROR_MOVE_DESTINATION_NOT_FOUND,
    ERROR_MOVE_SOURCE_NOT_FOUND,
    ERROR_MOVE_WITHIN_CHILD,
    FIRST_ORDER_INDEX,
    ROOT_CATEGORY_ID,
    ROOT_CATEGORY_NAME,
    ROOT_CATEGORY_SLUG,
)
from .exceptions import (
    CategoryMoveError,
    CircularReferenceError,
    DanglingParentReference,
)
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


# =============================================================================
# Data types
# =============================================================================


@dataclass(frozen=True)
class CategoryRecord:
    """One row of the categories table, as seen by the tree engine."""

    id: int
    parent_id: int
    name: str
    slug: str
    order_index: int = 0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "CategoryRecord":
        """
        Build a record from a dict-like row.

        A missing or NULL parent_id is read as a top-level category.
        """
        return cls(
            id=int(data["id"]),
            parent_id=int(data.get("parent_id") or ROOT_CATEGORY_ID),
            name=data["name"],
            slug=data["slug"],
            order_index=int(data.get("order_index") or 0),
        )


@dataclass(eq=False)
class CategoryNode:
    """
    A category inside a built tree.

    Attributes:
        id, parent_id, name, slug, order_index: Copied from the record
            (parent_id is None only for the root node)
        children: Direct child nodes, in snapshot order
        children_count: Number of direct children
        children_ids: Ids of direct children
        recursive_children_count: Number of descendants at any depth
        recursive_children_ids: Ids of descendants at any depth
        level: Depth below the root (top-level categories are level 1)
    """

    id: int
    parent_id: Optional[int]
    name: str
    slug: str
    order_index: int = 0
    children: List["CategoryNode"] = field(default_factory=list, repr=False)
    children_count: int = 0
    children_ids: List[int] = field(default_factory=list, repr=False)
    recursive_children_count: int = 0
    recursive_children_ids: List[int] = field(default_factory=list, repr=False)
    level: int = 0

    @classmethod
    def from_record(cls, record: CategoryRecord) -> "CategoryNode":
        return cls(
            id=record.id,
            parent_id=record.parent_id,
            name=record.name,
            slug=record.slug,
            order_index=record.order_index,
        )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def _fields(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "name": self.name,
            "slug": self.slug,
            "order_index": self.order_index,
            "level": self.level,
            "children_count": self.children_count,
            "children_ids": list(self.children_ids),
            "recursive_children_count": self.recursive_children_count,
            "recursive_children_ids": list(self.recursive_children_ids),
        }

    def to_dict(self, include_children: bool = True) -> Dict[str, Any]:
        """
        Convert the node (and optionally its subtree) to a JSON-ready dict.

        The subtree is walked with an explicit stack, so tree depth is not
        limited by the interpreter's recursion limit.

        Args:
            include_children: If True, nest child dicts under "children"

        Returns:
            Dictionary with the record fields, counts and level
        """
        result = self._fields()
        if not include_children:
            return result

        result["children"] = []
        stack = [(self, result)]
        while stack:
            node, node_dict = stack.pop()
            for child in node.children:
                child_dict = child._fields()
                child_dict["children"] = []
                node_dict["children"].append(child_dict)
                stack.append((child, child_dict))
        return result


class MoveError(Enum):
    """Reason a category move was rejected.

    Values:
        SOURCE_NOT_FOUND: The category being moved does not exist
        DESTINATION_NOT_FOUND: The requested parent does not exist
        WITHIN_OWN_SUBTREE: The requested parent is the category itself or a descendant
    """

    SOURCE_NOT_FOUND = "source_not_found"
    DESTINATION_NOT_FOUND = "destination_not_found"
    WITHIN_OWN_SUBTREE = "within_own_subtree"


@dataclass(frozen=True)
class MoveValidation:
    """Outcome of CategoryIndex.validate_move().

    Attributes:
        valid: True if the move may be written
        error: Failed rule, None when valid
        message: Human readable explanation, empty when valid
    """

    valid: bool
    error: Optional[MoveError] = None
    message: str = ""

    @classmethod
    def ok(cls) -> "MoveValidation":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: MoveError, message: str) -> "MoveValidation":
        return cls(valid=False, error=error, message=message)

    def raise_if_invalid(self, category_id: int, parent_id: int) -> None:
        """Raise CategoryMoveError for a failed validation, do nothing otherwise."""
        if not self.valid:
            raise CategoryMoveError(self.error, category_id, parent_id, self.message)


def _make_root() -> CategoryNode:
    return CategoryNode(
        id=ROOT_CATEGORY_ID,
        parent_id=None,
        name=ROOT_CATEGORY_NAME,
        slug=ROOT_CATEGORY_SLUG,
        order_index=0,
    )


# =============================================================================
# Index
# =============================================================================


class CategoryIndex:
    """
    Tree and lookup maps built from one snapshot of the categories table.

    Use CategoryIndex.build(records); the constructor only stores
    already-linked structures.
    """

    def __init__(
        self,
        root: CategoryNode,
        nodes_by_id: Dict[int, CategoryNode],
        nodes_by_slug: Dict[str, CategoryNode],
        records: List[CategoryRecord],
    ):
        self._root = root
        self._by_id = nodes_by_id
        self._by_slug = nodes_by_slug
        self._records = records

    # -------------------------------------------------------------------------
    # Build
    # -------------------------------------------------------------------------

    @classmethod
    def build(cls, records: Iterable[CategoryRecord]) -> "CategoryIndex":
        """
        Build an index from category records.

        Records are expected ordered by (parent_id, order_index), which
        gives children in display order, but parents may appear after
        their children: parent ids are resolved against the complete
        id map, never against what has been visited so far.

        Args:
            records: Every category of the snapshot

        Returns:
            Fully linked CategoryIndex

        Raises:
            DanglingParentReference: If a parent_id is neither 0 nor a known id
            CircularReferenceError: If following parent ids loops
        """
        records = list(records)
        root = _make_root()
        nodes_by_id: Dict[int, CategoryNode] = {}
        nodes_by_slug: Dict[str, CategoryNode] = {}

        # Indexing pass: every node must exist before any parent is resolved
        for record in records:
            node = CategoryNode.from_record(record)
            nodes_by_id[record.id] = node
            nodes_by_slug[record.slug] = node

        # Linking pass, in input order
        for record in records:
            node = nodes_by_id[record.id]
            parent = _resolve_parent(node, root, nodes_by_id)
            parent.children.append(node)
            _add_to_ancestors(parent, record.id, root, nodes_by_id)

        _assign_levels(root)

        log_operation(
            logger,
            operation="build_category_index",
            outcome="success",
            level=logging.DEBUG,
            category_count=len(records),
            top_level_count=root.children_count,
        )
        return cls(root, nodes_by_id, nodes_by_slug, records)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @property
    def tree(self) -> CategoryNode:
        """The root node; its children are the top-level categories."""
        return self._root

    @property
    def records(self) -> List[CategoryRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def nodes(self) -> Iterator[CategoryNode]:
        """Iterate over all category nodes (root excluded) in snapshot order."""
        for record in self._records:
            yield self._by_id[record.id]

    def get_by_id(self, category_id: int) -> Optional[CategoryNode]:
        """Return the category node with this id, or None. The root is not a category."""
        return self._by_id.get(category_id)

    def get_by_slug(self, slug: str) -> Optional[CategoryNode]:
        """Return the category node with this slug, or None."""
        return self._by_slug.get(slug)

    def _get_node(self, category_id: int) -> Optional[CategoryNode]:
        if category_id == ROOT_CATEGORY_ID:
            return self._root
        return self._by_id.get(category_id)

    def get_direct_children(self, category_id: int) -> Optional[List[CategoryNode]]:
        """
        Get the direct children of a category.

        Args:
            category_id: Category id, or 0 for the top-level categories

        Returns:
            List of child nodes, or None if the id is unknown or has no children.
            Use get_by_id() first to tell the two cases apart.
        """
        node = self._get_node(category_id)
        if node is None or node.children_count == 0:
            return None
        return list(node.children)

    def get_ancestor_chain(self, category_id: int) -> List[CategoryNode]:
        """
        Get the path from a category up to (not including) the root.

        Args:
            category_id: Category id

        Returns:
            Nodes nearest-first, starting with the category itself.
            [root] when category_id is 0, [] for unknown ids.
        """
        if category_id == ROOT_CATEGORY_ID:
            return [self._root]

        chain: List[CategoryNode] = []
        visited: Set[int] = set()
        node = self._by_id.get(category_id)
        while node is not None:
            if node.id in visited:
                # Unreachable for a built index; build() rejects loops
                raise CircularReferenceError(category_id, node.id)
            visited.add(node.id)
            chain.append(node)
            node = self._by_id.get(node.parent_id)
        return chain

    def get_ancestor_at_level(self, category_id: int, level: int) -> Optional[CategoryNode]:
        """
        Find the node at a given depth on a category's ancestor chain.

        The category itself is part of the chain, so asking for its own
        level returns the category.

        Returns:
            Matching node, or None if the chain has no node at that level
        """
        for node in self.get_ancestor_chain(category_id):
            if node.level == level:
                return node
        return None

    def get_tree_excluding(self, excluded_id: Optional[int]) -> CategoryNode:
        """
        Get the tree without a category and its descendants.

        Used for "choose a new parent" pickers, so a category cannot be
        offered a place inside its own subtree.

        Args:
            excluded_id: Category to leave out; 0/None returns the full tree

        Returns:
            Root node of a separately built tree (counts describe the pruned tree)
        """
        if not excluded_id:
            return self._root

        excluded = self._by_id.get(excluded_id)
        if excluded is None:
            return self._root

        removed = {excluded_id, *excluded.recursive_children_ids}
        kept = [record for record in self._records if record.id not in removed]
        return CategoryIndex.build(kept).tree

    def next_order_index(self, parent_id: int) -> int:
        """
        Get the order_index for a new last child of parent_id.

        Returns:
            Highest order_index among the direct children plus one,
            or FIRST_ORDER_INDEX if the parent has no children
        """
        children = self.get_direct_children(parent_id)
        if not children:
            return FIRST_ORDER_INDEX
        return max(child.order_index for child in children) + 1

    # -------------------------------------------------------------------------
    # Mutation checks
    # -------------------------------------------------------------------------

    def validate_move(self, category_id: int, new_parent_id: Optional[int]) -> MoveValidation:
        """
        Check whether a category may be placed under new_parent_id.

        Moving to the root, or to the current parent (an edit that keeps
        the parent), is always allowed once both ids exist. Otherwise the
        new parent must be neither the category nor one of its descendants.

        Args:
            category_id: Category being moved
            new_parent_id: Requested parent id (0/None for top level)

        Returns:
            MoveValidation; never raises for bad input
        """
        new_parent_id = new_parent_id or ROOT_CATEGORY_ID

        category = self._by_id.get(category_id) if category_id else None
        if category is None:
            return MoveValidation.fail(
                MoveError.SOURCE_NOT_FOUND,
                ERROR_MOVE_SOURCE_NOT_FOUND.format(id=category_id),
            )

        if new_parent_id != ROOT_CATEGORY_ID and new_parent_id not in self._by_id:
            return MoveValidation.fail(
                MoveError.DESTINATION_NOT_FOUND,
                ERROR_MOVE_DESTINATION_NOT_FOUND.format(parent_id=new_parent_id),
            )

        if new_parent_id == ROOT_CATEGORY_ID or new_parent_id == category.parent_id:
            return MoveValidation.ok()

        if new_parent_id == category.id or new_parent_id in category.recursive_children_ids:
            return MoveValidation.fail(
                MoveError.WITHIN_OWN_SUBTREE,
                ERROR_MOVE_WITHIN_CHILD.format(id=category.id, parent_id=new_parent_id),
            )

        return MoveValidation.ok()

    def collect_deletion_set(self, category_ids: Iterable[int]) -> Set[int]:
        """
        Collect the descendants that must go when deleting categories.

        Args:
            category_ids: Categories requested for deletion

        Returns:
            Union of the descendants of every requested id. The requested ids
            themselves are not included; unknown ids are skipped since they
            are already gone.
        """
        result: Set[int] = set()
        for category_id in category_ids:
            node = self._by_id.get(category_id)
            if node is not None and node.recursive_children_ids:
                result.update(node.recursive_children_ids)
        return result

    def to_dict(self) -> Dict[str, Any]:
        """Return the full tree plus the category count."""
        return {"tree": self._root.to_dict(), "total": len(self)}


# =============================================================================
# Build helpers
# =============================================================================


def _resolve_parent(
    node: CategoryNode, root: CategoryNode, nodes_by_id: Dict[int, CategoryNode]
) -> CategoryNode:
    if node.parent_id == ROOT_CATEGORY_ID:
        return root
    parent = nodes_by_id.get(node.parent_id)
    if parent is None:
        raise DanglingParentReference(node.id, node.parent_id)
    return parent


def _add_to_ancestors(
    parent: CategoryNode,
    category_id: int,
    root: CategoryNode,
    nodes_by_id: Dict[int, CategoryNode],
) -> None:
    """Register category_id as a child of parent and a descendant of every ancestor."""
    parent.children_ids.append(category_id)
    parent.children_count += 1

    visited: Set[int] = set()
    current = parent
    while True:
        if current.id == category_id or current.id in visited:
            raise CircularReferenceError(category_id, current.id)
        visited.add(current.id)

        current.recursive_children_ids.append(category_id)
        current.recursive_children_count += 1

        if current is root:
            return
        current = _resolve_parent(current, root, nodes_by_id)


def _assign_levels(root: CategoryNode) -> None:
    root.level = 0
    queue = deque([root])
    while queue:
        node = queue.popleft()
        for child in node.children:
            child.level = node.level + 1
            queue.append(child)
