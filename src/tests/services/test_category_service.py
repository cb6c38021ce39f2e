"""Tests for category_service CRUD, move and delete operations."""

import logging

import pytest

from bookmark_admin.models.category import Category
from bookmark_admin.services import category_service
from bookmark_admin.services.category_tree import MoveError
from bookmark_admin.services.database import session_scope
from bookmark_admin.services.exceptions import (
    CategoryMoveError,
    CategoryNotFound,
    CategoryNotFoundBySlug,
    CircularReferenceError,
    ValidationError,
)


def children_names(parent_id):
    """Names of the direct children of parent_id, in sibling order."""
    return [
        record.name
        for record in category_service.get_category_records()
        if record.parent_id == parent_id
    ]


# ============================================================================
# Snapshot / index
# ============================================================================


class TestLoadCategoryIndex:
    """Tests for get_category_records() and load_category_index()."""

    def test_records_ordered_by_parent_then_order(self, sample_tree):
        records = category_service.get_category_records()
        keys = [(r.parent_id, r.order_index) for r in records]
        assert keys == sorted(keys)
        assert len(records) == 7

    def test_index_reflects_table(self, sample_tree):
        index = category_service.load_category_index()
        python = index.get_by_slug("python")
        assert python.id == sample_tree["Python"].id
        assert [c.name for c in python.children] == ["Django", "Flask"]
        assert python.level == 2

    def test_each_call_reads_fresh_snapshot(self, sample_tree):
        before = category_service.load_category_index()
        category_service.create_category(name="Go", parent_id=sample_tree["Programming"].id)
        after = category_service.load_category_index()
        assert len(before) == 7
        assert len(after) == 8

    def test_with_session(self, sample_tree):
        with session_scope() as sess:
            index = category_service.load_category_index(session=sess)
        assert len(index) == 7


# ============================================================================
# Read operations
# ============================================================================


class TestGetCategoryTree:
    """Tests for get_category_tree()."""

    def test_empty_table(self, test_db):
        result = category_service.get_category_tree()
        assert result["total"] == 0
        assert result["tree"]["id"] == 0
        assert result["tree"]["children"] == []

    def test_full_tree(self, sample_tree):
        result = category_service.get_category_tree()
        assert result["total"] == 7
        top = result["tree"]["children"]
        assert [c["name"] for c in top] == ["Programming", "Cooking"]
        assert [c["name"] for c in top[0]["children"]] == ["Python", "Rust"]
        assert top[0]["recursive_children_count"] == 4

    def test_tree_without_category(self, sample_tree):
        """Parent pickers must not offer a category's own subtree."""
        result = category_service.get_category_tree(except_category_id=sample_tree["Python"].id)
        programming = result["tree"]["children"][0]
        assert [c["name"] for c in programming["children"]] == ["Rust"]
        assert programming["recursive_children_count"] == 1


class TestGetCategory:
    """Tests for get_category() and get_category_by_slug()."""

    def test_get_by_id(self, sample_tree):
        category = category_service.get_category(sample_tree["Flask"].id)
        assert category.name == "Flask"
        assert category.parent_id == sample_tree["Python"].id

    def test_get_by_id_not_found(self, test_db):
        with pytest.raises(CategoryNotFound, match="99"):
            category_service.get_category(99)

    def test_get_by_slug(self, sample_tree):
        assert category_service.get_category_by_slug("baking").name == "Baking"

    def test_get_by_slug_not_found(self, test_db):
        with pytest.raises(CategoryNotFoundBySlug):
            category_service.get_category_by_slug("missing")


# ============================================================================
# create_category
# ============================================================================


class TestCreateCategory:
    """Tests for category_service.create_category()."""

    def test_create_with_name_generates_slug(self, test_db):
        """Happy path: name provided, slug auto-generated."""
        category = category_service.create_category(name="Web Development")
        assert category.id is not None
        assert category.name == "Web Development"
        assert category.slug == "web-development"
        assert category.parent_id == 0
        assert category.order_index == 1
        assert category.title is None
        assert category.content is None

    def test_create_with_explicit_fields(self, test_db):
        category = category_service.create_category(
            name="News", slug="daily-news", title="Daily News", content="Headlines"
        )
        assert category.slug == "daily-news"
        assert category.title == "Daily News"
        assert category.content == "Headlines"

    def test_create_strips_name(self, test_db):
        category = category_service.create_category(name="  News  ")
        assert category.name == "News"

    def test_siblings_appended_in_order(self, sample_tree):
        go = category_service.create_category(name="Go", parent_id=sample_tree["Programming"].id)
        assert go.order_index == 3
        assert children_names(sample_tree["Programming"].id) == ["Python", "Rust", "Go"]

    def test_first_child_gets_first_slot(self, sample_tree):
        child = category_service.create_category(name="Channels", parent_id=sample_tree["Django"].id)
        assert child.order_index == 1

    def test_none_parent_means_top_level(self, test_db):
        category = category_service.create_category(name="News", parent_id=None)
        assert category.parent_id == 0

    def test_generated_slug_collision_appends_suffix(self, test_db):
        category_service.create_category(name="Python")
        second = category_service.create_category(name="Python!")
        assert second.slug == "python-2"

    def test_exhausted_slug_suffixes_raise_validation_error(self, test_db, monkeypatch):
        monkeypatch.setattr(category_service, "_slug_taken", lambda session, slug, exclude_id=None: True)
        with pytest.raises(ValidationError, match="Unable to generate unique slug") as exc_info:
            category_service.create_category(name="Python")
        assert list(exc_info.value.field_errors) == ["slug"]
        assert category_service.get_category_records() == []

    def test_explicit_duplicate_slug_raises(self, test_db):
        category_service.create_category(name="Python")
        with pytest.raises(ValidationError) as exc_info:
            category_service.create_category(name="Snakes", slug="python")
        assert list(exc_info.value.field_errors) == ["slug"]
        assert "already exists" in str(exc_info.value)

    def test_duplicate_name_raises(self, test_db):
        category_service.create_category(name="Python", slug="python")
        with pytest.raises(ValidationError) as exc_info:
            category_service.create_category(name="Python", slug="python-lang")
        assert list(exc_info.value.field_errors) == ["name"]

    def test_empty_name_raises(self, test_db):
        with pytest.raises(ValidationError, match="This field is required") as exc_info:
            category_service.create_category(name="   ")
        assert "name" in exc_info.value.field_errors

    def test_name_too_long_raises(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            category_service.create_category(name="x" * 256, slug="long")
        assert exc_info.value.field_errors["name"] == ["name: Must be 255 characters or less"]

    def test_unknown_parent_raises(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            category_service.create_category(name="Orphan", parent_id=99)
        assert "99" in exc_info.value.field_errors["parent_id"][0]

    def test_failed_create_writes_nothing(self, test_db):
        with pytest.raises(ValidationError):
            category_service.create_category(name="Orphan", parent_id=99)
        assert category_service.get_category_records() == []

    def test_create_with_session(self, test_db):
        """Creating with explicit session leaves the commit to the caller."""
        session = test_db()
        category = category_service.create_category(name="News", session=session)
        assert category.id is not None
        session.commit()
        assert category_service.get_category(category.id).name == "News"


# ============================================================================
# update_category
# ============================================================================


class TestUpdateCategory:
    """Tests for category_service.update_category()."""

    def test_update_fields(self, sample_tree):
        updated = category_service.update_category(
            sample_tree["Rust"].id,
            name="Rust Lang",
            slug="rust-lang",
            title="Rust",
            content="Systems programming",
        )
        assert updated.name == "Rust Lang"
        assert updated.slug == "rust-lang"
        assert updated.title == "Rust"
        assert updated.content == "Systems programming"

    def test_keeping_own_name_is_not_a_duplicate(self, sample_tree):
        updated = category_service.update_category(sample_tree["Rust"].id, name="Rust")
        assert updated.name == "Rust"

    def test_duplicate_name_raises(self, sample_tree):
        with pytest.raises(ValidationError) as exc_info:
            category_service.update_category(sample_tree["Rust"].id, name="Python")
        assert "name" in exc_info.value.field_errors

    def test_duplicate_slug_raises(self, sample_tree):
        with pytest.raises(ValidationError) as exc_info:
            category_service.update_category(sample_tree["Rust"].id, slug="python")
        assert "slug" in exc_info.value.field_errors

    def test_not_found(self, test_db):
        with pytest.raises(CategoryNotFound):
            category_service.update_category(99, name="Anything")

    def test_same_parent_keeps_position(self, sample_tree):
        python = sample_tree["Python"]
        updated = category_service.update_category(
            python.id, parent_id=python.parent_id, title="Python"
        )
        assert updated.parent_id == python.parent_id
        assert updated.order_index == python.order_index

    def test_new_parent_appends_last(self, sample_tree):
        updated = category_service.update_category(
            sample_tree["Baking"].id, parent_id=sample_tree["Programming"].id
        )
        assert updated.parent_id == sample_tree["Programming"].id
        assert updated.order_index == 3
        assert children_names(sample_tree["Programming"].id) == ["Python", "Rust", "Baking"]

    def test_move_to_top_level(self, sample_tree):
        updated = category_service.update_category(sample_tree["Django"].id, parent_id=0)
        assert updated.parent_id == 0
        assert updated.order_index == 3

    def test_move_into_descendant_raises(self, sample_tree):
        with pytest.raises(CategoryMoveError) as exc_info:
            category_service.update_category(
                sample_tree["Programming"].id, parent_id=sample_tree["Flask"].id
            )
        assert exc_info.value.reason == MoveError.WITHIN_OWN_SUBTREE
        assert "parent_id" in exc_info.value.field_errors
        assert category_service.get_category(sample_tree["Programming"].id).parent_id == 0

    def test_move_into_itself_raises(self, sample_tree):
        python_id = sample_tree["Python"].id
        with pytest.raises(CategoryMoveError):
            category_service.update_category(python_id, parent_id=python_id)

    def test_unknown_parent_raises(self, sample_tree):
        with pytest.raises(CategoryMoveError) as exc_info:
            category_service.update_category(sample_tree["Python"].id, parent_id=99)
        assert exc_info.value.reason == MoveError.DESTINATION_NOT_FOUND

    def test_field_and_parent_errors_reported_together(self, sample_tree):
        with pytest.raises(ValidationError) as exc_info:
            category_service.update_category(
                sample_tree["Python"].id, name="Rust", parent_id=sample_tree["Django"].id
            )
        assert set(exc_info.value.field_errors) == {"name", "parent_id"}

        python = category_service.get_category(sample_tree["Python"].id)
        assert python.name == "Python"
        assert python.parent_id == sample_tree["Programming"].id


# ============================================================================
# move_category / reorder_siblings
# ============================================================================


class TestMoveCategory:
    """Tests for category_service.move_category()."""

    def test_move_appends_without_position(self, sample_tree):
        moved = category_service.move_category(sample_tree["Rust"].id, sample_tree["Cooking"].id)
        assert moved.parent_id == sample_tree["Cooking"].id
        assert moved.order_index == 2
        assert children_names(sample_tree["Cooking"].id) == ["Baking", "Rust"]

    def test_move_to_position_renumbers_siblings(self, sample_tree):
        moved = category_service.move_category(sample_tree["Flask"].id, 0, order_index=1)
        assert moved.parent_id == 0
        assert moved.order_index == 1
        assert children_names(0) == ["Flask", "Programming", "Cooking"]

        index = category_service.load_category_index()
        assert [c.order_index for c in index.get_direct_children(0)] == [1, 2, 3]

    def test_move_to_middle_position(self, sample_tree):
        category_service.move_category(sample_tree["Baking"].id, 0, order_index=2)
        index = category_service.load_category_index()
        assert [(c.name, c.order_index) for c in index.get_direct_children(0)] == [
            ("Programming", 1),
            ("Baking", 2),
            ("Cooking", 3),
        ]

    def test_reorder_within_same_parent(self, sample_tree):
        python_id = sample_tree["Python"].id
        category_service.move_category(sample_tree["Flask"].id, python_id, order_index=1)
        assert children_names(python_id) == ["Flask", "Django"]

    def test_same_parent_without_position_is_noop(self, sample_tree):
        flask = sample_tree["Flask"]
        moved = category_service.move_category(flask.id, flask.parent_id)
        assert moved.order_index == flask.order_index

    def test_move_into_descendant_raises(self, sample_tree):
        with pytest.raises(CategoryMoveError) as exc_info:
            category_service.move_category(sample_tree["Python"].id, sample_tree["Django"].id)
        assert exc_info.value.reason == MoveError.WITHIN_OWN_SUBTREE
        assert children_names(sample_tree["Python"].id) == ["Django", "Flask"]

    def test_unknown_source_raises(self, sample_tree):
        with pytest.raises(CategoryMoveError) as exc_info:
            category_service.move_category(99, 0)
        assert exc_info.value.reason == MoveError.SOURCE_NOT_FOUND

    def test_unknown_destination_raises(self, sample_tree):
        with pytest.raises(CategoryMoveError) as exc_info:
            category_service.move_category(sample_tree["Python"].id, 99)
        assert exc_info.value.reason == MoveError.DESTINATION_NOT_FOUND

    def test_stale_snapshot_cycle_is_rolled_back(self, sample_tree, monkeypatch):
        """A concurrent move between snapshot and write must not leave a loop."""
        cooking_id = sample_tree["Cooking"].id
        baking_id = sample_tree["Baking"].id
        rust_id = sample_tree["Rust"].id

        # Snapshot taken before the concurrent writer runs
        stale_index = category_service.load_category_index()

        # Concurrent writer: Rust goes under Baking
        category_service.move_category(rust_id, baking_id)

        # Our request validated against the stale snapshot: Cooking under Rust
        monkeypatch.setattr(
            category_service, "load_category_index", lambda session=None: stale_index
        )
        with pytest.raises(CircularReferenceError):
            category_service.move_category(cooking_id, rust_id)
        monkeypatch.undo()

        assert category_service.get_category(cooking_id).parent_id == 0
        # Table still forms a valid tree
        assert len(category_service.load_category_index()) == 7


class TestReorderSiblings:
    """Tests for category_service.reorder_siblings()."""

    def test_frees_slot_and_keeps_relative_order(self, sample_tree):
        programming_id = sample_tree["Programming"].id
        go = category_service.create_category(name="Go", parent_id=programming_id)

        category_service.reorder_siblings(programming_id, go.id, 2)

        records = {r.name: r.order_index for r in category_service.get_category_records()}
        assert records["Python"] == 1
        assert records["Rust"] == 3
        # The placed category itself is left to the caller
        assert records["Go"] == 3

    def test_with_caller_session(self, sample_tree, test_db):
        python_id = sample_tree["Python"].id
        session = test_db()
        category_service.reorder_siblings(python_id, 0, 1, session=session)
        session.commit()

        records = {r.name: r.order_index for r in category_service.get_category_records()}
        assert records["Django"] == 2
        assert records["Flask"] == 3


# ============================================================================
# delete_category / delete_categories
# ============================================================================


class TestDeleteCategory:
    """Tests for category_service.delete_category()."""

    def test_delete_cascades_to_descendants(self, sample_tree):
        deleted = category_service.delete_category(sample_tree["Python"].id)
        expected = sorted(sample_tree[name].id for name in ("Python", "Django", "Flask"))
        assert deleted == expected
        assert children_names(sample_tree["Programming"].id) == ["Rust"]
        assert len(category_service.load_category_index()) == 4

    def test_delete_leaf(self, sample_tree):
        assert category_service.delete_category(sample_tree["Baking"].id) == [sample_tree["Baking"].id]

    def test_delete_not_found(self, test_db):
        with pytest.raises(CategoryNotFound):
            category_service.delete_category(99)


class TestDeleteCategories:
    """Tests for category_service.delete_categories()."""

    def test_batch_delete_accepts_digit_strings(self, sample_tree):
        deleted = category_service.delete_categories(
            [str(sample_tree["Python"].id), sample_tree["Cooking"].id]
        )
        expected = sorted(
            sample_tree[name].id for name in ("Python", "Django", "Flask", "Cooking", "Baking")
        )
        assert deleted == expected
        assert children_names(0) == ["Programming"]

    def test_repeat_delete_is_harmless(self, sample_tree):
        ids = [sample_tree["Python"].id]
        category_service.delete_categories(ids)
        assert category_service.delete_categories(ids) == []
        assert len(category_service.load_category_index()) == 4

    def test_parent_and_child_in_same_request(self, sample_tree):
        deleted = category_service.delete_categories(
            [sample_tree["Django"].id, sample_tree["Python"].id]
        )
        assert len(deleted) == 3

    @pytest.mark.parametrize("bad_ids", [[], ["abc"], [0], [-1], [True], ["1", "x"], None])
    def test_invalid_ids_raise(self, test_db, bad_ids):
        with pytest.raises(ValidationError) as exc_info:
            category_service.delete_categories(bad_ids)
        assert "ids" in exc_info.value.field_errors


# ============================================================================
# Logging
# ============================================================================


class TestCategoryServiceLogging:
    """Write operations emit structured log entries."""

    LOGGER = "bookmark_admin.services.category_service"

    def test_create_logs_success(self, test_db, caplog):
        caplog.set_level(logging.INFO, logger=self.LOGGER)
        category = category_service.create_category(name="News")

        record = next(r for r in caplog.records if getattr(r, "operation", None) == "create_category")
        assert record.outcome == "success"
        assert record.category_id == category.id
        assert record.levelno == logging.INFO

    def test_rejected_move_logs_warning(self, sample_tree, caplog):
        caplog.set_level(logging.INFO, logger=self.LOGGER)
        with pytest.raises(CategoryMoveError):
            category_service.move_category(sample_tree["Python"].id, sample_tree["Flask"].id)

        record = next(r for r in caplog.records if getattr(r, "operation", None) == "move_category")
        assert record.outcome == "within_own_subtree"
        assert record.levelno == logging.WARNING
        assert record.parent_id == sample_tree["Flask"].id

    def test_validation_failure_logs_fields(self, test_db, caplog):
        caplog.set_level(logging.INFO, logger=self.LOGGER)
        with pytest.raises(ValidationError):
            category_service.create_category(name="")

        record = next(r for r in caplog.records if getattr(r, "operation", None) == "create_category")
        assert record.outcome == "validation_failed"
        assert "name" in record.fields


class TestCategoryModel:
    """Rows written by the service project onto tree records."""

    def test_to_record(self, sample_tree, test_db):
        session = test_db()
        django = session.query(Category).filter(Category.slug == "django").one()
        record = django.to_record()
        assert record.parent_id == sample_tree["Python"].id
        assert record.order_index == 1
        assert "Django" in repr(django)
