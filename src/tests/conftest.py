"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import scoped_session, sessionmaker

from bookmark_admin.models.base import Base
from bookmark_admin.services import category_service
from bookmark_admin.utils.config import reset_config


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    # Create in-memory SQLite database for testing
    engine = create_engine("sqlite:///:memory:", echo=False)

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import bookmark_admin.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    Base.metadata.drop_all(engine)
    engine.dispose()

    # Restore original session factory
    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def sample_tree(test_db):
    """Provide a small category tree, keyed by category name.

    Creates:
    - Programming
      - Python
        - Django
        - Flask
      - Rust
    - Cooking
      - Baking
    """
    programming = category_service.create_category(name="Programming")
    python = category_service.create_category(name="Python", parent_id=programming.id)
    django = category_service.create_category(name="Django", parent_id=python.id)
    flask = category_service.create_category(name="Flask", parent_id=python.id)
    rust = category_service.create_category(name="Rust", parent_id=programming.id)
    cooking = category_service.create_category(name="Cooking")
    baking = category_service.create_category(name="Baking", parent_id=cooking.id)

    return {
        "Programming": programming,
        "Python": python,
        "Django": django,
        "Flask": flask,
        "Rust": rust,
        "Cooking": cooking,
        "Baking": baking,
    }


@pytest.fixture(scope="function")
def clean_config():
    """Reset the configuration singleton before and after a test."""
    reset_config()
    yield
    reset_config()
