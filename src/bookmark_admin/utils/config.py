"""
Runtime configuration for Bookmark Admin.

Where the SQLite database lives depends on the environment:

- ``development``: ``<project>/data/bookmark_admin.db``
- ``production`` (default): ``~/Documents/BookmarkAdmin/bookmark_admin.db``

BOOKMARK_ADMIN_ENV selects the environment and BOOKMARK_ADMIN_DATABASE_URL
replaces the file location with any SQLAlchemy URL.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import APP_NAME, APP_VERSION, DATABASE_FILENAME

ENV_VARIABLE = "BOOKMARK_ADMIN_ENV"
DATABASE_URL_VARIABLE = "BOOKMARK_ADMIN_DATABASE_URL"

DEVELOPMENT = "development"
PRODUCTION = "production"

logger = logging.getLogger(__name__)


class Config:
    """
    Resolved settings for one environment.

    Args:
        environment: 'production' or 'development'
        database_url: SQLAlchemy URL used instead of the SQLite file
    """

    def __init__(self, environment: str = PRODUCTION, database_url: Optional[str] = None):
        self.environment = environment
        self._database_url_override = database_url

        if environment == DEVELOPMENT:
            # src/bookmark_admin/utils -> project root
            self._data_dir = Path(__file__).resolve().parents[3] / "data"
        else:
            self._data_dir = Path.home() / "Documents" / "BookmarkAdmin"

        self._database_path = self._data_dir / DATABASE_FILENAME

        # Nothing to create on disk when the URL points elsewhere
        if database_url is None:
            self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def app_name(self) -> str:
        return APP_NAME

    @property
    def app_version(self) -> str:
        return APP_VERSION

    @property
    def database_path(self) -> Path:
        """Location of the SQLite file (unused when a URL override is set)."""
        return self._database_path

    @property
    def database_url(self) -> str:
        """The override URL if one was given, else a sqlite:/// URL for database_path."""
        if self._database_url_override:
            return self._database_url_override
        return "sqlite:///" + self._database_path.as_posix()

    @property
    def is_development(self) -> bool:
        return self.environment == DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    def database_exists(self) -> bool:
        return self._database_path.exists()

    def __repr__(self) -> str:
        return f"Config(environment='{self.environment}', database_url='{self.database_url}')"


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Return the process-wide Config, creating it on first call.

    The first call fixes the environment. Asking for a different one later
    only logs a warning, so a running process never switches databases.

    Args:
        environment: Environment for the first call; BOOKMARK_ADMIN_ENV
            (or production) when None

    Returns:
        Config instance
    """
    global _config_instance

    if _config_instance is None:
        if environment is None:
            environment = os.environ.get(ENV_VARIABLE, PRODUCTION)
        _config_instance = Config(environment, os.environ.get(DATABASE_URL_VARIABLE))
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"Ignoring environment='{environment}': configuration singleton "
            f"already uses '{_config_instance.environment}'"
        )

    return _config_instance


def reset_config():
    """Forget the Config singleton (tests)."""
    global _config_instance
    _config_instance = None


def get_database_url() -> str:
    return get_config().database_url
