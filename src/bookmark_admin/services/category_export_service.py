"""
Category Export Service - flat dump of the categories table.

The export bypasses the tree: one row per category with the columns in
CATEGORY_EXPORT_FIELDS, ordered by id. Only CSV is produced.
"""

import csv
import io
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..models.category import Category
from ..utils.constants import (
    CATEGORY_EXPORT_FIELDS,
    CATEGORY_EXPORT_LABELS,
    DATE_FORMAT,
    EXPORT_FILE_PREFIX,
    SUPPORTED_EXPORT_FORMATS,
)
from .database import session_scope
from .exceptions import ValidationError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

EXPORT_FIELDS: List[str] = list(CATEGORY_EXPORT_FIELDS)
EXPORT_LABELS: List[str] = [CATEGORY_EXPORT_LABELS[field] for field in EXPORT_FIELDS]


def get_export_rows(session: Optional[Session] = None) -> List[Dict[str, Any]]:
    """
    Get every category as a dict of the exported columns, ordered by id.

    Args:
        session: Optional database session

    Returns:
        List of dicts keyed by EXPORT_FIELDS
    """

    def _impl(sess: Session) -> List[Dict[str, Any]]:
        columns = [getattr(Category, field) for field in EXPORT_FIELDS]
        rows = sess.query(*columns).order_by(Category.id).all()
        return [dict(zip(EXPORT_FIELDS, row)) for row in rows]

    if session is not None:
        return _impl(session)

    with session_scope() as sess:
        return _impl(sess)


def categories_to_csv(rows: List[Dict[str, Any]]) -> str:
    """Render export rows as CSV text with a header row."""
    buffer = io.StringIO()
    _write_rows(buffer, rows)
    return buffer.getvalue()


def _write_rows(stream, rows: List[Dict[str, Any]]) -> None:
    writer = csv.writer(stream)
    writer.writerow(EXPORT_LABELS)
    for row in rows:
        writer.writerow([row.get(field) for field in EXPORT_FIELDS])


def get_export_file_name(export_format: str, today: Optional[date] = None) -> str:
    """
    Build the download name for an export, e.g. "categories-2024-05-01.csv".

    Args:
        export_format: File extension; must be a supported export format
        today: Date stamp to use (defaults to today)

    Returns:
        File name

    Raises:
        ValidationError: If the format is not supported
    """
    export_format = (export_format or "").strip().lower()
    if export_format not in SUPPORTED_EXPORT_FORMATS:
        message = (
            f"format: Unsupported export format '{export_format}'. "
            f"Supported: {', '.join(SUPPORTED_EXPORT_FORMATS)}"
        )
        raise ValidationError([message], {"format": [message]})

    stamp = (today or date.today()).strftime(DATE_FORMAT)
    return f"{EXPORT_FILE_PREFIX}-{stamp}.{export_format}"


def export_categories_csv(file_path: str, session: Optional[Session] = None) -> bool:
    """
    Write all categories to a CSV file.

    The file is written as UTF-8 with BOM so spreadsheet applications
    detect the encoding.

    Args:
        file_path: Destination path
        session: Optional database session

    Returns:
        True if the file was written, False if there were no categories
        (no file is created in that case)

    Raises:
        IOError: If the file cannot be written
    """
    rows = get_export_rows(session=session)
    if not rows:
        log_operation(logger, operation="export_categories_csv", outcome="empty")
        return False

    with open(file_path, "w", newline="", encoding="utf-8-sig") as f:
        _write_rows(f, rows)

    log_operation(
        logger,
        operation="export_categories_csv",
        outcome="success",
        row_count=len(rows),
        file_path=file_path,
    )
    return True
