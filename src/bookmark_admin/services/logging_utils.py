"""Structured logging helpers for the service layer.

Every service module logs through a logger named
``bookmark_admin.services.<module>`` and reports each write as one record
carrying the operation name, its outcome and the ids involved:

    logger = get_service_logger(__name__)
    log_operation(logger, operation="move_category", outcome="success",
                  category_id=12, parent_id=3)

Context keys end up as attributes on the LogRecord, so they must not
clash with LogRecord's own attributes (``name``, ``msg``, ``filename``, ...).
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Return the service logger for a module.

    Args:
        name: Module name, usually ``__name__``; only the last dotted part is kept

    Example:
        >>> get_service_logger("bookmark_admin.services.category_service").name
        'bookmark_admin.services.category_service'
    """
    module = name.rsplit(".", 1)[-1]
    return logging.getLogger(f"bookmark_admin.services.{module}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Emit "<operation>: <outcome>" with the context attached via ``extra``.

    Args:
        logger: Service logger
        operation: Service function name, e.g. "delete_categories"
        outcome: "success", "validation_failed", a MoveError value, ...
        level: Log level; DEBUG for high-volume events such as index builds
        **context: Ids and counts describing the operation
    """
    logger.log(
        level,
        f"{operation}: {outcome}",
        extra={"operation": operation, "outcome": outcome, **context},
    )
