"""
Transaction boundary for multi-statement mutations.

Usage:
    with atomic("update_template", resource_id=template_id):
        ...                      # flushes, inserts, updates
    # committed here

Any exception inside the block rolls the session back. Domain errors
(NotFoundError, ValidationError, ConflictError) propagate unchanged; anything
else is logged and re-raised as TransactionFailure chained to the original,
so a caller never observes a partially applied mutation.
"""

import logging
from contextlib import contextmanager

from efiling.core.exceptions import (
    ConflictError,
    NotFoundError,
    TransactionFailure,
    ValidationError,
)
from efiling.models import db

logger = logging.getLogger(__name__)

_DOMAIN_ERRORS = (NotFoundError, ValidationError, ConflictError)


@contextmanager
def atomic(operation: str, resource_id: int | str | None = None):
    """Run the block as one unit of work and commit on success."""
    try:
        yield db.session
        db.session.commit()
    except _DOMAIN_ERRORS:
        db.session.rollback()
        raise
    except Exception as exc:
        db.session.rollback()
        logger.exception(
            "Rolled back %s id=%s", operation, resource_id,
            extra={"operation": operation},
        )
        raise TransactionFailure(operation, resource_id) from exc
