"""
Domain error taxonomy and the mapping from infrastructure failures onto it.

Every service raises one of the ``DomainError`` subclasses below. Errors coming
from SQLAlchemy (constraint violations, lock failures, lost connections) are
classified by ``map_error`` so that callers only ever see domain errors.
"""
import logging

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE codes
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
NOT_NULL_VIOLATION = "23502"
CHECK_VIOLATION = "23514"
SERIALIZATION_FAILURE = "40001"
DEADLOCK_DETECTED = "40P01"
LOCK_NOT_AVAILABLE = "55P03"

RETRYABLE_CODES = {SERIALIZATION_FAILURE, DEADLOCK_DETECTED, LOCK_NOT_AVAILABLE}


class DomainError(Exception):
    """Base class for errors that are reported to the caller."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DomainError):
    """Malformed or out-of-range input, or a business rule breach."""
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(DomainError):
    """A referenced product, sale, offer, alert or association doesn't exist."""
    status_code = 404
    default_message = "Resource not found"


class ConflictError(DomainError):
    """Duplicate rows or deletion of a row that is still referenced."""
    status_code = 409
    default_message = "Resource conflict"


class ConsistencyError(DomainError):
    """The operation would break a cross-entity invariant (e.g. negative stock)."""
    status_code = 409
    default_message = "Consistency violation"


class TransactionConflictError(ConsistencyError):
    """The database aborted the transaction because of concurrent access."""
    default_message = "Concurrent modification detected, please retry"


class InternalError(DomainError):
    """Unexpected or infrastructure failure. The message is always opaque."""
    status_code = 500
    default_message = "Internal server error"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _integrity_kind(exc: IntegrityError) -> str | None:
    code = _sqlstate(exc)
    if code:
        return code

    # SQLite doesn't expose SQLSTATE codes, only messages
    text = str(getattr(exc, "orig", exc)).upper()
    if "UNIQUE" in text:
        return UNIQUE_VIOLATION
    if "FOREIGN KEY" in text:
        return FOREIGN_KEY_VIOLATION
    if "NOT NULL" in text:
        return NOT_NULL_VIOLATION
    if "CHECK" in text:
        return CHECK_VIOLATION
    return None


def map_error(exc: BaseException) -> DomainError:
    """
    Classify an exception into a domain error.

    Args:
        exc: Any exception raised while running a unit of work

    Returns:
        The matching ``DomainError`` instance (``exc`` itself if it already is one)
    """
    if isinstance(exc, DomainError):
        return exc

    if isinstance(exc, IntegrityError):
        kind = _integrity_kind(exc)
        if kind == UNIQUE_VIOLATION:
            return ConflictError("Resource already exists")
        if kind == FOREIGN_KEY_VIOLATION:
            return NotFoundError("Referenced resource not found")
        if kind in (CHECK_VIOLATION, NOT_NULL_VIOLATION):
            return ValidationError("Value violates a data constraint")

    if isinstance(exc, OperationalError) and _sqlstate(exc) in RETRYABLE_CODES:
        return TransactionConflictError()

    logger.error(f"Unclassified error: {exc!r}", exc_info=exc)
    return InternalError()
