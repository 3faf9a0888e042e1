import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.config import get_settings
from app.services.exceptions import DomainError, TransactionConflictError, map_error

logger = logging.getLogger(__name__)

settings = get_settings()

T = TypeVar("T")

# Create SQLAlchemy engine with connection pooling
engine = create_engine(
    settings.DATABASE_URL,
    pool_size=10,
    max_overflow=20,
    pool_pre_ping=True,
)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for models
Base = declarative_base()


class TransactionCoordinator:
    """
    Runs a unit of work inside exactly one database transaction.

    A session is acquired from the factory at the start of every attempt,
    the unit of work receives it with a transaction already open, and the
    transaction is committed when the unit returns. Any exception (domain
    errors, database errors, cancellation) rolls the whole unit back, and the
    session is closed on every exit path.

    Database errors are classified through ``map_error`` so that callers only
    see ``DomainError`` subclasses. Serialization failures and deadlocks are
    retried with exponential backoff, because the rolled-back attempt left no
    effects behind.
    """

    def __init__(
        self,
        session_factory: sessionmaker = None,
        retry_attempts: int = None,
        backoff_base: float = 0.05,
    ):
        self.session_factory = session_factory or SessionLocal
        self.retry_attempts = max(1, retry_attempts or settings.TX_RETRY_ATTEMPTS)
        self.backoff_base = backoff_base

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Open a session and a transaction; commit on success, roll back otherwise."""
        session = self.session_factory()
        try:
            with session.begin():
                yield session
        except DomainError:
            raise
        except Exception as exc:
            raise map_error(exc) from exc
        finally:
            session.close()

    def run(self, unit_of_work: Callable[[Session], T]) -> T:
        """
        Execute ``unit_of_work(session)`` atomically and return its result.

        Raises:
            DomainError: The unit of work failed and nothing was committed
        """
        for attempt in range(1, self.retry_attempts + 1):
            try:
                with self.transaction() as tx:
                    return unit_of_work(tx)
            except TransactionConflictError:
                if attempt >= self.retry_attempts:
                    raise
                logger.warning(
                    f"Transaction conflict on attempt {attempt}/{self.retry_attempts}, retrying"
                )
                time.sleep(self.backoff_base * (2 ** (attempt - 1)))


coordinator = TransactionCoordinator()


def get_coordinator() -> TransactionCoordinator:
    """Dependency returning the shared transaction coordinator."""
    return coordinator
