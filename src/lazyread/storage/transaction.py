"""Atomic units of work over the store's single connection."""
import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from lazyread.exceptions import TransactionError

logger = logging.getLogger(__name__)


class TransactionCoordinator:
    """Wraps multi-statement mutations in one all-or-nothing transaction.

    Every statement issued through the yielded session commits together
    or not at all. Database failures surface as ``TransactionError``
    chained to the original exception; errors raised by this package
    (``ValidationError`` and friends) pass through untouched. Either way
    the store is left exactly as it was before the unit began.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def atomic(self, operation: str) -> Iterator[Session]:
        """Run the body of the ``with`` block as one transaction.

        Args:
            operation: Name used in logs and on the raised error.

        Yields:
            A session whose transaction is already open.

        Raises:
            TransactionError: If any statement fails; all are rolled back.
        """
        with self.session_factory() as session:
            try:
                with session.begin():
                    yield session
            except (SQLAlchemyError, sqlite3.Error) as e:
                logger.error(f"Transaction {operation} rolled back: {e}")
                raise TransactionError(
                    f"{operation} failed and was rolled back",
                    operation=operation,
                    original_error=e,
                ) from e
