"""Base repository shared by the entity repositories."""
import datetime
from abc import ABC, abstractmethod
from typing import Any, Generic, List, Optional, TypeVar

from sqlalchemy.orm import sessionmaker

from lazyread.exceptions import ErrorCode, ValidationError
from lazyread.models.schema import ensure_timezone_aware, utc_now
from lazyread.storage.database import Database
from lazyread.storage.transaction import TransactionCoordinator

T = TypeVar("T")


class Repository(ABC, Generic[T]):
    """Typed CRUD over one entity kind of a store.

    Subclasses never open their own engine: every session comes from the
    ``Database`` handle, which guarantees the schema check has run.
    """

    def __init__(self, database: Database):
        self.database = database

    @property
    def session_factory(self) -> sessionmaker:
        return self.database.session_factory

    @property
    def transactions(self) -> TransactionCoordinator:
        return TransactionCoordinator(self.session_factory)

    @abstractmethod
    def get(self, id: str) -> Optional[T]:
        """Return the entity, or None if it does not exist."""

    @abstractmethod
    def get_all(self) -> List[T]:
        """Return every entity in listing order."""

    @abstractmethod
    def upsert(self, entity: T) -> T:
        """Insert or update keyed by id; return the stored snapshot."""

    @abstractmethod
    def delete(self, id: str) -> None:
        """Remove the entity and its descendants; no-op if absent."""


def require_text(value: Optional[str], field: str) -> str:
    """Reject missing or blank required text."""
    if value is None or not value.strip():
        raise ValidationError(
            f"{field} cannot be empty",
            field=field,
            value=value,
            code=ErrorCode.REQUIRED_TEXT_MISSING,
        )
    return value


def require_sort_order(value: Optional[int], field: str = "sort_order") -> Optional[int]:
    """Reject negative explicit positions; None means 'pick for me'."""
    if value is not None and value < 0:
        raise ValidationError(
            f"{field} must be >= 0",
            field=field,
            value=value,
            code=ErrorCode.INVALID_SORT_ORDER,
        )
    return value


def refreshed_timestamp(*candidates: Optional[datetime.datetime]) -> datetime.datetime:
    """New ``updated_at``: now, but never earlier than any given timestamp."""
    known: List[Any] = [ensure_timezone_aware(c) for c in candidates if c is not None]
    return max([utc_now(), *known])
