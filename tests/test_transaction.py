"""Tests for the atomic unit-of-work wrapper."""
import datetime
from datetime import timezone

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import OperationalError

from lazyread.exceptions import TransactionError, ValidationError
from lazyread.models.db_models import DBBook
from lazyread.storage.transaction import TransactionCoordinator

NOW = datetime.datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_book(book_id):
    return DBBook(id=book_id, title=book_id, author="A", created_at=NOW, updated_at=NOW)


@pytest.fixture
def coordinator(database):
    return TransactionCoordinator(database.session_factory)


def book_ids(database):
    with database.session_factory() as session:
        return sorted(session.execute(select(DBBook.id)).scalars().all())


class TestAtomic:

    def test_commits_on_success(self, database, coordinator):
        with coordinator.atomic("add_books") as session:
            session.add(make_book("b1"))
            session.add(make_book("b2"))
        assert book_ids(database) == ["b1", "b2"]

    def test_statement_failure_rolls_back_everything(self, database, coordinator):
        """A failure on a later statement undoes the earlier ones."""
        with pytest.raises(TransactionError) as exc_info:
            with coordinator.atomic("add_books") as session:
                session.add(make_book("b1"))
                session.flush()
                session.execute(text("INSERT INTO no_such_table VALUES (1)"))

        assert book_ids(database) == []
        error = exc_info.value
        assert error.operation == "add_books"
        assert isinstance(error.__cause__, OperationalError)
        assert error.original_error is error.__cause__

    def test_package_errors_pass_through(self, database, coordinator):
        """Errors raised by the body are not rewrapped, but still roll back."""
        with pytest.raises(ValidationError):
            with coordinator.atomic("add_books") as session:
                session.add(make_book("b1"))
                session.flush()
                raise ValidationError("bad input", field="title")

        assert book_ids(database) == []

    def test_store_usable_after_rollback(self, database, coordinator):
        with pytest.raises(TransactionError):
            with coordinator.atomic("broken") as session:
                session.execute(text("SELECT * FROM no_such_table"))

        with coordinator.atomic("add_books") as session:
            session.add(make_book("b3"))
        assert book_ids(database) == ["b3"]
