"""Repository for book storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import delete, select

from lazyread.models.db_models import DBBook, DBNote, DBNoteImage
from lazyread.models.schema import Book
from lazyread.observability import traced
from lazyread.storage.base import Repository, refreshed_timestamp, require_text

logger = logging.getLogger(__name__)


class BookRepository(Repository[Book]):
    """Repository for books.

    Deleting a book removes its notes and their images explicitly, in
    the same transaction, whatever cascade clauses the store's tables
    were created with.
    """

    @traced("get_book")
    def get(self, id: str) -> Optional[Book]:
        """Get a book by ID.

        Returns:
            Book if found, None otherwise.
        """
        with self.session_factory() as session:
            db_book = session.get(DBBook, id)
            if db_book is None:
                return None
            return self._to_model(db_book)

    @traced("list_books")
    def get_all(self) -> List[Book]:
        """Get all books, most recently created first."""
        with self.session_factory() as session:
            result = session.execute(
                select(DBBook).order_by(DBBook.created_at.desc(), DBBook.id)
            )
            return [self._to_model(db) for db in result.scalars().all()]

    @traced("upsert_book")
    def upsert(self, book: Book) -> Book:
        """Insert a book, or update every mutable field if its ID exists.

        ``created_at`` is fixed by the first write; ``updated_at`` is
        refreshed on every call and never moves backwards.

        Raises:
            ValidationError: If title or author is empty.
            TransactionError: If the write fails.
        """
        require_text(book.id, "id")
        require_text(book.title, "title")
        require_text(book.author, "author")

        with self.transactions.atomic("upsert_book") as session:
            db_book = session.get(DBBook, book.id)
            if db_book is not None:
                db_book.title = book.title
                db_book.author = book.author
                db_book.description = book.description
                db_book.cover_uri = book.cover_uri
                db_book.updated_at = refreshed_timestamp(
                    db_book.updated_at, book.updated_at, db_book.created_at
                )
                logger.info(f"Updated book: {book.id}")
            else:
                db_book = DBBook(
                    id=book.id,
                    title=book.title,
                    author=book.author,
                    description=book.description,
                    cover_uri=book.cover_uri,
                    created_at=book.created_at,
                    updated_at=refreshed_timestamp(book.updated_at, book.created_at),
                )
                session.add(db_book)
                logger.info(f"Created book: {book.id}")
            session.flush()
            # Reload so timestamps come back at stored precision
            session.refresh(db_book)
            return self._to_model(db_book)

    @traced("delete_book")
    def delete(self, id: str) -> None:
        """Delete a book with all of its notes and images. No-op if absent."""
        with self.transactions.atomic("delete_book") as session:
            note_ids = select(DBNote.id).where(DBNote.book_id == id)
            session.execute(
                delete(DBNoteImage).where(DBNoteImage.note_id.in_(note_ids))
            )
            session.execute(delete(DBNote).where(DBNote.book_id == id))
            result = session.execute(delete(DBBook).where(DBBook.id == id))
            if result.rowcount:
                logger.info(f"Deleted book: {id}")

    @staticmethod
    def _to_model(db_book: DBBook) -> Book:
        """Convert a DBBook row to a Book snapshot."""
        return Book(
            id=db_book.id,
            title=db_book.title,
            author=db_book.author,
            description=db_book.description,
            cover_uri=db_book.cover_uri,
            created_at=db_book.created_at,
            updated_at=db_book.updated_at,
        )
