"""SQLAlchemy database models for the Lazy Read store.

Table and index names match the ones every earlier version of the app
created, so an old store file is picked up and migrated in place.
"""
import datetime
from datetime import timezone

from sqlalchemy import (Column, ForeignKey, Index, Integer, Text, create_engine,
                        event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.pool import QueuePool
from sqlalchemy.types import TypeDecorator

from lazyread.models.schema import ensure_timezone_aware

# Create base class for SQLAlchemy models
Base = declarative_base()


class IsoDateTime(TypeDecorator):
    """UTC datetime stored as ISO 8601 text.

    Older app versions wrote JavaScript ``toISOString()`` values such as
    ``2024-01-01T10:00:00.000Z``; those read back as aware UTC datetimes.
    New values use the same millisecond format, so old and new rows
    compare correctly as text; sub-millisecond digits are dropped.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        value = ensure_timezone_aware(value)
        return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, datetime.datetime):
            return ensure_timezone_aware(value)
        text_value = str(value).strip()
        if text_value.endswith("Z"):
            text_value = text_value[:-1] + "+00:00"
        parsed = datetime.datetime.fromisoformat(text_value)
        return ensure_timezone_aware(parsed).astimezone(timezone.utc)


class DBBook(Base):
    """Database model for a book."""
    __tablename__ = "books"
    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    author = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    cover_uri = Column(Text, nullable=True)
    created_at = Column(IsoDateTime, nullable=False)
    updated_at = Column(IsoDateTime, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of book."""
        return f"<Book(id='{self.id}', title='{self.title}')>"


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(Text, primary_key=True)
    book_id = Column(
        Text, ForeignKey("books.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(Text, nullable=False)
    page_number = Column(Integer, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")
    created_at = Column(IsoDateTime, nullable=False)
    updated_at = Column(IsoDateTime, nullable=False)

    # Read-only view used for eager loading; writes go through statements
    images = relationship(
        "DBNoteImage",
        order_by="[DBNoteImage.sort_order, DBNoteImage.id]",
        viewonly=True,
    )

    __table_args__ = (
        Index("idx_notes_book_id", "book_id"),
        Index("idx_notes_page_number", "page_number"),
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return (
            f"<Note(id='{self.id}', book='{self.book_id}', "
            f"page={self.page_number}, sort_order={self.sort_order})>"
        )


class DBNoteImage(Base):
    """Database model for an image entry of a note."""
    __tablename__ = "note_images"
    id = Column(Text, primary_key=True)
    note_id = Column(
        Text, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False
    )
    uri = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (
        Index("idx_note_images_note_id", "note_id"),
    )

    def __repr__(self) -> str:
        """Return string representation of image entry."""
        return f"<NoteImage(id='{self.id}', note='{self.note_id}')>"


def create_store_engine(db_url: str, timeout: float = 30.0) -> Engine:
    """Create the engine behind a store handle.

    The pool holds exactly one connection, so sessions queue for it and
    statements from different threads never interleave inside one
    transaction. pysqlite's implicit transaction handling is switched off
    and every transaction starts with ``BEGIN IMMEDIATE``: DDL becomes
    transactional and the write lock is held before the first read of a
    read-modify-write sequence.
    """
    in_memory = db_url in ("sqlite://", "sqlite:///:memory:")

    engine = create_engine(
        db_url,
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=timeout,
        connect_args={"check_same_thread": False, "timeout": timeout},
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        # Cascading deletes only fire with foreign keys enabled per connection
        cursor.execute("PRAGMA foreign_keys=ON")
        if not in_memory:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine
