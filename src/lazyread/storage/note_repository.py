"""Repository for note storage and retrieval.

A note and its image entries are written as one unit: an upsert replaces
the note's whole entry list with the one supplied, inside a single
transaction, so a failure part-way through leaves the previous entries
intact.
"""
import logging
from typing import Iterable, List, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from lazyread.exceptions import ErrorCode, ValidationError
from lazyread.models.db_models import DBNote, DBNoteImage
from lazyread.models.schema import Note, NoteImage, default_note_title
from lazyread.observability import traced
from lazyread.storage.base import (
    Repository,
    refreshed_timestamp,
    require_sort_order,
    require_text,
)
from lazyread.storage.ordering import next_sort_order, resequence

logger = logging.getLogger(__name__)

# Listing order for notes of a book; id makes it total
NOTE_ORDER = (
    DBNote.sort_order.asc(),
    DBNote.page_number.asc(),
    DBNote.created_at.desc(),
    DBNote.id.asc(),
)
IMAGE_ORDER = (DBNoteImage.sort_order.asc(), DBNoteImage.id.asc())


class NoteRepository(Repository[Note]):
    """Repository for notes and their ordered image entries."""

    @traced("get_note")
    def get(self, id: str) -> Optional[Note]:
        """Get a note with its entries.

        Returns:
            Note if found, None otherwise.
        """
        with self.session_factory() as session:
            db_note = session.get(
                DBNote, id, options=[selectinload(DBNote.images)]
            )
            if db_note is None:
                return None
            return self._to_model(db_note, db_note.images)

    def get_all(self) -> List[Note]:
        """Get every note of every book, in listing order."""
        return self.list_notes()

    @traced("list_notes")
    def list_notes(self, book_id: Optional[str] = None) -> List[Note]:
        """List notes with their entries pre-loaded.

        Args:
            book_id: Restrict to the notes of this book. None lists all notes.

        Returns:
            Notes ordered by sort_order, then page number, then newest first.
        """
        with self.session_factory() as session:
            query = select(DBNote).options(selectinload(DBNote.images))
            if book_id is not None:
                query = query.where(DBNote.book_id == book_id)
            query = query.order_by(*NOTE_ORDER)
            db_notes = session.execute(query).scalars().all()
            return [self._to_model(n, n.images) for n in db_notes]

    @traced("upsert_note")
    def upsert(self, note: Note) -> Note:
        """Insert or update a note together with its full entry list.

        On update the stored entries are replaced by ``note.images``; the
        list is authoritative, not merged. A note saved without
        ``sort_order`` is appended after its book's last note on insert
        (or when it moves to another book) and keeps its position
        otherwise. Entries without ``sort_order`` take their list position.

        Raises:
            ValidationError: If a precondition fails. Nothing is written.
            TransactionError: If any statement fails, including an unknown
                book id or an entry id already used elsewhere. Nothing is
                written.
        """
        self._validate(note)
        title = note.title if note.title and note.title.strip() else default_note_title(note.page_number)

        with self.transactions.atomic("upsert_note") as session:
            db_note = session.get(DBNote, note.id)
            if db_note is not None:
                if note.sort_order is not None:
                    sort_order = note.sort_order
                elif db_note.book_id != note.book_id:
                    sort_order = next_sort_order(session, DBNote.sort_order, DBNote.book_id, note.book_id)
                else:
                    sort_order = db_note.sort_order
                db_note.book_id = note.book_id
                db_note.title = title
                db_note.page_number = note.page_number
                db_note.sort_order = sort_order
                db_note.updated_at = refreshed_timestamp(
                    db_note.updated_at, note.updated_at, db_note.created_at
                )
                session.execute(
                    delete(DBNoteImage).where(DBNoteImage.note_id == note.id)
                )
                action = "Updated"
            else:
                if note.sort_order is not None:
                    sort_order = note.sort_order
                else:
                    sort_order = next_sort_order(session, DBNote.sort_order, DBNote.book_id, note.book_id)
                db_note = DBNote(
                    id=note.id,
                    book_id=note.book_id,
                    title=title,
                    page_number=note.page_number,
                    sort_order=sort_order,
                    created_at=note.created_at,
                    updated_at=refreshed_timestamp(note.updated_at, note.created_at),
                )
                session.add(db_note)
                action = "Created"
            # Parent row first so the entries' foreign key resolves
            session.flush()

            session.add_all(
                DBNoteImage(
                    id=image.id,
                    note_id=note.id,
                    uri=image.uri,
                    description=image.description,
                    sort_order=position if image.sort_order is None else image.sort_order,
                )
                for position, image in enumerate(note.images)
            )
            session.flush()
            session.refresh(db_note)

            logger.info(f"{action} note: {note.id} ({len(note.images)} entries)")
            return self._to_model(db_note, self._select_images(session, note.id))

    @traced("delete_note")
    def delete(self, id: str) -> None:
        """Delete a note and its entries. No-op if absent."""
        with self.transactions.atomic("delete_note") as session:
            session.execute(delete(DBNoteImage).where(DBNoteImage.note_id == id))
            result = session.execute(delete(DBNote).where(DBNote.id == id))
            if result.rowcount:
                logger.info(f"Deleted note: {id}")

    @traced("reorder_notes")
    def reorder(self, book_id: str, ordered_ids: Iterable[str]) -> int:
        """Rewrite the positions of a book's notes to follow ``ordered_ids``.

        IDs of notes outside the book are ignored. Notes of the book that
        are not listed keep their relative order after the listed ones.
        Only notes whose position changes get a new ``updated_at``.

        Returns:
            Number of notes whose position changed.
        """
        with self.transactions.atomic("reorder_notes") as session:
            db_notes = session.execute(
                select(DBNote).where(DBNote.book_id == book_id).order_by(*NOTE_ORDER)
            ).scalars().all()
            positions = resequence(ordered_ids, [n.id for n in db_notes])

            changed = 0
            for db_note in db_notes:
                position = positions[db_note.id]
                if db_note.sort_order != position:
                    db_note.sort_order = position
                    db_note.updated_at = refreshed_timestamp(db_note.updated_at)
                    changed += 1
        logger.info(f"Reordered {changed} notes of book {book_id}")
        return changed

    @traced("reorder_images")
    def reorder_images(self, note_id: str, ordered_ids: Iterable[str]) -> int:
        """Rewrite the positions of a note's entries to follow ``ordered_ids``.

        Same contract as ``reorder``. The note's own ``updated_at`` is left
        alone.

        Returns:
            Number of entries whose position changed.
        """
        with self.transactions.atomic("reorder_images") as session:
            db_images = self._select_images(session, note_id)
            positions = resequence(ordered_ids, [i.id for i in db_images])

            changed = 0
            for db_image in db_images:
                position = positions[db_image.id]
                if db_image.sort_order != position:
                    db_image.sort_order = position
                    changed += 1
        logger.info(f"Reordered {changed} entries of note {note_id}")
        return changed

    @staticmethod
    def _validate(note: Note) -> None:
        """Check preconditions before any statement runs."""
        require_text(note.id, "id")
        require_text(note.book_id, "book_id")
        if note.page_number < 1:
            raise ValidationError(
                "page_number must be a positive integer",
                field="page_number",
                value=note.page_number,
                code=ErrorCode.INVALID_PAGE_NUMBER,
            )
        require_sort_order(note.sort_order)
        for image in note.images:
            require_text(image.id, "images.id")
            require_sort_order(image.sort_order, "images.sort_order")

    @staticmethod
    def _select_images(session: Session, note_id: str) -> List[DBNoteImage]:
        return list(
            session.execute(
                select(DBNoteImage)
                .where(DBNoteImage.note_id == note_id)
                .order_by(*IMAGE_ORDER)
            ).scalars().all()
        )

    @staticmethod
    def _to_model(db_note: DBNote, db_images: Sequence[DBNoteImage]) -> Note:
        """Convert a DBNote row and its entry rows to a Note snapshot."""
        return Note(
            id=db_note.id,
            book_id=db_note.book_id,
            title=db_note.title,
            page_number=db_note.page_number,
            sort_order=db_note.sort_order,
            images=[
                NoteImage(
                    id=img.id,
                    uri=img.uri,
                    description=img.description,
                    sort_order=img.sort_order,
                )
                for img in db_images
            ],
            created_at=db_note.created_at,
            updated_at=db_note.updated_at,
        )
