"""Data models for the Lazy Read store."""

import datetime
import os
import threading
from datetime import timezone
from typing import List, Optional

from pydantic import BaseModel, Field


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> datetime.datetime:
    """Ensure a datetime is timezone-aware, treating naive datetimes as UTC.

    Rows written by older versions of the app may carry naive values;
    they are assumed to be UTC.

    Args:
        dt_value: A datetime that may or may not have timezone info.

    Returns:
        The datetime converted to UTC, or now if it was None.
    """
    if dt_value is None:
        return utc_now()
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value.astimezone(timezone.utc)


# Thread-safe counter so two ids minted in the same microsecond differ
_id_lock = threading.Lock()
_last_timestamp = 0
_counter = (os.getpid() * 7) % 10_000


def generate_id() -> str:
    """Generate a unique, roughly time-ordered identifier.

    Returns:
        A string "<microseconds since epoch><4-digit counter>". The counter
        is re-seeded from the PID on every new microsecond and incremented
        when several ids are generated within the same one.
    """
    global _last_timestamp, _counter

    with _id_lock:
        current_timestamp = int(utc_now().timestamp() * 1_000_000)
        if current_timestamp == _last_timestamp:
            _counter = (_counter + 1) % 10_000
        else:
            _last_timestamp = current_timestamp
            _counter = (os.getpid() * 7) % 10_000
        return f"{current_timestamp}{_counter:04d}"


def default_note_title(page_number: int) -> str:
    """Title given to notes saved without one."""
    return f"Page {page_number}'s Note"


class NoteImage(BaseModel):
    """An entry attached to a note: an image reference plus its caption.

    An empty ``uri`` makes the entry a text-only note.
    """

    id: str = Field(default_factory=generate_id, description="Unique ID of the entry")
    uri: str = Field(default="", description="Reference to external image content")
    description: str = Field(default="", description="Caption or note text")
    sort_order: Optional[int] = Field(
        default=None,
        description="Position among the note's entries; None means list position",
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}


class Book(BaseModel):
    """A book that owns notes."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the book")
    title: str = Field(..., description="Title of the book")
    author: str = Field(..., description="Author of the book")
    description: Optional[str] = Field(default=None, description="Optional blurb")
    cover_uri: Optional[str] = Field(
        default=None, description="Reference to external cover image data"
    )
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the book was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the book was last written (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}


class Note(BaseModel):
    """A note taken on a page of a book, with its ordered entries."""

    id: str = Field(default_factory=generate_id, description="Unique ID of the note")
    book_id: str = Field(..., description="ID of the owning book")
    title: Optional[str] = Field(
        default=None, description="Title; synthesized from the page number if absent"
    )
    page_number: int = Field(..., description="Page the note refers to (1-based)")
    sort_order: Optional[int] = Field(
        default=None,
        description="Position among the book's notes; None appends on insert",
    )
    images: List[NoteImage] = Field(default_factory=list, description="Ordered entries")
    created_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was created (UTC)"
    )
    updated_at: datetime.datetime = Field(
        default_factory=utc_now, description="When the note was last written (UTC)"
    )

    model_config = {"validate_assignment": True, "extra": "forbid"}


class StoreStats(BaseModel):
    """Row counts per entity kind."""

    books_count: int = 0
    notes_count: int = 0
    images_count: int = 0

    model_config = {"frozen": True}
