"""Tests for the pydantic models and the timestamp column type."""
import datetime
from datetime import timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from lazyread.models.db_models import IsoDateTime
from lazyread.models.schema import (
    Book,
    Note,
    NoteImage,
    StoreStats,
    default_note_title,
    ensure_timezone_aware,
    generate_id,
)


class TestIdGeneration:

    def test_ids_unique(self):
        ids = [generate_id() for _ in range(2000)]
        assert len(set(ids)) == len(ids)

    def test_ids_are_digits(self):
        assert generate_id().isdigit()

    def test_models_get_ids(self):
        assert Book(title="Dune", author="Herbert").id
        assert NoteImage().id


class TestModelDefaults:

    def test_note_defaults(self):
        note = Note(book_id="b1", page_number=3)
        assert note.title is None
        assert note.sort_order is None
        assert note.images == []
        assert note.created_at.tzinfo is not None

    def test_image_defaults(self):
        image = NoteImage(id="i1")
        assert image.uri == ""
        assert image.description == ""
        assert image.sort_order is None

    def test_unknown_fields_rejected(self):
        with pytest.raises(PydanticValidationError):
            Note(book_id="b1", page_number=1, pageNumber=1)

    def test_stats_frozen(self):
        stats = StoreStats()
        with pytest.raises(PydanticValidationError):
            stats.books_count = 3

    def test_default_title(self):
        assert default_note_title(5) == "Page 5's Note"


class TestTimezones:

    def test_naive_treated_as_utc(self):
        naive = datetime.datetime(2024, 1, 1, 12, 0)
        assert ensure_timezone_aware(naive) == datetime.datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    def test_aware_converted_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        value = ensure_timezone_aware(datetime.datetime(2024, 1, 1, 12, tzinfo=plus_two))
        assert value.tzinfo == timezone.utc
        assert value.hour == 10

    def test_none_is_now(self):
        assert ensure_timezone_aware(None).tzinfo is not None


class TestIsoDateTime:

    column_type = IsoDateTime()

    def test_bind_writes_utc_with_z(self):
        value = datetime.datetime(2024, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
        assert self.column_type.process_bind_param(value, None) == "2024-01-02T03:04:05.678Z"

    def test_bind_naive(self):
        value = datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert self.column_type.process_bind_param(value, None) == "2024-01-02T03:04:05.000Z"

    def test_bind_none(self):
        assert self.column_type.process_bind_param(None, None) is None

    def test_reads_javascript_iso_strings(self):
        """Values written as toISOString() by older versions parse as UTC."""
        parsed = self.column_type.process_result_value("2024-01-01T10:00:00.000Z", None)
        assert parsed == datetime.datetime(2024, 1, 1, 10, tzinfo=timezone.utc)

    def test_reads_offset_strings(self):
        parsed = self.column_type.process_result_value("2024-01-01T12:00:00+02:00", None)
        assert parsed == datetime.datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
        assert parsed.tzinfo == timezone.utc

    def test_reads_naive_strings_as_utc(self):
        parsed = self.column_type.process_result_value("2024-01-01T10:00:00", None)
        assert parsed.tzinfo == timezone.utc

    def test_text_sorts_chronologically(self):
        earlier = self.column_type.process_bind_param(datetime.datetime(2024, 1, 1, 9, 59, 59, 999999), None)
        later = self.column_type.process_bind_param(datetime.datetime(2024, 1, 1, 10), None)
        assert earlier < later
