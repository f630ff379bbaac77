"""Tests for store-wide counts and clearing."""
from lazyread.models.schema import Book, StoreStats


class TestStats:

    def test_empty_store(self, stats_repository):
        assert stats_repository.get_stats() == StoreStats()

    def test_counts(self, stats_repository, book_repository, note_repository, make_note, book):
        book_repository.upsert(Book(id="b2", title="Emma", author="Austen"))
        note_repository.upsert(make_note("n1", images=["i1", "i2"]))
        note_repository.upsert(make_note("n2", images=["i3"]))

        stats = stats_repository.get_stats()

        assert stats.books_count == 2
        assert stats.notes_count == 2
        assert stats.images_count == 3


class TestClearAllData:

    def test_clears_everything(self, stats_repository, book_repository, note_repository, make_note, book):
        note_repository.upsert(make_note("n1", images=["i1"]))

        stats_repository.clear_all_data()

        assert stats_repository.get_stats() == StoreStats()
        assert book_repository.get_all() == []

    def test_store_usable_after_clear(self, stats_repository, book_repository, note_repository, make_note, book):
        note_repository.upsert(make_note("n1"))
        stats_repository.clear_all_data()

        book_repository.upsert(Book(id="b1", title="Dune", author="Herbert"))
        # Positions start over once the book's notes are gone
        assert note_repository.upsert(make_note("n1")).sort_order == 0
