"""
Tests for using one BookStore from several threads.
"""

import threading

import pytest

from bookarchive import BookStore


@pytest.fixture
def store(tmp_path):
    s = BookStore.open(tmp_path / "book_archive.db")
    yield s
    s.shutdown()


def _run_threads(targets):
    errors = []

    def wrap(fn):
        def runner():
            try:
                fn()
            except Exception as e:  # collected and asserted by the test
                errors.append(e)
        return runner

    threads = [threading.Thread(target=wrap(fn)) for fn in targets]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    assert not any(t.is_alive() for t in threads), "worker thread hung"
    return errors


class TestConcurrentAccess:
    """Readers and writers sharing a store."""

    def test_concurrent_listings_agree(self, store):
        for i in range(1, 51):
            store.add_book(i, f"Title {i}", f"Author {i % 5}")

        results = []
        barrier = threading.Barrier(4, timeout=5)

        def reader():
            barrier.wait()
            results.append([b.id for b in store.list_books()])

        errors = _run_threads([reader] * 4)

        assert errors == []
        assert len(results) == 4
        assert all(r == list(range(1, 51)) for r in results)

    def test_writers_and_readers(self, store):
        """Concurrent inserts all land, and every read sees a consistent, ordered list."""
        snapshots = []

        def writer(offset):
            def run():
                for i in range(25):
                    assert store.add_book(offset + i, f"Book {offset + i}", "Writer")
            return run

        def reader():
            for _ in range(20):
                ids = [b.id for b in store.list_books()]
                snapshots.append(ids)
                store.search_books("Book")

        errors = _run_threads(
            [writer(1), writer(101), writer(201), writer(301), reader, reader]
        )

        assert errors == []
        final = [b.id for b in store.list_books()]
        assert len(final) == 100
        assert final == sorted(final)
        for ids in snapshots:
            assert ids == sorted(ids)
            assert len(ids) == len(set(ids))

    def test_same_statement_from_many_threads(self, store):
        """Parallel first use of a statement leaves one cache entry."""
        barrier = threading.Barrier(6, timeout=5)

        def adder(book_id):
            def run():
                barrier.wait()
                assert store.add_book(book_id, f"Title {book_id}", "Author")
            return run

        errors = _run_threads([adder(i) for i in range(1, 7)])

        assert errors == []
        assert len(store.statement_cache) == 1
        assert [b.id for b in store.list_books()] == [1, 2, 3, 4, 5, 6]

    def test_duplicate_insert_race_has_one_winner(self, store):
        outcomes = []
        barrier = threading.Barrier(5, timeout=5)

        def adder():
            barrier.wait()
            outcomes.append(store.add_book(1, "Dune", "Frank Herbert"))

        errors = _run_threads([adder] * 5)

        assert errors == []
        assert sorted(outcomes) == [False, False, False, False, True]
        assert len(store.list_books()) == 1
