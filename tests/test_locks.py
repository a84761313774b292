"""Tests for the reader/writer lock."""

import threading
import time

import pytest

from bookarchive.db.locks import ReadWriteLock


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.005)


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    def test_readers_share_the_lock(self):
        """Two readers can hold the lock at the same time."""
        lock = ReadWriteLock()
        barrier = threading.Barrier(2, timeout=2)
        errors = []

        def reader():
            try:
                with lock.read_lock():
                    # Both threads must be inside the lock to pass the barrier
                    barrier.wait()
            except threading.BrokenBarrierError as e:
                errors.append(e)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert errors == []
        assert lock.readers == 0

    def test_writer_excludes_readers(self):
        """A reader waits until the writer releases the lock."""
        lock = ReadWriteLock()
        acquired = threading.Event()

        def reader():
            with lock.read_lock():
                acquired.set()

        with lock.write_lock():
            assert lock.writer_active
            t = threading.Thread(target=reader)
            t.start()
            assert not acquired.wait(0.05)

        assert acquired.wait(2)
        t.join(timeout=2)
        assert not lock.writer_active

    def test_writer_waits_for_readers(self):
        """A writer waits until every reader is gone."""
        lock = ReadWriteLock()
        acquired = threading.Event()

        def writer():
            with lock.write_lock():
                acquired.set()

        with lock.read_lock():
            t = threading.Thread(target=writer)
            t.start()
            assert not acquired.wait(0.05)

        assert acquired.wait(2)
        t.join(timeout=2)

    def test_waiting_writer_blocks_new_readers(self):
        """Once a writer is queued, new readers line up behind it."""
        lock = ReadWriteLock()
        order = []

        def writer():
            with lock.write_lock():
                order.append("writer")

        def late_reader():
            with lock.read_lock():
                order.append("reader")

        with lock.read_lock():
            w = threading.Thread(target=writer)
            w.start()
            _wait_for(lambda: lock._writers_waiting == 1)

            r = threading.Thread(target=late_reader)
            r.start()
            time.sleep(0.05)
            assert order == []

        w.join(timeout=2)
        r.join(timeout=2)
        assert order == ["writer", "reader"]

    def test_lock_released_on_exception(self):
        """Leaving either lock by an exception releases it."""
        lock = ReadWriteLock()

        with pytest.raises(RuntimeError):
            with lock.write_lock():
                raise RuntimeError("boom")
        assert not lock.writer_active

        with pytest.raises(RuntimeError):
            with lock.read_lock():
                raise RuntimeError("boom")
        assert lock.readers == 0

        # Still usable afterwards
        with lock.write_lock():
            pass
