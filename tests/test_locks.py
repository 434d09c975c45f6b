"""
Tests for the registry reader/writer lock
"""

import threading
import time
import pytest

from billing_engine.locks import ReadWriteLock


class TestReadWriteLock:
    """Test shared and exclusive acquisition"""

    def test_multiple_readers(self):
        lock = ReadWriteLock()
        with lock.read_locked():
            with lock.read_locked():
                assert lock.readers == 2
        assert lock.readers == 0

    def test_writer_flag(self):
        lock = ReadWriteLock()
        with lock.write_locked():
            assert lock.write_held
        assert not lock.write_held

    def test_release_on_exception(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            with lock.write_locked():
                raise RuntimeError("boom")
        assert not lock.write_held

        with pytest.raises(RuntimeError):
            with lock.read_locked():
                raise RuntimeError("boom")
        assert lock.readers == 0

    def test_unbalanced_release(self):
        lock = ReadWriteLock()
        with pytest.raises(RuntimeError):
            lock.release_read()
        with pytest.raises(RuntimeError):
            lock.release_write()

    def test_writer_waits_for_readers(self):
        lock = ReadWriteLock()
        events = []
        writer_started = threading.Event()

        lock.acquire_read()

        def write():
            writer_started.set()
            with lock.write_locked():
                events.append("write")

        writer = threading.Thread(target=write)
        writer.start()
        writer_started.wait()
        time.sleep(0.05)
        events.append("read done")
        lock.release_read()
        writer.join(timeout=5)

        assert events == ["read done", "write"]

    def test_reader_waits_for_writer(self):
        lock = ReadWriteLock()
        events = []
        reader_started = threading.Event()

        lock.acquire_write()

        def read():
            reader_started.set()
            with lock.read_locked():
                events.append("read")

        reader = threading.Thread(target=read)
        reader.start()
        reader_started.wait()
        time.sleep(0.05)
        events.append("write done")
        lock.release_write()
        reader.join(timeout=5)

        assert events == ["write done", "read"]

    def test_waiting_writer_blocks_new_readers(self):
        """A queued writer goes before readers that arrive after it"""
        lock = ReadWriteLock()
        events = []

        lock.acquire_read()

        def write():
            with lock.write_locked():
                events.append("write")

        def read():
            with lock.read_locked():
                events.append("late read")

        writer = threading.Thread(target=write)
        writer.start()
        # Wait until the writer is queued
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            with lock._cond:
                if lock._writers_waiting:
                    break
            time.sleep(0.001)

        reader = threading.Thread(target=read)
        reader.start()
        time.sleep(0.05)
        assert events == []

        lock.release_read()
        writer.join(timeout=5)
        reader.join(timeout=5)

        assert events == ["write", "late read"]

    def test_read_lock_is_not_reentrant_behind_queued_writer(self):
        """A reader re-acquiring while a writer waits blocks until the writer runs"""
        lock = ReadWriteLock()
        held = threading.Event()
        writer_queued = threading.Event()
        nested = threading.Event()

        def nested_reader():
            lock.acquire_read()
            held.set()
            writer_queued.wait(timeout=5)
            lock.acquire_read()
            nested.set()
            lock.release_read()

        def write():
            with lock.write_locked():
                pass

        reader = threading.Thread(target=nested_reader)
        reader.start()
        assert held.wait(timeout=5)

        writer = threading.Thread(target=write)
        writer.start()
        deadline = time.monotonic() + 5
        while time.monotonic() < deadline:
            with lock._cond:
                if lock._writers_waiting:
                    break
            time.sleep(0.001)
        writer_queued.set()

        assert not nested.wait(timeout=0.1)

        # Drop the outer hold so the writer, then the nested read, can proceed
        lock.release_read()
        writer.join(timeout=5)
        reader.join(timeout=5)

        assert nested.is_set()
        assert lock.readers == 0
        assert not lock.write_held

    def test_counter_under_contention(self):
        lock = ReadWriteLock()
        counter = {"value": 0}

        def increment():
            for _ in range(1000):
                with lock.write_locked():
                    current = counter["value"]
                    counter["value"] = current + 1

        threads = [threading.Thread(target=increment) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert counter["value"] == 8000
