"""Test Signal and RWLock."""

import threading
import time

from gitsync.signals import RWLock, Signal


class TestSignal:
    """Tests for the single-slot Signal."""

    def test_send_fills_slot(self):
        signal = Signal()
        assert not signal.wait(timeout=0)
        assert signal.send()
        assert signal.wait(timeout=0)

    def test_sends_coalesce(self):
        """Sends while a wake-up is pending are dropped."""
        signal = Signal()
        assert signal.send()
        assert not signal.send()
        assert not signal.send()

        assert signal.wait(timeout=0)
        assert not signal.wait(timeout=0)

    def test_wait_consumes(self):
        signal = Signal()
        signal.send()
        assert signal.wait(timeout=0)
        assert not signal.wait(timeout=0)

    def test_wait_times_out(self):
        assert not Signal().wait(timeout=0.01)

    def test_wait_wakes_on_send(self):
        signal = Signal()
        woken = threading.Event()

        def waiter():
            if signal.wait(timeout=5):
                woken.set()

        thread = threading.Thread(target=waiter)
        thread.start()
        signal.send()
        thread.join(timeout=5)

        assert woken.is_set()


class TestRWLock:
    """Tests for the readers-writer lock."""

    def test_readers_share(self):
        lock = RWLock()
        both_in = threading.Barrier(2, timeout=5)
        results = []

        def reader():
            with lock.read():
                both_in.wait()
                results.append(True)

        threads = [threading.Thread(target=reader) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert results == [True, True]

    def test_writer_excludes_readers(self):
        lock = RWLock()
        order = []
        lock.acquire_write()

        def reader():
            with lock.read():
                order.append("read")

        thread = threading.Thread(target=reader)
        thread.start()
        time.sleep(0.05)
        order.append("write done")
        lock.release_write()
        thread.join(timeout=5)

        assert order == ["write done", "read"]

    def test_waiting_writer_blocks_new_readers(self):
        lock = RWLock()
        order = []
        lock.acquire_read()

        def writer():
            with lock.write():
                order.append("write")

        def late_reader():
            with lock.read():
                order.append("read")

        writer_thread = threading.Thread(target=writer)
        writer_thread.start()
        time.sleep(0.05)
        reader_thread = threading.Thread(target=late_reader)
        reader_thread.start()
        time.sleep(0.05)
        assert order == []

        lock.release_read()
        writer_thread.join(timeout=5)
        reader_thread.join(timeout=5)

        assert order == ["write", "read"]
