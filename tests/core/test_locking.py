"""
Unit tests for the marker file lock.

Tests cover:
- Marker creation and removal
- Release on failure paths
- Same-thread re-acquisition detection
- Waiting for another holder, cancellation and explicit timeouts
"""

import os
import threading
import time

import pytest

from jdkcache.core.exceptions import AcquisitionCancelled, LockError
from jdkcache.core.locking import CacheLock, lock_marker_path


class TestCacheLock:
    """Tests for CacheLock class."""

    def test_marker_exists_while_held(self, tmp_path):
        """Test marker file is present only while the lock is held."""
        marker = lock_marker_path(tmp_path, "KEY")
        assert marker.name == ".#KEY"

        with CacheLock(tmp_path, "KEY") as lock:
            assert marker.exists()
            assert lock.is_locked

        assert not marker.exists()
        assert not lock.is_locked

    def test_creates_cache_root(self, tmp_path):
        """Test missing cache root is created."""
        root = tmp_path / "nested" / "cache"
        with CacheLock(root, "KEY"):
            assert (root / ".#KEY").exists()

    def test_released_on_exception(self, tmp_path):
        """Test marker is removed when the body raises."""
        with pytest.raises(RuntimeError):
            with CacheLock(tmp_path, "KEY"):
                raise RuntimeError("boom")

        assert not lock_marker_path(tmp_path, "KEY").exists()

    def test_release_without_acquire_is_noop(self, tmp_path):
        """Test releasing an unacquired lock does nothing."""
        CacheLock(tmp_path, "KEY").release()

    def test_same_thread_reacquire_detected(self, tmp_path):
        """Test nested acquisition of the same key fails instead of hanging."""
        with CacheLock(tmp_path, "KEY"):
            with pytest.raises(LockError, match="already held"):
                CacheLock(tmp_path, "KEY", timeout=5).acquire()
            assert lock_marker_path(tmp_path, "KEY").exists()

    def test_different_keys_do_not_block(self, tmp_path):
        """Test locks on different keys are independent."""
        with CacheLock(tmp_path, "A"):
            with CacheLock(tmp_path, "B", timeout=0):
                assert lock_marker_path(tmp_path, "B").exists()

    def test_leftover_marker_blocks_until_timeout(self, tmp_path):
        """Test a marker without an owner is never treated as stale."""
        lock_marker_path(tmp_path, "KEY").write_text("")

        lock = CacheLock(tmp_path, "KEY", poll_interval=0.05, timeout=0.2)
        with pytest.raises(LockError, match="remove"):
            lock.acquire()

        assert lock_marker_path(tmp_path, "KEY").exists()

    def test_cancelled_before_acquire(self, tmp_path):
        """Test a set cancel event stops acquisition."""
        event = threading.Event()
        event.set()
        with pytest.raises(AcquisitionCancelled):
            CacheLock(tmp_path, "KEY", cancel_event=event).acquire()
        assert not lock_marker_path(tmp_path, "KEY").exists()

    @pytest.mark.slow
    def test_cancel_while_waiting(self, tmp_path):
        """Test waiting stops when the event is set by another thread."""
        lock_marker_path(tmp_path, "KEY").write_text("")
        event = threading.Event()
        timer = threading.Timer(0.2, event.set)
        timer.start()
        try:
            start = time.monotonic()
            with pytest.raises(AcquisitionCancelled):
                CacheLock(tmp_path, "KEY", poll_interval=0.05, cancel_event=event).acquire()
            assert time.monotonic() - start < 5
        finally:
            timer.cancel()

    @pytest.mark.slow
    def test_waiter_acquires_after_release(self, tmp_path):
        """Test a second thread gets the lock once the first releases it."""
        order = []
        holder_ready = threading.Event()

        def holder():
            with CacheLock(tmp_path, "KEY"):
                order.append("holder-in")
                holder_ready.set()
                time.sleep(0.3)
                order.append("holder-out")

        def waiter():
            holder_ready.wait(5)
            with CacheLock(tmp_path, "KEY", poll_interval=0.05, timeout=10):
                order.append("waiter-in")

        threads = [threading.Thread(target=holder), threading.Thread(target=waiter)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10)

        assert order == ["holder-in", "holder-out", "waiter-in"]
        assert not lock_marker_path(tmp_path, "KEY").exists()


class TestLeftoverMarkers:
    """Tests for markers left behind by crashed holders."""

    @pytest.mark.slow
    @pytest.mark.parametrize(
        "content", ["", "999999\nsome-host\n", "not a lock file"], ids=["empty", "dead-pid", "garbage"]
    )
    def test_leftover_marker_is_never_broken(self, tmp_path, content):
        """Test a leftover marker keeps blocking well past any staleness heuristic."""
        marker = lock_marker_path(tmp_path, "KEY")
        marker.write_text(content)

        start = time.monotonic()
        with pytest.raises(LockError, match="remove"):
            CacheLock(tmp_path, "KEY", poll_interval=0.1, timeout=3).acquire()

        assert time.monotonic() - start >= 3
        assert marker.read_text() == content

    def test_marker_records_holder_pid(self, tmp_path):
        """Test the marker names the holding process."""
        with CacheLock(tmp_path, "KEY"):
            assert lock_marker_path(tmp_path, "KEY").read_text() == f"{os.getpid()}\n"


class TestReleaseFailure:
    """Tests for markers that can't be deleted."""

    def test_unlink_failure_raises(self, tmp_path, monkeypatch):
        """Test a marker that can't be deleted is a hard failure."""
        marker = lock_marker_path(tmp_path, "KEY")
        real_unlink = os.unlink

        def failing_unlink(path, *args, **kwargs):
            if os.fspath(path) == str(marker):
                raise PermissionError(13, "Permission denied", str(path))
            return real_unlink(path, *args, **kwargs)

        lock = CacheLock(tmp_path, "KEY").acquire()
        monkeypatch.setattr(os, "unlink", failing_unlink)

        with pytest.raises(LockError, match="Can't release lock marker") as exc_info:
            lock.release()

        assert exc_info.value.marker == str(marker)
        assert marker.exists()
        assert not lock.is_locked
