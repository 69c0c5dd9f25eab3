"""
Cross-process mutual exclusion per cache key.

The lock is a marker file ``<cache_root>/.#<key>`` created with an atomic
create-if-absent (O_CREAT|O_EXCL through a filelock BaseFileLock subclass, no
OS advisory locks). While the marker exists, every other acquisition
of the same key polls at a fixed interval until the marker can be created.

Invariants:
- one marker file is one critical section, across processes and threads
- the marker is deleted by the holder on every exit path
- markers left behind by a crashed process are never treated as stale;
  they must be removed externally
- waiting is unbounded unless a timeout is configured explicitly

Usage:
    from jdkcache.core.locking import CacheLock

    with CacheLock(cache_root, key, cancel_event=event):
        # only this holder may populate <cache_root>/<key>
        ...
"""

import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import Dict, Optional

from filelock import BaseFileLock, Timeout

from jdkcache.core.exceptions import AcquisitionCancelled, LockError

logger = logging.getLogger(__name__)

LOCK_PREFIX = ".#"
DEFAULT_POLL_INTERVAL = 0.5
MARKER_MODE = 0o644

# marker path -> thread ident, detects same-thread re-acquisition
_held: Dict[str, int] = {}
_held_guard = threading.Lock()


def lock_marker_path(cache_root: Path, key: str) -> Path:
    """Return the marker file used to lock ``key``."""
    return Path(cache_root) / f"{LOCK_PREFIX}{key}"


class MarkerFileLock(BaseFileLock):
    """
    filelock lock backed only by the existence of the marker file.

    Unlike SoftFileLock it never inspects or breaks an existing marker, and
    a marker that can't be deleted raises instead of being ignored.
    """

    def _acquire(self) -> None:
        flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL | os.O_TRUNC
        try:
            fd = os.open(self.lock_file, flags, MARKER_MODE)
        except FileExistsError:
            return
        except PermissionError:
            # Windows denies access to a marker that is being deleted
            if sys.platform == "win32":
                return
            raise
        os.write(fd, f"{os.getpid()}\n".encode("ascii"))
        self._context.lock_file_fd = fd

    def _release(self) -> None:
        fd = self._context.lock_file_fd
        self._context.lock_file_fd = None
        os.close(fd)
        os.unlink(self.lock_file)


class CacheLock:
    """
    Marker-file lock for one cache key.

    Args:
        cache_root: Directory holding cache entries and markers
        key: Cache key to lock
        poll_interval: Seconds between creation attempts while waiting
        timeout: Maximum seconds to wait, None waits until cancelled
        cancel_event: Optional event; when set, waiting stops with
            AcquisitionCancelled
    """

    def __init__(
        self,
        cache_root: Path,
        key: str,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.marker = lock_marker_path(cache_root, key)
        self.key = key
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.cancel_event = cancel_event
        self._lock: Optional[MarkerFileLock] = None

    @property
    def is_locked(self) -> bool:
        return self._lock is not None and self._lock.is_locked

    def acquire(self) -> "CacheLock":
        """
        Create the marker, waiting while another holder owns it.

        Raises:
            LockError: On I/O failure, re-acquisition from the owning thread,
                or when a configured timeout elapses
            AcquisitionCancelled: If the cancel event is set while waiting
        """
        marker_key = str(self.marker)
        with _held_guard:
            if _held.get(marker_key) == threading.get_ident():
                raise LockError(
                    f"Lock for '{self.key}' is already held by this thread",
                    marker=marker_key,
                )

        try:
            self.marker.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LockError(
                f"Can't create lock folder {self.marker.parent}: {e}", marker=marker_key
            ) from e

        lock = MarkerFileLock(marker_key)
        started = time.monotonic()
        announced = False

        while True:
            if self.cancel_event is not None and self.cancel_event.is_set():
                raise AcquisitionCancelled(f"Can't lock folder for '{self.key}'")
            try:
                lock.acquire(blocking=False)
                break
            except Timeout:
                pass
            except OSError as e:
                raise LockError(
                    f"Can't create lock marker {self.marker}: {e}", marker=marker_key
                ) from e

            if not announced:
                logger.info(f"Waiting for lock {self.marker}")
                announced = True
            if self.timeout is not None and time.monotonic() - started >= self.timeout:
                raise LockError(
                    f"Could not lock '{self.key}' within {self.timeout}s; "
                    f"remove {self.marker} if no other process is running",
                    marker=marker_key,
                )
            if self.cancel_event is not None:
                self.cancel_event.wait(self.poll_interval)
            else:
                time.sleep(self.poll_interval)

        with _held_guard:
            _held[marker_key] = threading.get_ident()
        self._lock = lock
        logger.debug(f"Acquired lock {self.marker}")
        return self

    def release(self) -> None:
        """
        Delete the marker.

        Raises:
            LockError: If the marker cannot be deleted
        """
        if self._lock is None:
            return
        marker_key = str(self.marker)
        lock, self._lock = self._lock, None
        with _held_guard:
            _held.pop(marker_key, None)
        try:
            lock.release(force=True)
        except OSError as e:
            raise LockError(
                f"Can't release lock marker {self.marker}: {e}", marker=marker_key
            ) from e
        logger.debug(f"Released lock {self.marker}")

    def __enter__(self) -> "CacheLock":
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


__all__ = ["CacheLock", "MarkerFileLock", "lock_marker_path", "LOCK_PREFIX", "DEFAULT_POLL_INTERVAL"]
