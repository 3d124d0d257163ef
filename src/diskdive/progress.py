"""Thread-safe counters shared between background workers and the renderer."""

import threading

from diskdive.models import ProgressSnapshot


class ProgressTracker:
    """Scan counters written by many walkers and read by the render loop.

    Reads are snapshots; the three counters are not guaranteed to be
    mutually consistent with each other.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._files = 0
        self._dirs = 0
        self._bytes = 0
        self._current_path = ""

    def add_file(self, path: str, size: int) -> None:
        with self._lock:
            self._files += 1
            self._bytes += size
            self._current_path = path

    def add_dir(self, path: str) -> None:
        with self._lock:
            self._dirs += 1
            self._current_path = path

    def snapshot(self) -> ProgressSnapshot:
        """Return the current counter values."""
        with self._lock:
            return ProgressSnapshot(
                files=self._files,
                dirs=self._dirs,
                bytes=self._bytes,
                current_path=self._current_path,
            )


class Counter:
    """A lock-guarded monotonically increasing counter."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value
