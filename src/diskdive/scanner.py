"""Concurrent disk scanning for diskdive.

A scan lists a location in a background worker, then sizes every listed root
in its own pool task. Results travel back to the control loop as messages;
workers never touch the model's entries.
"""

import heapq
import itertools
import logging
import os
import stat
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from queue import SimpleQueue
from typing import Callable, Optional

from diskdive.messages import EntrySized, ListingReady, ScanFinished
from diskdive.models import Entry, LargeFile
from diskdive.progress import ProgressTracker
from diskdive.settings import DEFAULT_SETTINGS, Settings
from diskdive.system import last_access_time, overview_roots

log = logging.getLogger(__name__)

_job_ids = itertools.count(1)


class LargeFileCollector:
    """Keeps the biggest files seen by a scan, above a size threshold."""

    def __init__(self, threshold: int, limit: int) -> None:
        self.threshold = threshold
        self.limit = limit
        self._lock = threading.Lock()
        self._heap: list[tuple[int, str]] = []
        self._paths: set[str] = set()

    def offer(self, path: str, size: int) -> None:
        if size < self.threshold:
            return
        with self._lock:
            if path in self._paths:
                return
            if len(self._heap) < self.limit:
                heapq.heappush(self._heap, (size, path))
                self._paths.add(path)
            elif size > self._heap[0][0]:
                _, dropped = heapq.heapreplace(self._heap, (size, path))
                self._paths.discard(dropped)
                self._paths.add(path)

    def top(self) -> list[LargeFile]:
        """Collected files, largest first."""
        with self._lock:
            ordered = sorted(self._heap, reverse=True)
        return [LargeFile(path=path, size=size) for size, path in ordered]


class _InodeSet:
    """Remembers hard-linked inodes so they are counted once per scan."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._seen: set[tuple[int, int]] = set()

    def add(self, key: tuple[int, int]) -> bool:
        """Record an inode; True if it was not seen before."""
        with self._lock:
            if key in self._seen:
                return False
            self._seen.add(key)
            return True


def measure_tree(
    path: str,
    progress: ProgressTracker,
    cancelled: threading.Event,
    large_files: Optional[LargeFileCollector] = None,
    seen_inodes: Optional[_InodeSet] = None,
) -> Optional[int]:
    """
    Sum the apparent size of everything below a path.

    Symlinks are never followed and contribute nothing. Unreadable or
    vanished nodes are skipped, so the result may undercount.

    Args:
        path: File or directory to measure
        progress: Tracker updated for every visited node
        cancelled: Checked between nodes; the walk stops once it is set
        large_files: Optional collector offered every regular file
        seen_inodes: Optional hard link registry shared by one scan

    Returns:
        Total bytes, or None if the walk was cancelled
    """
    if cancelled.is_set():
        return None

    def _count_file(file_path: str, st: os.stat_result) -> int:
        if st.st_nlink > 1 and seen_inodes is not None:
            if not seen_inodes.add((st.st_dev, st.st_ino)):
                return 0
        progress.add_file(file_path, st.st_size)
        if large_files is not None:
            large_files.offer(file_path, st.st_size)
        return st.st_size

    try:
        root_stat = os.lstat(path)
    except OSError:
        return 0

    if stat.S_ISLNK(root_stat.st_mode):
        return 0
    if not stat.S_ISDIR(root_stat.st_mode):
        return _count_file(path, root_stat) if stat.S_ISREG(root_stat.st_mode) else 0

    total = 0
    progress.add_dir(path)
    stack = [path]
    while stack:
        if cancelled.is_set():
            return None
        current = stack.pop()
        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    if cancelled.is_set():
                        return None
                    try:
                        if entry.is_symlink():
                            continue
                        if entry.is_dir(follow_symlinks=False):
                            progress.add_dir(entry.path)
                            stack.append(entry.path)
                        elif entry.is_file(follow_symlinks=False):
                            total += _count_file(entry.path, entry.stat(follow_symlinks=False))
                    except OSError:
                        # Vanished or unreadable node
                        continue
        except OSError as e:
            log.debug("Skipping %s: %s", current, e)
            continue

    return total


def list_directory(path: str) -> list[Entry]:
    """
    List the immediate children of a directory with pending sizes.

    Raises:
        OSError: If the directory itself cannot be read
    """
    children = []
    with os.scandir(path) as entries:
        for entry in entries:
            try:
                st = entry.stat(follow_symlinks=False)
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue
            children.append(
                Entry(
                    name=entry.name,
                    path=entry.path,
                    is_dir=is_dir,
                    last_access=_atime(st),
                )
            )
    children.sort(key=lambda e: e.name.lower())
    return children


def overview_entries(roots: list[tuple[str, str]]) -> list[Entry]:
    """Pending entries for labelled overview roots."""
    return [
        Entry(name=label, path=path, is_dir=True, last_access=last_access_time(path))
        for label, path in roots
    ]


def _atime(st: os.stat_result) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(st.st_atime)
    except (ValueError, OverflowError, OSError):
        return None


class ScanJob:
    """Handle on one running scan.

    Each job owns its progress tracker, so a cancelled job can only ever
    write into a tracker nobody is reading any more.
    """

    def __init__(self, settings: Settings, detail: bool) -> None:
        self.id = next(_job_ids)
        self.progress = ProgressTracker()
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._lock = threading.Lock()
        self._remaining = 0
        # Directory scans collect large files and report a size order
        self.detail = detail
        self._large = (
            LargeFileCollector(settings.large_file_threshold, settings.max_large_files)
            if detail
            else None
        )
        self._sizes: dict[str, int] = {}
        self._listing: list[str] = []
        self._seen = _InodeSet()
        self._executor = ThreadPoolExecutor(
            max_workers=settings.scan_workers,
            thread_name_prefix=f"diskdive-scan-{self.id}",
        )

    def cancel(self) -> None:
        """Ask every worker of this job to stop at the next node."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until every task of the job has ended."""
        return self._done.wait(timeout)

    def large_files(self) -> list[LargeFile]:
        return self._large.top() if self._large is not None else []

    def size_order(self) -> list[str]:
        """Listed paths, largest first; ties keep the listing order."""
        if not self.detail:
            return []
        with self._lock:
            return sorted(self._listing, key=lambda p: self._sizes[p], reverse=True)

    def _record_listing(self, entries: list[Entry]) -> None:
        with self._lock:
            self._listing = [e.path for e in entries]
            self._sizes = {e.path: e.size for e in entries}

    def _record_size(self, path: str, size: int) -> None:
        with self._lock:
            self._sizes[path] = size

    def _start_tasks(self, count: int) -> None:
        with self._lock:
            self._remaining = count

    def _task_done(self) -> bool:
        with self._lock:
            self._remaining -= 1
            return self._remaining == 0

    def _finish(self) -> None:
        self._executor.shutdown(wait=False)
        self._done.set()


class Scanner:
    """Starts scan jobs that report into a mailbox."""

    def __init__(self, mailbox: SimpleQueue, settings: Settings = DEFAULT_SETTINGS) -> None:
        self.mailbox = mailbox
        self.settings = settings

    def scan_overview(self, roots: Optional[list[tuple[str, str]]] = None) -> ScanJob:
        """Size several independent top-level locations."""
        settings = self.settings

        def lister() -> list[Entry]:
            return overview_entries(roots if roots is not None else overview_roots(settings))

        return self._start(lister, announce=True, detail=False)

    def scan_directory(self, path: str) -> ScanJob:
        """List a directory and size each child's subtree."""
        return self._start(lambda: list_directory(path), announce=True, detail=True)

    def resume(self, entries: list[Entry], detail: bool = True) -> ScanJob:
        """Size only the still-pending entries of an existing listing."""
        listing = [e.model_copy() for e in entries]
        return self._start(lambda: listing, announce=False, detail=detail)

    def _start(
        self,
        lister: Callable[[], list[Entry]],
        announce: bool,
        detail: bool,
    ) -> ScanJob:
        job = ScanJob(self.settings, detail)
        log.debug("Starting scan job %d", job.id)
        job._executor.submit(self._run, job, lister, announce)
        return job

    def _run(self, job: ScanJob, lister: Callable[[], list[Entry]], announce: bool) -> None:
        try:
            entries = lister()
        except OSError as e:
            log.debug("Cannot list location for scan %d: %s", job.id, e)
            entries = []
        except Exception:
            log.exception("Listing failed for scan %d", job.id)
            entries = []

        if job.cancelled:
            job._finish()
            return

        job._record_listing(entries)
        if announce:
            self.mailbox.put(ListingReady(job_id=job.id, entries=entries))

        paths = [e.path for e in entries if e.pending]
        if not paths:
            self._complete(job)
            return

        job._start_tasks(len(paths))
        for path in paths:
            job._executor.submit(self._measure, job, path)

    def _measure(self, job: ScanJob, path: str) -> None:
        try:
            size = measure_tree(path, job.progress, job._cancelled, job._large, job._seen)
        except Exception:
            log.exception("Unexpected error measuring %s", path)
            size = 0

        if size is not None:
            job._record_size(path, size)
        if size is not None and not job.cancelled:
            self.mailbox.put(EntrySized(job_id=job.id, path=path, size=size))

        if job._task_done():
            self._complete(job)

    def _complete(self, job: ScanJob) -> None:
        if not job.cancelled:
            self.mailbox.put(
                ScanFinished(job_id=job.id, large_files=job.large_files(), order=job.size_order())
            )
            log.debug("Scan job %d finished", job.id)
        job._finish()
