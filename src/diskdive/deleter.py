"""Background deletion with live progress for diskdive."""

import itertools
import logging
import os
import threading
from queue import SimpleQueue
from typing import Optional

from diskdive.messages import DeleteFinished
from diskdive.models import DeleteTally
from diskdive.progress import Counter

log = logging.getLogger(__name__)

_job_ids = itertools.count(1)


def _remove_one(path: str, is_dir: bool, counter: Counter) -> bool:
    """Remove one node; True on success."""
    try:
        if is_dir and not os.path.islink(path):
            os.rmdir(path)
        else:
            os.unlink(path)
    except OSError as e:
        log.debug("Could not remove %s: %s", path, e)
        return False
    counter.increment()
    return True


def remove_tree(path: str, counter: Counter, cancelled: threading.Event) -> DeleteTally:
    """
    Remove a file or directory tree bottom-up.

    Symlinks are unlinked, never followed. Individual failures are counted
    once and the walk carries on. A directory left non-empty by a failure
    below it is kept without counting it again. When cancelled, whatever
    was already removed stays removed.

    Args:
        path: File or directory to remove
        counter: Incremented for every removed file or directory
        cancelled: Checked before every removal

    Returns:
        DeleteTally with removed and failed counts
    """
    removed = 0
    failed = 0

    if not os.path.isdir(path) or os.path.islink(path):
        if _remove_one(path, False, counter):
            return DeleteTally(removed=1)
        return DeleteTally(failed=1)

    # Directories that still hold something after their children were processed
    kept: set[str] = set()

    def on_error(error: OSError) -> None:
        nonlocal failed
        log.debug("Cannot read %s: %s", error.filename, error)
        failed += 1
        if error.filename:
            kept.add(os.path.normpath(os.fsdecode(error.filename)))

    for dirpath, dirnames, filenames in os.walk(path, topdown=False, onerror=on_error):
        for name in filenames:
            if cancelled.is_set():
                return DeleteTally(removed=removed, failed=failed)
            if _remove_one(os.path.join(dirpath, name), False, counter):
                removed += 1
            else:
                failed += 1
                kept.add(os.path.normpath(dirpath))
        for name in dirnames:
            if cancelled.is_set():
                return DeleteTally(removed=removed, failed=failed)
            child = os.path.join(dirpath, name)
            if os.path.normpath(child) in kept:
                kept.add(os.path.normpath(dirpath))
                continue
            # Symlinked directories show up here but are never walked into
            if _remove_one(child, True, counter):
                removed += 1
            else:
                failed += 1
                kept.add(os.path.normpath(dirpath))

    if cancelled.is_set() or os.path.normpath(path) in kept:
        return DeleteTally(removed=removed, failed=failed)
    if _remove_one(path, True, counter):
        removed += 1
    else:
        failed += 1

    return DeleteTally(removed=removed, failed=failed)


class DeleteJob:
    """Handle on one running deletion."""

    def __init__(self, path: str) -> None:
        self.id = next(_job_ids)
        self.path = path
        self.counter = Counter()
        self.tally: Optional[DeleteTally] = None
        self._cancelled = threading.Event()
        self._done = threading.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)


class DeletionExecutor:
    """Runs deletions in background threads and reports into a mailbox."""

    def __init__(self, mailbox: SimpleQueue) -> None:
        self.mailbox = mailbox

    def delete(self, path: str) -> DeleteJob:
        """Start removing a path; returns immediately."""
        job = DeleteJob(path)
        thread = threading.Thread(
            target=self._run,
            args=(job,),
            name=f"diskdive-delete-{job.id}",
            daemon=True,
        )
        log.debug("Starting delete job %d for %s", job.id, path)
        thread.start()
        return job

    def _run(self, job: DeleteJob) -> None:
        try:
            tally = remove_tree(job.path, job.counter, job._cancelled)
        except Exception:
            log.exception("Unexpected error deleting %s", job.path)
            tally = DeleteTally(removed=job.counter.value, failed=1)

        job.tally = tally
        if not job.cancelled:
            self.mailbox.put(DeleteFinished(job_id=job.id, path=job.path, tally=tally))
            log.debug(
                "Delete job %d finished: %d removed, %d failed",
                job.id,
                tally.removed,
                tally.failed,
            )
        job._done.set()
