"""Shared fixtures: fake background workers for deterministic model tests."""

import itertools
from queue import SimpleQueue

import pytest

from diskdive.messages import EntrySized, ListingReady, ScanFinished
from diskdive.models import Entry
from diskdive.navigation import NavigationModel
from diskdive.progress import Counter, ProgressTracker

_ids = itertools.count(1000)


class FakeScanJob:
    def __init__(self, kind, target):
        self.id = next(_ids)
        self.kind = kind
        self.target = target
        self.progress = ProgressTracker()
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScanner:
    """Records scan requests instead of touching the filesystem."""

    def __init__(self):
        self.jobs: list[FakeScanJob] = []

    def _job(self, kind, target):
        job = FakeScanJob(kind, target)
        self.jobs.append(job)
        return job

    def scan_overview(self, roots=None):
        return self._job("overview", roots)

    def scan_directory(self, path):
        return self._job("directory", path)

    def resume(self, entries, detail=True):
        return self._job("resume", [e.path for e in entries if e.pending])

    @property
    def last(self):
        return self.jobs[-1]


class FakeDeleteJob:
    def __init__(self, path):
        self.id = next(_ids)
        self.path = path
        self.counter = Counter()
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeDeleter:
    def __init__(self):
        self.jobs: list[FakeDeleteJob] = []

    def delete(self, path):
        job = FakeDeleteJob(path)
        self.jobs.append(job)
        return job


def make_entries(base, rows):
    """Entries from (name, is_dir, size) tuples under base."""
    return [Entry(name=name, path=f"{base}/{name}", is_dir=is_dir, size=size) for name, is_dir, size in rows]


@pytest.fixture
def fake_scanner():
    return FakeScanner()


@pytest.fixture
def fake_deleter():
    return FakeDeleter()


@pytest.fixture
def opened():
    return []


@pytest.fixture
def model(fake_scanner, fake_deleter, opened):
    """A detail-mode model on /data, started but with no listing yet."""
    m = NavigationModel(
        scanner=fake_scanner,
        deleter=fake_deleter,
        mailbox=SimpleQueue(),
        start_path="/data",
        opener=lambda p: opened.append(("open", p)),
        revealer=lambda p: opened.append(("reveal", p)),
    )
    m.start()
    return m


def load(model, rows, base=None, large_files=None, finish=True):
    """Feed a listing through the model's current scan job as the workers would."""
    base = base or model.path
    job = model.scan_job
    pending = [e.model_copy(update={"size": -1}) for e in make_entries(base, rows)]
    model.dispatch(ListingReady(job_id=job.id, entries=pending))
    for name, _, size in rows:
        if size < 0:
            continue
        model.dispatch(EntrySized(job_id=job.id, path=f"{base}/{name}", size=size))
    if finish:
        # The scanner ranks a listing largest first
        order = [f"{base}/{name}" for name, _, _ in sorted(rows, key=lambda r: r[2], reverse=True)]
        model.dispatch(ScanFinished(job_id=job.id, large_files=large_files or [], order=order))
    return job
