"""Tests for the concurrent scanner."""

import os
import threading
from queue import Empty, SimpleQueue
from unittest.mock import patch

import pytest

from diskdive.deleter import DeletionExecutor
from diskdive.messages import EntrySized, KeyPressed, ListingReady, ScanFinished
from diskdive.models import Entry
from diskdive.navigation import NavigationModel
from diskdive.progress import ProgressTracker
from diskdive.scanner import (
    LargeFileCollector,
    Scanner,
    _InodeSet,
    list_directory,
    measure_tree,
    overview_entries,
)
from diskdive.settings import Settings


def write(path, size):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


def drain(mailbox):
    messages = []
    while True:
        try:
            messages.append(mailbox.get_nowait())
        except Empty:
            return messages


def run_until_idle(model, timeout=10.0):
    while model.scanning:
        job = model.scan_job
        assert job.wait(timeout)
        model.pump()


class TestMeasureTree:
    def test_sums_nested_files(self, tmp_path):
        write(tmp_path / "a.bin", 100)
        write(tmp_path / "sub" / "b.bin", 250)
        write(tmp_path / "sub" / "deeper" / "c.bin", 50)
        progress = ProgressTracker()

        assert measure_tree(str(tmp_path), progress, threading.Event()) == 400
        snap = progress.snapshot()
        assert snap.files == 3
        assert snap.dirs == 3
        assert snap.bytes == 400

    def test_single_file(self, tmp_path):
        f = write(tmp_path / "one.bin", 42)
        assert measure_tree(str(f), ProgressTracker(), threading.Event()) == 42

    def test_symlinks_not_followed(self, tmp_path):
        target = tmp_path / "target"
        write(target / "big.bin", 1000)
        walked = tmp_path / "walked"
        walked.mkdir()
        write(walked / "small.bin", 10)
        os.symlink(target, walked / "link_dir")
        os.symlink(target / "big.bin", walked / "link_file")

        assert measure_tree(str(walked), ProgressTracker(), threading.Event()) == 10
        assert measure_tree(str(walked / "link_dir"), ProgressTracker(), threading.Event()) == 0

    def test_hard_link_counted_once(self, tmp_path):
        original = write(tmp_path / "a.bin", 300)
        os.link(original, tmp_path / "b.bin")

        assert measure_tree(str(tmp_path), ProgressTracker(), threading.Event(), seen_inodes=_InodeSet()) == 300

    def test_cancelled_returns_none(self, tmp_path):
        write(tmp_path / "a.bin", 10)
        cancelled = threading.Event()
        cancelled.set()
        assert measure_tree(str(tmp_path), ProgressTracker(), cancelled) is None

    def test_unreadable_directory_skipped(self, tmp_path):
        write(tmp_path / "a.bin", 10)
        with patch("diskdive.scanner.os.scandir", side_effect=PermissionError("denied")):
            assert measure_tree(str(tmp_path), ProgressTracker(), threading.Event()) == 0

    def test_missing_path_is_zero(self, tmp_path):
        assert measure_tree(str(tmp_path / "gone"), ProgressTracker(), threading.Event()) == 0

    def test_offers_large_files(self, tmp_path):
        write(tmp_path / "big.bin", 2000)
        write(tmp_path / "small.bin", 10)
        collector = LargeFileCollector(threshold=1000, limit=5)

        measure_tree(str(tmp_path), ProgressTracker(), threading.Event(), large_files=collector)
        assert [f.name for f in collector.top()] == ["big.bin"]


class TestLargeFileCollector:
    def test_keeps_biggest_up_to_limit(self):
        collector = LargeFileCollector(threshold=10, limit=2)
        for path, size in [("/a", 50), ("/b", 5), ("/c", 70), ("/d", 60)]:
            collector.offer(path, size)
        assert [(f.path, f.size) for f in collector.top()] == [("/c", 70), ("/d", 60)]

    def test_same_path_once(self):
        collector = LargeFileCollector(threshold=0, limit=5)
        collector.offer("/a", 10)
        collector.offer("/a", 10)
        assert len(collector.top()) == 1


class TestListing:
    def test_sorted_case_insensitive_and_pending(self, tmp_path):
        write(tmp_path / "beta.txt", 1)
        (tmp_path / "Alpha").mkdir()
        write(tmp_path / "gamma", 1)

        entries = list_directory(str(tmp_path))
        assert [e.name for e in entries] == ["Alpha", "beta.txt", "gamma"]
        assert entries[0].is_dir
        assert all(e.pending for e in entries)
        assert entries[1].last_access is not None

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(OSError):
            list_directory(str(tmp_path / "gone"))

    def test_overview_entries_use_labels(self, tmp_path):
        entries = overview_entries([("Home", str(tmp_path))])
        assert [(e.name, e.path, e.is_dir, e.pending) for e in entries] == [("Home", str(tmp_path), True, True)]


class TestScanner:
    def test_directory_scan_messages(self, tmp_path):
        write(tmp_path / "a" / "f.bin", 100)
        write(tmp_path / "b.bin", 30)
        mailbox = SimpleQueue()

        job = Scanner(mailbox).scan_directory(str(tmp_path))
        assert job.wait(10)
        messages = drain(mailbox)

        assert isinstance(messages[0], ListingReady)
        assert [e.name for e in messages[0].entries] == ["a", "b.bin"]
        assert isinstance(messages[-1], ScanFinished)
        sized = {m.path: m.size for m in messages if isinstance(m, EntrySized)}
        assert sized == {str(tmp_path / "a"): 100, str(tmp_path / "b.bin"): 30}
        assert messages[-1].order == [str(tmp_path / "a"), str(tmp_path / "b.bin")]
        assert all(m.job_id == job.id for m in messages)

    def test_large_files_reported_on_finish(self, tmp_path):
        for name, size in [("one", 2000), ("two", 3000), ("three", 5000), ("tiny", 10)]:
            write(tmp_path / "d" / name, size)
        settings = Settings(large_file_threshold=1000, max_large_files=2)
        mailbox = SimpleQueue()

        job = Scanner(mailbox, settings).scan_directory(str(tmp_path))
        assert job.wait(10)
        finished = drain(mailbox)[-1]
        assert [(f.name, f.size) for f in finished.large_files] == [("three", 5000), ("two", 3000)]

    def test_overview_scan(self, tmp_path):
        write(tmp_path / "a" / "x", 10)
        write(tmp_path / "b" / "y", 20)
        mailbox = SimpleQueue()

        job = Scanner(mailbox).scan_overview([("A", str(tmp_path / "a")), ("B", str(tmp_path / "b"))])
        assert job.wait(10)
        messages = drain(mailbox)
        assert [e.name for e in messages[0].entries] == ["A", "B"]
        assert isinstance(messages[-1], ScanFinished)
        assert messages[-1].large_files == []
        assert messages[-1].order == []

    def test_unreadable_directory_finishes_empty(self, tmp_path):
        mailbox = SimpleQueue()
        job = Scanner(mailbox).scan_directory(str(tmp_path / "gone"))
        assert job.wait(10)
        messages = drain(mailbox)
        assert [type(m) for m in messages] == [ListingReady, ScanFinished]
        assert messages[0].entries == []

    def test_resume_sizes_pending_only(self, tmp_path):
        write(tmp_path / "a" / "x", 10)
        write(tmp_path / "b" / "y", 20)
        entries = [
            Entry(name="a", path=str(tmp_path / "a"), is_dir=True, size=5),
            Entry(name="b", path=str(tmp_path / "b"), is_dir=True),
        ]
        mailbox = SimpleQueue()

        job = Scanner(mailbox).resume(entries)
        assert job.wait(10)
        messages = drain(mailbox)
        assert not any(isinstance(m, ListingReady) for m in messages)
        assert [(m.path, m.size) for m in messages if isinstance(m, EntrySized)] == [(str(tmp_path / "b"), 20)]
        assert entries[1].pending
        assert messages[-1].order == [str(tmp_path / "b"), str(tmp_path / "a")]

    def test_cancelled_job_posts_nothing(self, tmp_path):
        gate = threading.Event()

        def slow_listing(path):
            gate.wait(10)
            return [Entry(name="x", path=os.path.join(path, "x"))]

        mailbox = SimpleQueue()
        with patch("diskdive.scanner.list_directory", side_effect=slow_listing):
            job = Scanner(mailbox).scan_directory(str(tmp_path))
            job.cancel()
            gate.set()
            assert job.wait(10)
        assert drain(mailbox) == []
        assert job.cancelled


class TestModelWithRealScanner:
    def make_model(self, path):
        mailbox = SimpleQueue()
        return NavigationModel(
            scanner=Scanner(mailbox),
            deleter=DeletionExecutor(mailbox),
            mailbox=mailbox,
            start_path=str(path),
        )

    def test_scan_sorts_by_size(self, tmp_path):
        write(tmp_path / "small" / "f", 10)
        write(tmp_path / "large" / "f", 500)
        write(tmp_path / "mid.bin", 100)
        model = self.make_model(tmp_path)
        model.start()
        run_until_idle(model)

        assert [e.name for e in model.entries] == ["large", "mid.bin", "small"]
        assert model.total_size == 610

    def test_cancelled_child_does_not_leak(self, tmp_path):
        write(tmp_path / "big" / "inner" / "f", 500)
        write(tmp_path / "other", 50)
        model = self.make_model(tmp_path)
        model.start()
        run_until_idle(model)

        model.selected = 0
        model.dispatch(KeyPressed("enter"))
        child = model.scan_job
        model.dispatch(KeyPressed("left"))
        assert child.wait(10)
        model.pump()

        assert model.path == str(tmp_path)
        assert model.total_size == 550
        assert [e.size for e in model.entries] == [500, 50]
        assert not model.scanning
