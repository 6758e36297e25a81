"""Tests for the TreeComparator class."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydirsync.sync.comparator import TreeComparator, partition_by_checkpoint
from pydirsync.sync.modes import resolve_policy
from pydirsync.sync.scanner import DirectoryRecord, FileRecord, ScanResult
from pydirsync.sync.state import Checkpoint

CHECKPOINT_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
OLD = CHECKPOINT_TIME - timedelta(days=1)
NEW = CHECKPOINT_TIME + timedelta(hours=1)


def _ns(value: datetime) -> int:
    return int(value.timestamp()) * 1_000_000_000


def _scan(root: str, files: dict[str, datetime], dirs=None) -> ScanResult:
    return ScanResult(
        root=Path(root),
        files={p: FileRecord(relative_path=p, mtime_ns=_ns(t)) for p, t in files.items()},
        directories={
            p: DirectoryRecord(relative_path=p, mtime_ns=_ns(t))
            for p, t in (dirs or {}).items()
        },
    )


CHECKPOINT = Checkpoint(instance_key="k", last_sync_time=CHECKPOINT_TIME)


class TestPartitionByCheckpoint:
    """Tests for splitting records into new and old."""

    def test_no_checkpoint_everything_is_new(self):
        records = _scan("/a", {"x": OLD, "y": NEW}).files
        new, old = partition_by_checkpoint(records, None)
        assert new == {"x", "y"}
        assert old == set()

    def test_split_at_checkpoint(self):
        records = _scan("/a", {"x": OLD, "y": NEW, "z": CHECKPOINT_TIME}).files
        new, old = partition_by_checkpoint(records, CHECKPOINT_TIME)
        assert new == {"y", "z"}  # equal to the checkpoint counts as new
        assert old == {"x"}


class TestTreeComparator:
    """Tests for the classified path sets."""

    def test_no_checkpoint_full_comparison(self):
        source = _scan("/a", {"only_src": OLD, "both": OLD})
        target = _scan("/b", {"only_tgt": OLD, "both": NEW})

        diff = TreeComparator(resolve_policy("sync")).diff(source, target)

        assert diff.files.missing_at_target == ["only_src"]
        assert diff.files.missing_at_source == ["only_tgt"]
        assert diff.files.common == ["both"]
        # Nothing is stale without a checkpoint
        assert diff.files.stale_at_target == []
        assert diff.files.stale_at_source == []

    def test_missing_at_source_only_when_bidirectional(self):
        source = _scan("/a", {})
        target = _scan("/b", {"only_tgt": NEW})

        mirror = TreeComparator(resolve_policy("mirror")).diff(source, target)
        sync = TreeComparator(resolve_policy("sync")).diff(source, target)

        assert mirror.files.missing_at_source == []
        assert sync.files.missing_at_source == ["only_tgt"]

    def test_stale_items_with_checkpoint(self):
        source = _scan("/a", {"gone_from_b": OLD, "fresh": NEW, "shared": OLD})
        target = _scan("/b", {"gone_from_a": OLD, "created_in_b": NEW, "shared": OLD})

        diff = TreeComparator(resolve_policy("sync")).diff(source, target, CHECKPOINT)

        assert diff.files.missing_at_target == ["fresh"]
        assert diff.files.missing_at_source == ["created_in_b"]
        assert diff.files.common == ["shared"]
        assert diff.files.stale_at_target == ["gone_from_a"]
        assert diff.files.stale_at_source == ["gone_from_b"]

    def test_new_on_both_sides_is_not_missing(self):
        source = _scan("/a", {"x": NEW})
        target = _scan("/b", {"x": NEW})

        diff = TreeComparator(resolve_policy("sync")).diff(source, target, CHECKPOINT)

        assert diff.files.missing_at_target == []
        assert diff.files.missing_at_source == []
        assert diff.files.common == ["x"]

    def test_new_source_old_target_is_missing_and_common(self):
        source = _scan("/a", {"x": NEW})
        target = _scan("/b", {"x": OLD})

        diff = TreeComparator(resolve_policy("mirror")).diff(source, target, CHECKPOINT)

        assert diff.files.missing_at_target == ["x"]
        assert diff.files.common == ["x"]
        assert diff.files.stale_at_target == []

    def test_directories_diffed_independently(self):
        source = _scan("/a", {"d/f.txt": NEW}, dirs={"d": NEW, "keep": OLD})
        target = _scan("/b", {}, dirs={"keep": OLD, "old_dir": OLD})

        diff = TreeComparator(resolve_policy("sync")).diff(source, target, CHECKPOINT)

        assert diff.directories.missing_at_target == ["d"]
        assert diff.directories.common == ["keep"]
        assert diff.directories.stale_at_target == ["old_dir"]
        assert diff.files.missing_at_target == ["d/f.txt"]
        assert diff.checkpoint is CHECKPOINT

    def test_identical_trees_are_empty(self):
        source = _scan("/a", {"x": OLD, "y": OLD})
        target = _scan("/b", {"x": OLD, "y": OLD})

        diff = TreeComparator(resolve_policy("sync")).diff(source, target, CHECKPOINT)

        assert diff.files.is_empty
        assert diff.files.common == ["x", "y"]
