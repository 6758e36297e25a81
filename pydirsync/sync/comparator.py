"""Tree comparison logic for sync operations.

Diffing is plain set arithmetic on relative paths. With a checkpoint each
side is split into items modified since the last run ("new") and items
that were already there ("old"):

* missing at target  = new(source) - new(target)
* missing at source  = new(target) - new(source)   (two-way only)
* common existing    = all(source) & all(target)
* stale at target    = old(target) - common
* stale at source    = old(source) - common

Without a checkpoint every item is new and nothing is stale.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, TypeVar, Union

from .modes import SyncPolicy
from .scanner import DirectoryRecord, FileRecord, ScanResult
from .state import Checkpoint

RecordT = TypeVar("RecordT", FileRecord, DirectoryRecord)


@dataclass
class ItemDiff:
    """Classified relative paths for one kind of item (files or directories)."""

    missing_at_target: list[str] = field(default_factory=list)
    missing_at_source: list[str] = field(default_factory=list)
    common: list[str] = field(default_factory=list)
    stale_at_target: list[str] = field(default_factory=list)
    stale_at_source: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.missing_at_target
            or self.missing_at_source
            or self.stale_at_target
            or self.stale_at_source
        )


@dataclass
class DiffResult:
    """Everything the engine needs to reconcile two scanned trees."""

    source: ScanResult
    target: ScanResult
    files: ItemDiff
    directories: ItemDiff
    checkpoint: Optional[Checkpoint] = None


def partition_by_checkpoint(
    records: dict[str, RecordT], since: Optional[datetime]
) -> tuple[set[str], set[str]]:
    """Split records into paths modified at/after ``since`` and older ones.

    Args:
        records: Records keyed by relative path
        since: Last sync time, or None when no checkpoint exists

    Returns:
        Tuple of (new paths, old paths)
    """
    if since is None:
        return set(records), set()

    new: set[str] = set()
    old: set[str] = set()
    for path, record in records.items():
        if record.last_write_time >= since:
            new.add(path)
        else:
            old.add(path)
    return new, old


class TreeComparator:
    """Computes the classified path sets between a source and a target tree."""

    def __init__(self, policy: SyncPolicy):
        """Initialize tree comparator.

        Args:
            policy: Resolved sync policy
        """
        self.policy = policy

    def diff(
        self,
        source: ScanResult,
        target: ScanResult,
        checkpoint: Optional[Checkpoint] = None,
    ) -> DiffResult:
        """Compare the scanned source and target trees.

        Args:
            source: Scan of the source-role endpoint
            target: Scan of the target-role endpoint
            checkpoint: Checkpoint of the last run, if any

        Returns:
            DiffResult with file and directory classifications
        """
        return DiffResult(
            source=source,
            target=target,
            files=self.diff_items(source.files, target.files, checkpoint),
            directories=self.diff_items(
                source.directories, target.directories, checkpoint
            ),
            checkpoint=checkpoint,
        )

    def diff_items(
        self,
        source_items: Union[dict[str, FileRecord], dict[str, DirectoryRecord]],
        target_items: Union[dict[str, FileRecord], dict[str, DirectoryRecord]],
        checkpoint: Optional[Checkpoint],
    ) -> ItemDiff:
        """Classify one kind of item. Results are sorted by relative path."""
        since = checkpoint.last_sync_time if checkpoint else None
        new_source, old_source = partition_by_checkpoint(source_items, since)
        new_target, old_target = partition_by_checkpoint(target_items, since)

        common = set(source_items) & set(target_items)
        missing_at_source: set[str] = set()
        if self.policy.is_bidirectional:
            missing_at_source = new_target - new_source

        return ItemDiff(
            missing_at_target=sorted(new_source - new_target),
            missing_at_source=sorted(missing_at_source),
            common=sorted(common),
            stale_at_target=sorted(old_target - common),
            stale_at_source=sorted(old_source - common),
        )
