"""Reconciliation engine that applies a computed diff to both endpoints."""

import logging
import time
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from rich.progress import Progress, SpinnerColumn, TextColumn

from ..exceptions import ItemOperationError
from ..output import OutputFormatter
from ..utils import format_size
from .comparator import DiffResult, ItemDiff
from .modes import SyncPolicy
from .operations import SyncOperations
from .scanner import DirectoryScanner, FileRecord

logger = logging.getLogger(__name__)


@dataclass
class SyncError:
    """A failed operation on a single item."""

    item: str
    operation: str
    cause: str

    def to_dict(self) -> dict:
        return {"item": self.item, "operation": self.operation, "cause": self.cause}


@dataclass
class SyncOperation:
    """A performed (or, in a dry run, planned) mutation."""

    operation: str
    """One of: purge, mkdir, copy, delete, rmdir"""

    item: str
    """Relative path of the item"""

    endpoint: str
    """Absolute path of the endpoint that was modified"""

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "item": self.item,
            "endpoint": self.endpoint,
        }


def _empty_stats() -> dict[str, int]:
    return {
        "purged": 0,
        "directories_created": 0,
        "copies_to_target": 0,
        "copies_to_source": 0,
        "deletes_target": 0,
        "deletes_source": 0,
        "skips": 0,
        "errors": 0,
        "bytes_copied": 0,
    }


@dataclass
class SyncResult:
    """Outcome of one synchronization run.

    The caller decides whether a non-empty ``errors`` list is a failure.
    """

    new_checkpoint_time: Optional[datetime] = None
    """Run-start time persisted as the new checkpoint, None if not saved"""

    errors: list[SyncError] = field(default_factory=list)
    operations: list[SyncOperation] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=_empty_stats)
    dry_run: bool = False

    @property
    def success(self) -> bool:
        return not self.errors

    def record_error(self, error: ItemOperationError) -> None:
        self.errors.append(
            SyncError(item=error.item, operation=error.operation, cause=str(error.cause))
        )
        self.stats["errors"] += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "new_checkpoint_time": (
                self.new_checkpoint_time.isoformat()
                if self.new_checkpoint_time
                else None
            ),
            "dry_run": self.dry_run,
            "stats": dict(self.stats),
            "operations": [op.to_dict() for op in self.operations],
            "errors": [err.to_dict() for err in self.errors],
        }


class SyncEngine:
    """Applies a DiffResult to the source and target endpoints.

    Phases run in a fixed order: purge, directory creation, file copies,
    conflict resolution of common files, deletions (files first, then empty
    directories deepest-first). A failing item is recorded in the result and
    never aborts the run.
    """

    def __init__(
        self,
        policy: SyncPolicy,
        output: Optional[OutputFormatter] = None,
        operations: Optional[SyncOperations] = None,
        scanner: Optional[DirectoryScanner] = None,
        dry_run: bool = False,
    ):
        """Initialize sync engine.

        Args:
            policy: Resolved sync policy
            output: Output formatter for displaying progress/status
            operations: Filesystem operations (injectable for tests)
            scanner: Scanner used to compute content hashes on demand
            dry_run: Record planned operations without touching the trees
        """
        self.policy = policy
        self.output = output or OutputFormatter(quiet=True)
        self.operations = operations or SyncOperations()
        self.scanner = scanner or DirectoryScanner()
        self.dry_run = dry_run

    # ------------------------------------------------------------------
    # Purge
    # ------------------------------------------------------------------

    def purge(self, target_root: Path, result: SyncResult) -> None:
        """Delete everything under the target endpoint.

        Only ever called with the target-role endpoint. pydirsync's own
        checkpoint and temporary files are left alone.
        """
        for name in self.operations.list_purgeable(target_root):
            if self._apply(
                result,
                "purge",
                name,
                target_root,
                self.operations.purge_entry,
                target_root,
                name,
            ):
                result.stats["purged"] += 1

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def execute(self, diff: DiffResult, result: Optional[SyncResult] = None) -> SyncResult:
        """Reconcile the two endpoints described by ``diff``.

        Args:
            diff: Classified paths from TreeComparator
            result: Result to append to (created if omitted)

        Returns:
            SyncResult with operations, stats and per-item errors
        """
        if result is None:
            result = SyncResult(dry_run=self.dry_run)

        start = time.time()
        progress_ctx: Any = (
            nullcontext()
            if self.output.quiet or self.output.json_output
            else Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
            )
        )

        with progress_ctx as progress:
            task = (
                progress.add_task("Reconciling...", total=None)
                if progress is not None
                else None
            )

            def phase(description: str) -> None:
                logger.debug(description)
                if progress is not None:
                    progress.update(task, description=description)

            if self.policy.recurse:
                phase("Creating directories...")
                self._create_directories(diff, result)

            if not self.policy.skip_files:
                phase("Copying new files...")
                self._copy_missing_files(diff, result)

                if not self.policy.skip_existing:
                    phase("Resolving existing files...")
                    self._resolve_common_files(diff, result)

            if not self.policy.skip_delete:
                phase("Deleting stale items...")
                self._delete_stale(diff, result)

        logger.debug(
            f"Reconciliation took {time.time() - start:.2f}s "
            f"({len(result.operations)} operation(s), {len(result.errors)} error(s))"
        )
        return result

    def _apply(
        self,
        result: SyncResult,
        operation: str,
        item: str,
        endpoint: Path,
        action: Callable[..., Any],
        *args: Any,
    ) -> bool:
        """Run one operation with per-item fault isolation.

        Args:
            result: Result receiving the operation or the error
            operation: Operation name recorded in the result
            item: Relative path of the item
            endpoint: Endpoint that is modified
            action: Bound SyncOperations method, called with ``args``.
                A return value of False means nothing was done.

        Returns:
            True if the operation was performed (or planned in a dry run)
        """
        if not self.dry_run:
            try:
                if action(*args) is False:
                    return False
            except ItemOperationError as e:
                logger.warning(str(e))
                result.record_error(e)
                return False

        result.operations.append(
            SyncOperation(operation=operation, item=item, endpoint=str(endpoint))
        )
        return True

    def _mkdir(self, result: SyncResult, root: Path, path: str) -> bool:
        return self._apply(
            result, "mkdir", path, root, self.operations.create_directory, root, path
        )

    def _copy(self, result: SyncResult, from_root: Path, to_root: Path, path: str) -> bool:
        return self._apply(
            result,
            "copy",
            path,
            to_root,
            self.operations.copy_file,
            from_root,
            to_root,
            path,
        )

    def _delete(self, result: SyncResult, root: Path, path: str) -> bool:
        return self._apply(
            result, "delete", path, root, self.operations.delete_file, root, path
        )

    def _rmdir(self, result: SyncResult, root: Path, path: str) -> bool:
        return self._apply(
            result, "rmdir", path, root, self.operations.delete_directory, root, path
        )

    def _forward_paths(self, items: ItemDiff) -> list[str]:
        """Paths to bring from the source to the target.

        In a one-way run the source is never modified, so source items that
        are older than the checkpoint but gone from the target are restored
        instead of being deleted.
        """
        if self.policy.is_bidirectional:
            return items.missing_at_target
        return sorted(set(items.missing_at_target) | set(items.stale_at_source))

    def _create_directories(self, diff: DiffResult, result: SyncResult) -> None:
        source, target = diff.source, diff.target

        for path in sorted(self._forward_paths(diff.directories), key=_shallow_first):
            if path in target.directories:
                continue
            if self._mkdir(result, target.root, path):
                result.stats["directories_created"] += 1

        if not self.policy.is_bidirectional:
            return

        for path in sorted(diff.directories.missing_at_source, key=_shallow_first):
            if path in source.directories:
                continue
            if self._mkdir(result, source.root, path):
                result.stats["directories_created"] += 1

    def _copy_missing_files(self, diff: DiffResult, result: SyncResult) -> None:
        source, target = diff.source, diff.target

        # Paths present on both sides are settled by conflict resolution
        for path in self._forward_paths(diff.files):
            if path in target.files:
                continue
            if self._copy(result, source.root, target.root, path):
                result.stats["copies_to_target"] += 1
                result.stats["bytes_copied"] += source.files[path].size

        if not self.policy.is_bidirectional:
            return

        for path in diff.files.missing_at_source:
            if path in source.files:
                continue
            if self._copy(result, target.root, source.root, path):
                result.stats["copies_to_source"] += 1
                result.stats["bytes_copied"] += target.files[path].size

    def _resolve_common_files(self, diff: DiffResult, result: SyncResult) -> None:
        source, target = diff.source, diff.target

        for path in diff.files.common:
            source_file = source.files[path]
            target_file = target.files[path]

            try:
                identical = self._files_identical(
                    source.root, source_file, target.root, target_file
                )
            except ItemOperationError as e:
                logger.warning(str(e))
                result.record_error(e)
                continue

            if identical:
                result.stats["skips"] += 1
                continue

            if (
                self.policy.is_bidirectional
                and target_file.mtime_ns > source_file.mtime_ns
            ):
                logger.debug(f"{path}: target is newer, copying to source")
                if self._copy(result, target.root, source.root, path):
                    result.stats["copies_to_source"] += 1
                    result.stats["bytes_copied"] += target_file.size
            else:
                logger.debug(f"{path}: copying source over target")
                if self._copy(result, source.root, target.root, path):
                    result.stats["copies_to_target"] += 1
                    result.stats["bytes_copied"] += source_file.size

    def _files_identical(
        self,
        source_root: Path,
        source_file: FileRecord,
        target_root: Path,
        target_file: FileRecord,
    ) -> bool:
        if not self.policy.check_hash:
            return source_file.mtime_ns == target_file.mtime_ns

        if source_file.size != target_file.size:
            return False
        try:
            source_hash = self.scanner.ensure_hash(source_root, source_file)
            target_hash = self.scanner.ensure_hash(target_root, target_file)
        except OSError as e:
            raise ItemOperationError(source_file.relative_path, "hash", e) from e
        return source_hash == target_hash

    def _delete_stale(self, diff: DiffResult, result: SyncResult) -> None:
        source, target = diff.source, diff.target
        bidirectional = self.policy.is_bidirectional

        if not self.policy.skip_files:
            for path in diff.files.stale_at_target:
                if self._delete(result, target.root, path):
                    result.stats["deletes_target"] += 1

            if bidirectional:
                for path in diff.files.stale_at_source:
                    if self._delete(result, source.root, path):
                        result.stats["deletes_source"] += 1

        if not self.policy.recurse:
            return

        for path in sorted(diff.directories.stale_at_target, key=_deep_first):
            if self._rmdir(result, target.root, path):
                result.stats["deletes_target"] += 1

        if bidirectional:
            for path in sorted(diff.directories.stale_at_source, key=_deep_first):
                if self._rmdir(result, source.root, path):
                    result.stats["deletes_source"] += 1

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def display_summary(self, result: SyncResult) -> None:
        """Display a run summary."""
        stats = result.stats
        self.output.print("")
        if result.dry_run:
            self.output.success("Dry run complete!")
        else:
            self.output.success("Sync complete!")

        total_actions = len(result.operations)
        if total_actions > 0:
            verb = "Planned" if result.dry_run else "Total"
            self.output.info(f"{verb} actions: {total_actions}")
            labels = [
                ("purged", "Purged"),
                ("directories_created", "Directories created"),
                ("copies_to_target", "Copied to target"),
                ("copies_to_source", "Copied to source"),
                ("deletes_target", "Deleted from target"),
                ("deletes_source", "Deleted from source"),
            ]
            for key, label in labels:
                if stats[key] > 0:
                    self.output.info(f"  {label}: {stats[key]}")
            if stats["bytes_copied"] > 0:
                self.output.info(f"  Transferred: {format_size(stats['bytes_copied'])}")
        else:
            self.output.info("No changes needed - everything is in sync!")

        if result.errors:
            self.output.warning(f"{len(result.errors)} item(s) failed:")
            for error in result.errors:
                self.output.warning(
                    f"  {error.operation} {error.item}: {error.cause}"
                )


def _shallow_first(path: str) -> tuple[int, str]:
    return path.count("/"), path


def _deep_first(path: str) -> tuple[int, str]:
    return -path.count("/"), path
