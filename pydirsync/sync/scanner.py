"""Directory scanning utilities for sync operations."""

import fnmatch
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..utils import hash_file, ns_to_datetime

logger = logging.getLogger(__name__)

# Sidecar checkpoint file, never part of a synchronized tree
SIDECAR_FILE_NAME = ".pydirsync.json"

# Temporary files written by atomic copies
TEMP_FILE_PREFIX = ".pydirsync-"
TEMP_FILE_SUFFIX = ".tmp"


def is_reserved_name(name: str) -> bool:
    """Check whether a file name belongs to pydirsync itself."""
    if name == SIDECAR_FILE_NAME:
        return True
    return name.startswith(TEMP_FILE_PREFIX) and name.endswith(TEMP_FILE_SUFFIX)


@dataclass
class FileRecord:
    """A file found under an endpoint."""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    mtime_ns: int
    """Last modification time in nanoseconds since the Unix epoch"""

    size: int = 0
    """File size in bytes"""

    content_hash: Optional[bytes] = field(default=None, compare=False)
    """SHA-256 of the content, filled lazily by DirectoryScanner.ensure_hash"""

    @property
    def last_write_time(self) -> datetime:
        """Last modification time as an aware UTC datetime."""
        return ns_to_datetime(self.mtime_ns)

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "FileRecord":
        """Create a FileRecord from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Endpoint root for calculating relative paths

        Returns:
            FileRecord instance
        """
        stat = file_path.stat()
        return cls(
            relative_path=file_path.relative_to(base_path).as_posix(),
            mtime_ns=stat.st_mtime_ns,
            size=stat.st_size,
        )


@dataclass
class DirectoryRecord:
    """A directory found under an endpoint."""

    relative_path: str
    mtime_ns: int

    @property
    def last_write_time(self) -> datetime:
        return ns_to_datetime(self.mtime_ns)

    @classmethod
    def from_path(cls, dir_path: Path, base_path: Path) -> "DirectoryRecord":
        return cls(
            relative_path=dir_path.relative_to(base_path).as_posix(),
            mtime_ns=dir_path.stat().st_mtime_ns,
        )


@dataclass
class ScanResult:
    """Files and directories found under one endpoint, keyed by relative path."""

    root: Path
    files: dict[str, FileRecord] = field(default_factory=dict)
    directories: dict[str, DirectoryRecord] = field(default_factory=dict)


class DirectoryScanner:
    """Scans an endpoint and builds file and directory records.

    Scanning never mutates the tree. Content hashes are not computed during
    the scan; call ``ensure_hash`` for the files that actually need one.

    Examples:
        >>> scanner = DirectoryScanner(ignore_patterns=["*.tmp", "cache"])
        >>> result = scanner.scan(Path("/data/photos"))
        >>> sorted(result.files)
        ['2024/img001.jpg', 'index.txt']
    """

    def __init__(self, ignore_patterns: Optional[list[str]] = None):
        """Initialize directory scanner.

        Args:
            ignore_patterns: Glob patterns matched against the entry name and
                its relative path (e.g., ["*.log", "build/*"])
        """
        self.ignore_patterns = ignore_patterns or []

    def should_ignore(self, name: str, relative_path: str) -> bool:
        """Check if an entry should be skipped.

        Args:
            name: Entry name
            relative_path: Entry path relative to the endpoint root

        Returns:
            True if the entry should be ignored
        """
        if is_reserved_name(name):
            return True

        for pattern in self.ignore_patterns:
            if fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(
                relative_path, pattern
            ):
                logger.debug(f"Ignoring (pattern {pattern!r}): {relative_path}")
                return True
        return False

    def scan(self, root: Path, recurse: bool = True) -> ScanResult:
        """Scan an endpoint.

        Args:
            root: Endpoint root directory
            recurse: Descend into subdirectories. When False only the files
                directly under root are returned and no directories.

        Returns:
            ScanResult with records keyed by relative path
        """
        result = ScanResult(root=root)
        self._scan_directory(root, root, recurse, result)
        logger.debug(
            f"Scanned {root}: {len(result.files)} file(s), "
            f"{len(result.directories)} director(ies)"
        )
        return result

    def _scan_directory(
        self, directory: Path, root: Path, recurse: bool, result: ScanResult
    ) -> None:
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except PermissionError as e:
            logger.warning(f"Permission denied, skipping directory: {e}")
            return

        for entry in entries:
            item = Path(entry.path)
            relative_path = item.relative_to(root).as_posix()
            if self.should_ignore(entry.name, relative_path):
                continue

            try:
                if entry.is_dir(follow_symlinks=False):
                    if not recurse:
                        continue
                    result.directories[relative_path] = DirectoryRecord.from_path(
                        item, root
                    )
                    self._scan_directory(item, root, recurse, result)
                elif entry.is_file():
                    result.files[relative_path] = FileRecord.from_path(item, root)
            except OSError as e:
                # Skip entries we can't stat
                logger.warning(f"Cannot read {item}: {e}")

    def ensure_hash(self, root: Path, record: FileRecord) -> bytes:
        """Compute and cache the content hash of a file record.

        Args:
            root: Endpoint root the record belongs to
            record: File record

        Returns:
            Content hash bytes

        Raises:
            OSError: If the file cannot be read
        """
        if record.content_hash is None:
            record.content_hash = hash_file(root / record.relative_path)
        return record.content_hash
