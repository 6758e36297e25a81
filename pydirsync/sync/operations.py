"""Primitive filesystem mutations used by the sync engine.

Every method works on a single item and raises ItemOperationError on
failure, so the engine can record the failure and carry on.
"""

import logging
import os
import shutil
import tempfile
from pathlib import Path

from ..exceptions import ItemOperationError
from .scanner import TEMP_FILE_PREFIX, TEMP_FILE_SUFFIX, is_reserved_name

logger = logging.getLogger(__name__)


class SyncOperations:
    """File and directory operations with atomic replacement for copies."""

    def copy_file(self, source_root: Path, target_root: Path, relative_path: str) -> None:
        """Copy a file, preserving its modification time.

        The content is written to a temporary file next to the destination
        and moved into place with ``os.replace``, so a crash leaves either
        the old file or the complete new one.

        Args:
            source_root: Root of the endpoint to copy from
            target_root: Root of the endpoint to copy to
            relative_path: Relative path of the file

        Raises:
            ItemOperationError: If the copy fails
        """
        src = source_root / relative_path
        dst = target_root / relative_path
        try:
            dst.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=TEMP_FILE_PREFIX, suffix=TEMP_FILE_SUFFIX, dir=dst.parent
            )
            os.close(fd)
            try:
                shutil.copy2(src, tmp_name)
                os.replace(tmp_name, dst)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise ItemOperationError(relative_path, "copy", e) from e
        logger.debug(f"Copied {src} -> {dst}")

    def create_directory(self, root: Path, relative_path: str) -> None:
        """Create a directory (and missing parents).

        Raises:
            ItemOperationError: If the directory cannot be created
        """
        try:
            (root / relative_path).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ItemOperationError(relative_path, "mkdir", e) from e
        logger.debug(f"Created directory {root / relative_path}")

    def delete_file(self, root: Path, relative_path: str) -> None:
        """Delete a file. A file that is already gone is not an error.

        Raises:
            ItemOperationError: If the file cannot be deleted
        """
        try:
            (root / relative_path).unlink(missing_ok=True)
        except OSError as e:
            raise ItemOperationError(relative_path, "delete", e) from e
        logger.debug(f"Deleted file {root / relative_path}")

    def delete_directory(self, root: Path, relative_path: str) -> bool:
        """Delete a directory only if it is empty.

        Returns:
            True if the directory was removed, False if it still has
            descendants or no longer exists

        Raises:
            ItemOperationError: If the directory cannot be removed
        """
        path = root / relative_path
        try:
            if not path.is_dir():
                return False
            if any(path.iterdir()):
                logger.debug(f"Keeping non-empty directory {path}")
                return False
            path.rmdir()
        except OSError as e:
            raise ItemOperationError(relative_path, "rmdir", e) from e
        logger.debug(f"Deleted directory {path}")
        return True

    def purge_entry(self, root: Path, name: str) -> None:
        """Delete one top-level entry of an endpoint, recursively.

        Raises:
            ItemOperationError: If the entry cannot be removed
        """
        path = root / name
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
        except OSError as e:
            raise ItemOperationError(name, "purge", e) from e
        logger.debug(f"Purged {path}")

    @staticmethod
    def list_purgeable(root: Path) -> list[str]:
        """Names of the top-level entries a purge removes."""
        return sorted(p.name for p in root.iterdir() if not is_reserved_name(p.name))
