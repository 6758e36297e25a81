"""Helpers for building endpoint trees with controlled modification times."""

import os
import time
from pathlib import Path

# A fixed reference point well in the past, so test mtimes never race the clock
BASE_TIME = time.time() - 10 * 24 * 3600


def write_file(root: Path, relative_path: str, content: str, mtime: float) -> Path:
    """Create a file with content and an explicit modification time."""
    path = root / relative_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    os.utime(path, (mtime, mtime))
    return path


def set_mtime(path: Path, mtime: float) -> None:
    os.utime(path, (mtime, mtime))


def tree(root: Path) -> dict[str, str]:
    """Map every file under root (except pydirsync's own) to its content."""
    return {
        p.relative_to(root).as_posix(): p.read_text()
        for p in sorted(root.rglob("*"))
        if p.is_file() and not p.name.startswith(".pydirsync")
    }
