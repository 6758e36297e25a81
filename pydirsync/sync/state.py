"""Checkpoint persistence for incremental synchronization.

A checkpoint remembers when a (path, destination) pair was last synchronized.
Items modified before that time and present on one side only are treated as
deleted on the other side; items modified after it are treated as new.

Two stores are available:

* ``SidecarCheckpointStore`` keeps a JSON mapping ``{instance_key: ticks}``
  in a file next to the synchronized data.
* ``AttachedMetadataCheckpointStore`` writes the same mapping into an
  extended attribute (or NTFS alternate data stream) of *both* endpoint
  directories and only trusts it when the two copies agree.
"""

import errno
import hashlib
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Union

from ..exceptions import CheckpointError
from ..utils import datetime_to_ticks, ticks_to_datetime
from .scanner import SIDECAR_FILE_NAME

logger = logging.getLogger(__name__)

ATTRIBUTE_NAME = "user.pydirsync.checkpoint"
STREAM_NAME = "pydirsync.checkpoint"

_PROBE_ATTRIBUTE_NAME = "user.pydirsync.probe"


def make_instance_key(
    host_identity: str, source_path: Union[str, Path], destination_path: Union[str, Path]
) -> str:
    """Generate a unique key for a synchronized pair.

    Args:
        host_identity: Name of the machine running the synchronization
        source_path: Absolute path of the "path" endpoint
        destination_path: Absolute path of the "destination" endpoint

    Returns:
        Fixed-length hex key
    """
    combined = f"{host_identity}|{source_path}|=>|{destination_path}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class Checkpoint:
    """Time of the last successful synchronization of one pair."""

    instance_key: str
    last_sync_time: datetime
    """Aware UTC datetime captured at the start of the last run"""

    @property
    def ticks(self) -> int:
        return datetime_to_ticks(self.last_sync_time)


class CheckpointStrategy(str, Enum):
    """Backing strategy for checkpoints."""

    SIDECAR = "sidecar"
    METADATA = "metadata"


def _decode_mapping(raw: Union[str, bytes], source: str) -> dict[str, int]:
    """Decode and validate a ``{instance_key: ticks}`` document."""
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CheckpointError(f"Invalid checkpoint data in {source}: {e}") from e

    if not isinstance(data, dict):
        raise CheckpointError(f"Checkpoint data in {source} is not a mapping")

    for key, value in data.items():
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise CheckpointError(
                f"Invalid tick count for {key} in {source}: {value!r}"
            )
    return data


def _encode_mapping(mapping: dict[str, int]) -> str:
    return json.dumps(mapping, indent=2, sort_keys=True)


class CheckpointStore(ABC):
    """Loads and saves checkpoints for pairs of endpoints."""

    @abstractmethod
    def load(
        self, endpoint_a: Path, endpoint_b: Path, instance_key: str
    ) -> Optional[Checkpoint]:
        """Load the checkpoint of a pair.

        Returns:
            Checkpoint if one exists, None otherwise

        Raises:
            CheckpointError: If stored data cannot be read or decoded
        """

    @abstractmethod
    def save(
        self,
        endpoint_a: Path,
        endpoint_b: Path,
        instance_key: str,
        timestamp: datetime,
    ) -> Checkpoint:
        """Store (overwrite) the checkpoint of a pair.

        Raises:
            CheckpointError: If the checkpoint cannot be written
        """

    @abstractmethod
    def clear(self, endpoint_a: Path, endpoint_b: Path, instance_key: str) -> bool:
        """Remove the checkpoint of a pair.

        Returns:
            True if a checkpoint was removed, False if none existed
        """


class SidecarCheckpointStore(CheckpointStore):
    """Stores checkpoints in a JSON file.

    The file maps instance keys to tick counts, so several pairs can share
    one file. By default it lives in the root of the destination endpoint.
    """

    def __init__(self, state_file: Optional[Path] = None):
        """Initialize sidecar store.

        Args:
            state_file: Explicit checkpoint file. Defaults to
                <destination>/.pydirsync.json
        """
        self.state_file = Path(state_file) if state_file is not None else None

    def get_state_file(self, endpoint_a: Path, endpoint_b: Path) -> Path:
        if self.state_file is not None:
            return self.state_file
        return Path(endpoint_b) / SIDECAR_FILE_NAME

    def _read_mapping(self, state_file: Path) -> dict[str, int]:
        if not state_file.exists():
            return {}
        try:
            raw = state_file.read_text(encoding="utf-8")
        except OSError as e:
            raise CheckpointError(f"Cannot read {state_file}: {e}") from e
        return _decode_mapping(raw, str(state_file))

    def _write_mapping(self, state_file: Path, mapping: dict[str, int]) -> None:
        try:
            state_file.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=".pydirsync-", suffix=".tmp", dir=state_file.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(_encode_mapping(mapping))
                os.replace(tmp_name, state_file)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CheckpointError(f"Cannot write {state_file}: {e}") from e

    def load(
        self, endpoint_a: Path, endpoint_b: Path, instance_key: str
    ) -> Optional[Checkpoint]:
        state_file = self.get_state_file(endpoint_a, endpoint_b)
        mapping = self._read_mapping(state_file)
        ticks = mapping.get(instance_key)
        if ticks is None:
            logger.debug(f"No checkpoint for {instance_key} in {state_file}")
            return None

        try:
            last_sync = ticks_to_datetime(ticks)
        except ValueError as e:
            raise CheckpointError(str(e)) from e
        logger.debug(f"Loaded checkpoint {instance_key} = {last_sync.isoformat()}")
        return Checkpoint(instance_key=instance_key, last_sync_time=last_sync)

    def save(
        self,
        endpoint_a: Path,
        endpoint_b: Path,
        instance_key: str,
        timestamp: datetime,
    ) -> Checkpoint:
        state_file = self.get_state_file(endpoint_a, endpoint_b)
        try:
            mapping = self._read_mapping(state_file)
        except CheckpointError as e:
            logger.warning(f"Discarding unreadable checkpoint file: {e}")
            mapping = {}

        checkpoint = Checkpoint(instance_key=instance_key, last_sync_time=timestamp)
        mapping[instance_key] = checkpoint.ticks
        self._write_mapping(state_file, mapping)
        logger.debug(f"Saved checkpoint {instance_key} to {state_file}")
        return checkpoint

    def clear(self, endpoint_a: Path, endpoint_b: Path, instance_key: str) -> bool:
        state_file = self.get_state_file(endpoint_a, endpoint_b)
        mapping = self._read_mapping(state_file)
        if instance_key not in mapping:
            return False

        del mapping[instance_key]
        if mapping:
            self._write_mapping(state_file, mapping)
        else:
            try:
                state_file.unlink()
            except OSError as e:
                raise CheckpointError(f"Cannot remove {state_file}: {e}") from e
        logger.debug(f"Cleared checkpoint {instance_key} from {state_file}")
        return True


class AttachedMetadataCheckpointStore(CheckpointStore):
    """Stores checkpoints as metadata attached to both endpoint directories.

    Uses extended attributes on POSIX systems and alternate data streams on
    Windows. A checkpoint is only valid when both endpoints hold the same
    value, so replacing one side wholesale (e.g. restoring it from a backup)
    forces a full comparison.
    """

    @staticmethod
    def _uses_xattr() -> bool:
        return hasattr(os, "getxattr") and hasattr(os, "setxattr")

    @classmethod
    def is_supported(cls, path: Path) -> bool:
        """Check whether a directory can carry attached metadata."""
        if cls._uses_xattr():
            try:
                os.setxattr(path, _PROBE_ATTRIBUTE_NAME, b"1")
                os.removexattr(path, _PROBE_ATTRIBUTE_NAME)
                return True
            except OSError as e:
                logger.debug(f"Extended attributes unavailable on {path}: {e}")
                return False

        if os.name == "nt":
            probe = f"{path}:pydirsync.probe"
            try:
                with open(probe, "wb") as f:
                    f.write(b"1")
                os.remove(probe)
                return True
            except OSError as e:
                logger.debug(f"Alternate data streams unavailable on {path}: {e}")
                return False

        return False

    def _read_channel(self, path: Path) -> Optional[bytes]:
        try:
            if self._uses_xattr():
                try:
                    return os.getxattr(path, ATTRIBUTE_NAME)
                except OSError as e:
                    if e.errno in (errno.ENODATA, getattr(errno, "ENOATTR", -1)):
                        return None
                    raise
            try:
                with open(f"{path}:{STREAM_NAME}", "rb") as f:
                    return f.read()
            except FileNotFoundError:
                return None
        except OSError as e:
            raise CheckpointError(f"Cannot read metadata of {path}: {e}") from e

    def _write_channel(self, path: Path, data: Optional[bytes]) -> None:
        try:
            if self._uses_xattr():
                if data is None:
                    os.removexattr(path, ATTRIBUTE_NAME)
                else:
                    os.setxattr(path, ATTRIBUTE_NAME, data)
                return
            stream = f"{path}:{STREAM_NAME}"
            if data is None:
                os.remove(stream)
            else:
                with open(stream, "wb") as f:
                    f.write(data)
        except OSError as e:
            raise CheckpointError(f"Cannot write metadata of {path}: {e}") from e

    def _read_mapping(self, path: Path) -> dict[str, int]:
        raw = self._read_channel(path)
        if raw is None:
            return {}
        return _decode_mapping(raw, f"metadata of {path}")

    def load(
        self, endpoint_a: Path, endpoint_b: Path, instance_key: str
    ) -> Optional[Checkpoint]:
        ticks_a = self._read_mapping(endpoint_a).get(instance_key)
        ticks_b = self._read_mapping(endpoint_b).get(instance_key)

        if ticks_a is None or ticks_b is None:
            if ticks_a is not None or ticks_b is not None:
                logger.warning(
                    "Checkpoint present on only one endpoint, "
                    "falling back to full comparison"
                )
            return None

        if ticks_a != ticks_b:
            logger.warning(
                f"Checkpoint mismatch between endpoints ({ticks_a} != {ticks_b}), "
                "falling back to full comparison"
            )
            return None

        try:
            last_sync = ticks_to_datetime(ticks_a)
        except ValueError as e:
            raise CheckpointError(str(e)) from e
        return Checkpoint(instance_key=instance_key, last_sync_time=last_sync)

    def save(
        self,
        endpoint_a: Path,
        endpoint_b: Path,
        instance_key: str,
        timestamp: datetime,
    ) -> Checkpoint:
        checkpoint = Checkpoint(instance_key=instance_key, last_sync_time=timestamp)
        for endpoint in (endpoint_a, endpoint_b):
            try:
                mapping = self._read_mapping(endpoint)
            except CheckpointError as e:
                logger.warning(f"Discarding unreadable checkpoint metadata: {e}")
                mapping = {}
            mapping[instance_key] = checkpoint.ticks
            self._write_channel(endpoint, _encode_mapping(mapping).encode("utf-8"))
        logger.debug(f"Saved checkpoint {instance_key} as endpoint metadata")
        return checkpoint

    def clear(self, endpoint_a: Path, endpoint_b: Path, instance_key: str) -> bool:
        cleared = False
        for endpoint in (endpoint_a, endpoint_b):
            mapping = self._read_mapping(endpoint)
            if instance_key not in mapping:
                continue
            del mapping[instance_key]
            data = _encode_mapping(mapping).encode("utf-8") if mapping else None
            self._write_channel(endpoint, data)
            cleared = True
        return cleared


def create_checkpoint_store(
    strategy: Union[CheckpointStrategy, str] = CheckpointStrategy.SIDECAR,
    endpoints: Iterable[Path] = (),
    state_file: Optional[Path] = None,
) -> CheckpointStore:
    """Create a checkpoint store for the requested strategy.

    The metadata strategy falls back to the sidecar store when any of the
    given endpoints cannot carry attached metadata.

    Args:
        strategy: Requested strategy
        endpoints: Existing endpoint directories to probe for metadata support
        state_file: Explicit sidecar file path

    Returns:
        CheckpointStore instance
    """
    strategy = CheckpointStrategy(strategy)

    if strategy == CheckpointStrategy.METADATA:
        unsupported = [
            p for p in endpoints if not AttachedMetadataCheckpointStore.is_supported(p)
        ]
        if not unsupported:
            return AttachedMetadataCheckpointStore()
        logger.warning(
            f"Attached metadata not supported on {unsupported[0]}, "
            "using sidecar checkpoint file instead"
        )

    return SidecarCheckpointStore(state_file=state_file)
