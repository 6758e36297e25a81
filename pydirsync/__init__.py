"""pydirsync - bidirectional directory synchronization with checkpoints."""

from .exceptions import (
    CheckpointError,
    EndpointError,
    ItemOperationError,
    PolicyError,
    PyDirSyncError,
    SyncConfigError,
)
from .sync import (
    SyncDirection,
    SyncJob,
    SyncPolicy,
    SyncPreset,
    SyncResult,
    resolve_policy,
    synchronize,
)

__all__ = [
    "synchronize",
    "resolve_policy",
    "SyncDirection",
    "SyncJob",
    "SyncPolicy",
    "SyncPreset",
    "SyncResult",
    "PyDirSyncError",
    "PolicyError",
    "SyncConfigError",
    "EndpointError",
    "ItemOperationError",
    "CheckpointError",
]
