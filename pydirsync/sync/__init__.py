"""Sync engine for pydirsync - reconcile two local directory trees."""

from .comparator import DiffResult, ItemDiff, TreeComparator
from .config import load_sync_jobs_from_json
from .coordinator import Endpoint, resolve_endpoint, synchronize
from .engine import SyncEngine, SyncError, SyncOperation, SyncResult
from .modes import SyncDirection, SyncPolicy, SyncPreset, resolve_policy
from .operations import SyncOperations
from .pair import SyncJob
from .scanner import (
    SIDECAR_FILE_NAME,
    DirectoryRecord,
    DirectoryScanner,
    FileRecord,
    ScanResult,
)
from .state import (
    AttachedMetadataCheckpointStore,
    Checkpoint,
    CheckpointStore,
    CheckpointStrategy,
    SidecarCheckpointStore,
    create_checkpoint_store,
    make_instance_key,
)

__all__ = [
    "synchronize",
    "SyncEngine",
    "SyncJob",
    "SyncResult",
    "SyncError",
    "SyncOperation",
    "SyncOperations",
    "SyncDirection",
    "SyncPolicy",
    "SyncPreset",
    "resolve_policy",
    "Endpoint",
    "resolve_endpoint",
    "load_sync_jobs_from_json",
    "DirectoryScanner",
    "FileRecord",
    "DirectoryRecord",
    "ScanResult",
    "SIDECAR_FILE_NAME",
    "TreeComparator",
    "DiffResult",
    "ItemDiff",
    "Checkpoint",
    "CheckpointStore",
    "CheckpointStrategy",
    "SidecarCheckpointStore",
    "AttachedMetadataCheckpointStore",
    "create_checkpoint_store",
    "make_instance_key",
]
