"""Exceptions raised by pydirsync."""

from typing import Optional


class PyDirSyncError(Exception):
    """Base exception for all pydirsync errors."""


class PolicyError(PyDirSyncError):
    """Raised when a preset or direction name cannot be resolved."""


class SyncConfigError(PyDirSyncError):
    """Raised when a job file or literal job string is invalid."""


class EndpointError(PyDirSyncError):
    """Raised when a root endpoint is missing and may not be created.

    This error is fatal: it aborts a run before any scanning happens.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class ItemOperationError(PyDirSyncError):
    """Raised when a single create/copy/delete operation fails.

    The engine catches this per item and records it in the run result,
    it never aborts a run.
    """

    def __init__(self, item: str, operation: str, cause: Exception):
        super().__init__(f"{operation} failed for {item}: {cause}")
        self.item = item
        self.operation = operation
        self.cause = cause


class CheckpointError(PyDirSyncError):
    """Raised when a checkpoint cannot be read, decoded or written."""
