"""Workspace synchronization for gitref - loading state, drift and copy."""

from .comparator import SyncStatus, compute_status
from .engine import SyncEngine, SyncResult
from .operations import SyncOperations
from .scanner import (
    EmptyDirectory,
    clean_empty,
    remove_empty_ancestors,
    scan_empty,
)
from .state import LoadingRecord, LoadingStateStore, make_loading_key

__all__ = [
    "SyncEngine",
    "SyncResult",
    "SyncOperations",
    "SyncStatus",
    "compute_status",
    "EmptyDirectory",
    "scan_empty",
    "clean_empty",
    "remove_empty_ancestors",
    "LoadingRecord",
    "LoadingStateStore",
    "make_loading_key",
]
