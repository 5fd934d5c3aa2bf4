"""
Sync engine for vault <-> Google Drive operations.
"""

from vaultsync.sync.engine import (
    PullEngine,
    PushEngine,
    SyncConfig,
    SyncEngine,
    SyncFailure,
    SyncResult,
    SyncSession,
    build_engine,
    pull,
    push,
)
from vaultsync.sync.exceptions import (
    AuthError,
    FolderResolutionError,
    PartialListingError,
    SyncAbortedError,
    SyncError,
    TransferError,
)
from vaultsync.sync.record_store import FileRecord, SyncRecordStore
from vaultsync.sync.resolver import RemoteFolderResolver
from vaultsync.sync.scheduler import BatchReport, BatchScheduler, ItemResult

__all__ = [
    "SyncEngine",
    "PushEngine",
    "PullEngine",
    "SyncConfig",
    "SyncSession",
    "SyncResult",
    "SyncFailure",
    "build_engine",
    "push",
    "pull",
    "SyncRecordStore",
    "FileRecord",
    "RemoteFolderResolver",
    "BatchScheduler",
    "BatchReport",
    "ItemResult",
    "SyncError",
    "AuthError",
    "SyncAbortedError",
    "FolderResolutionError",
    "TransferError",
    "PartialListingError",
]
