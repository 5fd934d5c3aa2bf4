"""
Skip/transfer decisions.

The two directions deliberately use different rules: push compares the
recorded timestamp against the local mtime inclusively, pull additionally
requires the recorded remote id to match the listed object.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vaultsync.local_store import LocalFileRef
    from vaultsync.providers.google_drive import DriveFile
    from vaultsync.sync.record_store import FileRecord


def should_push(record: FileRecord | None, local_mtime: int) -> bool:
    """True unless the file was synced at or after its current mtime."""
    if record is None:
        return True
    return record.last_modified < local_mtime


def should_pull(
    record: FileRecord | None,
    remote_file: DriveFile,
    local_file: LocalFileRef | None,
) -> bool:
    """
    True unless a local copy exists, the record points at this very remote
    object, and the local copy is at least as new as the remote one.
    """
    if local_file is None or record is None:
        return True
    if record.remote_id != remote_file.id:
        return True
    return local_file.mtime < remote_file.modified_ms
