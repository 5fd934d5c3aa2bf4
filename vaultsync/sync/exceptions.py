"""
Exceptions for sync operations.
"""


class SyncError(Exception):
    """Base exception for sync operations."""

    pass


class AuthError(SyncError):
    """No usable access token could be obtained. Aborts the whole sync."""

    pass


class SyncAbortedError(SyncError):
    """Sync could not start (vault disabled, no root folder selected)."""

    pass


class FolderResolutionError(SyncError):
    """A remote folder could not be found or created."""

    pass


class TransferError(SyncError):
    """Upload, download, write or delete failed for a single item."""

    def __init__(self, path: str, operation: str, message: str):
        super().__init__(f"{operation} failed for {path}: {message}")
        self.path = path
        self.operation = operation


class PartialListingError(SyncError):
    """A page of a remote folder listing could not be fetched."""

    def __init__(self, folder_id: str, path_prefix: str, message: str):
        super().__init__(f"Listing failed for '{path_prefix or '/'}' ({folder_id}): {message}")
        self.folder_id = folder_id
        self.path_prefix = path_prefix
