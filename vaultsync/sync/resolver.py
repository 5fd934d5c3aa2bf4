"""
Remote folder resolution.

Maps folder paths to Drive folder ids, creating folders that don't exist.
Resolutions, failed ones included, are memoized for the lifetime of the
resolver (one sync pass) and single-flighted per (parent, name), so files
sharing an ancestor never race to create duplicate folders.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from googleapiclient.errors import HttpError

from vaultsync.providers.google_drive import GoogleDriveError
from vaultsync.sync.exceptions import FolderResolutionError

if TYPE_CHECKING:
    from vaultsync.providers.google_drive import GoogleDriveClient

logger = logging.getLogger(__name__)


class RemoteFolderResolver:
    def __init__(self, client: GoogleDriveClient):
        self.client = client
        self._cache: dict[tuple[str, str], str] = {}
        self._failures: dict[tuple[str, str], FolderResolutionError] = {}
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()

    def resolve(self, parent_folder_id: str, folder_name: str) -> str:
        """
        Return the id of the folder ``folder_name`` under ``parent_folder_id``,
        creating it if needed.

        Raises:
            FolderResolutionError: If the lookup fails or creation yields no id
        """
        key = (parent_folder_id, folder_name)
        with self._guard:
            if key in self._cache:
                return self._cache[key]
            if key in self._failures:
                raise self._failures[key]
            lock = self._locks.setdefault(key, threading.Lock())

        with lock:
            with self._guard:
                if key in self._cache:
                    return self._cache[key]
                if key in self._failures:
                    raise self._failures[key]

            try:
                folder_id = self._search_or_create(parent_folder_id, folder_name)
            except FolderResolutionError as e:
                # Later files under this folder fail fast for the rest of the pass
                with self._guard:
                    self._failures[key] = e
                raise

            with self._guard:
                self._cache[key] = folder_id
            return folder_id

    def resolve_path(self, base_folder_id: str, folder_path: str) -> str:
        """Resolve a slash-separated path below ``base_folder_id``, segment by segment."""
        current_id = base_folder_id
        for segment in folder_path.split("/"):
            if segment:
                current_id = self.resolve(current_id, segment)
        return current_id

    def _search_or_create(self, parent_folder_id: str, folder_name: str) -> str:
        try:
            existing = self.client.find_folder(parent_folder_id, folder_name)
            if existing is not None:
                return existing.id

            folder_id = self.client.create_folder(parent_folder_id, folder_name)
        except (HttpError, GoogleDriveError) as e:
            raise FolderResolutionError(
                f"Failed to resolve folder '{folder_name}' under {parent_folder_id}: {e}"
            ) from e

        if not folder_id:
            logger.error(f"Failed to create folder '{folder_name}' under {parent_folder_id}")
            raise FolderResolutionError(
                f"Creating folder '{folder_name}' under {parent_folder_id} returned no id"
            )

        logger.info(f"Created remote folder '{folder_name}' ({folder_id})")
        return folder_id
