"""In-memory stand-in for GoogleDriveClient used by the engine tests."""

import itertools
import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from googleapiclient.errors import HttpError

from vaultsync.providers.google_drive import (
    FOLDER_MIME_TYPE,
    DriveFile,
    FilesPage,
    GoogleDriveError,
)


def not_found_error() -> HttpError:
    return HttpError(MagicMock(status=404, reason="Not Found"), b"not found")


class FakeDriveClient:
    """
    A tiny Drive: objects keyed by id, each with one parent.

    Calls are counted per method. ``fail_uploads``, ``fail_downloads``,
    ``fail_deletes`` and ``fail_list_pages`` inject per-item failures;
    ``delay`` makes concurrent calls overlap so the peak number of
    in-flight calls can be observed.
    """

    def __init__(self, page_size: int = 100, delay: float = 0.0):
        self.page_size = page_size
        self.delay = delay
        self.objects: dict[str, dict] = {}
        self.calls: dict[str, int] = {}
        self.fail_uploads: set[str] = set()
        self.fail_downloads: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.fail_list_pages: dict[str, int] = {}
        self.create_folder_returns_none = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._ids = itertools.count(1)
        self._clock = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    # Test helpers

    def add_folder(self, parent_id: str, name: str, folder_id: str | None = None) -> str:
        return self._add(parent_id, name, FOLDER_MIME_TYPE, b"", folder_id)

    def add_file(
        self,
        parent_id: str,
        name: str,
        content: bytes = b"",
        mime_type: str = "text/markdown",
        modified_time: datetime | None = None,
        file_id: str | None = None,
    ) -> str:
        file_id = self._add(parent_id, name, mime_type, content, file_id)
        if modified_time is not None:
            self.objects[file_id]["modified_time"] = modified_time
        return file_id

    def children(self, parent_id: str) -> dict[str, dict]:
        with self._lock:
            return {
                obj["name"]: obj for obj in self.objects.values() if obj["parent"] == parent_id
            }

    def folder_named(self, parent_id: str, name: str) -> str | None:
        obj = self.children(parent_id).get(name)
        return obj["id"] if obj and obj["mime_type"] == FOLDER_MIME_TYPE else None

    def total_calls(self) -> int:
        return sum(self.calls.values())

    def _add(self, parent_id, name, mime_type, content, object_id=None) -> str:
        with self._lock:
            object_id = object_id or f"id{next(self._ids)}"
            self._clock += timedelta(seconds=1)
            self.objects[object_id] = {
                "id": object_id,
                "name": name,
                "mime_type": mime_type,
                "parent": parent_id,
                "content": content,
                "modified_time": self._clock,
            }
            return object_id

    def _enter(self, method: str) -> None:
        with self._lock:
            self.calls[method] = self.calls.get(method, 0) + 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.delay:
            time.sleep(self.delay)

    def _exit(self) -> None:
        with self._lock:
            self.in_flight -= 1

    def _to_drive_file(self, obj: dict) -> DriveFile:
        return DriveFile(
            id=obj["id"],
            name=obj["name"],
            mime_type=obj["mime_type"],
            size=len(obj["content"]),
            modified_time=obj["modified_time"],
        )

    # GoogleDriveClient interface

    def find_folder(self, parent_id, name):
        self._enter("find_folder")
        try:
            folder_id = self.folder_named(parent_id, name)
            return self._to_drive_file(self.objects[folder_id]) if folder_id else None
        finally:
            self._exit()

    def create_folder(self, parent_id, name):
        self._enter("create_folder")
        try:
            if self.create_folder_returns_none:
                return None
            return self.add_folder(parent_id, name)
        finally:
            self._exit()

    def list_folder_page(self, folder_id, page_token=None):
        self._enter("list_folder_page")
        try:
            page_number = int(page_token or 0)
            if self.fail_list_pages.get(folder_id) == page_number:
                raise GoogleDriveError(f"listing {folder_id} page {page_number} failed")

            with self._lock:
                children = sorted(
                    (o for o in self.objects.values() if o["parent"] == folder_id),
                    key=lambda o: o["name"],
                )
            start = page_number * self.page_size
            chunk = children[start:start + self.page_size]
            has_more = start + self.page_size < len(children)
            return FilesPage(
                files=[self._to_drive_file(o) for o in chunk],
                next_page_token=str(page_number + 1) if has_more else None,
            )
        finally:
            self._exit()

    def list_folders(self, parent_id="root"):
        return [
            self._to_drive_file(o)
            for o in self.children(parent_id).values()
            if o["mime_type"] == FOLDER_MIME_TYPE
        ]

    def upload_file(self, name, content, mime_type, parent_id=None, file_id=None):
        self._enter("upload_file")
        try:
            if name in self.fail_uploads:
                raise GoogleDriveError(f"upload of {name} failed")
            if file_id:
                with self._lock:
                    if file_id not in self.objects:
                        raise not_found_error()
                    self._clock += timedelta(seconds=1)
                    self.objects[file_id].update(
                        name=name, content=content, mime_type=mime_type, modified_time=self._clock
                    )
                return file_id
            return self._add(parent_id, name, mime_type, content)
        finally:
            self._exit()

    def download_file(self, file_id):
        self._enter("download_file")
        try:
            if file_id in self.fail_downloads:
                raise GoogleDriveError(f"download of {file_id} failed")
            return self.objects[file_id]["content"]
        finally:
            self._exit()

    def export_file(self, file_id, mime_type="text/markdown"):
        self._enter("export_file")
        try:
            return self.objects[file_id]["content"]
        finally:
            self._exit()

    def delete_file(self, file_id):
        self._enter("delete_file")
        try:
            if file_id in self.fail_deletes:
                raise GoogleDriveError(f"delete of {file_id} failed")
            with self._lock:
                if file_id not in self.objects:
                    raise not_found_error()
                del self.objects[file_id]
        finally:
            self._exit()
