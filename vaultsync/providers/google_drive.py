"""
Google Drive API client for vault sync.

Wraps the Drive v3 calls the sync engine needs: folder search and
creation, paginated folder listing, multipart upload, media download,
export of editor-native documents, and deletion.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from io import BytesIO

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

logger = logging.getLogger(__name__)

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"

# Editor-native objects (Docs, Sheets, ...) have no binary form and must be exported
EDITOR_MIME_PREFIX = "application/vnd.google-apps"

DEFAULT_MIME_TYPE = "application/octet-stream"

EXTENSION_MIME_TYPES = {
    "md": "text/markdown",
    "txt": "text/plain",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "pdf": "application/pdf",
    "json": "application/json",
    "svg": "image/svg+xml",
    "mp3": "audio/mpeg",
    "mp4": "video/mp4",
    "ogg": "video/ogg",
}

LIST_FIELDS = "nextPageToken,files(id,name,mimeType,size,createdTime,modifiedTime,trashed)"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def mime_type_for_extension(extension: str) -> str:
    return EXTENSION_MIME_TYPES.get(extension.lower(), DEFAULT_MIME_TYPE)


def escape_query_value(value: str) -> str:
    """Escape a string for use inside single quotes in a Drive ``q`` query."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def to_epoch_ms(value: datetime) -> int:
    return (value - EPOCH) // timedelta(milliseconds=1)


class GoogleDriveError(Exception):
    """Base exception for Google Drive operations."""

    pass


class UploadError(GoogleDriveError):
    """Raised when an upload response carries no file id."""

    pass


@dataclass
class DriveFile:
    """Metadata of a file or folder as returned by a listing call."""

    id: str
    name: str
    mime_type: str
    size: int | None = None
    created_time: datetime | None = None
    modified_time: datetime | None = None
    trashed: bool = False

    @classmethod
    def from_api_response(cls, data: dict) -> "DriveFile":
        """Create DriveFile from Google API response."""
        return cls(
            id=data["id"],
            name=data["name"],
            mime_type=data.get("mimeType", ""),
            size=int(data["size"]) if "size" in data else None,
            created_time=_parse_time(data.get("createdTime")),
            modified_time=_parse_time(data.get("modifiedTime")),
            trashed=data.get("trashed", False),
        )

    @property
    def is_folder(self) -> bool:
        return self.mime_type == FOLDER_MIME_TYPE

    @property
    def is_editor_native(self) -> bool:
        return self.mime_type.startswith(EDITOR_MIME_PREFIX) and not self.is_folder

    @property
    def modified_ms(self) -> int:
        """Modification time in epoch milliseconds, 0 when unknown."""
        if self.modified_time is None:
            return 0
        return to_epoch_ms(self.modified_time)


@dataclass
class FilesPage:
    """A page of a folder listing."""

    files: list[DriveFile] = field(default_factory=list)
    next_page_token: str | None = None

    @property
    def has_more(self) -> bool:
        return self.next_page_token is not None


class GoogleDriveClient:
    """
    Client for Google Drive API operations, authorized with a bearer token.

    Token refresh is not handled here; see vaultsync.auth. The underlying
    service object is not thread-safe, so one is built per thread.
    """

    def __init__(self, access_token: str):
        self.access_token = access_token
        self._local = threading.local()

    def _get_service(self):
        """Get or create this thread's Drive API service."""
        service = getattr(self._local, "service", None)
        if service is None:
            credentials = Credentials(token=self.access_token)
            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
            self._local.service = service
        return service

    def find_folder(self, parent_id: str, name: str) -> DriveFile | None:
        """
        Find a non-trashed folder called ``name`` directly under ``parent_id``.

        Returns:
            The first match, or None
        """
        service = self._get_service()
        query = (
            f"name = '{escape_query_value(name)}' "
            f"and '{escape_query_value(parent_id)}' in parents "
            f"and mimeType = '{FOLDER_MIME_TYPE}' and trashed = false"
        )
        response = service.files().list(q=query, fields="files(id,name,mimeType)").execute()
        files = response.get("files", [])
        if not files:
            return None
        return DriveFile.from_api_response(files[0])

    def create_folder(self, parent_id: str, name: str) -> str | None:
        """
        Create a folder under ``parent_id``.

        Returns:
            The new folder id, or None if the response carried none
        """
        service = self._get_service()
        metadata = {
            "name": name,
            "mimeType": FOLDER_MIME_TYPE,
            "parents": [parent_id],
        }
        response = service.files().create(body=metadata, fields="id").execute()
        folder_id = response.get("id")
        if folder_id:
            logger.debug(f"Created folder {name} ({folder_id}) under {parent_id}")
        return folder_id

    def list_folder_page(
        self,
        folder_id: str,
        page_token: str | None = None,
    ) -> FilesPage:
        """
        List one page of a folder's non-trashed children.

        Args:
            folder_id: The folder ID
            page_token: Token from a previous page, None for the first page

        Returns:
            FilesPage with children and the next page token
        """
        service = self._get_service()
        params = {
            "q": f"'{escape_query_value(folder_id)}' in parents and trashed = false",
            "fields": LIST_FIELDS,
        }
        if page_token:
            params["pageToken"] = page_token

        response = service.files().list(**params).execute()

        return FilesPage(
            files=[DriveFile.from_api_response(f) for f in response.get("files", [])],
            next_page_token=response.get("nextPageToken"),
        )

    def list_folders(self, parent_id: str = "root") -> list[DriveFile]:
        """List all non-trashed folders directly under ``parent_id``."""
        folders = []
        page_token = None
        while True:
            page = self.list_folder_page(parent_id, page_token)
            folders.extend(f for f in page.files if f.is_folder and not f.trashed)
            if not page.has_more:
                break
            page_token = page.next_page_token
        return folders

    def upload_file(
        self,
        name: str,
        content: bytes,
        mime_type: str,
        parent_id: str | None = None,
        file_id: str | None = None,
    ) -> str:
        """
        Create or update a file with a multipart upload.

        When ``file_id`` is given the existing object's content and name are
        replaced and its parents are left alone; otherwise a new object is
        created under ``parent_id``.

        Returns:
            The id of the created or updated file

        Raises:
            UploadError: If the response carries no id
        """
        service = self._get_service()
        media = MediaIoBaseUpload(BytesIO(content), mimetype=mime_type, resumable=False)
        metadata = {"name": name}

        if file_id:
            request = service.files().update(
                fileId=file_id, body=metadata, media_body=media, fields="id"
            )
        else:
            if parent_id:
                metadata["parents"] = [parent_id]
            request = service.files().create(body=metadata, media_body=media, fields="id")

        response = request.execute()
        uploaded_id = response.get("id")
        if not uploaded_id:
            raise UploadError(f"Upload of {name} returned no file id: {response}")
        return uploaded_id

    def _download(self, request) -> bytes:
        buffer = BytesIO()
        downloader = MediaIoBaseDownload(buffer, request)

        done = False
        while not done:
            status, done = downloader.next_chunk()
            if status:
                logger.debug(f"Download progress: {int(status.progress() * 100)}%")

        return buffer.getvalue()

    def download_file(self, file_id: str) -> bytes:
        """Download a file's raw content."""
        service = self._get_service()
        return self._download(service.files().get_media(fileId=file_id))

    def export_file(self, file_id: str, mime_type: str = "text/markdown") -> bytes:
        """Export an editor-native document as ``mime_type``."""
        service = self._get_service()
        return self._download(service.files().export_media(fileId=file_id, mimeType=mime_type))

    def delete_file(self, file_id: str) -> None:
        """Permanently delete a file."""
        service = self._get_service()
        service.files().delete(fileId=file_id).execute()
