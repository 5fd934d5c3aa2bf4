"""
Core sync engine for vault operations.

Push mirrors the local vault into its Drive folder; pull mirrors the Drive
folder into the local vault. Both directions detect changes against the
persisted sync record, fan transfers out in bounded batches, and finish
with a deletion sweep for paths that have disappeared from the source side.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import TYPE_CHECKING, Callable

from django.conf import settings
from django.utils import timezone
from googleapiclient.errors import HttpError

if TYPE_CHECKING:
    from vaultsync.auth import AuthTokenManager
    from vaultsync.local_store import LocalFileRef, LocalVaultStore
    from vaultsync.models import Vault

from vaultsync.local_store import LocalStoreError, is_hidden
from vaultsync.models import SyncDirection, SyncEvent, SyncRun
from vaultsync.providers.google_drive import (
    DriveFile,
    GoogleDriveClient,
    GoogleDriveError,
    mime_type_for_extension,
)
from vaultsync.sync.change_detector import should_pull, should_push
from vaultsync.sync.exceptions import (
    FolderResolutionError,
    PartialListingError,
    SyncAbortedError,
    TransferError,
)
from vaultsync.sync.record_store import SyncRecordStore
from vaultsync.sync.resolver import RemoteFolderResolver
from vaultsync.sync.scheduler import DEFAULT_CONCURRENCY_LIMIT, BatchScheduler

logger = logging.getLogger(__name__)

DRIVE_ERRORS = (HttpError, GoogleDriveError)
LOCAL_ERRORS = (OSError, LocalStoreError, UnicodeError)


@dataclass(frozen=True)
class SyncConfig:
    """Everything a sync run reads from configuration, fixed for the run."""

    vault_name: str
    root_folder_id: str
    local_path: str
    concurrency_limit: int = DEFAULT_CONCURRENCY_LIMIT
    export_mime_type: str = "text/markdown"

    @classmethod
    def from_vault(cls, vault: Vault, concurrency_limit: int | None = None) -> "SyncConfig":
        return cls(
            vault_name=vault.name,
            root_folder_id=vault.root_folder_id,
            local_path=vault.local_path,
            concurrency_limit=concurrency_limit
            or getattr(settings, "VAULTSYNC_CONCURRENCY_LIMIT", DEFAULT_CONCURRENCY_LIMIT),
            export_mime_type=getattr(settings, "VAULTSYNC_EXPORT_MIME_TYPE", "text/markdown"),
        )


@dataclass
class SyncSession:
    """Per-invocation state. Nothing here outlives the run."""

    direction: str
    concurrency_limit: int
    root_folder_id: str
    vault_folder_id: str


@dataclass
class SyncFailure:
    path: str
    operation: str
    error: Exception

    def __str__(self):
        return f"{self.operation} {self.path}: {self.error}"


@dataclass
class SyncResult:
    """Result of a sync operation."""

    direction: str
    skipped: list[str] = field(default_factory=list)
    upserted: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    failures: list[SyncFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _join(prefix: str, name: str) -> str:
    return f"{prefix}/{name}" if prefix else name


def _parent_of(path: str) -> str:
    parent = PurePosixPath(path).parent.as_posix()
    return "" if parent == "." else parent


def _is_not_found(error: Exception) -> bool:
    return isinstance(error, HttpError) and getattr(error.resp, "status", None) == 404


class SyncEngine:
    """
    Shared lifecycle of push and pull runs.

    ``run`` obtains a token, resolves the vault's mirror folder, loads the
    sync record, delegates to ``_sync``, then persists the record and the
    last-sync timestamp and writes the audit trail.
    """

    direction: str = ""

    def __init__(
        self,
        vault: Vault,
        local_store: LocalVaultStore,
        token_manager: AuthTokenManager,
        client_factory: Callable[[str], GoogleDriveClient] = GoogleDriveClient,
        config: SyncConfig | None = None,
    ):
        self.vault = vault
        self.local_store = local_store
        self.token_manager = token_manager
        self.client_factory = client_factory
        self.config = config or SyncConfig.from_vault(vault)
        self.scheduler = BatchScheduler(self.config.concurrency_limit)

        self.session: SyncSession | None = None
        self.client: GoogleDriveClient | None = None
        self.resolver: RemoteFolderResolver | None = None
        self.records: SyncRecordStore | None = None

    def run(self) -> SyncResult:
        """
        Execute one sync.

        Returns:
            SyncResult listing skipped, upserted and deleted paths and
            per-item failures

        Raises:
            SyncAbortedError: If the vault is disabled or has no root folder
            AuthError: If no valid access token can be obtained
            FolderResolutionError: If the vault's mirror folder can't be resolved
        """
        if not self.vault.is_enabled:
            raise SyncAbortedError(f"Vault {self.vault.name} is disabled")
        if not self.config.root_folder_id:
            raise SyncAbortedError(f"Vault {self.vault.name} has no root folder selected")

        sync_run = SyncRun.objects.create(vault=self.vault, direction=self.direction)
        logger.info(f"Starting {self.direction} sync for vault {self.vault.name}")

        try:
            access_token = self.token_manager.ensure_valid_token()
            self.client = self.client_factory(access_token)
            self.resolver = RemoteFolderResolver(self.client)

            vault_folder_id = self.resolver.resolve(
                self.config.root_folder_id, self.config.vault_name
            )
            self.session = SyncSession(
                direction=self.direction,
                concurrency_limit=self.config.concurrency_limit,
                root_folder_id=self.config.root_folder_id,
                vault_folder_id=vault_folder_id,
            )
            self.records = SyncRecordStore.load(self.vault)

            result = self._sync()

        except Exception as e:
            # Items that finished before the abort are real remote/local changes
            if self.records is not None:
                self.records.save()

            sync_run.status = "failed"
            sync_run.error_message = str(e)
            sync_run.completed_at = timezone.now()
            sync_run.save()

            logger.error(f"{self.direction.capitalize()} sync failed: {e}", exc_info=True)
            raise

        self.records.save()
        self.vault.last_sync_at = timezone.now()
        self.vault.save(update_fields=["last_sync_at", "updated_at"])

        self._record_run(sync_run, result)

        logger.info(
            f"{self.direction.capitalize()} sync completed: {len(result.upserted)} upserted, "
            f"{len(result.deleted)} deleted, {len(result.skipped)} skipped, "
            f"{len(result.failures)} failed"
        )
        return result

    def _sync(self) -> SyncResult:
        raise NotImplementedError

    def _failure(self, path: str, operation: str, error: Exception) -> SyncFailure:
        if isinstance(error, TransferError):
            operation = error.operation
        elif isinstance(error, FolderResolutionError):
            operation = "resolve_folder"
        elif isinstance(error, PartialListingError):
            operation = "list"
        logger.warning(f"Failed to {operation} {path}: {error}")
        return SyncFailure(path=path, operation=operation, error=error)

    def _record_run(self, sync_run: SyncRun, result: SyncResult) -> None:
        events = [
            SyncEvent(run=sync_run, event_type="file_upserted", operation="upsert", file_path=path)
            for path in result.upserted
        ]
        events += [
            SyncEvent(run=sync_run, event_type="file_deleted", operation="delete", file_path=path)
            for path in result.deleted
        ]
        events += [
            SyncEvent(
                run=sync_run,
                event_type="error",
                operation=failure.operation,
                file_path=failure.path,
                message=str(failure.error),
            )
            for failure in result.failures
        ]
        SyncEvent.objects.bulk_create(events)

        sync_run.status = "completed" if result.ok else "partial"
        sync_run.completed_at = timezone.now()
        sync_run.files_skipped = len(result.skipped)
        sync_run.files_upserted = len(result.upserted)
        sync_run.files_deleted = len(result.deleted)
        sync_run.files_failed = len(result.failures)
        sync_run.save()


class PushEngine(SyncEngine):
    """Local vault -> Drive."""

    direction = SyncDirection.PUSH

    def _sync(self) -> SyncResult:
        result = SyncResult(direction=self.direction)

        local_files = self.local_store.list_files()

        to_transfer = []
        for local_file in local_files:
            if should_push(self.records.get(local_file.path), local_file.mtime):
                to_transfer.append(local_file)
            else:
                result.skipped.append(local_file.path)

        logger.info(
            f"Pushing {len(to_transfer)} of {len(local_files)} files "
            f"({len(result.skipped)} unchanged)"
        )

        report = self.scheduler.run(to_transfer, self._push_file)
        for item_result in report.results:
            if item_result.ok:
                result.upserted.append(item_result.item.path)
            else:
                result.failures.append(
                    self._failure(item_result.item.path, "upload", item_result.error)
                )

        local_paths = {local_file.path for local_file in local_files}
        stale_paths = sorted(path for path in self.records.paths() if path not in local_paths)

        report = self.scheduler.run(stale_paths, self._delete_remote)
        for item_result in report.results:
            if item_result.ok:
                result.deleted.append(item_result.item)
            else:
                result.failures.append(self._failure(item_result.item, "delete", item_result.error))

        return result

    def _read_content(self, local_file: LocalFileRef) -> bytes:
        try:
            if local_file.is_text:
                return self.local_store.read_text(local_file.path).encode("utf-8")
            return self.local_store.read_bytes(local_file.path)
        except LOCAL_ERRORS as e:
            raise TransferError(local_file.path, "read", str(e)) from e

    def _push_file(self, local_file: LocalFileRef) -> str:
        """Upload one file, creating its remote folders first. Returns the remote id."""
        parent_id = self.resolver.resolve_path(self.session.vault_folder_id, local_file.parent)
        content = self._read_content(local_file)

        record = self.records.get(local_file.path)
        existing_id = record.remote_id if record and record.remote_id else None

        try:
            remote_id = self.client.upload_file(
                name=local_file.name,
                content=content,
                mime_type=mime_type_for_extension(local_file.extension),
                # Updates keep the object where it is
                parent_id=None if existing_id else parent_id,
                file_id=existing_id,
            )
        except DRIVE_ERRORS as e:
            raise TransferError(local_file.path, "upload", str(e)) from e

        self.records.set(local_file.path, remote_id, local_file.mtime)
        logger.debug(f"{'Updated' if existing_id else 'Created'} {local_file.path} ({remote_id})")
        return remote_id

    def _delete_remote(self, path: str) -> None:
        record = self.records.get(path)
        try:
            self.client.delete_file(record.remote_id)
        except DRIVE_ERRORS as e:
            if not _is_not_found(e):
                raise TransferError(path, "delete", str(e)) from e
            logger.info(f"Remote object for {path} was already gone")

        self.records.remove(path)
        logger.debug(f"Deleted remote {path} ({record.remote_id})")


class PullEngine(SyncEngine):
    """Drive -> local vault."""

    direction = SyncDirection.PULL

    def _sync(self) -> SyncResult:
        result = SyncResult(direction=self.direction)

        remote_files, incomplete_prefixes = self._traverse(result)
        local_files = {local_file.path: local_file for local_file in self.local_store.list_files()}

        to_transfer = []
        for path in sorted(remote_files):
            remote_file = remote_files[path]
            if should_pull(self.records.get(path), remote_file, local_files.get(path)):
                to_transfer.append((path, remote_file))
            else:
                result.skipped.append(path)

        logger.info(
            f"Pulling {len(to_transfer)} of {len(remote_files)} remote files "
            f"({len(result.skipped)} unchanged)"
        )

        report = self.scheduler.run(to_transfer, self._pull_file)
        for item_result in report.results:
            path = item_result.item[0]
            if item_result.ok:
                result.upserted.append(path)
            else:
                result.failures.append(self._failure(path, "download", item_result.error))

        stale_paths = []
        for path in sorted(local_files):
            if path in remote_files or path not in self.records:
                continue
            if any(self._is_under(path, prefix) for prefix in incomplete_prefixes):
                logger.info(f"Keeping {path}: its remote folder could not be fully listed")
                continue
            stale_paths.append(path)

        report = self.scheduler.run(stale_paths, self._delete_local)
        for item_result in report.results:
            if item_result.ok:
                result.deleted.append(item_result.item)
            else:
                result.failures.append(
                    self._failure(item_result.item, "delete_local", item_result.error)
                )

        return result

    @staticmethod
    def _is_under(path: str, prefix: str) -> bool:
        return not prefix or path.startswith(prefix + "/")

    def _traverse(self, result: SyncResult) -> tuple[dict[str, DriveFile], list[str]]:
        """
        Walk the vault's remote folder tree breadth-first.

        Returns:
            Map of vault-relative path to remote file, and the path prefixes
            of folders whose listing was cut short
        """
        remote_files: dict[str, DriveFile] = {}
        incomplete_prefixes: list[str] = []
        queue = deque([(self.session.vault_folder_id, "")])

        while queue:
            batch = [queue.popleft() for _ in range(min(self.config.concurrency_limit, len(queue)))]
            report = self.scheduler.run(batch, self._list_folder)

            for item_result in report.results:
                folder_id, prefix = item_result.item
                if not item_result.ok:
                    children, error = [], item_result.error
                else:
                    children, error = item_result.value

                if error is not None:
                    incomplete_prefixes.append(prefix)
                    result.failures.append(self._failure(prefix or "/", "list", error))

                for child in children:
                    if child.trashed or is_hidden(child.name):
                        continue
                    child_path = _join(prefix, child.name)
                    if child.is_folder:
                        queue.append((child.id, child_path))
                    else:
                        remote_files[child_path] = child

        logger.info(f"Found {len(remote_files)} remote files")
        return remote_files, incomplete_prefixes

    def _list_folder(self, folder: tuple[str, str]) -> tuple[list[DriveFile], PartialListingError | None]:
        """
        Page through one folder's children.

        A failed page ends the listing of this folder; pages fetched before it
        are kept and the failure is returned alongside them.
        """
        folder_id, prefix = folder
        children: list[DriveFile] = []
        page_token = None

        while True:
            try:
                page = self.client.list_folder_page(folder_id, page_token)
            except DRIVE_ERRORS as e:
                return children, PartialListingError(folder_id, prefix, str(e))

            children.extend(page.files)
            if not page.has_more:
                return children, None
            page_token = page.next_page_token

    def _pull_file(self, item: tuple[str, DriveFile]) -> str:
        """Fetch one remote file and write it into the vault. Returns the path."""
        path, remote_file = item

        try:
            if remote_file.is_editor_native:
                content = self.client.export_file(remote_file.id, self.config.export_mime_type)
            else:
                content = self.client.download_file(remote_file.id)
        except DRIVE_ERRORS as e:
            raise TransferError(path, "download", str(e)) from e

        try:
            parent = _parent_of(path)
            if parent:
                self.local_store.create_folder(parent)

            if remote_file.is_editor_native:
                self.local_store.write_text(path, content.decode("utf-8"))
            else:
                self.local_store.write_bytes(path, content)
        except LOCAL_ERRORS as e:
            raise TransferError(path, "write", str(e)) from e

        self.records.set(path, remote_file.id, remote_file.modified_ms)
        logger.debug(f"Wrote {path} from {remote_file.id}")
        return path

    def _delete_local(self, path: str) -> None:
        try:
            self.local_store.delete_file(path)
        except LOCAL_ERRORS as e:
            raise TransferError(path, "delete_local", str(e)) from e

        self.records.remove(path)
        logger.debug(f"Deleted local {path}")


ENGINES = {
    SyncDirection.PUSH: PushEngine,
    SyncDirection.PULL: PullEngine,
}


def build_engine(
    vault: Vault,
    direction: str,
    concurrency_limit: int | None = None,
) -> SyncEngine:
    """Wire an engine for ``vault`` with the default token manager, store and client."""
    # Import here to avoid circular imports
    from vaultsync.auth import AuthTokenManager
    from vaultsync.local_store import LocalVaultStore

    try:
        engine_class = ENGINES[SyncDirection(direction)]
    except ValueError:
        raise ValueError(f"Unknown sync direction: {direction!r}") from None

    return engine_class(
        vault=vault,
        local_store=LocalVaultStore(vault.local_path),
        token_manager=AuthTokenManager(vault.account),
        config=SyncConfig.from_vault(vault, concurrency_limit),
    )


def push(vault: Vault, concurrency_limit: int | None = None) -> SyncResult:
    return build_engine(vault, SyncDirection.PUSH, concurrency_limit).run()


def pull(vault: Vault, concurrency_limit: int | None = None) -> SyncResult:
    return build_engine(vault, SyncDirection.PULL, concurrency_limit).run()
