"""
Persisted sync record for one vault.

The record is loaded into memory when a session starts, mutated by the
worker threads of that session, and written back in one transaction when
the session ends. Workers never touch the database.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.db import transaction

from vaultsync.models import VaultFileRecord

if TYPE_CHECKING:
    from vaultsync.models import Vault

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileRecord:
    remote_id: str
    last_modified: int  # milliseconds since the epoch


class SyncRecordStore:
    def __init__(self, vault: Vault, records: dict[str, FileRecord] | None = None):
        self.vault = vault
        self._records: dict[str, FileRecord] = dict(records or {})
        self._changed: set[str] = set()
        self._removed: set[str] = set()
        self._lock = threading.Lock()

    @classmethod
    def load(cls, vault: Vault) -> "SyncRecordStore":
        rows = VaultFileRecord.objects.filter(vault=vault).values_list(
            "path", "remote_id", "last_modified"
        )
        records = {path: FileRecord(remote_id, last_modified) for path, remote_id, last_modified in rows}
        logger.debug(f"Loaded {len(records)} sync records for vault {vault.name}")
        return cls(vault, records)

    def get(self, path: str) -> FileRecord | None:
        with self._lock:
            return self._records.get(path)

    def set(self, path: str, remote_id: str, last_modified: int) -> None:
        with self._lock:
            self._records[path] = FileRecord(remote_id, last_modified)
            self._changed.add(path)
            self._removed.discard(path)

    def remove(self, path: str) -> bool:
        with self._lock:
            if path not in self._records:
                return False
            del self._records[path]
            self._removed.add(path)
            self._changed.discard(path)
            return True

    def paths(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def __contains__(self, path: str) -> bool:
        with self._lock:
            return path in self._records

    def save(self) -> None:
        """Write pending changes to the database."""
        with self._lock:
            changed = {path: self._records[path] for path in self._changed}
            removed = set(self._removed)
            self._changed.clear()
            self._removed.clear()

        if not changed and not removed:
            return

        with transaction.atomic():
            if removed:
                VaultFileRecord.objects.filter(vault=self.vault, path__in=removed).delete()
            for path, record in changed.items():
                VaultFileRecord.objects.update_or_create(
                    vault=self.vault,
                    path=path,
                    defaults={
                        "remote_id": record.remote_id,
                        "last_modified": record.last_modified,
                    },
                )

        logger.debug(
            f"Saved sync record for {self.vault.name}: "
            f"{len(changed)} upserted, {len(removed)} removed"
        )
