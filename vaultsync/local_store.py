"""
Local vault storage.

The vault is a plain directory tree. Paths handed in and out are
vault-relative, slash-separated and have no leading slash. Hidden files
and folders (names starting with ".") hold application state, not notes,
and are not part of the synced set.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = frozenset({"md", "txt", "json"})


def is_hidden(name: str) -> bool:
    """Hidden entries hold application state and are never synced."""
    return name.startswith(".")


class LocalStoreError(Exception):
    """Raised when a path is invalid or a local file operation fails."""

    pass


@dataclass(frozen=True)
class LocalFileRef:
    """A file in the vault. Content is read on demand."""

    path: str
    extension: str
    mtime: int  # milliseconds since the epoch
    size: int

    @property
    def name(self) -> str:
        return PurePosixPath(self.path).name

    @property
    def parent(self) -> str:
        parent = PurePosixPath(self.path).parent.as_posix()
        return "" if parent == "." else parent

    @property
    def is_text(self) -> bool:
        return self.extension in TEXT_EXTENSIONS


def _mtime_ms(stat_result: os.stat_result) -> int:
    return stat_result.st_mtime_ns // 1_000_000


class LocalVaultStore:
    """Read/write access to the files of one vault directory."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, relative_path: str) -> Path:
        """Map a vault-relative path to a filesystem path inside the vault."""
        parts = PurePosixPath(relative_path).parts
        if not parts or PurePosixPath(relative_path).is_absolute() or ".." in parts:
            raise LocalStoreError(f"Invalid vault path: {relative_path!r}")
        return self.root.joinpath(*parts)

    def _make_ref(self, path: Path) -> LocalFileRef:
        stat_result = path.stat()
        relative = path.relative_to(self.root).as_posix()
        return LocalFileRef(
            path=relative,
            extension=path.suffix[1:].lower(),
            mtime=_mtime_ms(stat_result),
            size=stat_result.st_size,
        )

    def iter_files(self) -> Iterator[LocalFileRef]:
        """Yield every non-hidden file in the vault."""
        if not self.root.exists():
            return

        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not is_hidden(d))
            for filename in sorted(filenames):
                if is_hidden(filename):
                    continue
                yield self._make_ref(Path(dirpath) / filename)

    def list_files(self) -> list[LocalFileRef]:
        return list(self.iter_files())

    def get_file(self, relative_path: str) -> LocalFileRef | None:
        """Get a file by path, or None if it doesn't exist."""
        path = self._resolve(relative_path)
        if not path.is_file():
            return None
        return self._make_ref(path)

    def read_text(self, relative_path: str) -> str:
        return self._resolve(relative_path).read_text(encoding="utf-8")

    def read_bytes(self, relative_path: str) -> bytes:
        return self._resolve(relative_path).read_bytes()

    def create_folder(self, relative_path: str) -> Path:
        """Create a folder and its parents. Existing folders are fine."""
        path = self._resolve(relative_path)
        path.mkdir(parents=True, exist_ok=True)
        return path

    def write_bytes(self, relative_path: str, data: bytes) -> LocalFileRef:
        """
        Write content atomically, creating or replacing the file.

        Parent folders must already exist.
        """
        path = self._resolve(relative_path)

        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".vaultsync_", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        return self._make_ref(path)

    def write_text(self, relative_path: str, text: str) -> LocalFileRef:
        return self.write_bytes(relative_path, text.encode("utf-8"))

    def delete_file(self, relative_path: str) -> bool:
        """
        Delete a file and prune parent folders it leaves empty.

        Returns:
            True if file was removed, False if it didn't exist
        """
        path = self._resolve(relative_path)
        if not path.exists():
            return False

        path.unlink()
        self._cleanup_empty_dirs(path.parent)
        return True

    def _cleanup_empty_dirs(self, path: Path) -> None:
        """Remove empty directories up to the vault root."""
        while path != self.root and path.exists():
            try:
                path.rmdir()
                path = path.parent
            except OSError:
                # Directory not empty
                break
