"""
Credential store for Drive accounts.

Each account's OAuth tokens, and the user id the token broker knows it by,
live in one JSON document at ``settings.SECRETS_FILE`` rather than in the
database. The document maps ``google_drive:{email}`` to an entry holding
``access_token``, ``refresh_token``, ``expires_at`` (ISO-8601 or null) and
``user_id``. The file is rewritten whole on every change and kept at mode 600.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from django.conf import settings

if TYPE_CHECKING:
    from vaultsync.models import Account

logger = logging.getLogger(__name__)

CREDENTIAL_PREFIX = "google_drive"


class SecretsError(Exception):
    """Base exception for credential store operations."""

    pass


class SecretsFileError(SecretsError):
    """The credential file could not be read, parsed or written."""

    pass


def _credential_key(account: Account) -> str:
    return f"{CREDENTIAL_PREFIX}:{account.email}"


def _read_store() -> dict:
    """Return the whole credential document; a missing file is an empty store."""
    path = Path(settings.SECRETS_FILE)
    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Credential file {path} is not valid JSON: {e}")
        raise SecretsFileError(f"Credential file {path} is not valid JSON: {e}") from e
    except OSError as e:
        logger.error(f"Cannot read credential file {path}: {e}")
        raise SecretsFileError(f"Cannot read credential file {path}: {e}") from e


def _write_store(document: dict) -> None:
    """Replace the credential document atomically, owner read/write only."""
    path = Path(settings.SECRETS_FILE)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".secrets_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(document, f, indent=2)
            os.chmod(tmp_path, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_path, path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    except OSError as e:
        logger.error(f"Cannot write credential file {path}: {e}")
        raise SecretsFileError(f"Cannot write credential file {path}: {e}") from e


def _parse_expiry(value) -> datetime | None:
    # Unparseable expiries are dropped; AuthTokenManager then refreshes
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError):
        logger.warning(f"Ignoring malformed token expiry {value!r}")
        return None


def get_tokens(account: Account) -> dict | None:
    """
    Look up an account's stored credentials.

    Returns:
        Dict with access_token, refresh_token, user_id and expires_at
        (an aware datetime or None), or None if the account has no entry
    """
    entry = _read_store().get(_credential_key(account))
    if entry is None:
        return None

    return {
        "access_token": entry.get("access_token") or "",
        "refresh_token": entry.get("refresh_token") or "",
        "user_id": entry.get("user_id") or "",
        "expires_at": _parse_expiry(entry.get("expires_at")),
    }


def set_tokens(
    account: Account,
    access_token: str,
    refresh_token: str,
    expires_at: datetime | None = None,
    user_id: str | None = None,
) -> None:
    """
    Store an account's credentials, replacing its previous entry.

    ``user_id`` falls back to ``account.user_id``; entries of other accounts
    are left untouched.
    """
    document = _read_store()
    key = _credential_key(account)
    document[key] = {
        "user_id": user_id if user_id is not None else account.user_id,
        "access_token": access_token,
        "refresh_token": refresh_token,
        "expires_at": expires_at.isoformat() if expires_at else None,
    }
    _write_store(document)
    logger.info(f"Stored credentials for {key}")


def has_tokens(account: Account) -> bool:
    return _credential_key(account) in _read_store()
