"""
Access token management.

Every sync obtains its bearer token through AuthTokenManager, which
refreshes expired credentials and persists the result to the secrets file
before any Drive call is made.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable

import requests
from django.conf import settings
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

if TYPE_CHECKING:
    from vaultsync.models import Account

from vaultsync import secrets
from vaultsync.sync.exceptions import AuthError

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"


@dataclass
class VaultCredentials:
    user_id: str
    access_token: str
    refresh_token: str
    access_expiry: datetime | None

    def is_expired(self, now: datetime) -> bool:
        # Credentials without a known expiry are always refreshed
        if self.access_expiry is None:
            return True
        return now >= self.access_expiry

    @classmethod
    def from_tokens(cls, tokens: dict) -> "VaultCredentials":
        return cls(
            user_id=tokens.get("user_id") or "",
            access_token=tokens.get("access_token") or "",
            refresh_token=tokens.get("refresh_token") or "",
            access_expiry=tokens.get("expires_at"),
        )


def _as_aware(value: datetime | None) -> datetime | None:
    # google-auth reports expiry as naive UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def refresh_with_google(credentials: VaultCredentials) -> VaultCredentials:
    """Refresh against Google's token endpoint using the stored refresh token."""
    if not credentials.refresh_token:
        raise AuthError("No refresh token available")

    google_credentials = Credentials(
        token=credentials.access_token or None,
        refresh_token=credentials.refresh_token,
        token_uri=GOOGLE_TOKEN_URI,
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
    )
    try:
        google_credentials.refresh(Request())
    except Exception as e:
        raise AuthError(f"Token refresh failed: {e}") from e

    return VaultCredentials(
        user_id=credentials.user_id,
        access_token=google_credentials.token or "",
        refresh_token=google_credentials.refresh_token or credentials.refresh_token,
        access_expiry=_as_aware(google_credentials.expiry),
    )


def refresh_with_broker(credentials: VaultCredentials) -> VaultCredentials:
    """
    Refresh through the token broker.

    The broker holds the OAuth client secret; it is asked for fresh tokens
    for ``user_id`` and answers with ``accessToken``, ``refreshToken`` and an
    ISO-8601 ``expiry``.
    """
    if not credentials.user_id:
        raise AuthError("No user id available for token broker refresh")

    try:
        response = requests.post(
            settings.VAULTSYNC_TOKEN_BROKER_URL,
            json={"userId": credentials.user_id},
            timeout=30,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        raise AuthError(f"Token broker refresh failed: {e}") from e

    expiry = data.get("expiry")
    try:
        access_expiry = (
            _as_aware(datetime.fromisoformat(expiry.replace("Z", "+00:00")))
            if expiry
            else None
        )
    except (ValueError, AttributeError) as e:
        raise AuthError(f"Token broker returned invalid expiry: {expiry!r}") from e

    return VaultCredentials(
        user_id=credentials.user_id,
        access_token=data.get("accessToken") or "",
        refresh_token=data.get("refreshToken") or credentials.refresh_token,
        access_expiry=access_expiry,
    )


def default_refresher() -> Callable[[VaultCredentials], VaultCredentials]:
    if getattr(settings, "VAULTSYNC_TOKEN_BROKER_URL", ""):
        return refresh_with_broker
    return refresh_with_google


class AuthTokenManager:
    """
    Hands out a valid access token for one account.

    Subscribers registered with ``subscribe`` are called with the new
    credentials after every successful refresh.
    """

    def __init__(
        self,
        account: Account,
        refresher: Callable[[VaultCredentials], VaultCredentials] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.account = account
        self.refresher = refresher or default_refresher()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._subscribers: list[Callable[[VaultCredentials], None]] = []

    def subscribe(self, callback: Callable[[VaultCredentials], None]) -> None:
        self._subscribers.append(callback)

    def get_credentials(self) -> VaultCredentials:
        tokens = secrets.get_tokens(self.account)
        if tokens is None:
            raise AuthError(f"No tokens found for account {self.account.email}")
        return VaultCredentials.from_tokens(tokens)

    def ensure_valid_token(self) -> str:
        """
        Return a non-expired access token, refreshing and persisting first
        if the stored one has expired.

        Raises:
            AuthError: If no credentials exist or the refresh does not
                yield a usable access token
        """
        credentials = self.get_credentials()

        if not credentials.is_expired(self.clock()):
            return credentials.access_token

        logger.info(f"Access token expired for {self.account.email}, refreshing")
        refreshed = self.refresher(credentials)

        if not refreshed.access_token:
            raise AuthError(f"Token refresh for {self.account.email} returned no access token")

        secrets.set_tokens(
            self.account,
            access_token=refreshed.access_token,
            refresh_token=refreshed.refresh_token,
            expires_at=refreshed.access_expiry,
            user_id=refreshed.user_id,
        )
        logger.info(f"Refreshed token for account {self.account.email}")

        for callback in self._subscribers:
            callback(refreshed)

        return refreshed.access_token
