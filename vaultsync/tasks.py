"""
Celery tasks for vault sync.

Failed items are not retried here; the next scheduled run picks them up
because their sync record did not advance.
"""

import logging
from datetime import timedelta

from celery import shared_task
from django.utils import timezone

logger = logging.getLogger(__name__)


def _summarize(result) -> dict:
    return {
        "direction": str(result.direction),
        "skipped": len(result.skipped),
        "upserted": len(result.upserted),
        "deleted": len(result.deleted),
        "failed": len(result.failures),
    }


@shared_task
def sync_vault_task(vault_id: int, direction: str = "push"):
    """
    Push or pull one vault.

    Args:
        vault_id: Vault ID to sync
        direction: "push" or "pull"
    """
    from vaultsync.models import Vault
    from vaultsync.sync import build_engine
    from vaultsync.sync.exceptions import SyncError

    try:
        vault = Vault.objects.select_related("account").get(
            id=vault_id, is_enabled=True, account__is_active=True
        )
    except Vault.DoesNotExist:
        logger.warning(f"Vault {vault_id} not found or disabled")
        return {"status": "skipped", "reason": "vault_not_found"}

    try:
        result = build_engine(vault, direction).run()
    except SyncError as e:
        logger.error(f"{direction} sync failed for vault {vault.name}: {e}")
        return {"status": "failed", "vault_id": vault_id, "error": str(e)}

    return {"status": "completed", "vault_id": vault_id, **_summarize(result)}


@shared_task
def sync_all_vaults(direction: str = "push"):
    """Schedule a sync task for every enabled vault."""
    from vaultsync.models import Vault

    vaults = Vault.objects.filter(is_enabled=True, account__is_active=True).exclude(
        root_folder_id=""
    )
    scheduled = 0

    for vault in vaults:
        sync_vault_task.delay(vault.id, direction)
        scheduled += 1
        logger.info(f"Scheduled {direction} sync for vault {vault.id}")

    logger.info(f"Scheduled {direction} syncs for {scheduled} vaults")
    return {"scheduled": scheduled}


@shared_task
def refresh_expiring_tokens(hours_threshold: int = 1):
    """
    Proactively refresh tokens expiring within threshold.

    Args:
        hours_threshold: Refresh tokens expiring within this many hours
    """
    from vaultsync import secrets
    from vaultsync.auth import AuthTokenManager
    from vaultsync.models import Account
    from vaultsync.sync.exceptions import AuthError

    threshold = timezone.now() + timedelta(hours=hours_threshold)
    results = {"refreshed": 0, "failed": 0, "skipped": 0}

    for account in Account.objects.filter(is_active=True):
        tokens = secrets.get_tokens(account)
        if not tokens or (tokens["expires_at"] and tokens["expires_at"] >= threshold):
            results["skipped"] += 1
            continue

        # Treat "expires within the threshold" as expired for this refresh
        manager = AuthTokenManager(account, clock=lambda: threshold)
        try:
            manager.ensure_valid_token()
            results["refreshed"] += 1
        except AuthError as e:
            results["failed"] += 1
            logger.warning(f"Token refresh failed for {account.email}: {e}")

    logger.info(f"Token refresh complete: {results}")
    return results
