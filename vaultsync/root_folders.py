"""
Discovery of candidate root folders for an account.
"""

import logging

from django.db import transaction

from vaultsync.models import Account, RootFolder
from vaultsync.providers.google_drive import GoogleDriveClient

logger = logging.getLogger(__name__)


def refresh_root_folders(account: Account, client: GoogleDriveClient) -> list[RootFolder]:
    """
    Replace the account's candidate root folders with the folders currently
    at the top level of its Drive.

    Returns:
        The stored RootFolder rows, ordered by name
    """
    folders = client.list_folders("root")

    with transaction.atomic():
        RootFolder.objects.filter(account=account).exclude(
            provider_folder_id__in=[f.id for f in folders]
        ).delete()
        for folder in folders:
            RootFolder.objects.update_or_create(
                account=account,
                provider_folder_id=folder.id,
                defaults={"name": folder.name},
            )

    logger.info(f"Found {len(folders)} root folder(s) for {account.email}")
    return list(RootFolder.objects.filter(account=account))
