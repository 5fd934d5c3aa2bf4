"""
Django management command to list, refresh and select root folders.
"""

from django.core.management.base import BaseCommand, CommandError

from vaultsync.auth import AuthTokenManager
from vaultsync.models import Account, RootFolder, Vault
from vaultsync.providers.google_drive import GoogleDriveClient
from vaultsync.root_folders import refresh_root_folders
from vaultsync.sync.exceptions import AuthError


class Command(BaseCommand):
    help = "Show the candidate root folders of an account, or pick one for a vault"

    def add_arguments(self, parser):
        parser.add_argument("email", help="Google account email")
        parser.add_argument(
            "--refresh",
            action="store_true",
            help="Re-read the top-level folders from Google Drive",
        )
        parser.add_argument(
            "--select",
            nargs=2,
            metavar=("VAULT_ID", "FOLDER_ID"),
            help="Use FOLDER_ID as the root folder of VAULT_ID",
        )

    def handle(self, *args, **options):
        try:
            account = Account.objects.get(email=options["email"])
        except Account.DoesNotExist:
            raise CommandError(f"Account {options['email']} not found")

        if options["refresh"]:
            try:
                access_token = AuthTokenManager(account).ensure_valid_token()
            except AuthError as e:
                raise CommandError(f"Cannot reach Google Drive: {e}")
            refresh_root_folders(account, GoogleDriveClient(access_token))

        if options["select"]:
            vault_id, folder_id = options["select"]
            try:
                vault = Vault.objects.get(id=int(vault_id), account=account)
            except (ValueError, Vault.DoesNotExist):
                raise CommandError(f"Vault {vault_id} not found for {account.email}")
            try:
                folder = RootFolder.objects.get(account=account, provider_folder_id=folder_id)
            except RootFolder.DoesNotExist:
                raise CommandError(f"Unknown root folder {folder_id}; run with --refresh first")

            vault.select_root_folder(folder)
            self.stdout.write(self.style.SUCCESS(f"✓ Vault {vault.name} now syncs into {folder.name}"))
            return

        folders = RootFolder.objects.filter(account=account)
        if not folders.exists():
            self.stdout.write(self.style.WARNING("No root folders known. Run with --refresh."))
            return

        selected = set(account.vaults.values_list("root_folder_id", flat=True))
        for folder in folders:
            marker = "*" if folder.provider_folder_id in selected else " "
            self.stdout.write(f"{marker} {folder.provider_folder_id:<36} {folder.name}")
