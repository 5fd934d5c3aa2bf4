"""
Django management command to register a vault for syncing.
"""

from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from vaultsync import secrets
from vaultsync.models import Account, Vault


class Command(BaseCommand):
    help = "Register a local vault and the Drive account it syncs with"

    def add_arguments(self, parser):
        parser.add_argument("email", help="Google account email")
        parser.add_argument("name", help="Vault name (also the Drive mirror folder name)")
        parser.add_argument("local_path", help="Path of the vault directory")
        parser.add_argument("--user-id", default="", help="User id known to the token broker")
        parser.add_argument("--root-folder-id", default="", help="Drive folder to mirror into")
        parser.add_argument("--root-folder-name", default="", help="Display name of the root folder")
        parser.add_argument("--access-token", help="Initial OAuth access token")
        parser.add_argument("--refresh-token", help="OAuth refresh token")

    def handle(self, *args, **options):
        local_path = Path(options["local_path"]).expanduser().resolve()
        if not local_path.is_dir():
            raise CommandError(f"Vault directory does not exist: {local_path}")

        with transaction.atomic():
            account, created = Account.objects.get_or_create(
                email=options["email"],
                defaults={"name": options["email"], "user_id": options["user_id"]},
            )
            if not created and options["user_id"] and account.user_id != options["user_id"]:
                account.user_id = options["user_id"]
                account.save(update_fields=["user_id", "updated_at"])

            if Vault.objects.filter(account=account, name=options["name"]).exists():
                raise CommandError(f"Vault {options['name']} already exists for {account.email}")

            vault = Vault.objects.create(
                account=account,
                name=options["name"],
                local_path=str(local_path),
                root_folder_id=options["root_folder_id"],
                root_folder_name=options["root_folder_name"] or options["root_folder_id"],
            )

        if options["refresh_token"]:
            # No expiry: the first sync refreshes before using the token
            secrets.set_tokens(
                account,
                access_token=options["access_token"] or "",
                refresh_token=options["refresh_token"],
            )
            self.stdout.write("Stored credentials in secrets file")
        elif not secrets.has_tokens(account):
            self.stdout.write(
                self.style.WARNING("No credentials stored yet; pass --refresh-token before syncing")
            )

        self.stdout.write(self.style.SUCCESS(f"✓ Created vault {vault.id}: {vault.name} -> {local_path}"))
        if not vault.root_folder_id:
            self.stdout.write("Pick a root folder with 'python manage.py root_folders --select'")
