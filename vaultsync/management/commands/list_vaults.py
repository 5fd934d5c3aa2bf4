"""
Django management command to list vaults and their sync status.
"""

import json
from datetime import datetime, timezone

from django.core.management.base import BaseCommand
from django.db.models import Count

from vaultsync import secrets
from vaultsync.models import Vault


class Command(BaseCommand):
    help = "List all vaults with their sync status"

    def add_arguments(self, parser):
        parser.add_argument(
            "--json",
            action="store_true",
            help="Output as JSON",
        )

    def handle(self, *args, **options):
        vaults = (
            Vault.objects.select_related("account")
            .annotate(record_count=Count("file_records"))
            .order_by("account__email", "name")
        )

        if not vaults.exists():
            self.stdout.write(self.style.WARNING("No vaults found."))
            self.stdout.write("\nRun 'python manage.py add_vault' to register one")
            return

        if options["json"]:
            self._output_json(vaults)
        else:
            self._output_table(vaults)

    def _get_token_status(self, vault: Vault) -> str:
        tokens = secrets.get_tokens(vault.account)
        if not tokens:
            return "missing"

        expires_at = tokens.get("expires_at")
        if not expires_at:
            return "unknown"

        if expires_at < datetime.now(timezone.utc):
            # Refreshed on next sync
            return "expired"
        return "valid"

    def _format_last_sync(self, vault: Vault) -> str:
        if not vault.last_sync_at:
            return "never"
        return vault.last_sync_at.strftime("%Y-%m-%d %H:%M")

    def _output_table(self, vaults):
        self.stdout.write("\n" + "=" * 90)
        self.stdout.write(
            f"{'ID':<4} {'Vault':<20} {'Email':<28} {'Root folder':<16} {'Files':<6} {'Last Sync':<16}"
        )
        self.stdout.write("=" * 90)

        for vault in vaults:
            self.stdout.write(
                f"{vault.id:<4} {vault.name:<20} {vault.account.email:<28} "
                f"{(vault.root_folder_name or '-'):<16} {vault.record_count:<6} "
                f"{self._format_last_sync(vault):<16}"
            )

        self.stdout.write("=" * 90)
        self.stdout.write(f"Total: {vaults.count()} vault(s)\n")

    def _output_json(self, vaults):
        data = []
        for vault in vaults:
            data.append({
                "id": vault.id,
                "name": vault.name,
                "email": vault.account.email,
                "local_path": vault.local_path,
                "root_folder": {"id": vault.root_folder_id, "name": vault.root_folder_name},
                "record_count": vault.record_count,
                "token_status": self._get_token_status(vault),
                "last_sync": self._format_last_sync(vault),
                "is_enabled": vault.is_enabled,
            })

        self.stdout.write(json.dumps(data, indent=2))
