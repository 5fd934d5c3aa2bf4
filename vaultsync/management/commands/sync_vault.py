"""
Django management command to push or pull a vault.
"""

from django.core.management.base import BaseCommand, CommandError

from vaultsync.models import SyncDirection, Vault
from vaultsync.sync import SyncError, build_engine


class Command(BaseCommand):
    help = "Push a vault to Google Drive or pull it back"

    def add_arguments(self, parser):
        parser.add_argument(
            "vault_id",
            type=int,
            help="Vault ID to sync",
        )
        parser.add_argument(
            "direction",
            choices=SyncDirection.values,
            help="push (local -> Drive) or pull (Drive -> local)",
        )
        parser.add_argument(
            "--concurrency",
            type=int,
            default=None,
            help="Maximum concurrent transfers per batch (default: VAULTSYNC_CONCURRENCY_LIMIT)",
        )

    def handle(self, *args, **options):
        vault_id = options["vault_id"]
        direction = options["direction"]

        try:
            vault = Vault.objects.select_related("account").get(id=vault_id)
        except Vault.DoesNotExist:
            raise CommandError(f"Vault {vault_id} not found")

        concurrency = options["concurrency"]
        if concurrency is not None and concurrency < 1:
            raise CommandError("--concurrency must be at least 1")

        self.stdout.write(f"Starting {direction} sync of vault: {vault.name}")

        engine = build_engine(vault, direction, concurrency_limit=concurrency)
        try:
            result = engine.run()
        except SyncError as e:
            self.stdout.write(self.style.ERROR(f"\n✗ Sync failed: {e}"))
            raise CommandError(f"Sync failed: {e}")

        self.stdout.write(
            self.style.SUCCESS(
                f"\n✓ Sync completed:\n"
                f"  - Upserted: {len(result.upserted)}\n"
                f"  - Deleted: {len(result.deleted)}\n"
                f"  - Skipped: {len(result.skipped)}\n"
                f"  - Failed: {len(result.failures)}"
            )
        )

        if result.failures:
            self.stdout.write(
                self.style.WARNING(f"\n⚠ Encountered {len(result.failures)} error(s) during sync")
            )
            for i, failure in enumerate(result.failures[:5], 1):
                self.stdout.write(f"  {i}. {failure}")
            if len(result.failures) > 5:
                self.stdout.write(f"  ... and {len(result.failures) - 5} more")
