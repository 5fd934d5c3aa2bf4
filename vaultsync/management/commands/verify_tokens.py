"""
Django management command to verify token validity for accounts.
"""

from django.core.management.base import BaseCommand

from vaultsync import secrets
from vaultsync.auth import AuthTokenManager
from vaultsync.models import Account
from vaultsync.sync.exceptions import AuthError


class Command(BaseCommand):
    help = "Check stored OAuth credentials, optionally refreshing expired ones"

    def add_arguments(self, parser):
        parser.add_argument(
            "email",
            nargs="?",
            help="Account email to verify (optional, verifies all if not specified)",
        )
        parser.add_argument(
            "--refresh",
            action="store_true",
            help="Attempt to refresh expired tokens",
        )

    def handle(self, *args, **options):
        accounts = Account.objects.filter(is_active=True).order_by("email")
        if options.get("email"):
            accounts = accounts.filter(email=options["email"])

        if not accounts.exists():
            self.stdout.write(self.style.WARNING("No active accounts found."))
            return

        results = {"valid": 0, "refreshed": 0, "expired": 0, "failed": 0, "no_tokens": 0}

        for account in accounts:
            self._verify_account(account, options["refresh"], results)

        self.stdout.write("\n" + "-" * 40)
        self.stdout.write(
            f"Valid: {results['valid']}  "
            f"Refreshed: {results['refreshed']}  "
            f"Expired: {results['expired']}  "
            f"Failed: {results['failed']}  "
            f"No tokens: {results['no_tokens']}"
        )

    def _verify_account(self, account: Account, do_refresh: bool, results: dict):
        prefix = f"[{account.id}] {account.email}"

        if not secrets.has_tokens(account):
            self.stdout.write(f"{prefix}: " + self.style.ERROR("NO TOKENS"))
            results["no_tokens"] += 1
            return

        manager = AuthTokenManager(account)
        credentials = manager.get_credentials()

        if not credentials.is_expired(manager.clock()):
            self.stdout.write(f"{prefix}: " + self.style.SUCCESS("VALID"))
            results["valid"] += 1
            return

        if not do_refresh:
            self.stdout.write(f"{prefix}: " + self.style.WARNING("EXPIRED (use --refresh)"))
            results["expired"] += 1
            return

        try:
            manager.ensure_valid_token()
            self.stdout.write(f"{prefix}: " + self.style.SUCCESS("REFRESHED"))
            results["refreshed"] += 1
        except AuthError as e:
            self.stdout.write(f"{prefix}: " + self.style.ERROR(f"FAILED - {e}"))
            results["failed"] += 1
