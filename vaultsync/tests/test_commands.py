"""Tests for management commands."""

import json
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from io import StringIO
from pathlib import Path
from unittest.mock import MagicMock, patch

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase, override_settings

from vaultsync import secrets
from vaultsync.auth import VaultCredentials
from vaultsync.models import Account, RootFolder, Vault
from vaultsync.sync import SyncResult
from vaultsync.sync.exceptions import AuthError

from .fakes import FakeDriveClient


class CommandTestCase(TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.secrets_file = Path(self.temp_dir) / ".secrets.json"
        self.vault_dir = Path(self.temp_dir) / "vault"
        self.vault_dir.mkdir()
        self.settings_override = override_settings(SECRETS_FILE=self.secrets_file)
        self.settings_override.enable()

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _vault(self, **kwargs):
        account, _ = Account.objects.get_or_create(
            email="test@example.com", defaults={"name": "Test User", "user_id": "user-1"}
        )
        defaults = {
            "name": "Notes",
            "local_path": str(self.vault_dir),
            "root_folder_id": "root-1",
            "root_folder_name": "Obsidian",
        }
        defaults.update(kwargs)
        return Vault.objects.create(account=account, **defaults)


class AddVaultCommandTests(CommandTestCase):
    def test_add_vault_creates_account_and_stores_tokens(self):
        out = StringIO()
        call_command(
            "add_vault",
            "test@example.com",
            "Notes",
            str(self.vault_dir),
            "--user-id", "user-1",
            "--root-folder-id", "root-1",
            "--refresh-token", "refresh",
            stdout=out,
        )

        vault = Vault.objects.get(name="Notes")
        self.assertEqual(vault.account.email, "test@example.com")
        self.assertEqual(vault.account.user_id, "user-1")
        self.assertEqual(vault.root_folder_id, "root-1")
        self.assertEqual(secrets.get_tokens(vault.account)["refresh_token"], "refresh")
        self.assertIn("Created vault", out.getvalue())

    def test_add_vault_missing_directory(self):
        with self.assertRaises(CommandError):
            call_command(
                "add_vault", "test@example.com", "Notes", str(self.vault_dir / "nope"),
                stdout=StringIO(),
            )

    def test_add_vault_duplicate_name(self):
        self._vault()
        with self.assertRaises(CommandError):
            call_command("add_vault", "test@example.com", "Notes", str(self.vault_dir), stdout=StringIO())

    def test_add_vault_without_tokens_warns(self):
        out = StringIO()
        call_command("add_vault", "test@example.com", "Notes", str(self.vault_dir), stdout=out)
        self.assertIn("No credentials stored yet", out.getvalue())


class ListVaultsCommandTests(CommandTestCase):
    def test_list_vaults_empty(self):
        out = StringIO()
        call_command("list_vaults", stdout=out)
        self.assertIn("No vaults found", out.getvalue())

    def test_list_vaults_table(self):
        self._vault()
        out = StringIO()
        call_command("list_vaults", stdout=out)
        output = out.getvalue()
        self.assertIn("Notes", output)
        self.assertIn("test@example.com", output)
        self.assertIn("never", output)

    def test_list_vaults_json(self):
        vault = self._vault()
        secrets.set_tokens(
            vault.account, "a", "r", expires_at=datetime.now(timezone.utc) + timedelta(hours=1)
        )

        out = StringIO()
        call_command("list_vaults", "--json", stdout=out)
        data = json.loads(out.getvalue())

        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]["name"], "Notes")
        self.assertEqual(data[0]["root_folder"], {"id": "root-1", "name": "Obsidian"})
        self.assertEqual(data[0]["token_status"], "valid")
        self.assertEqual(data[0]["record_count"], 0)


class SyncVaultCommandTests(CommandTestCase):
    @patch("vaultsync.management.commands.sync_vault.build_engine")
    def test_sync_vault_prints_summary(self, mock_build_engine):
        vault = self._vault()
        mock_build_engine.return_value.run.return_value = SyncResult(
            direction="push", upserted=["a.md", "b.md"], skipped=["c.md"]
        )

        out = StringIO()
        call_command("sync_vault", str(vault.id), "push", "--concurrency", "3", stdout=out)

        mock_build_engine.assert_called_once_with(vault, "push", concurrency_limit=3)
        self.assertIn("Upserted: 2", out.getvalue())
        self.assertIn("Skipped: 1", out.getvalue())

    @patch("vaultsync.management.commands.sync_vault.build_engine")
    def test_sync_vault_auth_failure(self, mock_build_engine):
        vault = self._vault()
        mock_build_engine.return_value.run.side_effect = AuthError("revoked")

        with self.assertRaises(CommandError):
            call_command("sync_vault", str(vault.id), "pull", stdout=StringIO())

    def test_sync_vault_not_found(self):
        with self.assertRaises(CommandError):
            call_command("sync_vault", "999", "push", stdout=StringIO())

    def test_sync_vault_invalid_concurrency(self):
        vault = self._vault()
        with self.assertRaises(CommandError):
            call_command("sync_vault", str(vault.id), "push", "--concurrency", "0", stdout=StringIO())


class RootFoldersCommandTests(CommandTestCase):
    def setUp(self):
        super().setUp()
        self.vault = self._vault(root_folder_id="", root_folder_name="")
        self.account = self.vault.account

    @patch("vaultsync.management.commands.root_folders.GoogleDriveClient")
    @patch("vaultsync.management.commands.root_folders.AuthTokenManager")
    def test_refresh_lists_top_level_folders(self, mock_manager_class, mock_client_class):
        client = FakeDriveClient()
        client.add_folder("root", "Obsidian", folder_id="f1")
        client.add_file("root", "loose.md")
        mock_client_class.return_value = client
        mock_manager_class.return_value.ensure_valid_token.return_value = "token"

        out = StringIO()
        call_command("root_folders", "test@example.com", "--refresh", stdout=out)

        self.assertEqual(
            list(RootFolder.objects.values_list("provider_folder_id", "name")), [("f1", "Obsidian")]
        )
        self.assertIn("Obsidian", out.getvalue())

    def test_select_root_folder(self):
        RootFolder.objects.create(account=self.account, provider_folder_id="f1", name="Obsidian")

        call_command(
            "root_folders", "test@example.com", "--select", str(self.vault.id), "f1", stdout=StringIO()
        )

        self.vault.refresh_from_db()
        self.assertEqual(self.vault.root_folder_id, "f1")
        self.assertEqual(self.vault.root_folder_name, "Obsidian")

    def test_select_unknown_folder(self):
        with self.assertRaises(CommandError):
            call_command(
                "root_folders", "test@example.com", "--select", str(self.vault.id), "nope",
                stdout=StringIO(),
            )

    def test_unknown_account(self):
        with self.assertRaises(CommandError):
            call_command("root_folders", "other@example.com", stdout=StringIO())


class VerifyTokensCommandTests(CommandTestCase):
    def setUp(self):
        super().setUp()
        self.account = Account.objects.create(email="test@example.com", name="Test", user_id="user-1")

    def test_no_tokens(self):
        out = StringIO()
        call_command("verify_tokens", stdout=out)
        self.assertIn("NO TOKENS", out.getvalue())

    def test_valid_token(self):
        secrets.set_tokens(
            self.account, "a", "r", expires_at=datetime.now(timezone.utc) + timedelta(hours=1)
        )
        out = StringIO()
        call_command("verify_tokens", "test@example.com", stdout=out)
        self.assertIn("VALID", out.getvalue())

    def test_expired_without_refresh(self):
        secrets.set_tokens(
            self.account, "a", "r", expires_at=datetime.now(timezone.utc) - timedelta(hours=1)
        )
        out = StringIO()
        call_command("verify_tokens", stdout=out)
        self.assertIn("EXPIRED", out.getvalue())

    @patch("vaultsync.auth.default_refresher")
    def test_expired_with_refresh(self, mock_default_refresher):
        secrets.set_tokens(self.account, "a", "r")
        mock_default_refresher.return_value = MagicMock(
            return_value=VaultCredentials(
                "user-1", "new", "r", datetime.now(timezone.utc) + timedelta(hours=1)
            )
        )

        out = StringIO()
        call_command("verify_tokens", "--refresh", stdout=out)

        self.assertIn("REFRESHED", out.getvalue())
        self.assertEqual(secrets.get_tokens(self.account)["access_token"], "new")
