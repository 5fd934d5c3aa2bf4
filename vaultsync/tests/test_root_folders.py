"""Tests for root folder discovery."""

from django.test import TestCase

from vaultsync.models import Account, RootFolder
from vaultsync.root_folders import refresh_root_folders

from .fakes import FakeDriveClient


class RefreshRootFoldersTests(TestCase):
    def setUp(self):
        self.account = Account.objects.create(email="test@example.com", name="Test")
        self.client = FakeDriveClient()

    def test_replaces_stale_folders(self):
        RootFolder.objects.create(account=self.account, provider_folder_id="old", name="Old")
        RootFolder.objects.create(account=self.account, provider_folder_id="f1", name="Renamed")
        self.client.add_folder("root", "Obsidian", folder_id="f1")
        self.client.add_folder("root", "Archive", folder_id="f2")

        folders = refresh_root_folders(self.account, self.client)

        self.assertEqual([(f.provider_folder_id, f.name) for f in folders], [("f2", "Archive"), ("f1", "Obsidian")])

    def test_other_accounts_untouched(self):
        other = Account.objects.create(email="other@example.com", name="Other")
        RootFolder.objects.create(account=other, provider_folder_id="x", name="X")

        refresh_root_folders(self.account, self.client)

        self.assertTrue(RootFolder.objects.filter(account=other).exists())
