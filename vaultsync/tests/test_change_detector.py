"""Tests for push/pull skip decisions."""

from datetime import datetime, timezone

from django.test import SimpleTestCase

from vaultsync.local_store import LocalFileRef
from vaultsync.providers.google_drive import DriveFile, to_epoch_ms
from vaultsync.sync.change_detector import should_pull, should_push
from vaultsync.sync.record_store import FileRecord

MODIFIED = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
MODIFIED_MS = to_epoch_ms(MODIFIED)


def remote(file_id="X"):
    return DriveFile(id=file_id, name="a.md", mime_type="text/markdown", modified_time=MODIFIED)


def local(mtime):
    return LocalFileRef(path="notes/a.md", extension="md", mtime=mtime, size=1)


class ShouldPushTests(SimpleTestCase):
    def test_no_record(self):
        self.assertTrue(should_push(None, 1000))

    def test_record_equal_to_mtime_is_skipped(self):
        self.assertFalse(should_push(FileRecord("X", 1000), 1000))

    def test_record_newer_than_mtime_is_skipped(self):
        self.assertFalse(should_push(FileRecord("X", 2000), 1000))

    def test_local_edit_after_record(self):
        self.assertTrue(should_push(FileRecord("X", 1000), 1001))


class ShouldPullTests(SimpleTestCase):
    def test_no_local_file(self):
        self.assertTrue(should_pull(FileRecord("X", MODIFIED_MS), remote(), None))

    def test_no_record(self):
        self.assertTrue(should_pull(None, remote(), local(MODIFIED_MS + 1)))

    def test_record_for_other_remote_object(self):
        self.assertTrue(should_pull(FileRecord("Y", MODIFIED_MS), remote("X"), local(MODIFIED_MS + 1)))

    def test_local_at_least_as_new_is_skipped(self):
        record = FileRecord("X", MODIFIED_MS)
        self.assertFalse(should_pull(record, remote(), local(MODIFIED_MS)))
        self.assertFalse(should_pull(record, remote(), local(MODIFIED_MS + 5)))

    def test_remote_newer_than_local(self):
        self.assertTrue(should_pull(FileRecord("X", MODIFIED_MS), remote(), local(MODIFIED_MS - 1)))

    def test_epoch_ms_conversion(self):
        self.assertEqual(to_epoch_ms(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)), 1000)
