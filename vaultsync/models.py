from django.db import models


class SyncDirection(models.TextChoices):
    PUSH = "push", "Push"
    PULL = "pull", "Pull"


class Account(models.Model):
    """
    A Google Drive identity.

    OAuth tokens are stored externally in the secrets file,
    not in the database. See vaultsync/secrets.py.
    """

    email = models.EmailField(unique=True)
    user_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Identifier sent to the token broker when refreshing.",
    )
    name = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or self.email


class RootFolder(models.Model):
    """A Drive folder the user may pick as the parent of a vault's mirror folder."""

    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="root_folders"
    )
    provider_folder_id = models.CharField(max_length=255)
    name = models.CharField(max_length=255)

    class Meta:
        unique_together = [["account", "provider_folder_id"]]
        ordering = ["name"]

    def __str__(self):
        return self.name


class Vault(models.Model):
    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="vaults"
    )
    # Also the name of the mirror folder under the selected root folder
    name = models.CharField(max_length=255)
    local_path = models.TextField()
    root_folder_id = models.CharField(max_length=255, blank=True)
    root_folder_name = models.CharField(max_length=255, blank=True)
    is_enabled = models.BooleanField(default=True)
    last_sync_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = [["account", "name"]]

    def __str__(self):
        return f"{self.name} ({self.account})"

    def select_root_folder(self, folder: RootFolder) -> None:
        self.root_folder_id = folder.provider_folder_id
        self.root_folder_name = folder.name
        self.save(update_fields=["root_folder_id", "root_folder_name", "updated_at"])


class VaultFileRecord(models.Model):
    """
    One sync record entry: a vault-relative path mapped to the remote
    object it was last synchronized with.
    """

    vault = models.ForeignKey(
        Vault, on_delete=models.CASCADE, related_name="file_records"
    )
    path = models.TextField()
    remote_id = models.CharField(max_length=255)
    # Milliseconds since the epoch
    last_modified = models.BigIntegerField()

    class Meta:
        unique_together = [["vault", "path"]]
        indexes = [
            models.Index(fields=["remote_id"], name="vaultsync_v_remote__3c1f0a_idx"),
        ]

    def __str__(self):
        return f"{self.path} -> {self.remote_id}"


class SyncRun(models.Model):
    """
    Records each sync invocation for audit and debugging.
    """

    vault = models.ForeignKey(Vault, on_delete=models.CASCADE, related_name="runs")
    direction = models.CharField(max_length=10, choices=SyncDirection.choices)
    started_at = models.DateTimeField(auto_now_add=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=[
            ("running", "Running"),
            ("completed", "Completed"),
            ("failed", "Failed"),
            ("partial", "Partial Success"),
        ],
        default="running",
    )

    files_skipped = models.PositiveIntegerField(default=0)
    files_upserted = models.PositiveIntegerField(default=0)
    files_deleted = models.PositiveIntegerField(default=0)
    files_failed = models.PositiveIntegerField(default=0)

    error_message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["vault", "-started_at"], name="vaultsync_s_vault_i_5b8e21_idx"),
            models.Index(fields=["status"], name="vaultsync_s_status_9d7a44_idx"),
        ]
        ordering = ["-started_at"]

    def __str__(self):
        return f"{self.get_direction_display()} of {self.vault.name} - {self.get_status_display()}"


class SyncEvent(models.Model):
    """
    Individual outcomes during a sync run.
    """

    run = models.ForeignKey(SyncRun, on_delete=models.CASCADE, related_name="events")
    timestamp = models.DateTimeField(auto_now_add=True)

    event_type = models.CharField(
        max_length=20,
        choices=[
            ("file_upserted", "File Upserted"),
            ("file_deleted", "File Deleted"),
            ("error", "Error"),
        ],
    )
    operation = models.CharField(max_length=20, blank=True)
    file_path = models.TextField(blank=True)
    message = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=["run", "timestamp"], name="vaultsync_s_run_id_1e2f63_idx"),
            models.Index(fields=["event_type"], name="vaultsync_s_event_t_7c0b92_idx"),
        ]
        ordering = ["timestamp"]

    def __str__(self):
        return f"{self.get_event_type_display()}: {self.file_path or 'N/A'}"
