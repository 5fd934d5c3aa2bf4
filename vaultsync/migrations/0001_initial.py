import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("email", models.EmailField(max_length=254, unique=True)),
                ("user_id", models.CharField(blank=True, help_text="Identifier sent to the token broker when refreshing.", max_length=255)),
                ("name", models.CharField(blank=True, max_length=255)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name="Vault",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("local_path", models.TextField()),
                ("root_folder_id", models.CharField(blank=True, max_length=255)),
                ("root_folder_name", models.CharField(blank=True, max_length=255)),
                ("is_enabled", models.BooleanField(default=True)),
                ("last_sync_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="vaults", to="vaultsync.account")),
            ],
            options={
                "unique_together": {("account", "name")},
            },
        ),
        migrations.CreateModel(
            name="RootFolder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("provider_folder_id", models.CharField(max_length=255)),
                ("name", models.CharField(max_length=255)),
                ("account", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="root_folders", to="vaultsync.account")),
            ],
            options={
                "ordering": ["name"],
                "unique_together": {("account", "provider_folder_id")},
            },
        ),
        migrations.CreateModel(
            name="VaultFileRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("path", models.TextField()),
                ("remote_id", models.CharField(max_length=255)),
                ("last_modified", models.BigIntegerField()),
                ("vault", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="file_records", to="vaultsync.vault")),
            ],
            options={
                "indexes": [models.Index(fields=["remote_id"], name="vaultsync_v_remote__3c1f0a_idx")],
                "unique_together": {("vault", "path")},
            },
        ),
        migrations.CreateModel(
            name="SyncRun",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("direction", models.CharField(choices=[("push", "Push"), ("pull", "Pull")], max_length=10)),
                ("started_at", models.DateTimeField(auto_now_add=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("status", models.CharField(choices=[("running", "Running"), ("completed", "Completed"), ("failed", "Failed"), ("partial", "Partial Success")], default="running", max_length=20)),
                ("files_skipped", models.PositiveIntegerField(default=0)),
                ("files_upserted", models.PositiveIntegerField(default=0)),
                ("files_deleted", models.PositiveIntegerField(default=0)),
                ("files_failed", models.PositiveIntegerField(default=0)),
                ("error_message", models.TextField(blank=True)),
                ("vault", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="runs", to="vaultsync.vault")),
            ],
            options={
                "ordering": ["-started_at"],
                "indexes": [
                    models.Index(fields=["vault", "-started_at"], name="vaultsync_s_vault_i_5b8e21_idx"),
                    models.Index(fields=["status"], name="vaultsync_s_status_9d7a44_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SyncEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("event_type", models.CharField(choices=[("file_upserted", "File Upserted"), ("file_deleted", "File Deleted"), ("error", "Error")], max_length=20)),
                ("operation", models.CharField(blank=True, max_length=20)),
                ("file_path", models.TextField(blank=True)),
                ("message", models.TextField(blank=True)),
                ("run", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="events", to="vaultsync.syncrun")),
            ],
            options={
                "ordering": ["timestamp"],
                "indexes": [
                    models.Index(fields=["run", "timestamp"], name="vaultsync_s_run_id_1e2f63_idx"),
                    models.Index(fields=["event_type"], name="vaultsync_s_event_t_7c0b92_idx"),
                ],
            },
        ),
    ]
