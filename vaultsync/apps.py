from django.apps import AppConfig


class VaultSyncConfig(AppConfig):
    name = "vaultsync"
    default_auto_field = "django.db.models.BigAutoField"
