"""
Django settings for the vaultsync project.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "insecure-dev-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost").split(",")

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "vaultsync.apps.VaultSyncConfig",
]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("VAULTSYNC_DB", BASE_DIR / "db.sqlite3"),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = "UTC"

# OAuth tokens live outside the database
SECRETS_FILE = os.environ.get("VAULTSYNC_SECRETS_FILE", BASE_DIR / ".secrets.json")

GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET", "")

# When set, access tokens are refreshed through this broker instead of Google
VAULTSYNC_TOKEN_BROKER_URL = os.environ.get("VAULTSYNC_TOKEN_BROKER_URL", "")

VAULTSYNC_CONCURRENCY_LIMIT = int(os.environ.get("VAULTSYNC_CONCURRENCY_LIMIT", "5"))
VAULTSYNC_EXPORT_MIME_TYPE = "text/markdown"

CELERY_BROKER_URL = os.environ.get("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_TASK_IGNORE_RESULT = True

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "{asctime} {levelname} {name} {message}",
            "style": "{",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "vaultsync": {
            "handlers": ["console"],
            "level": os.environ.get("VAULTSYNC_LOG_LEVEL", "INFO"),
        },
        "googleapiclient.discovery_cache": {
            "level": "ERROR",
        },
    },
}
