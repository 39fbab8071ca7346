import os
import sys
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "changeme")
DEBUG = os.getenv("DJANGO_DEBUG", "False") == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

TESTING = (
    "PYTEST_CURRENT_TEST" in os.environ
    or "pytest" in sys.argv[0]
    or "test" in sys.argv
)

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "ledger_core.apps.LedgerCoreConfig",
]

# =============================================================================
# Database Configuration
# =============================================================================
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Ledger engine
# =============================================================================
# How many times a generated document number is retried after a
# (company, number) unique violation before DuplicateCodeError surfaces
LEDGER_NUMBERING_MAX_ATTEMPTS = int(os.getenv("LEDGER_NUMBERING_MAX_ATTEMPTS", "5"))
# Zero padding of the numeric part, e.g. 6 -> INV-2025-000001
LEDGER_NUMBER_PADDING = int(os.getenv("LEDGER_NUMBER_PADDING", "6"))
# Due date fallback when neither the request nor the counterparty has terms
LEDGER_DEFAULT_CREDIT_DAYS = int(os.getenv("LEDGER_DEFAULT_CREDIT_DAYS", "30"))

# =============================================================================
# Celery Configuration
# =============================================================================
REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

CELERY_BROKER_URL = REDIS_URL
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = TESTING
CELERY_BEAT_SCHEDULE = {
    "refresh-overdue-documents": {
        "task": "ledger_core.tasks.refresh_overdue_statuses",
        "schedule": 60 * 60,
    },
}

# =============================================================================
# Structured Logging Configuration
# =============================================================================
from .logging_config import get_logging_config  # noqa: E402

LOGGING = get_logging_config(DEBUG)
