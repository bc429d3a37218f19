"""Django settings for the chess game library.

Values are read from the environment. A ``.env`` file in the working
directory is loaded first so local development needs no exported variables.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return int(value)


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "insecure-dev-key-change-me")
DEBUG = _env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",")
    if host.strip()
]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "library",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"

# SQLite by default; set DATABASE_ENGINE=django.db.backends.postgresql for
# production deployments.
DATABASES = {
    "default": {
        "ENGINE": os.getenv("DATABASE_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DATABASE_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.getenv("DATABASE_USER", ""),
        "PASSWORD": os.getenv("DATABASE_PASSWORD", ""),
        "HOST": os.getenv("DATABASE_HOST", ""),
        "PORT": os.getenv("DATABASE_PORT", ""),
    }
}

if DATABASES["default"]["ENGINE"] == "django.db.backends.sqlite3":
    # Import workers write from several threads: transactions take the write
    # lock when they begin and wait up to ``timeout`` seconds for it.
    DATABASES["default"]["OPTIONS"] = {"transaction_mode": "IMMEDIATE", "timeout": 20}
    DATABASES["default"]["TEST"] = {"NAME": str(BASE_DIR / "test_db.sqlite3")}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"

# Import pipeline
IMPORT_STORAGE_BACKEND = os.getenv("IMPORT_STORAGE_BACKEND", "filesystem")
IMPORT_STORAGE_ROOT = Path(os.getenv("IMPORT_STORAGE_ROOT", str(BASE_DIR / "var" / "imports")))
S3_BUCKET = os.getenv("S3_BUCKET", "")
S3_ENDPOINT = os.getenv("S3_ENDPOINT") or None
S3_REGION = os.getenv("S3_REGION", "us-east-1")

IMPORT_QUEUE_BACKEND = os.getenv("IMPORT_QUEUE_BACKEND", "inline")
IMPORT_WORKER_CONCURRENCY = _env_int("IMPORT_WORKER_CONCURRENCY", 2)

IMPORT_UPLOAD_MAX_BYTES = _env_int("IMPORT_UPLOAD_MAX_BYTES", 200 * 1024 * 1024)
IMPORT_MAX_GAMES_LIMIT = _env_int("IMPORT_MAX_GAMES_LIMIT", 100_000)
IMPORT_ERROR_MESSAGE_MAX_LENGTH = _env_int("IMPORT_ERROR_MESSAGE_MAX_LENGTH", 1000)
IMPORT_RECENT_ERRORS_LIMIT = _env_int("IMPORT_RECENT_ERRORS_LIMIT", 25)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "library": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
        "chess.pgn": {
            "handlers": ["console"],
            "level": "CRITICAL",
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "WARNING",
    },
}
