# backend/nutrisnap/settings.py
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(key: str, default: bool = False) -> bool:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "nutrisnap-dev-secret-change-in-production")
DEBUG = env_bool("DJANGO_DEBUG", True)
ALLOWED_HOSTS = [h for h in os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",") if h]

INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "django.contrib.auth",
    "rest_framework",
    "core",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

ROOT_URLCONF = "nutrisnap.urls"
WSGI_APPLICATION = "nutrisnap.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": os.getenv("DB_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.getenv("DB_USER", ""),
        "PASSWORD": os.getenv("DB_PASSWORD", ""),
        "HOST": os.getenv("DB_HOST", ""),
        "PORT": os.getenv("DB_PORT", ""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")

MEDIA_ROOT = os.getenv("MEDIA_ROOT", str(BASE_DIR / "media"))
MEDIA_URL = "/media/"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [],
    "DEFAULT_PERMISSION_CLASSES": [],
    "UNAUTHENTICATED_USER": None,
}

# ---- scan pipeline ----
SCAN_QUEUE_SIZE = int(os.getenv("SCAN_QUEUE_SIZE", "100"))
SCAN_WORKERS = int(os.getenv("SCAN_WORKERS", "2"))
SCAN_PROCESSING_TIMEOUT = float(os.getenv("SCAN_PROCESSING_TIMEOUT", "120"))
SCAN_WORKERS_AUTOSTART = env_bool("SCAN_WORKERS_AUTOSTART", False)
IMAGE_RETENTION_DAYS = int(os.getenv("IMAGE_RETENTION_DAYS", "30"))

# ---- OCR ----
OCR_BACKEND = os.getenv("OCR_BACKEND", "tesseract")  # tesseract | gemini
OCR_LANGS = os.getenv("OCR_LANGS", "eng+ind")
OCR_MAX_DIMENSION = int(os.getenv("OCR_MAX_DIMENSION", "2200"))  # keep images reasonable
OCR_PREPROCESS = os.getenv("OCR_PREPROCESS", "cv2")  # cv2 | pil
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-1.5-flash")

# ---- OpenFoodFacts ----
OFF_BASE_URL = os.getenv("OFF_BASE_URL", "https://world.openfoodfacts.org/api/v0/product")
OFF_TIMEOUT = float(os.getenv("OFF_TIMEOUT", "10"))
OFF_USER_AGENT = os.getenv("OFF_USER_AGENT", "NutriSnap/1.0 (+https://nutrisnap.app)")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "core": {"level": LOG_LEVEL},
    },
}
