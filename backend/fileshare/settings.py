from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import dj_database_url
import environ

BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(
    FILESHARE_DEBUG=(bool, False),
)

DEBUG = env("FILESHARE_DEBUG")
SECRET_KEY = env("FILESHARE_SECRET_KEY", default="insecure-dev-key")

ALLOWED_HOSTS = [h.strip() for h in env("FILESHARE_ALLOWED_HOSTS", default="localhost,127.0.0.1").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "drf_spectacular_sidecar",
    "apps.core.apps.CoreConfig",
    "apps.audit.apps.AuditConfig",
    "apps.files.apps.FilesConfig",
    "apps.shares.apps.SharesConfig",
    "apps.api",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "apps.audit.middleware.AuditContextMiddleware",
]

ROOT_URLCONF = "fileshare.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

WSGI_APPLICATION = "fileshare.wsgi.application"

DATABASES = {
    "default": dj_database_url.parse(
        env("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=60,
    )
}

AUTHENTICATION_BACKENDS = (
    "apps.core.auth.EmailBackend",
    "django.contrib.auth.backends.ModelBackend",
)

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = env("FILESHARE_STATIC_ROOT", default=str(BASE_DIR / "staticfiles"))

MEDIA_URL = "/media/"
MEDIA_ROOT = env("FILESHARE_MEDIA_ROOT", default=str(BASE_DIR / "media"))

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

CORS_ALLOWED_ORIGINS = [o.strip() for o in env("FILESHARE_CORS_ALLOWED_ORIGINS", default="").split(",") if o.strip()]
CSRF_TRUSTED_ORIGINS = [o.strip() for o in env("FILESHARE_CSRF_TRUSTED_ORIGINS", default="").split(",") if o.strip()]
# The SPA sends the session cookie cross-origin for unlock continuity.
CORS_ALLOW_CREDENTIALS = True

SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = env("FILESHARE_SESSION_COOKIE_SAMESITE", default="Lax")
SESSION_COOKIE_SECURE = env.bool("FILESHARE_SESSION_COOKIE_SECURE", default=False)

CACHES = {
    "default": env.cache("FILESHARE_CACHE_URL", default="locmemcache://"),
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "apps.api.pagination.EnvelopeCursorPagination",
    "PAGE_SIZE": env.int("FILESHARE_PAGE_SIZE", default=20),
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=env.int("FILESHARE_ACCESS_TOKEN_MINUTES", default=30)),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=env.int("FILESHARE_REFRESH_TOKEN_DAYS", default=7)),
    "AUTH_HEADER_TYPES": ("Bearer",),
}

# Base URL used to build absolute file URLs (optional; defaults to the request host).
FILESHARE_PUBLIC_BASE_URL = env("FILESHARE_PUBLIC_BASE_URL", default="").strip().rstrip("/")

# Unlock grants never outlive the link; this caps them further.
FILESHARE_UNLOCK_TTL_SECONDS = env.int("FILESHARE_UNLOCK_TTL_SECONDS", default=86400)

# Unlock attempts per (link, session) or per client IP when there is no session.
FILESHARE_UNLOCK_RATE = env("FILESHARE_UNLOCK_RATE", default="10/min")
# Per-link cap per client IP, whatever session cookie it presents.
FILESHARE_UNLOCK_IP_RATE = env("FILESHARE_UNLOCK_IP_RATE", default="30/min")

FILESHARE_BUNDLE_CHUNK_SIZE = env.int("FILESHARE_BUNDLE_CHUNK_SIZE", default=256 * 1024)

# Trust X-Forwarded-For only when REMOTE_ADDR is one of these proxies.
FILESHARE_TRUST_X_FORWARDED_FOR = env.bool("FILESHARE_TRUST_X_FORWARDED_FOR", default=False)
FILESHARE_TRUSTED_PROXY_CIDRS = env("FILESHARE_TRUSTED_PROXY_CIDRS", default="").strip()

FILESHARE_LOG_LEVEL = env("FILESHARE_LOG_LEVEL", default="INFO").upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "apps": {"handlers": ["console"], "level": FILESHARE_LOG_LEVEL, "propagate": False},
        "django.request": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}

SPECTACULAR_SETTINGS = {
    "TITLE": "FileShare API",
    "DESCRIPTION": "File uploads and password/expiry/download-capped share links.",
    "VERSION": "0.1",
    "SERVE_PERMISSIONS": ["rest_framework.permissions.IsAuthenticated"],
    "SWAGGER_UI_DIST": "SIDECAR",
    "SWAGGER_UI_FAVICON_HREF": "SIDECAR",
    "REDOC_DIST": "SIDECAR",
}
