"""
Base Django settings for Family Tree.

Layout
------
- Split settings: `base.py` (shared), `dev.py` (developer overrides), `prod.py` (hardened).
- `environ` is used to source configuration; a local `.env` is optional in dev.

API stack
---------
- Django 5.x + DRF + django-filter + drf-spectacular.
- SessionAuthentication with CSRF (kept enabled).
- Throttling: global (`anon`, `user`) and named scopes for auth flows and heavy
  endpoints: auth-*, imports, exports, messages, logs-read, names.

Trees & roles
-------------
- Each tree resolves a caller's role (visitor, member, editor, moderator,
  manager). Site administrators manage every tree.
- `REQUIRE_ADMIN_APPROVAL` holds new registrations until an administrator
  approves them; `ENABLE_REGISTRATION` turns self-registration on or off.

Observability
-------------
- `core.middleware.RequestIDLogMiddleware` logs a single structured line per request
  (with request id, user id, duration). `RequestSizeLimitMiddleware` rejects large
  unsafe requests early with a 413 JSON error.
- Domain events (logins, edits, configuration changes) are written to the
  `genealogy.SiteLog` table.

Security
--------
- Default cookie `SameSite=Lax`, `X_FRAME_OPTIONS=DENY`. Production hardening lives
  in `prod.py` (HSTS, SECURE_*). Keep CSRF on; do not disable.
"""

from pathlib import Path

import environ
from django.utils.translation import gettext_lazy as _

# ---------------------------------------------------------------------
# Paths & Env
# ---------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env = environ.Env(DEBUG=(bool, False))
env_file = BASE_DIR / ".env"
if env_file.exists():
    environ.Env.read_env(str(env_file))

# ---------------------------------------------------------------------
# Core
# ---------------------------------------------------------------------
SECRET_KEY = env("SECRET_KEY", default="dev-insecure-change-me")
DEBUG = env.bool("DEBUG", False)

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["127.0.0.1", "localhost", "testserver"])
CSRF_TRUSTED_ORIGINS = env.list(
    "CSRF_TRUSTED_ORIGINS",
    default=["http://127.0.0.1:8000", "http://localhost:8000"],
)

# ---------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------
INSTALLED_APPS = [
    # Django apps
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "django_filters",
    "drf_spectacular",

    # Local apps
    "accounts",
    "core",
    "genealogy",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    # Reject large requests before parsing
    "core.middleware.RequestSizeLimitMiddleware",
    "django.middleware.locale.LocaleMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    # Activate the signed-in user's `language` preference
    "core.middleware.UserLanguageMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # Observability: request-id + structured request log (one line per request)
    "core.middleware.RequestIDLogMiddleware",
]

ROOT_URLCONF = "familytree.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
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

WSGI_APPLICATION = "familytree.wsgi.application"

# ---------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    )
}

# ---------------------------------------------------------------------
# Password validation
# ---------------------------------------------------------------------
AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

# ---------------------------------------------------------------------
# Internationalization
# ---------------------------------------------------------------------
LANGUAGE_CODE = "en"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Locales a user may pick through the `language` preference.
LANGUAGES = [
    ("en", _("English")),
    ("en-gb", _("British English")),
    ("en-au", _("Australian English")),
    ("de", _("German")),
    ("fr", _("French")),
    ("es", _("Spanish")),
    ("pt", _("Portuguese")),
    ("nl", _("Dutch")),
    ("da", _("Danish")),
    ("is", _("Icelandic")),
    ("lt", _("Lithuanian")),
    ("pl", _("Polish")),
]
LOCALE_PATHS = [BASE_DIR / "locale"]

# ---------------------------------------------------------------------
# Static/Media
# ---------------------------------------------------------------------
STATIC_URL = "static/"
MEDIA_URL = "media/"
MEDIA_ROOT = BASE_DIR / "media"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ---------------------------------------------------------------------
# DRF & API Schema
# ---------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
        "rest_framework.filters.SearchFilter",
    ],
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 25,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": [
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
        "rest_framework.throttling.ScopedRateThrottle",
    ],
    "DEFAULT_THROTTLE_RATES": {
        "user": env("DRF_THROTTLE_RATE_USER", default="300/min"),
        "anon": env("DRF_THROTTLE_RATE_ANON", default="60/min"),
        "auth-login": env("DRF_THROTTLE_RATE_AUTH_LOGIN", default="10/min"),
        "auth-register": env("DRF_THROTTLE_RATE_AUTH_REGISTER", default="5/min"),
        "auth-verify": env("DRF_THROTTLE_RATE_AUTH_VERIFY", default="10/min"),
        "auth-password-change": env("DRF_THROTTLE_RATE_AUTH_PASSWORD_CHANGE", default="5/min"),
        "auth-password-reset": env("DRF_THROTTLE_RATE_AUTH_PASSWORD_RESET", default="5/min"),
        "imports": env("DRF_THROTTLE_RATE_IMPORTS", default="6/min"),
        "exports": env("DRF_THROTTLE_RATE_EXPORTS", default="10/min"),
        "messages": env("DRF_THROTTLE_RATE_MESSAGES", default="20/min"),
        "logs-read": env("DRF_THROTTLE_RATE_LOGS_READ", default="60/min"),
        "names": env("DRF_THROTTLE_RATE_NAMES", default="120/min"),
    },
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Family Tree API",
    "DESCRIPTION": "Genealogy record management: trees, individuals, families, sources and media.",
    "VERSION": "0.1.0",
    "SERVERS": [
        {"url": "http://127.0.0.1:8000", "description": "Local Dev"},
        {"url": "/", "description": "Current"},
    ],
    "OPERATION_ID_DUPLICATE_MODE": "suffix",
    "CONTACT": {"name": "Family Tree", "email": "dev@example.com"},
    "LICENSE": {"name": "GPL-3.0-or-later"},
    "SWAGGER_UI_SETTINGS": {"persistAuthorization": True},
    "ENUM_NAME_OVERRIDES": {
        "SexEnum": "genealogy.models.Sex",
        "TreeRoleEnum": "genealogy.models.TreeRole",
        "ChangeStatusEnum": "genealogy.models.ChangeStatus",
        "ChangeActionEnum": "genealogy.models.ChangeAction",
        "LogTypeEnum": "genealogy.models.LogType",
        "BlockLocationEnum": "genealogy.models.BlockLocation",
    },
}

# --- Accounts -------------------------------------------------------------------
ENABLE_REGISTRATION = env.bool("ENABLE_REGISTRATION", False)
# New registrations wait for an administrator (`verified_by_admin = "0"`).
REQUIRE_ADMIN_APPROVAL = env.bool("REQUIRE_ADMIN_APPROVAL", True)
DEFAULT_FROM_EMAIL = env("DEFAULT_FROM_EMAIL", default="webmaster@localhost")

# --- Concurrency ----------------------------------------------------------------
# When True, PUT/PATCH/DELETE on records require `If-Match` and return 428 if missing.
ENFORCE_IF_MATCH = env.bool("ENFORCE_IF_MATCH", False)

# --- Size/Limits ---------------------------------------------------------------
# Max body size for unsafe methods (bytes)
MAX_REQUEST_BYTES = env.int("MAX_REQUEST_BYTES", default=2_000_000)
# Max bytes for GEDCOM uploads
MAX_IMPORT_BYTES = env.int("MAX_IMPORT_BYTES", default=20_000_000)
# Max level-0 records accepted from a single GEDCOM file
IMPORT_MAX_RECORDS = env.int("IMPORT_MAX_RECORDS", default=200_000)
# Max records emitted by an export
EXPORT_MAX_ROWS = env.int("EXPORT_MAX_ROWS", default=200_000)

# ---------------------------------------------------------------------
# Security defaults (safe baseline; prod hardening in prod.py)
# ---------------------------------------------------------------------
SESSION_COOKIE_SAMESITE = "Lax"
CSRF_COOKIE_SAMESITE = "Lax"
X_FRAME_OPTIONS = "DENY"

# ---------------------------------------------------------------------
# Auth model
# ---------------------------------------------------------------------
AUTH_USER_MODEL = "accounts.User"

# ---------------------------------------------------------------------
# Logging (observability)
# ---------------------------------------------------------------------
# Structured console logging for request lines. The RequestIDFilter injects
# `request_id` (and blank request fields) even for logs outside HTTP contexts.
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": "core.logging.RequestIDFilter"},
    },
    "formatters": {
        "structured": {
            "format": "level=%(levelname)s logger=%(name)s request_id=%(request_id)s "
                      "method=%(method)s path=%(path)s status=%(status)s user_id=%(user_id)s duration_ms=%(duration_ms)s "
                      "message=%(message)s"
        },
        "simple": {
            "format": "level=%(levelname)s logger=%(name)s request_id=%(request_id)s message=%(message)s"
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["request_id"],
            "formatter": "structured",
        },
        "app_console": {
            "class": "logging.StreamHandler",
            "filters": ["request_id"],
            "formatter": "simple",
        },
    },
    "loggers": {
        # The middleware logs one line per request to this logger.
        "familytree.request": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "genealogy": {
            "handlers": ["app_console"],
            "level": env("GENEALOGY_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
        "accounts": {
            "handlers": ["app_console"],
            "level": env("ACCOUNTS_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
    },
}
