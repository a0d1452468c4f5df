# backend/core/settings.py
import os
from pathlib import Path
from datetime import timedelta

from django.core.exceptions import ImproperlyConfigured
from dotenv import load_dotenv, find_dotenv
import dj_database_url

# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────
def get_env_var(name: str, default: str | None = None, required: bool = False) -> str:
    val = os.getenv(name, default)
    if required and not val:
        raise ImproperlyConfigured(f"Missing required environment variable: {name}")
    return val  # type: ignore

def get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "t", "yes", "y")

# ──────────────────────────────────────────────────────────────────────────────
# Paths & .env
# ──────────────────────────────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent       # ~/backend
REPO_DIR = BASE_DIR.parent                               # repo root

explicit_env = BASE_DIR / ".env"
if explicit_env.exists():
    load_dotenv(dotenv_path=explicit_env, override=True)
else:
    discovered = find_dotenv(filename=".env", usecwd=True)
    if discovered:
        load_dotenv(discovered, override=True)

# ──────────────────────────────────────────────────────────────────────────────
# Security & Debug
# ──────────────────────────────────────────────────────────────────────────────
SECRET_KEY = get_env_var("SECRET_KEY", required=True)
DEBUG = get_bool("DEBUG", default=False)
ALLOWED_HOSTS = [h.strip() for h in get_env_var("ALLOWED_HOSTS", "localhost,127.0.0.1").split(",") if h.strip()]

# Public URLs (signature links, QR codes, CSRF/CORS defaults)
FRONTEND_URL = get_env_var("FRONTEND_URL", "http://localhost:5173").rstrip("/")
SITE_URL     = get_env_var("SITE_URL",     "http://127.0.0.1:8000").rstrip("/")

# Where the PDF printer reaches this backend (server-to-server)
INTERNAL_BASE_URL = get_env_var("INTERNAL_BASE_URL", SITE_URL).rstrip("/")
INTERNAL_API_KEY  = get_env_var("INTERNAL_API_KEY", "your-secret-internal-key")

CSRF_TRUSTED_ORIGINS = [
    SITE_URL,
    FRONTEND_URL,
] + [
    u.strip() for u in get_env_var("CSRF_TRUSTED_ORIGINS", "").split(",") if u.strip().startswith("http")
]

X_FRAME_OPTIONS = "SAMEORIGIN"
SECURE_REFERRER_POLICY = "strict-origin-when-cross-origin"

# ──────────────────────────────────────────────────────────────────────────────
# Installed Apps & Middleware
# ──────────────────────────────────────────────────────────────────────────────
INSTALLED_APPS = [
    # Django core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",

    # WhiteNoise "no static" app must be listed BEFORE staticfiles
    "whitenoise.runserver_nostatic",

    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "rest_framework_simplejwt.token_blacklist",
    "django_filters",

    # Local apps
    "core",
    "accounts",
    "agreements",
    "financial_documents",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "whitenoise.middleware.WhiteNoiseMiddleware",  # must be right after SecurityMiddleware
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "core.urls"
WSGI_APPLICATION = "core.wsgi.application"
ASGI_APPLICATION = "core.asgi.application"

AUTH_USER_MODEL = "accounts.User"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ──────────────────────────────────────────────────────────────────────────────
# Database
# ──────────────────────────────────────────────────────────────────────────────
SQLITE_ABS_PATH = str((BASE_DIR / "db.sqlite3").resolve())
DEFAULT_DB_URL = f"sqlite:///{SQLITE_ABS_PATH}"
DATABASE_URL = os.environ.get("DATABASE_URL", DEFAULT_DB_URL)

DATABASES = {
    "default": dj_database_url.parse(
        DATABASE_URL,
        conn_max_age=600,
        ssl_require=DATABASE_URL.startswith(("postgres://", "postgresql://")),
    )
}

# ──────────────────────────────────────────────────────────────────────────────
# Templates
# ──────────────────────────────────────────────────────────────────────────────
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS":    [BASE_DIR / "templates"],  # optional; safe if folder missing
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# ──────────────────────────────────────────────────────────────────────────────
# Static & Media
# ──────────────────────────────────────────────────────────────────────────────
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

STORAGES = {
    "staticfiles": {
        "BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage",
    },
    "default": {
        "BACKEND": "django.core.files.storage.FileSystemStorage",
    },
}

WHITENOISE_MANIFEST_STRICT = False
WHITENOISE_AUTOREFRESH = DEBUG

MEDIA_URL = "/media/"
MEDIA_ROOT = Path(get_env_var("MEDIA_ROOT", str(BASE_DIR / "media")))

# ──────────────────────────────────────────────────────────────────────────────
# DRF / JWT
# ──────────────────────────────────────────────────────────────────────────────
REST_FRAMEWORK = {
    # JWT-only API auth (avoids CSRF enforcement on unsafe methods like DELETE)
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": [
        "rest_framework.permissions.IsAuthenticated",
    ],
    "DEFAULT_FILTER_BACKENDS": ("django_filters.rest_framework.DjangoFilterBackend",),
    "DEFAULT_PAGINATION_CLASS": "core.pagination.DefaultPageNumberPagination",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME":  timedelta(minutes=int(get_env_var("ACCESS_TOKEN_LIFETIME", "60"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(get_env_var("REFRESH_TOKEN_LIFETIME", "7"))),
    "ROTATE_REFRESH_TOKENS":  True,
    "BLACKLIST_AFTER_ROTATION": True,
    "ALGORITHM":              "HS256",
    "SIGNING_KEY":            SECRET_KEY,
    "USER_ID_FIELD":          "id",
    "USER_ID_CLAIM":          "user_id",
    "AUTH_HEADER_TYPES":      ("Bearer",),
    "UPDATE_LAST_LOGIN":      True,
}

# ──────────────────────────────────────────────────────────────────────────────
# CORS
# ──────────────────────────────────────────────────────────────────────────────
_default_cors = f"{FRONTEND_URL},http://127.0.0.1:5173,http://localhost:5173"
CORS_ALLOWED_ORIGINS = [
    *[o.strip() for o in get_env_var("CORS_ALLOWED_ORIGINS", _default_cors).split(",") if o.strip()]
]
CORS_ALLOW_CREDENTIALS = True

from corsheaders.defaults import default_headers as _cors_default_headers  # type: ignore
CORS_ALLOW_HEADERS = list(_cors_default_headers) + ["authorization", "content-disposition"]

# Expose Content-Disposition so the browser can read filenames on PDF downloads
CORS_EXPOSE_HEADERS = ["Content-Disposition"]

# ──────────────────────────────────────────────────────────────────────────────
# Upload limits (party documents / receipt files)
# ──────────────────────────────────────────────────────────────────────────────
DATA_UPLOAD_MAX_MEMORY_SIZE = int(get_env_var("DATA_UPLOAD_MAX_MEMORY_SIZE", str(50 * 1024 * 1024)))  # 50MB
FILE_UPLOAD_MAX_MEMORY_SIZE = int(get_env_var("FILE_UPLOAD_MAX_MEMORY_SIZE", str(10 * 1024 * 1024)))  # 10MB
PARTY_DOCUMENT_MAX_SIZE     = int(get_env_var("PARTY_DOCUMENT_MAX_SIZE", str(10 * 1024 * 1024)))

# ──────────────────────────────────────────────────────────────────────────────
# Agreements: documents, PDF printer, AI editor
# ──────────────────────────────────────────────────────────────────────────────
DEFAULT_CITY = get_env_var("DEFAULT_CITY", "Phuket")
PRINT_TOKEN_TTL_MINUTES = int(get_env_var("PRINT_TOKEN_TTL_MINUTES", "5"))

PDF_GENERATION_ASYNC      = get_bool("PDF_GENERATION_ASYNC", default=False)
PDF_NAVIGATION_TIMEOUT_MS = int(get_env_var("PDF_NAVIGATION_TIMEOUT_MS", "60000"))
PDF_RENDER_DELAY_MS       = int(get_env_var("PDF_RENDER_DELAY_MS", "3000"))

AI_PROXY_URL    = get_env_var("AI_PROXY_URL", "").rstrip("/")
AI_PROXY_SECRET = get_env_var("AI_PROXY_SECRET", "")
AI_MODEL        = get_env_var("AI_MODEL", "gpt-4o")
AI_TIMEOUT      = int(get_env_var("AI_TIMEOUT", "300"))

# ──────────────────────────────────────────────────────────────────────────────
# Celery (PDF regeneration off the request path when PDF_GENERATION_ASYNC=1)
# ──────────────────────────────────────────────────────────────────────────────
REDIS_URL = get_env_var("REDIS_URL", "")
CELERY_BROKER_URL     = REDIS_URL or "redis://localhost:6379/0"
CELERY_RESULT_BACKEND = CELERY_BROKER_URL

# ──────────────────────────────────────────────────────────────────────────────
# Production Security (enable when DEBUG=False)
# ──────────────────────────────────────────────────────────────────────────────
if not DEBUG and get_bool("SECURE_SSL_REDIRECT", default=True):
    SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = "Lax"
    CSRF_COOKIE_SAMESITE = "Lax"

# ── LOGGING ───────────────────────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "console": {"class": "logging.StreamHandler"},
    },
    "root": {"handlers": ["console"], "level": "INFO"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "accounts": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "agreements": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "financial_documents": {"handlers": ["console"], "level": "INFO", "propagate": False},
    },
}
