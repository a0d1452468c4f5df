# backend/core/settings_test.py
"""
Settings for the pytest run: in-memory SQLite, no SSL redirect, PDFs inline.
"""
import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DEBUG", "False")
os.environ.setdefault("SECURE_SSL_REDIRECT", "False")
os.environ["DATABASE_URL"] = "sqlite://:memory:"
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="agreements-media-"))

from .settings import *  # noqa: E402,F401,F403

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

PDF_GENERATION_ASYNC = False
AI_PROXY_URL = "http://ai-proxy.test"
AI_PROXY_SECRET = "test-proxy-secret"
INTERNAL_API_KEY = "test-internal-key"
FRONTEND_URL = "https://admin.example.test"

STORAGES = {
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
}

CELERY_TASK_ALWAYS_EAGER = True
