# backend/core/wsgi.py
"""
WSGI config for the back-office API.

Environment variables are loaded by settings. Static files are handled by
WhiteNoise via middleware (see settings.MIDDLEWARE).
"""

import os
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")

from django.core.wsgi import get_wsgi_application  # noqa: E402

application = get_wsgi_application()
