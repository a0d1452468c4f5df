# backend/core/asgi.py
"""
ASGI config (HTTP only). Production runs the WSGI application; this is kept
for ASGI servers such as uvicorn.
"""

import os
from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "core.settings")

application = get_asgi_application()
