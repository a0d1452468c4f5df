# backend/core/urls.py
from __future__ import annotations

from django.conf import settings
from django.conf.urls.static import static as dj_static
from django.contrib import admin
from django.http import HttpResponse
from django.urls import path, include

from rest_framework_simplejwt.views import (
    TokenObtainPairView, TokenRefreshView, TokenVerifyView
)

from accounts.views import MeView


def health(_request):
    return HttpResponse("ok", content_type="text/plain")


urlpatterns = [
    # Admin & health
    path("admin/", admin.site.urls),
    path("healthz", health),

    # JWT (SimpleJWT)
    path("api/auth/login/",   TokenObtainPairView.as_view(), name="auth-login"),
    path("api/auth/refresh/", TokenRefreshView.as_view(),    name="auth-refresh"),
    path("api/auth/verify/",  TokenVerifyView.as_view(),     name="auth-verify"),
    path("api/auth/me/",      MeView.as_view(),              name="auth-me"),

    # Primary API mountpoints
    path("api/", include(("agreements.urls", "agreements"), namespace="agreements")),
    path("api/financial-documents/", include(
        ("financial_documents.urls", "financial_documents"), namespace="financial_documents"
    )),
]

# Serve /media/ in DEBUG
if settings.DEBUG:
    urlpatterns += dj_static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
