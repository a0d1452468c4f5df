# backend/agreements/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from agreements.views.agreements import AgreementViewSet
from agreements.views.documents import PartyDocumentView
from agreements.views.public import (
    PublicAgreementView,
    SignatureLinkPdfView,
    SignatureLinkView,
    SignByLinkView,
    VerifyAgreementPdfView,
    VerifyAgreementView,
)
from agreements.views.signatures import AgreementSignatureViewSet
from agreements.views.templates import AgreementTemplateViewSet

app_name = "agreements"

router = DefaultRouter(trailing_slash="/?")
router.register(r"agreements/templates", AgreementTemplateViewSet, basename="agreement-templates")
router.register(r"agreements/signatures", AgreementSignatureViewSet, basename="agreement-signatures")
router.register(r"agreements", AgreementViewSet, basename="agreements")

urlpatterns = [
    # Public (UUID) routes
    path("agreements/public/<uuid:link>/", PublicAgreementView.as_view(), name="public-agreement"),
    path("agreements/verify/<uuid:link>/", VerifyAgreementView.as_view(), name="verify-agreement"),
    path("agreements/verify/<uuid:link>/pdf/", VerifyAgreementPdfView.as_view(), name="verify-agreement-pdf"),
    path("agreements/signatures/link/<uuid:link>/", SignatureLinkView.as_view(), name="signature-link"),
    path("agreements/signatures/link/<uuid:link>/pdf/", SignatureLinkPdfView.as_view(), name="signature-link-pdf"),
    path("agreements/signatures/sign/<uuid:link>/", SignByLinkView.as_view(), name="sign-by-link"),

    path("agreements/parties/<int:party_id>/document/", PartyDocumentView.as_view(), name="party-document"),

    path("", include(router.urls)),
]
