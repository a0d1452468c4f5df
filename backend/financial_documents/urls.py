# backend/financial_documents/urls.py
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    InvoiceViewSet,
    PublicInvoicePdfView,
    PublicInvoiceView,
    PublicReceiptPdfView,
    PublicReceiptView,
    ReceiptViewSet,
    SavedBankDetailsViewSet,
)

app_name = "financial_documents"

router = DefaultRouter(trailing_slash="/?")
router.register(r"invoices", InvoiceViewSet, basename="invoices")
router.register(r"receipts", ReceiptViewSet, basename="receipts")
router.register(r"saved-bank-details", SavedBankDetailsViewSet, basename="saved-bank-details")

urlpatterns = [
    path("public/invoice/<uuid:uuid>/", PublicInvoiceView.as_view(), name="public-invoice"),
    path("public/invoice/<uuid:uuid>/pdf/", PublicInvoicePdfView.as_view(), name="public-invoice-pdf"),
    path("public/receipt/<uuid:uuid>/", PublicReceiptView.as_view(), name="public-receipt"),
    path("public/receipt/<uuid:uuid>/pdf/", PublicReceiptPdfView.as_view(), name="public-receipt-pdf"),
    path("", include(router.urls)),
]
