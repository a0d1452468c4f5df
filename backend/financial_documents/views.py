# backend/financial_documents/views.py
from __future__ import annotations

import logging

import django_filters
from django.conf import settings
from django.db.models import Count, Q
from django.http import FileResponse, HttpResponse
from django.shortcuts import get_object_or_404
from django.utils.crypto import constant_time_compare

from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import BadRequest
from core.permissions import ActionPermission

from .models import Invoice, Receipt, SavedBankDetails
from .serializers import (
    InvoiceDetailSerializer,
    InvoiceListSerializer,
    InvoiceWriteSerializer,
    ReceiptDetailSerializer,
    ReceiptListSerializer,
    ReceiptWriteSerializer,
    SavedBankDetailsSerializer,
)
from .services import invoices as invoice_service
from .services import receipts as receipt_service
from .services.pdf import ensure_document_pdf
from .services.rendering import render_invoice_document, render_receipt_document

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"


def document_pdf_response(kind: str, document, number: str):
    try:
        document = ensure_document_pdf(kind, document)
    except Exception:
        logger.exception("PDF generation failed (%s id=%s)", kind, document.pk)
        return Response({"detail": "Error generating PDF"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return FileResponse(document.pdf_file.open("rb"), content_type="application/pdf", filename=f"{number}.pdf")


def check_internal_key(request):
    key = request.query_params.get("internalKey") or ""
    if not constant_time_compare(key, settings.INTERNAL_API_KEY):
        raise PermissionDenied("Access denied")


class InvoiceFilter(django_filters.FilterSet):
    agreement_id = django_filters.NumberFilter(field_name="agreement_id")
    date_from = django_filters.DateFilter(field_name="invoice_date", lookup_expr="gte")
    date_to = django_filters.DateFilter(field_name="invoice_date", lookup_expr="lte")

    class Meta:
        model = Invoice
        fields = ["status", "agreement_id"]


class ReceiptFilter(django_filters.FilterSet):
    invoice_id = django_filters.NumberFilter(field_name="invoice_id")
    agreement_id = django_filters.NumberFilter(field_name="agreement_id")

    class Meta:
        model = Receipt
        fields = ["status", "payment_method", "invoice_id", "agreement_id"]


# ──────────────────────────────────────────────────────────────────────────────
# Saved bank details
# ──────────────────────────────────────────────────────────────────────────────

class SavedBankDetailsViewSet(viewsets.ModelViewSet):
    serializer_class = SavedBankDetailsSerializer
    permission_classes = [ActionPermission]
    queryset = SavedBankDetails.objects.all()
    pagination_class = None
    lookup_value_regex = r"\d+"

    action_permissions = {
        "list": "financial_documents.view_savedbankdetails",
        "retrieve": "financial_documents.view_savedbankdetails",
        "create": "financial_documents.add_savedbankdetails",
        "update": "financial_documents.change_savedbankdetails",
        "partial_update": "financial_documents.change_savedbankdetails",
        "destroy": "financial_documents.delete_savedbankdetails",
    }

    def perform_create(self, serializer):
        serializer.save(created_by=self.request.user)


# ──────────────────────────────────────────────────────────────────────────────
# Invoices
# ──────────────────────────────────────────────────────────────────────────────

class InvoiceViewSet(viewsets.ModelViewSet):
    permission_classes = [ActionPermission]
    lookup_value_regex = r"\d+"
    filter_backends = [django_filters.rest_framework.DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = InvoiceFilter
    search_fields = ["invoice_number", "from_company_name", "from_individual_name", "to_company_name", "to_individual_name"]
    ordering_fields = ["created_at", "invoice_date", "total_amount", "status"]
    ordering = ["-created_at"]

    action_permissions = {
        "list": "financial_documents.view_invoice",
        "retrieve": "financial_documents.view_invoice",
        "by_agreement": "financial_documents.view_invoice",
        "items_payment_status": "financial_documents.view_invoice",
        "pdf": "financial_documents.view_invoice",
        "create": "financial_documents.add_invoice",
        "update": "financial_documents.change_invoice",
        "partial_update": "financial_documents.change_invoice",
        "destroy": "financial_documents.delete_invoice",
    }

    def get_permissions(self):
        if self.action == "internal":
            return [AllowAny()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Invoice.objects.alive().select_related("agreement")
        if self.action in ("list", "by_agreement"):
            return qs.annotate(
                items_count=Count("items", distinct=True),
                receipts_count=Count("receipts", filter=Q(receipts__deleted_at__isnull=True), distinct=True),
            )
        return qs.prefetch_related("items")

    def get_serializer_class(self):
        if self.action in ("list", "by_agreement"):
            return InvoiceListSerializer
        if self.action in ("create", "update", "partial_update"):
            return InvoiceWriteSerializer
        return InvoiceDetailSerializer

    def _detail(self, invoice, status_code=status.HTTP_200_OK):
        fresh = Invoice.objects.select_related("agreement").prefetch_related("items").get(pk=invoice.pk)
        return Response(InvoiceDetailSerializer(fresh, context=self.get_serializer_context()).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = InvoiceWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        invoice = invoice_service.create_invoice(serializer.validated_data, user=request.user)
        return self._detail(invoice, status_code=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        invoice = self.get_object()
        serializer = InvoiceWriteSerializer(invoice, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        invoice = invoice_service.update_invoice(invoice, serializer.validated_data, user=request.user)
        return self._detail(invoice)

    def destroy(self, request, *args, **kwargs):
        invoice = self.get_object()
        delete_receipts = (request.query_params.get("delete_receipts") or "").lower() == "true"
        invoice_service.delete_invoice(invoice, delete_receipts=delete_receipts)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=["get"], url_path=r"by-agreement/(?P<agreement_id>\d+)")
    def by_agreement(self, request, agreement_id=None):
        qs = self.get_queryset().filter(agreement_id=agreement_id).order_by("-created_at")
        return Response(InvoiceListSerializer(qs, many=True).data)

    @action(detail=True, methods=["get"], url_path="items-payment-status")
    def items_payment_status(self, request, pk=None):
        return Response(invoice_service.items_payment_status(self.get_object()))

    @action(detail=True, methods=["get"], url_path="pdf")
    def pdf(self, request, pk=None):
        invoice = self.get_object()
        return document_pdf_response("invoice", invoice, invoice.invoice_number)

    @action(detail=True, methods=["get"], url_path="internal")
    def internal(self, request, pk=None):
        check_internal_key(request)
        invoice = get_object_or_404(Invoice.objects.alive().select_related("agreement__property"), pk=pk)
        return HttpResponse(render_invoice_document(invoice), content_type=HTML_CONTENT_TYPE)


# ──────────────────────────────────────────────────────────────────────────────
# Receipts
# ──────────────────────────────────────────────────────────────────────────────

class ReceiptViewSet(viewsets.ModelViewSet):
    permission_classes = [ActionPermission]
    parser_classes = (JSONParser, MultiPartParser, FormParser)
    lookup_value_regex = r"\d+"
    filter_backends = [django_filters.rest_framework.DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = ReceiptFilter
    search_fields = ["receipt_number", "invoice__invoice_number", "notes"]
    ordering_fields = ["created_at", "receipt_date", "amount_paid"]
    ordering = ["-created_at"]

    action_permissions = {
        "list": "financial_documents.view_receipt",
        "retrieve": "financial_documents.view_receipt",
        "pdf": "financial_documents.view_receipt",
        "create": "financial_documents.add_receipt",
        "update": "financial_documents.change_receipt",
        "partial_update": "financial_documents.change_receipt",
        "upload_files": "financial_documents.change_receipt",
        "destroy": "financial_documents.delete_receipt",
    }

    def get_permissions(self):
        if self.action == "internal":
            return [AllowAny()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Receipt.objects.alive().select_related("invoice", "agreement")
        if self.action == "list":
            return qs.annotate(files_count=Count("files"))
        return qs.prefetch_related("files")

    def get_serializer_class(self):
        if self.action == "list":
            return ReceiptListSerializer
        if self.action in ("create", "update", "partial_update"):
            return ReceiptWriteSerializer
        return ReceiptDetailSerializer

    def _detail(self, receipt, status_code=status.HTTP_200_OK):
        fresh = Receipt.objects.select_related("invoice", "agreement").prefetch_related("files").get(pk=receipt.pk)
        return Response(ReceiptDetailSerializer(fresh, context=self.get_serializer_context()).data, status=status_code)

    def create(self, request, *args, **kwargs):
        serializer = ReceiptWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        receipt = receipt_service.create_receipt(serializer.validated_data, user=request.user)
        return self._detail(receipt, status_code=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        receipt = self.get_object()
        serializer = ReceiptWriteSerializer(receipt, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        receipt = receipt_service.update_receipt(receipt, serializer.validated_data, user=request.user)
        return self._detail(receipt)

    def destroy(self, request, *args, **kwargs):
        receipt_service.delete_receipt(self.get_object())
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="upload-files", parser_classes=[MultiPartParser, FormParser])
    def upload_files(self, request, pk=None):
        receipt = self.get_object()
        files = request.FILES.getlist("files")
        if not files:
            raise BadRequest("No files uploaded")
        uploaded = receipt_service.upload_receipt_files(receipt, files)
        return Response({"detail": f"Files uploaded: {uploaded}", "uploaded_count": uploaded})

    @action(detail=True, methods=["get"], url_path="pdf")
    def pdf(self, request, pk=None):
        receipt = self.get_object()
        return document_pdf_response("receipt", receipt, receipt.receipt_number)

    @action(detail=True, methods=["get"], url_path="internal")
    def internal(self, request, pk=None):
        check_internal_key(request)
        receipt = get_object_or_404(Receipt.objects.alive().select_related("invoice", "agreement"), pk=pk)
        return HttpResponse(render_receipt_document(receipt), content_type=HTML_CONTENT_TYPE)


# ──────────────────────────────────────────────────────────────────────────────
# Public (UUID) access
# ──────────────────────────────────────────────────────────────────────────────

class PublicView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []


class PublicInvoiceView(PublicView):
    def get(self, request, uuid):
        invoice = get_object_or_404(Invoice.objects.alive().prefetch_related("items"), uuid=uuid)
        return Response(InvoiceDetailSerializer(invoice, context={"request": request}).data)


class PublicInvoicePdfView(PublicView):
    def get(self, request, uuid):
        invoice = get_object_or_404(Invoice.objects.alive(), uuid=uuid)
        return document_pdf_response("invoice", invoice, invoice.invoice_number)


class PublicReceiptView(PublicView):
    def get(self, request, uuid):
        receipt = get_object_or_404(Receipt.objects.alive().select_related("invoice").prefetch_related("files"), uuid=uuid)
        return Response(ReceiptDetailSerializer(receipt, context={"request": request}).data)


class PublicReceiptPdfView(PublicView):
    def get(self, request, uuid):
        receipt = get_object_or_404(Receipt.objects.alive(), uuid=uuid)
        return document_pdf_response("receipt", receipt, receipt.receipt_number)
