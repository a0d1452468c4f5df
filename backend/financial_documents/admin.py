# backend/financial_documents/admin.py
from __future__ import annotations

from django.contrib import admin

from .models import Invoice, InvoiceItem, Receipt, ReceiptFile, SavedBankDetails


class InvoiceItemInline(admin.TabularInline):
    model = InvoiceItem
    extra = 0
    fields = ("sort_order", "description", "quantity", "unit_price", "total_price", "is_fully_paid")
    readonly_fields = ("total_price", "is_fully_paid")


class ReceiptFileInline(admin.TabularInline):
    model = ReceiptFile
    extra = 0
    fields = ("file_name", "file", "mime_type", "file_size")
    readonly_fields = ("file_size",)


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ("id", "invoice_number", "agreement", "invoice_date", "total_amount", "amount_paid", "currency", "status")
    search_fields = ("invoice_number", "from_company_name", "to_company_name", "to_individual_name")
    list_filter = ("status", "currency")
    readonly_fields = ("uuid", "subtotal", "total_amount", "amount_paid", "pdf_generated_at", "created_at", "updated_at")
    inlines = (InvoiceItemInline,)


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ("id", "receipt_number", "invoice", "receipt_date", "amount_paid", "payment_method", "status")
    search_fields = ("receipt_number", "invoice__invoice_number")
    list_filter = ("status", "payment_method")
    readonly_fields = ("uuid", "pdf_generated_at", "created_at", "updated_at")
    inlines = (ReceiptFileInline,)


@admin.register(SavedBankDetails)
class SavedBankDetailsAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "bank_details_type", "bank_name", "created_by")
    search_fields = ("name", "bank_name", "bank_account_number")
    list_filter = ("bank_details_type",)
