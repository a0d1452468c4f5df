# backend/financial_documents/migrations/0001_initial.py
import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

BANK_DETAILS_TYPES = [("simple", "Simple"), ("international", "International"), ("custom", "Custom")]
PARTY_TYPES = [("company", "Company"), ("individual", "Individual")]


def bank_fields():
    return [
        ("bank_details_type", models.CharField(choices=BANK_DETAILS_TYPES, default="simple", max_length=20)),
        ("bank_name", models.CharField(blank=True, max_length=255)),
        ("bank_account_name", models.CharField(blank=True, max_length=255)),
        ("bank_account_number", models.CharField(blank=True, max_length=255)),
        ("bank_account_address", models.TextField(blank=True)),
        ("bank_currency", models.CharField(blank=True, max_length=10)),
        ("bank_code", models.CharField(blank=True, max_length=50)),
        ("bank_swift_code", models.CharField(blank=True, max_length=50)),
        ("bank_address", models.TextField(blank=True)),
        ("bank_custom_details", models.TextField(blank=True)),
    ]


def party_fields(side, default_type):
    return [
        (f"{side}_type", models.CharField(choices=PARTY_TYPES, default=default_type, max_length=20)),
        (f"{side}_company_name", models.CharField(blank=True, max_length=255)),
        (f"{side}_company_tax_id", models.CharField(blank=True, max_length=100)),
        (f"{side}_company_address", models.TextField(blank=True)),
        (f"{side}_director_name", models.CharField(blank=True, max_length=255)),
        (f"{side}_director_country", models.CharField(blank=True, max_length=100)),
        (f"{side}_director_passport", models.CharField(blank=True, max_length=100)),
        (f"{side}_individual_name", models.CharField(blank=True, max_length=255)),
        (f"{side}_individual_country", models.CharField(blank=True, max_length=100)),
        (f"{side}_individual_passport", models.CharField(blank=True, max_length=100)),
    ]


def money():
    return models.DecimalField(decimal_places=2, default=0, max_digits=14)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("agreements", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="SavedBankDetails",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *bank_fields(),
                ("name", models.CharField(max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="saved_bank_details", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["name", "id"],
                "verbose_name_plural": "Saved bank details",
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *bank_fields(),
                ("invoice_number", models.CharField(db_index=True, max_length=32, unique=True)),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("invoice_date", models.DateField(default=django.utils.timezone.localdate)),
                ("due_date", models.DateField(blank=True, null=True)),
                *party_fields("from", "company"),
                *party_fields("to", "individual"),
                ("subtotal", money()),
                ("tax_amount", money()),
                ("total_amount", money()),
                ("amount_paid", money()),
                ("currency", models.CharField(default="THB", max_length=10)),
                ("notes", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("draft", "Draft"), ("sent", "Sent"), ("partially_paid", "Partially paid"), ("paid", "Paid"), ("overdue", "Overdue"), ("cancelled", "Cancelled")], db_index=True, default="draft", max_length=20)),
                ("show_qr_code", models.BooleanField(default=True)),
                ("qr_code_base64", models.TextField(blank=True)),
                ("pdf_file", models.FileField(blank=True, null=True, upload_to="invoices-pdf/")),
                ("pdf_generated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("agreement", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="invoices", to="agreements.agreement")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="invoices_created", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("description", models.TextField()),
                ("quantity", models.DecimalField(decimal_places=2, default=1, max_digits=12)),
                ("unit_price", money()),
                ("total_price", money()),
                ("due_date", models.DateField(blank=True, null=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                ("is_currently_selected", models.BooleanField(default=True)),
                ("is_fully_paid", models.BooleanField(default=False)),
                ("amount_paid", money()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="items", to="financial_documents.invoice")),
            ],
            options={
                "ordering": ["sort_order", "id"],
            },
        ),
        migrations.CreateModel(
            name="Receipt",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                *bank_fields(),
                ("receipt_number", models.CharField(db_index=True, max_length=32, unique=True)),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("receipt_date", models.DateField(default=django.utils.timezone.localdate)),
                ("amount_paid", money()),
                ("payment_method", models.CharField(choices=[("bank_transfer", "Bank transfer"), ("cash", "Cash"), ("crypto", "Crypto"), ("barter", "Barter")], default="bank_transfer", max_length=20)),
                ("notes", models.TextField(blank=True)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("verified", "Verified"), ("rejected", "Rejected")], db_index=True, default="verified", max_length=20)),
                ("show_qr_code", models.BooleanField(default=True)),
                ("qr_code_base64", models.TextField(blank=True)),
                ("pdf_file", models.FileField(blank=True, null=True, upload_to="receipts-pdf/")),
                ("pdf_generated_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("deleted_at", models.DateTimeField(blank=True, null=True)),
                ("agreement", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="receipts", to="agreements.agreement")),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="receipts_created", to=settings.AUTH_USER_MODEL)),
                ("invoice", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="receipts", to="financial_documents.invoice")),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="ReceiptFile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("file", models.FileField(upload_to="receipt-files/")),
                ("file_name", models.CharField(max_length=255)),
                ("file_size", models.PositiveIntegerField(default=0)),
                ("mime_type", models.CharField(blank=True, max_length=100)),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                ("receipt", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="files", to="financial_documents.receipt")),
            ],
            options={
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="ReceiptInvoiceItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount_allocated", money()),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("invoice_item", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="receipt_links", to="financial_documents.invoiceitem")),
                ("receipt", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="allocations", to="financial_documents.receipt")),
            ],
            options={
                "ordering": ["id"],
                "unique_together": {("receipt", "invoice_item")},
            },
        ),
    ]
