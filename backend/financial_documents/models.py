# backend/financial_documents/models.py
import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class PartyType(models.TextChoices):
    COMPANY = "company", "Company"
    INDIVIDUAL = "individual", "Individual"


class BankDetailsType(models.TextChoices):
    SIMPLE = "simple", "Simple"
    INTERNATIONAL = "international", "International"
    CUSTOM = "custom", "Custom"


class InvoiceStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    PARTIALLY_PAID = "partially_paid", "Partially paid"
    PAID = "paid", "Paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class ReceiptStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"
    REJECTED = "rejected", "Rejected"


class PaymentMethod(models.TextChoices):
    BANK_TRANSFER = "bank_transfer", "Bank transfer"
    CASH = "cash", "Cash"
    CRYPTO = "crypto", "Crypto"
    BARTER = "barter", "Barter"


BANK_FIELDS = (
    "bank_details_type",
    "bank_name",
    "bank_account_name",
    "bank_account_number",
    "bank_account_address",
    "bank_currency",
    "bank_code",
    "bank_swift_code",
    "bank_address",
    "bank_custom_details",
)

PARTY_FIELD_SUFFIXES = (
    "type",
    "company_name",
    "company_tax_id",
    "company_address",
    "director_name",
    "director_country",
    "director_passport",
    "individual_name",
    "individual_country",
    "individual_passport",
)
PARTY_FIELDS = tuple(f"{side}_{suffix}" for side in ("from", "to") for suffix in PARTY_FIELD_SUFFIXES)


def _money(**kwargs):
    return models.DecimalField(max_digits=14, decimal_places=2, default=0, **kwargs)


class BankDetailsFields(models.Model):
    bank_details_type = models.CharField(
        max_length=20, choices=BankDetailsType.choices, default=BankDetailsType.SIMPLE
    )
    bank_name = models.CharField(max_length=255, blank=True)
    bank_account_name = models.CharField(max_length=255, blank=True)
    bank_account_number = models.CharField(max_length=255, blank=True)
    bank_account_address = models.TextField(blank=True)
    bank_currency = models.CharField(max_length=10, blank=True)
    bank_code = models.CharField(max_length=50, blank=True)
    bank_swift_code = models.CharField(max_length=50, blank=True)
    bank_address = models.TextField(blank=True)
    bank_custom_details = models.TextField(blank=True)

    class Meta:
        abstract = True

    def bank_details(self) -> dict:
        return {field: getattr(self, field) for field in BANK_FIELDS}


class LiveQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)


class SavedBankDetails(BankDetailsFields):
    name = models.CharField(max_length=255)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="saved_bank_details",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name", "id"]
        verbose_name_plural = "Saved bank details"

    def __str__(self):
        return self.name


class Invoice(BankDetailsFields):
    invoice_number = models.CharField(max_length=32, unique=True, db_index=True)
    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    agreement = models.ForeignKey(
        "agreements.Agreement",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="invoices",
    )
    invoice_date = models.DateField(default=timezone.localdate)
    due_date = models.DateField(null=True, blank=True)

    # Issuer
    from_type = models.CharField(max_length=20, choices=PartyType.choices, default=PartyType.COMPANY)
    from_company_name = models.CharField(max_length=255, blank=True)
    from_company_tax_id = models.CharField(max_length=100, blank=True)
    from_company_address = models.TextField(blank=True)
    from_director_name = models.CharField(max_length=255, blank=True)
    from_director_country = models.CharField(max_length=100, blank=True)
    from_director_passport = models.CharField(max_length=100, blank=True)
    from_individual_name = models.CharField(max_length=255, blank=True)
    from_individual_country = models.CharField(max_length=100, blank=True)
    from_individual_passport = models.CharField(max_length=100, blank=True)

    # Recipient
    to_type = models.CharField(max_length=20, choices=PartyType.choices, default=PartyType.INDIVIDUAL)
    to_company_name = models.CharField(max_length=255, blank=True)
    to_company_tax_id = models.CharField(max_length=100, blank=True)
    to_company_address = models.TextField(blank=True)
    to_director_name = models.CharField(max_length=255, blank=True)
    to_director_country = models.CharField(max_length=100, blank=True)
    to_director_passport = models.CharField(max_length=100, blank=True)
    to_individual_name = models.CharField(max_length=255, blank=True)
    to_individual_country = models.CharField(max_length=100, blank=True)
    to_individual_passport = models.CharField(max_length=100, blank=True)

    subtotal = _money()
    tax_amount = _money()
    total_amount = _money()
    amount_paid = _money()
    currency = models.CharField(max_length=10, default="THB")

    notes = models.TextField(blank=True)
    status = models.CharField(
        max_length=20, choices=InvoiceStatus.choices, default=InvoiceStatus.DRAFT, db_index=True
    )

    show_qr_code = models.BooleanField(default=True)
    qr_code_base64 = models.TextField(blank=True)
    pdf_file = models.FileField(upload_to="invoices-pdf/", null=True, blank=True)
    pdf_generated_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="invoices_created",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = LiveQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Invoice {self.invoice_number} ({self.total_amount} {self.currency})"

    @property
    def public_url(self) -> str:
        return f"{settings.FRONTEND_URL}/invoice/{self.uuid}"

    @property
    def amount_due(self):
        return max(self.total_amount - self.amount_paid, 0)

    def party_display(self, side: str) -> str:
        if getattr(self, f"{side}_type") == PartyType.COMPANY:
            return getattr(self, f"{side}_company_name")
        return getattr(self, f"{side}_individual_name")


class InvoiceItem(models.Model):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    description = models.TextField()
    quantity = models.DecimalField(max_digits=12, decimal_places=2, default=1)
    unit_price = _money()
    total_price = _money()
    due_date = models.DateField(null=True, blank=True)
    sort_order = models.PositiveIntegerField(default=0)

    # Items chosen for the current "amount to pay" on the printed invoice
    is_currently_selected = models.BooleanField(default=True)
    is_fully_paid = models.BooleanField(default=False)
    amount_paid = _money()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "id"]

    def __str__(self):
        return f"{self.invoice_id} / {self.description[:40]}"


class Receipt(BankDetailsFields):
    receipt_number = models.CharField(max_length=32, unique=True, db_index=True)
    uuid = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    invoice = models.ForeignKey(Invoice, on_delete=models.PROTECT, related_name="receipts")
    agreement = models.ForeignKey(
        "agreements.Agreement",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="receipts",
    )
    receipt_date = models.DateField(default=timezone.localdate)
    amount_paid = _money()
    payment_method = models.CharField(
        max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.BANK_TRANSFER
    )
    notes = models.TextField(blank=True)
    status = models.CharField(
        max_length=20, choices=ReceiptStatus.choices, default=ReceiptStatus.VERIFIED, db_index=True
    )

    show_qr_code = models.BooleanField(default=True)
    qr_code_base64 = models.TextField(blank=True)
    pdf_file = models.FileField(upload_to="receipts-pdf/", null=True, blank=True)
    pdf_generated_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="receipts_created",
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = LiveQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Receipt {self.receipt_number} ({self.amount_paid})"

    @property
    def public_url(self) -> str:
        return f"{settings.FRONTEND_URL}/receipt/{self.uuid}"


class ReceiptInvoiceItem(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name="allocations")
    invoice_item = models.ForeignKey(InvoiceItem, on_delete=models.CASCADE, related_name="receipt_links")
    amount_allocated = _money()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        unique_together = (("receipt", "invoice_item"),)


class ReceiptFile(models.Model):
    receipt = models.ForeignKey(Receipt, on_delete=models.CASCADE, related_name="files")
    file = models.FileField(upload_to="receipt-files/")
    file_name = models.CharField(max_length=255)
    file_size = models.PositiveIntegerField(default=0)
    mime_type = models.CharField(max_length=100, blank=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.receipt_id} / {self.file_name}"
