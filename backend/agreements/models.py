# backend/agreements/models.py
import builtins
import secrets
import string
import time
import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.crypto import get_random_string

from .models_signatures import AgreementSignature  # noqa: F401


# --- TextChoices for type/status fields ---
class AgreementType(models.TextChoices):
    RENT = "rent", "Rent"
    SALE = "sale", "Sale"
    BILATERAL = "bilateral", "Bilateral"
    TRILATERAL = "trilateral", "Trilateral"
    AGENCY = "agency", "Agency"
    TRANSFER_ACT = "transfer_act", "Transfer act"


class AgreementStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PENDING_SIGNATURES = "pending_signatures", "Pending signatures"
    SIGNED = "signed", "Signed"
    ACTIVE = "active", "Active"
    EXPIRED = "expired", "Expired"
    CANCELLED = "cancelled", "Cancelled"


class AgreementLogAction(models.TextChoices):
    CREATED = "created", "Created"
    UPDATED = "updated", "Updated"
    DELETED = "deleted", "Deleted"
    SIGNED = "signed", "Signed"
    SIGNATURE_ADDED = "signature_added", "Signature added"
    SIGNATURE_UPDATED = "signature_updated", "Signature updated"
    SIGNATURE_DELETED = "signature_deleted", "Signature deleted"
    LINK_REGENERATED = "link_regenerated", "Signature link regenerated"
    DOCUMENTS_UPLOADED = "documents_uploaded", "Documents uploaded"
    AI_EDIT = "ai_edit", "AI edit applied"


AGREEMENT_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


class AgreementTemplate(models.Model):
    name = models.CharField(max_length=255)
    type = models.CharField(max_length=20, choices=AgreementType.choices)
    content = models.TextField()
    structure = models.JSONField(null=True, blank=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    version = models.PositiveIntegerField(default=1)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="agreement_templates",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.name} (v{self.version})"


class Property(models.Model):
    """Minimal property record an agreement can point at."""
    property_number = models.CharField(max_length=50, blank=True, db_index=True)
    property_name = models.CharField(max_length=255, blank=True)
    complex_name = models.CharField(max_length=255, blank=True)
    address = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["property_number", "id"]
        verbose_name_plural = "Properties"

    def __str__(self):
        return self.display_name or f"Property {self.pk}"

    @property
    def display_name(self):
        return self.property_name or self.complex_name or ""


class AgreementQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)


class Agreement(models.Model):
    # Fields an AI edit may write back through `databaseUpdates`
    FINANCIAL_FIELDS = (
        "rent_amount_monthly",
        "rent_amount_total",
        "deposit_amount",
        "utilities_included",
        "bank_name",
        "bank_account_name",
        "bank_account_number",
        "upon_signed_pay",
        "upon_checkin_pay",
        "upon_checkout_pay",
        "date_from",
        "date_to",
        "city",
        "description",
    )

    agreement_number = models.CharField(max_length=64, unique=True)
    template = models.ForeignKey(
        AgreementTemplate,
        on_delete=models.PROTECT,
        related_name="agreements",
    )
    property = models.ForeignKey(
        Property,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="agreements",
    )
    type = models.CharField(max_length=20, choices=AgreementType.choices)
    content = models.TextField(blank=True)
    structure = models.JSONField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=AgreementStatus.choices,
        default=AgreementStatus.DRAFT,
        db_index=True,
    )
    description = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    date_from = models.DateField(null=True, blank=True)
    date_to = models.DateField(null=True, blank=True)

    public_link = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)
    verify_link = models.UUIDField(default=uuid.uuid4, unique=True, editable=False)

    # Financial terms
    rent_amount_monthly = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    rent_amount_total = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    deposit_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    utilities_included = models.TextField(blank=True)
    bank_name = models.CharField(max_length=255, blank=True)
    bank_account_name = models.CharField(max_length=255, blank=True)
    bank_account_number = models.CharField(max_length=255, blank=True)
    upon_signed_pay = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    upon_checkin_pay = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    upon_checkout_pay = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)

    # Generated artifacts
    pdf_file = models.FileField(upload_to="agreements-pdf/", null=True, blank=True)
    pdf_generated_at = models.DateTimeField(null=True, blank=True)
    qr_code_base64 = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="agreements_created",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = AgreementQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        permissions = [
            ("manage_templates", "Can manage agreement templates"),
            ("manage_signatures", "Can manage agreement signatures"),
        ]

    def __str__(self):
        return self.agreement_number

    @staticmethod
    def generate_number() -> str:
        millis = int(time.time() * 1000)
        return f"AGR-{millis}-{get_random_string(9, allowed_chars=AGREEMENT_NUMBER_ALPHABET)}"

    @builtins.property
    def public_url(self) -> str:
        return f"{settings.FRONTEND_URL}/agreement/{self.public_link}"

    @builtins.property
    def verify_url(self) -> str:
        return f"{settings.FRONTEND_URL}/agreement-verify/{self.verify_link}"

    @builtins.property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self):
        self.deleted_at = timezone.now()
        self.save(update_fields=["deleted_at", "updated_at"])


class AgreementParty(models.Model):
    agreement = models.ForeignKey(Agreement, on_delete=models.CASCADE, related_name="parties")
    role = models.CharField(max_length=50, blank=True)
    is_company = models.BooleanField(default=False)

    # Individual
    individual_name = models.CharField(max_length=255, blank=True)
    individual_country = models.CharField(max_length=100, blank=True)
    individual_passport = models.CharField(max_length=100, blank=True)

    # Company
    company_name = models.CharField(max_length=255, blank=True)
    company_address = models.TextField(blank=True)
    company_tax_id = models.CharField(max_length=100, blank=True)
    director_name = models.CharField(max_length=255, blank=True)
    director_passport = models.CharField(max_length=100, blank=True)
    director_country = models.CharField(max_length=100, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]
        verbose_name_plural = "Agreement parties"

    def __str__(self):
        return f"{self.agreement_id} / {self.role} / {self.display_name or '—'}"

    @property
    def display_name(self) -> str:
        if self.is_company:
            return self.company_name or self.director_name
        return self.individual_name


class AgreementPartyDocument(models.Model):
    party = models.ForeignKey(AgreementParty, on_delete=models.CASCADE, related_name="documents")
    document = models.FileField(upload_to="party-documents/", null=True, blank=True)
    document_base64 = models.TextField(blank=True)  # data URL, embedded in the print HTML
    document_type = models.CharField(max_length=30, default="passport")
    file_size = models.PositiveIntegerField(default=0)
    mime_type = models.CharField(max_length=100, blank=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return f"{self.party_id} / {self.document_type}"


class AgreementLog(models.Model):
    agreement = models.ForeignKey(Agreement, on_delete=models.CASCADE, related_name="logs")
    action = models.CharField(max_length=30, choices=AgreementLogAction.choices)
    description = models.TextField(blank=True)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.agreement_id} / {self.action}"


class AgreementAIEditLog(models.Model):
    """
    A staged AI edit. Created by the edit call with was_applied=False and
    flipped by the apply call; the agreement row is untouched until then.
    """
    agreement = models.ForeignKey(Agreement, on_delete=models.CASCADE, related_name="ai_edits")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    conversation_id = models.CharField(max_length=100, db_index=True)
    prompt = models.TextField()
    description = models.TextField(blank=True)
    changes_summary = models.JSONField(default=dict, blank=True)
    structure_before = models.JSONField(null=True, blank=True)
    structure_after = models.JSONField(null=True, blank=True)
    html_before = models.TextField(blank=True)
    html_after = models.TextField(blank=True)
    database_updates = models.JSONField(default=dict, blank=True)
    ai_response = models.TextField(blank=True)
    was_applied = models.BooleanField(default=False)
    applied_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "Agreement AI edit"

    def __str__(self):
        return f"{self.agreement_id} / {self.conversation_id}"


def _new_print_token() -> str:
    return secrets.token_urlsafe(32)


class AgreementPrintToken(models.Model):
    """One-time token to open the print HTML without a bearer header."""
    token = models.CharField(max_length=64, unique=True, default=_new_print_token)
    agreement = models.ForeignKey(Agreement, on_delete=models.CASCADE, related_name="print_tokens")
    expires_at = models.DateTimeField()
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.agreement_id} / {self.token[:8]}…"

    @classmethod
    def issue(cls, agreement: Agreement) -> "AgreementPrintToken":
        ttl = timedelta(minutes=settings.PRINT_TOKEN_TTL_MINUTES)
        return cls.objects.create(agreement=agreement, expires_at=timezone.now() + ttl)

    @property
    def is_usable(self) -> bool:
        return self.used_at is None and self.expires_at > timezone.now()
