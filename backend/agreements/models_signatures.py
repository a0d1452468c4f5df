# backend/agreements/models_signatures.py
import uuid

from django.conf import settings
from django.db import models

# Analytics counters are written into 32-bit integer columns
MAX_ANALYTICS_VALUE = 2147483647


class DeviceType(models.TextChoices):
    DESKTOP = "desktop", "Desktop"
    MOBILE = "mobile", "Mobile"
    TABLET = "tablet", "Tablet"


class AgreementSignature(models.Model):
    # String reference avoids importing Agreement and any circulars.
    agreement = models.ForeignKey(
        "agreements.Agreement",
        on_delete=models.CASCADE,
        related_name="signatures",
    )
    signer_name = models.CharField(max_length=255)
    signer_role = models.CharField(max_length=50)
    position = models.PositiveIntegerField(default=0)
    signature_link = models.UUIDField(default=uuid.uuid4, unique=True)

    is_signed = models.BooleanField(default=False)
    signature_data = models.TextField(blank=True)  # data URL (PNG)
    signed_at = models.DateTimeField(null=True, blank=True)

    # First-visit device capture
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    first_visit_at = models.DateTimeField(null=True, blank=True)
    device_type = models.CharField(max_length=20, choices=DeviceType.choices, blank=True)
    browser = models.CharField(max_length=100, blank=True)
    os = models.CharField(max_length=100, blank=True)

    # Signing-session analytics (seconds / counts)
    agreement_view_duration = models.PositiveIntegerField(default=0)
    signature_clear_count = models.PositiveIntegerField(default=0)
    total_session_duration = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["position", "id"]
        indexes = [
            models.Index(fields=["agreement", "is_signed"], name="agr_sig_agreement_signed_idx"),
        ]
        unique_together = (("agreement", "signer_role"),)

    def __str__(self):
        return f"{self.agreement_id} / {self.signer_role} / {self.signer_name or '—'}"

    @property
    def public_url(self) -> str:
        return f"{settings.FRONTEND_URL}/sign/{self.signature_link}"

    @staticmethod
    def clamp_analytics(value) -> int:
        try:
            number = int(value or 0)
        except (TypeError, ValueError):
            number = 0
        return min(max(number, 0), MAX_ANALYTICS_VALUE)
