# backend/agreements/admin.py
from __future__ import annotations

from django.contrib import admin, messages

from .models import (
    Agreement,
    AgreementAIEditLog,
    AgreementLog,
    AgreementParty,
    AgreementPartyDocument,
    AgreementSignature,
    AgreementTemplate,
    Property,
)
from .services.pdf import generate_agreement_pdf


@admin.register(AgreementTemplate)
class AgreementTemplateAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "type", "is_active", "version", "created_at")
    search_fields = ("name", "description")
    list_filter = ("type", "is_active")
    readonly_fields = ("created_at", "updated_at")


@admin.register(Property)
class PropertyAdmin(admin.ModelAdmin):
    list_display = ("id", "property_number", "property_name", "complex_name", "deleted_at")
    search_fields = ("property_number", "property_name", "complex_name", "address")


class AgreementPartyInline(admin.TabularInline):
    model = AgreementParty
    extra = 0
    fields = ("role", "is_company", "individual_name", "company_name", "director_name")


class AgreementSignatureInline(admin.TabularInline):
    model = AgreementSignature
    extra = 0
    fields = ("signer_role", "signer_name", "position", "is_signed", "signed_at", "signature_link")
    readonly_fields = ("is_signed", "signed_at", "signature_link")


@admin.register(Agreement)
class AgreementAdmin(admin.ModelAdmin):
    list_display = ("id", "agreement_number", "type", "status", "city", "date_from", "date_to", "created_at")
    search_fields = ("agreement_number", "description", "property__property_name")
    list_filter = ("type", "status")
    readonly_fields = ("public_link", "verify_link", "pdf_generated_at", "created_at", "updated_at", "deleted_at")
    inlines = (AgreementPartyInline, AgreementSignatureInline)

    actions = ("action_regenerate_pdf",)

    @admin.action(description="Regenerate PDF")
    def action_regenerate_pdf(self, request, queryset):
        done = 0
        for agreement in queryset:
            try:
                generate_agreement_pdf(agreement.pk)
                done += 1
            except Exception as e:
                self.message_user(request, f"PDF failed for {agreement.agreement_number}: {e}", level=messages.ERROR)
        if done:
            self.message_user(request, f"Regenerated {done} PDF(s).", level=messages.SUCCESS)


@admin.register(AgreementSignature)
class AgreementSignatureAdmin(admin.ModelAdmin):
    list_display = ("id", "agreement", "signer_role", "signer_name", "is_signed", "signed_at", "device_type")
    search_fields = ("signer_name", "agreement__agreement_number")
    list_filter = ("is_signed", "device_type")
    readonly_fields = ("signature_link", "first_visit_at", "created_at", "updated_at")


@admin.register(AgreementPartyDocument)
class AgreementPartyDocumentAdmin(admin.ModelAdmin):
    list_display = ("id", "party", "document_type", "mime_type", "file_size", "uploaded_at")
    exclude = ("document_base64",)


@admin.register(AgreementLog)
class AgreementLogAdmin(admin.ModelAdmin):
    list_display = ("id", "agreement", "action", "user", "ip_address", "created_at")
    search_fields = ("agreement__agreement_number", "description")
    list_filter = ("action",)


@admin.register(AgreementAIEditLog)
class AgreementAIEditLogAdmin(admin.ModelAdmin):
    list_display = ("id", "agreement", "conversation_id", "was_applied", "applied_at", "created_at")
    search_fields = ("agreement__agreement_number", "conversation_id", "prompt")
    list_filter = ("was_applied",)
