# backend/agreements/serializers/agreement.py
from __future__ import annotations

from rest_framework import serializers

from agreements.models import (
    Agreement,
    AgreementAIEditLog,
    AgreementLog,
    AgreementParty,
    AgreementPartyDocument,
    AgreementSignature,
    AgreementType,
    Property,
)
from agreements.services.templating import party_prefix


# ──────────────────────────────────────────────────────────────────────────────
# Read serializers
# ──────────────────────────────────────────────────────────────────────────────

class PropertySerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)

    class Meta:
        model = Property
        fields = ["id", "property_number", "property_name", "complex_name", "address", "display_name"]


class PartyDocumentSerializer(serializers.ModelSerializer):
    document_url = serializers.SerializerMethodField()

    class Meta:
        model = AgreementPartyDocument
        fields = ["id", "document_type", "document_url", "file_size", "mime_type", "uploaded_at"]

    def get_document_url(self, obj):
        if not obj.document or not obj.document.name:
            return None
        request = self.context.get("request")
        url = obj.document.url
        return request.build_absolute_uri(url) if request else url


class PartyDocumentWithDataSerializer(PartyDocumentSerializer):
    class Meta(PartyDocumentSerializer.Meta):
        fields = PartyDocumentSerializer.Meta.fields + ["document_base64"]


class PartySerializer(serializers.ModelSerializer):
    display_name = serializers.CharField(read_only=True)
    documents = PartyDocumentSerializer(many=True, read_only=True)

    class Meta:
        model = AgreementParty
        fields = [
            "id", "role", "is_company", "display_name",
            "individual_name", "individual_country", "individual_passport",
            "company_name", "company_address", "company_tax_id",
            "director_name", "director_passport", "director_country",
            "documents",
        ]


class PartyWithDocumentDataSerializer(PartySerializer):
    documents = PartyDocumentWithDataSerializer(many=True, read_only=True)


class SignatureSerializer(serializers.ModelSerializer):
    """Admin view of a signature row, including its public link."""
    public_url = serializers.CharField(read_only=True)

    class Meta:
        model = AgreementSignature
        fields = [
            "id", "agreement", "signer_name", "signer_role", "position",
            "signature_link", "public_url",
            "is_signed", "signature_data", "signed_at",
            "ip_address", "user_agent", "first_visit_at", "device_type", "browser", "os",
            "agreement_view_duration", "signature_clear_count", "total_session_duration",
            "created_at",
        ]
        read_only_fields = fields


class PublicSignatureSerializer(serializers.ModelSerializer):
    """What a signer or verifier may see about every signature on the agreement."""

    class Meta:
        model = AgreementSignature
        fields = ["id", "signer_name", "signer_role", "position", "is_signed", "signature_data", "signed_at"]
        read_only_fields = fields


class AgreementLogSerializer(serializers.ModelSerializer):
    user_name = serializers.SerializerMethodField()

    class Meta:
        model = AgreementLog
        fields = ["id", "action", "description", "user", "user_name", "ip_address", "created_at"]

    def get_user_name(self, obj):
        return str(obj.user) if obj.user_id else None


class AIEditLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = AgreementAIEditLog
        fields = [
            "id", "conversation_id", "prompt", "description", "changes_summary",
            "database_updates", "was_applied", "applied_at", "created_at", "user",
        ]


class AgreementListSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source="template.name", read_only=True)
    property_name = serializers.SerializerMethodField()
    signatures_total = serializers.SerializerMethodField()
    signatures_signed = serializers.SerializerMethodField()

    class Meta:
        model = Agreement
        fields = [
            "id", "agreement_number", "type", "status", "description", "city",
            "date_from", "date_to", "template", "template_name", "property", "property_name",
            "rent_amount_monthly", "rent_amount_total",
            "signatures_total", "signatures_signed",
            "pdf_generated_at", "created_at", "updated_at",
        ]

    def get_property_name(self, obj):
        return obj.property.display_name if obj.property_id else None

    def get_signatures_total(self, obj):
        return len(obj.signatures.all())

    def get_signatures_signed(self, obj):
        return sum(1 for sig in obj.signatures.all() if sig.is_signed)


class AgreementDetailSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source="template.name", read_only=True)
    property = PropertySerializer(read_only=True)
    parties = PartySerializer(many=True, read_only=True)
    signatures = SignatureSerializer(many=True, read_only=True)
    logs = AgreementLogSerializer(many=True, read_only=True)
    public_url = serializers.CharField(read_only=True)
    verify_url = serializers.CharField(read_only=True)
    pdf_url = serializers.SerializerMethodField()

    class Meta:
        model = Agreement
        fields = [
            "id", "agreement_number", "type", "status", "description", "city",
            "date_from", "date_to", "template", "template_name", "property",
            "content", "structure",
            "rent_amount_monthly", "rent_amount_total", "deposit_amount", "utilities_included",
            "bank_name", "bank_account_name", "bank_account_number",
            "upon_signed_pay", "upon_checkin_pay", "upon_checkout_pay",
            "public_link", "verify_link", "public_url", "verify_url",
            "qr_code_base64", "pdf_url", "pdf_generated_at",
            "parties", "signatures", "logs",
            "created_by", "created_at", "updated_at",
        ]

    def get_pdf_url(self, obj):
        if not obj.pdf_file or not obj.pdf_file.name:
            return None
        request = self.context.get("request")
        url = obj.pdf_file.url
        return request.build_absolute_uri(url) if request else url


class AgreementWithPartiesSerializer(AgreementDetailSerializer):
    parties = PartyWithDocumentDataSerializer(many=True, read_only=True)


class PublicAgreementSerializer(serializers.ModelSerializer):
    """Unauthenticated read model for public / verify / signature links."""
    template_name = serializers.CharField(source="template.name", read_only=True)
    signatures = PublicSignatureSerializer(many=True, read_only=True)
    parties = serializers.SerializerMethodField()

    class Meta:
        model = Agreement
        fields = [
            "id", "agreement_number", "type", "status", "city", "date_from", "date_to",
            "template_name", "content", "structure", "qr_code_base64",
            "parties", "signatures", "created_at",
        ]
        read_only_fields = fields

    def get_parties(self, obj):
        return [
            {"role": party.role, "name": party.display_name, "is_company": party.is_company}
            for party in obj.parties.all()
        ]


# ──────────────────────────────────────────────────────────────────────────────
# Write serializers
# ──────────────────────────────────────────────────────────────────────────────

def _amount(**kwargs):
    return serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True, **kwargs)


def _text(max_length=255):
    return serializers.CharField(max_length=max_length, required=False, allow_blank=True, default="")


class PartyInputSerializer(serializers.Serializer):
    role = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    is_company = serializers.BooleanField(required=False, default=False)

    individual_name = _text()
    individual_country = _text(100)
    individual_passport = _text(100)

    company_name = _text()
    company_address = serializers.CharField(required=False, allow_blank=True, default="")
    company_tax_id = _text(100)
    director_name = _text()
    director_passport = _text(100)
    director_country = _text(100)

    def validate(self, attrs):
        if attrs.get("is_company"):
            if not attrs.get("company_name"):
                raise serializers.ValidationError({"company_name": "Company name is required."})
        elif not attrs.get("individual_name"):
            raise serializers.ValidationError({"individual_name": "Name is required."})
        return attrs


class AgreementCreateSerializer(serializers.Serializer):
    template_id = serializers.IntegerField()
    property_id = serializers.IntegerField(required=False, allow_null=True)
    type = serializers.ChoiceField(choices=AgreementType.choices, required=False)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    city = _text(100)
    date_from = serializers.DateField(required=False, allow_null=True)
    date_to = serializers.DateField(required=False, allow_null=True)

    rent_amount_monthly = _amount()
    rent_amount_total = _amount()
    deposit_amount = _amount()
    utilities_included = serializers.CharField(required=False, allow_blank=True, default="")
    bank_name = _text()
    bank_account_name = _text()
    bank_account_number = _text()
    upon_signed_pay = _amount()
    upon_checkin_pay = _amount()
    upon_checkout_pay = _amount()

    # Explicit values win over the linked property record
    property_name = _text()
    property_number = _text(50)
    property_address = serializers.CharField(required=False, allow_blank=True, default="")

    parties = PartyInputSerializer(many=True, required=False, default=list)

    def validate(self, attrs):
        date_from, date_to = attrs.get("date_from"), attrs.get("date_to")
        if date_from and date_to and date_to < date_from:
            raise serializers.ValidationError({"date_to": "End date must not be before start date."})

        roles = [party_prefix(party, index) for index, party in enumerate(attrs.get("parties") or [])]
        duplicates = sorted({role for role in roles if roles.count(role) > 1})
        if duplicates:
            raise serializers.ValidationError({"parties": f"Duplicate party roles: {', '.join(duplicates)}"})
        return attrs


class AgreementUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Agreement
        fields = [
            "content", "structure", "status", "description", "city", "date_from", "date_to",
            "rent_amount_monthly", "rent_amount_total", "deposit_amount", "utilities_included",
            "bank_name", "bank_account_name", "bank_account_number",
            "upon_signed_pay", "upon_checkin_pay", "upon_checkout_pay",
        ]
        extra_kwargs = {field: {"required": False} for field in fields}

    def validate_structure(self, value):
        if value in (None, ""):
            return None
        if not isinstance(value, dict) or not isinstance(value.get("nodes", []), list):
            raise serializers.ValidationError("Structure must be an object with a 'nodes' list.")
        return value
