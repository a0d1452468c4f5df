# backend/financial_documents/serializers.py
from rest_framework import serializers

from agreements.models import Agreement

from .models import (
    BANK_FIELDS,
    PARTY_FIELDS,
    Invoice,
    InvoiceItem,
    InvoiceStatus,
    Receipt,
    ReceiptFile,
    SavedBankDetails,
)


def _file_url(serializer, field_file):
    if not field_file or not field_file.name:
        return None
    request = serializer.context.get("request")
    url = field_file.url
    return request.build_absolute_uri(url) if request else url


# ──────────────────────────────────────────────────────────────────────────────
# Saved bank details
# ──────────────────────────────────────────────────────────────────────────────

class SavedBankDetailsSerializer(serializers.ModelSerializer):
    class Meta:
        model = SavedBankDetails
        fields = ["id", "name", *BANK_FIELDS, "created_by", "created_at", "updated_at"]
        read_only_fields = ["created_by", "created_at", "updated_at"]


# ──────────────────────────────────────────────────────────────────────────────
# Read serializers
# ──────────────────────────────────────────────────────────────────────────────

class InvoiceItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = InvoiceItem
        fields = [
            "id", "description", "quantity", "unit_price", "total_price", "due_date",
            "sort_order", "is_currently_selected", "is_fully_paid", "amount_paid",
        ]


class ReceiptFileSerializer(serializers.ModelSerializer):
    file_url = serializers.SerializerMethodField()

    class Meta:
        model = ReceiptFile
        fields = ["id", "file_name", "file_url", "file_size", "mime_type", "uploaded_at"]

    def get_file_url(self, obj):
        return _file_url(self, obj.file)


class ReceiptSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Receipt
        fields = ["id", "receipt_number", "uuid", "receipt_date", "amount_paid", "payment_method", "status"]


class InvoiceListSerializer(serializers.ModelSerializer):
    agreement_number = serializers.CharField(source="agreement.agreement_number", read_only=True, default=None)
    from_name = serializers.SerializerMethodField()
    to_name = serializers.SerializerMethodField()
    items_count = serializers.IntegerField(read_only=True)
    receipts_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Invoice
        fields = [
            "id", "invoice_number", "uuid", "agreement", "agreement_number",
            "invoice_date", "due_date", "from_name", "to_name",
            "subtotal", "tax_amount", "total_amount", "amount_paid", "currency", "status",
            "items_count", "receipts_count", "pdf_generated_at", "created_at",
        ]

    def get_from_name(self, obj):
        return obj.party_display("from")

    def get_to_name(self, obj):
        return obj.party_display("to")


class InvoiceDetailSerializer(serializers.ModelSerializer):
    agreement_number = serializers.CharField(source="agreement.agreement_number", read_only=True, default=None)
    items = InvoiceItemSerializer(many=True, read_only=True)
    receipts = serializers.SerializerMethodField()
    public_url = serializers.CharField(read_only=True)
    pdf_url = serializers.SerializerMethodField()

    class Meta:
        model = Invoice
        fields = [
            "id", "invoice_number", "uuid", "agreement", "agreement_number",
            "invoice_date", "due_date",
            *PARTY_FIELDS,
            "subtotal", "tax_amount", "total_amount", "amount_paid", "currency",
            *BANK_FIELDS,
            "notes", "status", "show_qr_code", "qr_code_base64",
            "public_url", "pdf_url", "pdf_generated_at",
            "items", "receipts",
            "created_by", "created_at", "updated_at",
        ]

    def get_receipts(self, obj):
        return ReceiptSummarySerializer(obj.receipts.alive(), many=True).data

    def get_pdf_url(self, obj):
        return _file_url(self, obj.pdf_file)


class ReceiptListSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    agreement_number = serializers.CharField(source="agreement.agreement_number", read_only=True, default=None)
    files_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = Receipt
        fields = [
            "id", "receipt_number", "uuid", "invoice", "invoice_number", "agreement", "agreement_number",
            "receipt_date", "amount_paid", "payment_method", "status", "files_count",
            "pdf_generated_at", "created_at",
        ]


class ReceiptDetailSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source="invoice.invoice_number", read_only=True)
    agreement_number = serializers.CharField(source="agreement.agreement_number", read_only=True, default=None)
    files = ReceiptFileSerializer(many=True, read_only=True)
    items = serializers.SerializerMethodField()
    public_url = serializers.CharField(read_only=True)
    pdf_url = serializers.SerializerMethodField()

    class Meta:
        model = Receipt
        fields = [
            "id", "receipt_number", "uuid", "invoice", "invoice_number", "agreement", "agreement_number",
            "receipt_date", "amount_paid", "payment_method",
            *BANK_FIELDS,
            "notes", "status", "show_qr_code", "qr_code_base64",
            "public_url", "pdf_url", "pdf_generated_at",
            "files", "items",
            "created_by", "created_at", "updated_at",
        ]

    def get_items(self, obj):
        return [
            {
                "invoice_item_id": link.invoice_item_id,
                "amount_allocated": str(link.amount_allocated),
                "description": link.invoice_item.description,
                "total_price": str(link.invoice_item.total_price),
            }
            for link in obj.allocations.select_related("invoice_item")
        ]

    def get_pdf_url(self, obj):
        return _file_url(self, obj.pdf_file)


# ──────────────────────────────────────────────────────────────────────────────
# Write serializers
# ──────────────────────────────────────────────────────────────────────────────

class BankDetailsInputMixin(serializers.Serializer):
    saved_bank_details_id = serializers.IntegerField(required=False, allow_null=True)
    save_bank_details = serializers.BooleanField(required=False, default=False)
    bank_details_name = serializers.CharField(required=False, allow_blank=True, max_length=255)


class InvoiceItemInputSerializer(serializers.Serializer):
    description = serializers.CharField()
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, default=1)
    unit_price = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0)
    due_date = serializers.DateField(required=False, allow_null=True)


class InvoiceWriteSerializer(BankDetailsInputMixin, serializers.ModelSerializer):
    """
    Validates an invoice payload. Persistence happens in
    `financial_documents.services.invoices`, never through `save()`.
    """
    agreement_id = serializers.PrimaryKeyRelatedField(
        source="agreement",
        queryset=Agreement.objects.alive(),
        required=False,
        allow_null=True,
    )
    items = InvoiceItemInputSerializer(many=True, required=False)
    selected_items = serializers.ListField(child=serializers.IntegerField(min_value=0), required=False)
    tax_amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False, allow_null=True)
    status = serializers.ChoiceField(choices=InvoiceStatus.choices, required=False)

    class Meta:
        model = Invoice
        fields = [
            "agreement_id", "invoice_date", "due_date", *PARTY_FIELDS, "currency", "notes",
            "show_qr_code", *BANK_FIELDS, "tax_amount", "status",
            "items", "selected_items", "saved_bank_details_id", "save_bank_details", "bank_details_name",
        ]
        extra_kwargs = {field: {"required": False} for field in fields}

    def validate(self, attrs):
        if self.instance is None and not attrs.get("items"):
            raise serializers.ValidationError({"items": "At least one item is required."})
        return attrs


class ReceiptWriteSerializer(BankDetailsInputMixin, serializers.ModelSerializer):
    invoice_id = serializers.IntegerField(required=False)
    agreement_id = serializers.PrimaryKeyRelatedField(
        source="agreement",
        queryset=Agreement.objects.alive(),
        required=False,
        allow_null=True,
    )
    amount_paid = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    selected_items = serializers.ListField(child=serializers.IntegerField(min_value=1), required=False)

    class Meta:
        model = Receipt
        fields = [
            "invoice_id", "agreement_id", "receipt_date", "amount_paid", "payment_method", "notes",
            "show_qr_code", *BANK_FIELDS,
            "selected_items", "saved_bank_details_id", "save_bank_details", "bank_details_name",
        ]
        extra_kwargs = {field: {"required": False} for field in fields}

    def validate(self, attrs):
        if self.instance is None:
            missing = {field: "This field is required." for field in ("invoice_id", "amount_paid") if field not in attrs}
            if missing:
                raise serializers.ValidationError(missing)
        return attrs
