from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from financial_documents.models import (
    Invoice,
    InvoiceStatus,
    Receipt,
    SavedBankDetails,
)
from financial_documents.services.payments import derive_invoice_status
from financial_documents.services.rendering import build_invoice_context

pytestmark = pytest.mark.django_db


@pytest.fixture
def create_invoice(admin_client, no_pdf):
    def make(items=None, **extra):
        payload = {
            "from_type": "company",
            "from_company_name": "Sea View Management Co., Ltd.",
            "from_company_address": "1 Beach Road, Phuket",
            "to_type": "individual",
            "to_individual_name": "Tom Tenant",
            "items": items or [
                {"description": "Rent March", "quantity": "1", "unit_price": "300.00"},
                {"description": "Rent April", "quantity": "1", "unit_price": "200.00"},
            ],
        }
        payload.update(extra)
        response = admin_client.post(reverse("financial_documents:invoices-list"), payload, format="json")
        assert response.status_code == 201, response.content
        return Invoice.objects.get(pk=response.json()["id"])
    return make


def post_receipt(admin_client, invoice, amount, **extra):
    payload = {"invoice_id": invoice.pk, "amount_paid": amount, **extra}
    return admin_client.post(reverse("financial_documents:receipts-list"), payload, format="json")


def test_status_derivation():
    assert derive_invoice_status(Decimal("0"), Decimal("500"), InvoiceStatus.SENT) == InvoiceStatus.SENT
    assert derive_invoice_status(Decimal("100"), Decimal("500"), InvoiceStatus.SENT) == InvoiceStatus.PARTIALLY_PAID
    assert derive_invoice_status(Decimal("500"), Decimal("500"), InvoiceStatus.SENT) == InvoiceStatus.PAID
    assert derive_invoice_status(Decimal("600"), Decimal("500"), InvoiceStatus.SENT) == InvoiceStatus.PAID


# ---------------- invoices ----------------

def test_invoice_totals_and_number(create_invoice):
    invoice = create_invoice(tax_amount="35.00")

    assert invoice.subtotal == Decimal("500.00")
    assert invoice.total_amount == Decimal("535.00")
    assert invoice.status == InvoiceStatus.DRAFT
    assert invoice.invoice_number.startswith("INV-")
    assert invoice.qr_code_base64.startswith("data:image/png;base64,")
    assert [item.sort_order for item in invoice.items.order_by("sort_order")] == [0, 1]


def test_invoice_needs_items(admin_client):
    response = admin_client.post(reverse("financial_documents:invoices-list"), {"to_individual_name": "X"}, format="json")
    assert response.status_code == 400


def test_selected_items_drive_amount_to_pay(create_invoice):
    invoice = create_invoice(selected_items=[1])

    selected = list(invoice.items.order_by("sort_order").values_list("is_currently_selected", flat=True))
    assert selected == [False, True]
    assert build_invoice_context(invoice)["amount_to_pay"] == "200.00"


def test_invoice_update_replaces_items(admin_client, create_invoice):
    invoice = create_invoice()
    response = admin_client.patch(
        reverse("financial_documents:invoices-detail", args=[invoice.pk]),
        {"items": [{"description": "Deposit", "quantity": "2", "unit_price": "150.00"}]},
        format="json",
    )
    assert response.status_code == 200, response.content
    assert response.json()["total_amount"] == "300.00"
    assert [item["description"] for item in response.json()["items"]] == ["Deposit"]


def test_saved_bank_details_are_copied_and_can_be_stored(admin_client, create_invoice):
    saved = SavedBankDetails.objects.create(
        name="Main account", bank_name="Kasikorn", bank_account_name="Sea View", bank_account_number="123-4-56789"
    )
    invoice = create_invoice(saved_bank_details_id=saved.pk)
    assert invoice.bank_name == "Kasikorn"
    assert invoice.bank_account_number == "123-4-56789"

    create_invoice(bank_name="SCB", bank_account_number="999", save_bank_details=True, bank_details_name="SCB account")
    assert SavedBankDetails.objects.filter(name="SCB account", bank_name="SCB").exists()


def test_unknown_saved_bank_details_is_404(admin_client, no_pdf):
    response = admin_client.post(
        reverse("financial_documents:invoices-list"),
        {"items": [{"description": "Rent", "unit_price": "1"}], "saved_bank_details_id": 9999},
        format="json",
    )
    assert response.status_code == 404


# ---------------- receipts ----------------

def test_full_payment_marks_invoice_paid(admin_client, create_invoice):
    invoice = create_invoice()
    response = post_receipt(admin_client, invoice, "500.00")
    assert response.status_code == 201, response.content
    assert response.json()["receipt_number"].startswith("REC-")

    invoice.refresh_from_db()
    assert invoice.amount_paid == Decimal("500.00")
    assert invoice.status == InvoiceStatus.PAID


def test_partial_payment_then_delete_reverts_to_sent(admin_client, create_invoice):
    invoice = create_invoice()
    receipt_id = post_receipt(admin_client, invoice, "200.00").json()["id"]

    invoice.refresh_from_db()
    assert invoice.status == InvoiceStatus.PARTIALLY_PAID

    response = admin_client.delete(reverse("financial_documents:receipts-detail", args=[receipt_id]))
    assert response.status_code == 204

    invoice.refresh_from_db()
    assert invoice.amount_paid == Decimal("0")
    assert invoice.status == InvoiceStatus.SENT
    assert Receipt.objects.get(pk=receipt_id).deleted_at is not None


def test_receipt_marks_selected_items_paid_and_delete_resets_them(admin_client, create_invoice):
    invoice = create_invoice()
    first_item = invoice.items.order_by("sort_order").first()

    receipt_id = post_receipt(admin_client, invoice, "300.00", selected_items=[first_item.pk]).json()["id"]
    first_item.refresh_from_db()
    assert first_item.is_fully_paid is True
    assert first_item.amount_paid == Decimal("300.00")

    status_rows = admin_client.get(
        reverse("financial_documents:invoices-items-payment-status", args=[invoice.pk])
    ).json()
    assert [row["has_active_receipt"] for row in status_rows] == [True, False]

    admin_client.delete(reverse("financial_documents:receipts-detail", args=[receipt_id]))
    first_item.refresh_from_db()
    assert first_item.is_fully_paid is False
    assert first_item.amount_paid == Decimal("0")


def test_items_of_another_invoice_are_rejected(admin_client, create_invoice):
    invoice = create_invoice()
    other = create_invoice()
    foreign_item = other.items.first()

    response = post_receipt(admin_client, invoice, "100.00", selected_items=[foreign_item.pk])
    assert response.status_code == 400
    invoice.refresh_from_db()
    assert invoice.amount_paid == Decimal("0")


def test_receipt_update_moves_payment_between_invoices(admin_client, create_invoice):
    first = create_invoice()
    second = create_invoice()
    receipt_id = post_receipt(admin_client, first, "500.00").json()["id"]

    response = admin_client.patch(
        reverse("financial_documents:receipts-detail", args=[receipt_id]),
        {"invoice_id": second.pk, "amount_paid": "100.00"},
        format="json",
    )
    assert response.status_code == 200, response.content

    first.refresh_from_db()
    second.refresh_from_db()
    assert (first.amount_paid, first.status) == (Decimal("0"), InvoiceStatus.SENT)
    assert (second.amount_paid, second.status) == (Decimal("100.00"), InvoiceStatus.PARTIALLY_PAID)


def test_receipt_amount_update_on_same_invoice(admin_client, create_invoice):
    invoice = create_invoice()
    receipt_id = post_receipt(admin_client, invoice, "200.00").json()["id"]

    admin_client.patch(
        reverse("financial_documents:receipts-detail", args=[receipt_id]),
        {"amount_paid": "500.00"},
        format="json",
    )
    invoice.refresh_from_db()
    assert invoice.amount_paid == Decimal("500.00")
    assert invoice.status == InvoiceStatus.PAID


def test_receipt_for_deleted_invoice_is_404(admin_client, create_invoice):
    invoice = create_invoice()
    admin_client.delete(reverse("financial_documents:invoices-detail", args=[invoice.pk]))
    assert post_receipt(admin_client, invoice, "10.00").status_code == 404


def test_invoice_delete_can_take_receipts_along(admin_client, create_invoice):
    invoice = create_invoice()
    receipt_id = post_receipt(admin_client, invoice, "100.00").json()["id"]

    response = admin_client.delete(
        reverse("financial_documents:invoices-detail", args=[invoice.pk]) + "?delete_receipts=true"
    )
    assert response.status_code == 204
    assert Receipt.objects.get(pk=receipt_id).deleted_at is not None


def test_receipt_files_upload(admin_client, create_invoice):
    invoice = create_invoice()
    receipt_id = post_receipt(admin_client, invoice, "100.00").json()["id"]
    upload = SimpleUploadedFile("slip.png", b"\x89PNG\r\n\x1a\nfake", content_type="image/png")

    response = admin_client.post(
        reverse("financial_documents:receipts-upload-files", args=[receipt_id]),
        {"files": [upload]},
        format="multipart",
    )
    assert response.status_code == 200, response.content
    assert response.json()["uploaded_count"] == 1

    detail = admin_client.get(reverse("financial_documents:receipts-detail", args=[receipt_id])).json()
    assert detail["files"][0]["file_name"] == "slip.png"
    assert detail["files"][0]["mime_type"] == "image/png"


# ---------------- HTML / public ----------------

def test_internal_invoice_html_needs_key(api_client, settings, create_invoice):
    invoice = create_invoice()
    url = reverse("financial_documents:invoices-internal", args=[invoice.pk])

    assert api_client.get(url, {"internalKey": "nope"}).status_code == 403
    response = api_client.get(url, {"internalKey": settings.INTERNAL_API_KEY})
    assert response.status_code == 200
    html = response.content.decode()
    assert invoice.invoice_number in html
    assert "Rent March" in html


def test_internal_receipt_html(api_client, admin_client, settings, create_invoice):
    invoice = create_invoice()
    receipt_id = post_receipt(admin_client, invoice, "500.00").json()["id"]
    response = api_client.get(
        reverse("financial_documents:receipts-internal", args=[receipt_id]),
        {"internalKey": settings.INTERNAL_API_KEY},
    )
    assert response.status_code == 200
    assert Receipt.objects.get(pk=receipt_id).receipt_number in response.content.decode()


def test_public_invoice_by_uuid(api_client, admin_client, create_invoice):
    invoice = create_invoice()
    url = reverse("financial_documents:public-invoice", args=[invoice.uuid])
    assert api_client.get(url).json()["invoice_number"] == invoice.invoice_number

    admin_client.delete(reverse("financial_documents:invoices-detail", args=[invoice.pk]))
    assert api_client.get(url).status_code == 404


def test_invoice_pdf_is_printed_from_internal_page(admin_client, create_invoice, no_pdf):
    _, documents_printer = no_pdf
    invoice = create_invoice()

    response = admin_client.get(reverse("financial_documents:invoices-pdf", args=[invoice.pk]))
    assert response.status_code == 200
    assert response["Content-Type"] == "application/pdf"
    assert f"/api/financial-documents/invoices/{invoice.pk}/internal" in documents_printer.call_args.args[0]


def test_invoices_by_agreement(admin_client, create_invoice, agreement):
    create_invoice(agreement_id=agreement.pk)
    create_invoice()
    response = admin_client.get(reverse("financial_documents:invoices-by-agreement", args=[agreement.pk]))
    assert response.status_code == 200
    assert len(response.json()) == 1
    assert response.json()[0]["agreement_number"] == agreement.agreement_number
