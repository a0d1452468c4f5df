# backend/financial_documents/services/rendering.py
from __future__ import annotations

import base64
import logging
from decimal import Decimal
from typing import Any, Dict, List

from django.template.loader import render_to_string

from agreements.services.templating import format_long_date

from ..models import BankDetailsType, Invoice, PartyType, Receipt

logger = logging.getLogger(__name__)


def format_amount(value) -> str:
    return f"{Decimal(value or 0):,.2f}"


def party_lines(document, side: str) -> List[str]:
    """Printable lines for the issuer ("from") or recipient ("to") block."""
    def get(suffix):
        return getattr(document, f"{side}_{suffix}")

    if get("type") == PartyType.COMPANY:
        lines = [get("company_name")]
        if get("company_tax_id"):
            lines.append(f"Tax ID: {get('company_tax_id')}")
        lines.append(get("company_address"))
        if get("director_name"):
            lines.append(f"Director: {get('director_name')}")
    else:
        lines = [get("individual_name")]
        if get("individual_country"):
            lines.append(get("individual_country"))
        if get("individual_passport"):
            lines.append(f"Passport: {get('individual_passport')}")
    return [line for line in lines if line]


def bank_lines(document) -> List[str]:
    if document.bank_details_type == BankDetailsType.CUSTOM:
        return [line for line in (document.bank_custom_details or "").splitlines() if line.strip()]

    labelled = [
        ("Bank", document.bank_name),
        ("Account name", document.bank_account_name),
        ("Account number", document.bank_account_number),
    ]
    if document.bank_details_type == BankDetailsType.INTERNATIONAL:
        labelled += [
            ("Account address", document.bank_account_address),
            ("Currency", document.bank_currency),
            ("Bank code", document.bank_code),
            ("SWIFT", document.bank_swift_code),
            ("Bank address", document.bank_address),
        ]
    return [f"{label}: {value}" for label, value in labelled if value]


def receipt_file_images(receipt) -> List[str]:
    """Attached receipt images as data URLs, so the printed page needs no media server."""
    images = []
    for record in receipt.files.all():
        if not record.mime_type.startswith("image/"):
            continue
        try:
            with record.file.open("rb") as fh:
                payload = base64.b64encode(fh.read()).decode("ascii")
        except OSError:
            logger.warning("Receipt file missing on disk: %s", record.file.name)
            continue
        images.append(f"data:{record.mime_type};base64,{payload}")
    return images


def agreement_info(agreement) -> Dict[str, Any]:
    if agreement is None:
        return {}
    property_obj = agreement.property
    return {
        "agreement_number": agreement.agreement_number,
        "property_name": property_obj.display_name if property_obj else "",
        "property_number": property_obj.property_number if property_obj else "",
        "address": property_obj.address if property_obj else "",
    }


def build_invoice_context(invoice: Invoice) -> Dict[str, Any]:
    items = list(invoice.items.order_by("sort_order", "id"))
    selected = [item for item in items if item.is_currently_selected]
    if selected and len(selected) < len(items):
        amount_to_pay = sum((item.total_price for item in selected), Decimal("0"))
    else:
        amount_to_pay = invoice.amount_due

    return {
        "invoice": invoice,
        "invoice_date": format_long_date(invoice.invoice_date),
        "due_date": format_long_date(invoice.due_date),
        "from_lines": party_lines(invoice, "from"),
        "to_lines": party_lines(invoice, "to"),
        "items": [
            {
                "number": index,
                "description": item.description,
                "quantity": item.quantity.normalize(),
                "unit_price": format_amount(item.unit_price),
                "total_price": format_amount(item.total_price),
                "due_date": format_long_date(item.due_date),
                "is_fully_paid": item.is_fully_paid,
                "is_selected": item.is_currently_selected,
            }
            for index, item in enumerate(items, start=1)
        ],
        "subtotal": format_amount(invoice.subtotal),
        "tax_amount": format_amount(invoice.tax_amount),
        "total_amount": format_amount(invoice.total_amount),
        "amount_paid": format_amount(invoice.amount_paid),
        "amount_to_pay": format_amount(amount_to_pay),
        "bank_lines": bank_lines(invoice),
        "agreement": agreement_info(invoice.agreement),
    }


def build_receipt_context(receipt: Receipt) -> Dict[str, Any]:
    invoice = receipt.invoice
    allocations = receipt.allocations.select_related("invoice_item")
    return {
        "receipt": receipt,
        "invoice": invoice,
        "receipt_date": format_long_date(receipt.receipt_date),
        "from_lines": party_lines(invoice, "from"),
        "to_lines": party_lines(invoice, "to"),
        "amount_paid": format_amount(receipt.amount_paid),
        "currency": invoice.currency,
        "payment_method": receipt.get_payment_method_display(),
        "paid_items": [
            {
                "description": allocation.invoice_item.description,
                "total_price": format_amount(allocation.invoice_item.total_price),
            }
            for allocation in allocations
        ],
        "bank_lines": bank_lines(receipt),
        "file_images": receipt_file_images(receipt),
        "agreement": agreement_info(receipt.agreement or invoice.agreement),
    }


def render_invoice_document(invoice: Invoice) -> str:
    return render_to_string("financial_documents/invoice.html", build_invoice_context(invoice))


def render_receipt_document(receipt: Receipt) -> str:
    return render_to_string("financial_documents/receipt.html", build_receipt_context(receipt))
