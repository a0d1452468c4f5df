# backend/financial_documents/services/invoices.py
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Mapping, Optional, Sequence

from django.db import transaction
from django.utils import timezone

from ..models import PARTY_FIELDS, Invoice, InvoiceItem
from .common import (
    attach_qr_code_safely,
    generate_document_number,
    resolve_bank_details,
    save_bank_details_safely,
)
from .payments import ZERO, derive_invoice_status
from .pdf import schedule_document_pdf

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Plain invoice columns a create/update payload may set directly
INVOICE_FIELDS = PARTY_FIELDS + (
    "agreement",
    "invoice_date",
    "due_date",
    "currency",
    "notes",
    "show_qr_code",
)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return (Decimal(quantity) * Decimal(unit_price)).quantize(CENT, rounding=ROUND_HALF_UP)


def build_items(invoice: Invoice, items: Sequence[Mapping[str, Any]], selected: Optional[Sequence[int]] = None) -> List[InvoiceItem]:
    """
    Unsaved item rows. `selected` holds item indexes; an empty selection
    means every item counts towards the amount to pay.
    """
    selected_set = set(selected or [])
    return [
        InvoiceItem(
            invoice=invoice,
            description=item["description"],
            quantity=item.get("quantity", Decimal("1")),
            unit_price=item.get("unit_price", ZERO),
            total_price=line_total(item.get("quantity", Decimal("1")), item.get("unit_price", ZERO)),
            due_date=item.get("due_date"),
            sort_order=index,
            is_currently_selected=(index in selected_set) if selected_set else True,
        )
        for index, item in enumerate(items)
    ]


def compute_totals(items: Sequence[InvoiceItem], tax_amount: Decimal) -> Dict[str, Decimal]:
    subtotal = sum((item.total_price for item in items), ZERO)
    return {"subtotal": subtotal, "tax_amount": tax_amount, "total_amount": subtotal + tax_amount}


def create_invoice(data: Mapping[str, Any], user=None) -> Invoice:
    bank_details = resolve_bank_details(data)

    with transaction.atomic():
        invoice = Invoice(
            invoice_number=generate_document_number(Invoice, "invoice_number", "INV"),
            created_by=user if getattr(user, "is_authenticated", False) else None,
            **{field: data[field] for field in INVOICE_FIELDS if field in data},
            **bank_details,
        )
        items = build_items(invoice, data.get("items") or [], data.get("selected_items"))
        for field, value in compute_totals(items, data.get("tax_amount") or ZERO).items():
            setattr(invoice, field, value)
        invoice.save()
        InvoiceItem.objects.bulk_create(items)

        save_bank_details_safely(data, bank_details, user=user)
        schedule_document_pdf("invoice", invoice.pk)

    attach_qr_code_safely(invoice)
    logger.info("Invoice created: %s (id=%s, total=%s)", invoice.invoice_number, invoice.pk, invoice.total_amount)
    return invoice


def update_invoice(invoice: Invoice, data: Mapping[str, Any], user=None) -> Invoice:
    """
    Items, when given, are replaced wholesale and totals recomputed. A bare
    `selected_items` list only moves the "currently selected" flags.
    """
    bank_details = resolve_bank_details(data)

    with transaction.atomic():
        invoice = Invoice.objects.select_for_update().get(pk=invoice.pk)
        for field in INVOICE_FIELDS:
            if field in data:
                setattr(invoice, field, data[field])
        for field, value in bank_details.items():
            setattr(invoice, field, value)

        items_data = data.get("items")
        if items_data:
            invoice.items.all().delete()
            items = build_items(invoice, items_data, data.get("selected_items"))
            tax_amount = data["tax_amount"] if data.get("tax_amount") is not None else invoice.tax_amount
            for field, value in compute_totals(items, tax_amount).items():
                setattr(invoice, field, value)
            InvoiceItem.objects.bulk_create(items)
        elif "selected_items" in data:
            select_items(invoice, data.get("selected_items") or [])
        elif data.get("tax_amount") is not None:
            invoice.tax_amount = data["tax_amount"]
            invoice.total_amount = invoice.subtotal + invoice.tax_amount

        invoice.status = derive_invoice_status(
            invoice.amount_paid, invoice.total_amount, data.get("status") or invoice.status
        )
        invoice.save()

        save_bank_details_safely(data, bank_details, user=user)
        schedule_document_pdf("invoice", invoice.pk)

    if "show_qr_code" in data:
        attach_qr_code_safely(invoice)
    logger.info("Invoice updated: %s (status=%s)", invoice.invoice_number, invoice.status)
    return invoice


def select_items(invoice: Invoice, indexes: Sequence[int]) -> None:
    items = list(invoice.items.order_by("sort_order", "id"))
    chosen = {items[index].pk for index in indexes if 0 <= index < len(items)}
    invoice.items.update(is_currently_selected=False)
    if chosen:
        invoice.items.filter(pk__in=chosen).update(is_currently_selected=True)


def delete_invoice(invoice: Invoice, delete_receipts: bool = False) -> None:
    now = timezone.now()
    with transaction.atomic():
        if delete_receipts:
            count = invoice.receipts.alive().update(deleted_at=now)
            logger.info("Soft-deleted %d receipt(s) of invoice %s", count, invoice.invoice_number)
        Invoice.objects.filter(pk=invoice.pk).update(deleted_at=now)
    logger.info("Invoice soft-deleted: %s", invoice.invoice_number)


def items_payment_status(invoice: Invoice) -> List[Dict[str, Any]]:
    rows = []
    for item in invoice.items.order_by("sort_order", "id"):
        rows.append({
            "item_id": item.pk,
            "description": item.description,
            "total_price": item.total_price,
            "amount_paid": item.amount_paid,
            "is_fully_paid": item.is_fully_paid,
            "has_active_receipt": item.receipt_links.filter(receipt__deleted_at__isnull=True).exists(),
        })
    return rows
