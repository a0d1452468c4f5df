# backend/financial_documents/services/payments.py
"""
Receipt -> invoice bookkeeping. `Invoice.amount_paid` is a running total
adjusted by every receipt create/update/delete; callers hold the invoice row
lock (`lock_invoice`) for the whole read-modify-write.
"""
from decimal import Decimal
from typing import Iterable, List

from django.db.models import F
from rest_framework.exceptions import NotFound

from core.exceptions import BadRequest

from ..models import Invoice, InvoiceItem, InvoiceStatus, ReceiptInvoiceItem

ZERO = Decimal("0")


def derive_invoice_status(amount_paid: Decimal, total_amount: Decimal, fallback: str) -> str:
    if amount_paid <= 0:
        return fallback
    if amount_paid >= total_amount:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIALLY_PAID


def lock_invoice(invoice_id) -> Invoice:
    try:
        return Invoice.objects.alive().select_for_update().get(pk=invoice_id)
    except Invoice.DoesNotExist:
        raise NotFound("Invoice not found") from None


def apply_payment(invoice: Invoice, amount: Decimal) -> Invoice:
    invoice.amount_paid = invoice.amount_paid + amount
    invoice.status = derive_invoice_status(invoice.amount_paid, invoice.total_amount, invoice.status)
    invoice.save(update_fields=["amount_paid", "status", "updated_at"])
    return invoice


def revert_payment(invoice: Invoice, amount: Decimal) -> Invoice:
    invoice.amount_paid = max(invoice.amount_paid - amount, ZERO)
    invoice.status = derive_invoice_status(invoice.amount_paid, invoice.total_amount, InvoiceStatus.SENT)
    invoice.save(update_fields=["amount_paid", "status", "updated_at"])
    return invoice


def invoice_items_for(invoice: Invoice, item_ids: Iterable[int]) -> List[InvoiceItem]:
    item_ids = list(dict.fromkeys(item_ids))
    items = list(InvoiceItem.objects.filter(invoice=invoice, pk__in=item_ids))
    if len(items) != len(item_ids):
        missing = sorted(set(item_ids) - {item.pk for item in items})
        raise BadRequest(f"Items do not belong to invoice {invoice.invoice_number}: {missing}")
    return items


def mark_items_paid(receipt, items: List[InvoiceItem]) -> None:
    ReceiptInvoiceItem.objects.bulk_create([
        ReceiptInvoiceItem(receipt=receipt, invoice_item=item, amount_allocated=item.total_price)
        for item in items
    ])
    InvoiceItem.objects.filter(pk__in=[item.pk for item in items]).update(
        is_fully_paid=True, amount_paid=F("total_price")
    )


def reset_receipt_items(receipt) -> int:
    item_ids = list(receipt.allocations.values_list("invoice_item_id", flat=True))
    InvoiceItem.objects.filter(pk__in=item_ids).update(is_fully_paid=False, amount_paid=ZERO)
    receipt.allocations.all().delete()
    return len(item_ids)
