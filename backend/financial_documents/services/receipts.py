# backend/financial_documents/services/receipts.py
from __future__ import annotations

import logging
import mimetypes
import uuid
from typing import Any, Iterable, Mapping

from django.db import transaction
from django.utils import timezone

from ..models import Receipt, ReceiptFile
from .common import (
    attach_qr_code_safely,
    generate_document_number,
    resolve_bank_details,
    save_bank_details_safely,
)
from .payments import (
    apply_payment,
    invoice_items_for,
    lock_invoice,
    mark_items_paid,
    reset_receipt_items,
    revert_payment,
)
from .pdf import schedule_document_pdf

logger = logging.getLogger(__name__)

RECEIPT_FIELDS = ("agreement", "receipt_date", "amount_paid", "payment_method", "notes", "show_qr_code")


def _lock_invoices(*invoice_ids):
    """Lock invoice rows in id order so two receipts never wait on each other crosswise."""
    return {invoice_id: lock_invoice(invoice_id) for invoice_id in sorted(set(invoice_ids))}


def create_receipt(data: Mapping[str, Any], user=None) -> Receipt:
    bank_details = resolve_bank_details(data)

    with transaction.atomic():
        invoice = lock_invoice(data["invoice_id"])
        items = invoice_items_for(invoice, data.get("selected_items") or [])

        receipt = Receipt.objects.create(
            receipt_number=generate_document_number(Receipt, "receipt_number", "REC"),
            invoice=invoice,
            created_by=user if getattr(user, "is_authenticated", False) else None,
            **{field: data[field] for field in RECEIPT_FIELDS if field in data},
            **bank_details,
        )
        if receipt.agreement_id is None and invoice.agreement_id:
            Receipt.objects.filter(pk=receipt.pk).update(agreement_id=invoice.agreement_id)
            receipt.agreement_id = invoice.agreement_id

        mark_items_paid(receipt, items)
        apply_payment(invoice, receipt.amount_paid)

        save_bank_details_safely(data, bank_details, user=user)
        schedule_document_pdf("receipt", receipt.pk)
        schedule_document_pdf("invoice", invoice.pk)

    attach_qr_code_safely(receipt)
    logger.info(
        "Receipt created: %s (invoice %s, amount=%s, invoice status=%s)",
        receipt.receipt_number, invoice.invoice_number, receipt.amount_paid, invoice.status,
    )
    return receipt


def update_receipt(receipt: Receipt, data: Mapping[str, Any], user=None) -> Receipt:
    """Take the old amount off the old invoice, then book the new amount on the (possibly new) invoice."""
    bank_details = resolve_bank_details(data)

    with transaction.atomic():
        receipt = Receipt.objects.select_for_update().get(pk=receipt.pk)
        old_invoice_id = receipt.invoice_id
        new_invoice_id = data.get("invoice_id") or old_invoice_id
        invoices = _lock_invoices(old_invoice_id, new_invoice_id)

        revert_payment(invoices[old_invoice_id], receipt.amount_paid)

        for field in RECEIPT_FIELDS:
            if field in data:
                setattr(receipt, field, data[field])
        for field, value in bank_details.items():
            setattr(receipt, field, value)
        receipt.invoice = invoices[new_invoice_id]
        receipt.save()

        if "selected_items" in data:
            reset_receipt_items(receipt)
            mark_items_paid(receipt, invoice_items_for(receipt.invoice, data.get("selected_items") or []))

        apply_payment(invoices[new_invoice_id], receipt.amount_paid)

        save_bank_details_safely(data, bank_details, user=user)
        schedule_document_pdf("receipt", receipt.pk)
        for invoice_id in invoices:
            schedule_document_pdf("invoice", invoice_id)

    if "show_qr_code" in data:
        attach_qr_code_safely(receipt)
    logger.info("Receipt updated: %s (amount=%s)", receipt.receipt_number, receipt.amount_paid)
    return receipt


def delete_receipt(receipt: Receipt) -> None:
    with transaction.atomic():
        receipt = Receipt.objects.select_for_update().get(pk=receipt.pk)
        invoice = lock_invoice(receipt.invoice_id)
        revert_payment(invoice, receipt.amount_paid)
        reset_receipt_items(receipt)
        receipt.deleted_at = timezone.now()
        receipt.save(update_fields=["deleted_at", "updated_at"])
        schedule_document_pdf("invoice", invoice.pk)

    logger.info(
        "Receipt soft-deleted: %s (invoice %s now %s / %s)",
        receipt.receipt_number, invoice.invoice_number, invoice.amount_paid, invoice.status,
    )


def upload_receipt_files(receipt: Receipt, files: Iterable[Any]) -> int:
    uploaded = 0
    with transaction.atomic():
        for uploaded_file in files:
            mime_type = getattr(uploaded_file, "content_type", None) or mimetypes.guess_type(uploaded_file.name)[0] or ""
            extension = mime_type.split("/")[-1] if "/" in mime_type else "bin"
            record = ReceiptFile(
                receipt=receipt,
                file_name=uploaded_file.name,
                file_size=uploaded_file.size,
                mime_type=mime_type,
            )
            record.file.save(f"{uuid.uuid4()}.{extension}", uploaded_file, save=True)
            uploaded += 1
            logger.info("Receipt file saved: %s (receipt id=%s)", record.file.name, receipt.pk)

        if uploaded:
            schedule_document_pdf("receipt", receipt.pk)
    return uploaded
