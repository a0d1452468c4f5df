# backend/financial_documents/services/pdf.py
from __future__ import annotations

import logging
import time
from functools import partial
from urllib.parse import urlencode

from django.conf import settings
from django.core.files.base import ContentFile
from django.db import transaction
from django.urls import reverse
from django.utils import timezone

from core.pdf_printer import print_url_to_pdf

from ..models import Invoice, Receipt

logger = logging.getLogger(__name__)

# kind -> (model, internal route name, file prefix)
DOCUMENT_KINDS = {
    "invoice": (Invoice, "financial_documents:invoices-internal", "invoice"),
    "receipt": (Receipt, "financial_documents:receipts-internal", "receipt"),
}


def internal_html_url(kind: str, document_id: int) -> str:
    _, route_name, _ = DOCUMENT_KINDS[kind]
    path = reverse(route_name, args=[document_id])
    query = urlencode({"internalKey": settings.INTERNAL_API_KEY})
    return f"{settings.INTERNAL_BASE_URL}{path}?{query}"


def generate_document_pdf(kind: str, document_id: int):
    """Replace the stored PDF of an invoice or receipt. Raises on failure."""
    model, _, prefix = DOCUMENT_KINDS[kind]
    document = model.objects.get(pk=document_id)

    if document.pdf_file and document.pdf_file.name:
        try:
            document.pdf_file.delete(save=False)
        except OSError:
            logger.warning("Could not delete old PDF %s (%s id=%s)", document.pdf_file.name, kind, document.pk)

    pdf_bytes = print_url_to_pdf(internal_html_url(kind, document.pk))

    document.pdf_file.save(f"{prefix}-{document.pk}-{int(time.time() * 1000)}.pdf", ContentFile(pdf_bytes), save=False)
    document.pdf_generated_at = timezone.now()
    model.objects.filter(pk=document.pk).update(
        pdf_file=document.pdf_file.name,
        pdf_generated_at=document.pdf_generated_at,
    )
    logger.info("%s PDF generated: %s (id=%s)", kind.capitalize(), document.pdf_file.name, document.pk)
    return document


def regenerate_document_pdf_safely(kind: str, document_id: int) -> None:
    if settings.PDF_GENERATION_ASYNC:
        from financial_documents.tasks import task_generate_document_pdf

        try:
            task_generate_document_pdf.delay(kind, document_id)
        except Exception:
            logger.exception("Could not queue PDF generation (%s id=%s)", kind, document_id)
        return

    try:
        generate_document_pdf(kind, document_id)
    except Exception:
        logger.exception("PDF generation failed (%s id=%s)", kind, document_id)


def schedule_document_pdf(kind: str, document_id: int) -> None:
    transaction.on_commit(partial(regenerate_document_pdf_safely, kind, document_id))


def ensure_document_pdf(kind: str, document):
    if document.pdf_file and document.pdf_file.name and document.pdf_file.storage.exists(document.pdf_file.name):
        return document
    return generate_document_pdf(kind, document.pk)
