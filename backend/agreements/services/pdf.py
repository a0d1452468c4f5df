# backend/agreements/services/pdf.py
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

logger = logging.getLogger(__name__)


def internal_html_url(agreement_id: int) -> str:
    path = reverse("agreements:agreements-internal", args=[agreement_id])
    query = urlencode({"internalKey": settings.INTERNAL_API_KEY})
    return f"{settings.INTERNAL_BASE_URL}{path}?{query}"


def _clear_stored_pdf(agreement) -> None:
    if agreement.pdf_file and agreement.pdf_file.name:
        try:
            agreement.pdf_file.delete(save=False)
        except OSError:
            logger.warning("Could not delete old PDF %s (agreement id=%s)", agreement.pdf_file.name, agreement.pk)


def generate_agreement_pdf(agreement_id: int):
    """
    Replace the stored PDF of an agreement with a freshly printed one.
    Raises on failure; callers decide whether that is fatal.
    """
    from agreements.models import Agreement

    agreement = Agreement.objects.get(pk=agreement_id)
    _clear_stored_pdf(agreement)

    pdf_bytes = print_url_to_pdf(internal_html_url(agreement.pk))

    filename = f"agreement-{agreement.pk}-{int(time.time() * 1000)}.pdf"
    agreement.pdf_file.save(filename, ContentFile(pdf_bytes), save=False)
    agreement.pdf_generated_at = timezone.now()
    Agreement.objects.filter(pk=agreement.pk).update(
        pdf_file=agreement.pdf_file.name,
        pdf_generated_at=agreement.pdf_generated_at,
    )
    logger.info("Agreement PDF generated: %s (agreement id=%s)", agreement.pdf_file.name, agreement.pk)
    return agreement


def regenerate_agreement_pdf_safely(agreement_id: int) -> None:
    """Best-effort regeneration: failures are logged, never raised."""
    if settings.PDF_GENERATION_ASYNC:
        from agreements.tasks import task_generate_agreement_pdf

        try:
            task_generate_agreement_pdf.delay(agreement_id)
        except Exception:
            logger.exception("Could not queue PDF generation (agreement id=%s)", agreement_id)
        return

    try:
        generate_agreement_pdf(agreement_id)
    except Exception:
        logger.exception("PDF generation failed (agreement id=%s)", agreement_id)


def schedule_agreement_pdf(agreement_id: int) -> None:
    """Regenerate once the surrounding transaction commits (the printer reads the row)."""
    transaction.on_commit(partial(regenerate_agreement_pdf_safely, agreement_id))


def ensure_agreement_pdf(agreement):
    """Stored PDF if it is still on disk, otherwise print one now (raises on failure)."""
    if agreement.pdf_file and agreement.pdf_file.name and agreement.pdf_file.storage.exists(agreement.pdf_file.name):
        return agreement
    return generate_agreement_pdf(agreement.pk)
