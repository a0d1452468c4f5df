# agreements/tasks.py

import logging

from celery import shared_task

from agreements.models import Agreement
from agreements.services.pdf import generate_agreement_pdf

logger = logging.getLogger(__name__)


@shared_task(name="generate_agreement_pdf")
def task_generate_agreement_pdf(agreement_id: int):
    """
    Celery task used when PDF_GENERATION_ASYNC is on. Same best-effort
    contract as the inline path: errors are logged, not retried.
    """
    try:
        agreement = generate_agreement_pdf(agreement_id)
        logger.info("Generated PDF for Agreement ID %s: %s", agreement_id, agreement.pdf_file.name)
    except Agreement.DoesNotExist:
        logger.warning("Agreement with ID %s not found for PDF task.", agreement_id)
    except Exception:
        logger.exception("Error generating PDF for Agreement ID %s", agreement_id)
