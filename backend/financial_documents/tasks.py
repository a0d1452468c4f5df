# financial_documents/tasks.py

import logging

from celery import shared_task

from financial_documents.services.pdf import generate_document_pdf

logger = logging.getLogger(__name__)


@shared_task(name="generate_financial_document_pdf")
def task_generate_document_pdf(kind: str, document_id: int):
    try:
        document = generate_document_pdf(kind, document_id)
        logger.info("Generated PDF for %s ID %s: %s", kind, document_id, document.pdf_file.name)
    except Exception:
        logger.exception("Error generating PDF for %s ID %s", kind, document_id)
