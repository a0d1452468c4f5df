# backend/financial_documents/services/common.py
"""Helpers shared by invoices and receipts: numbering, bank details, QR codes."""
from __future__ import annotations

import logging
import string
from typing import Any, Dict, Mapping

from django.db import DatabaseError, transaction
from django.utils import timezone
from django.utils.crypto import get_random_string
from rest_framework.exceptions import NotFound

from core.qrcodes import qr_code_data_url

from ..models import BANK_FIELDS, SavedBankDetails

logger = logging.getLogger(__name__)

NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_document_number(model, field: str, prefix: str) -> str:
    """`<prefix>-<year>-<3 random chars><running count for the year, 4 digits>`"""
    year = timezone.now().year
    count = model.objects.filter(**{f"{field}__startswith": f"{prefix}-{year}-"}).count()
    return f"{prefix}-{year}-{get_random_string(3, allowed_chars=NUMBER_ALPHABET)}{count + 1:04d}"


def resolve_bank_details(data: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Saved bank details win over inline fields. Inline fields are returned
    only when present in the payload, so partial updates leave the rest alone.
    """
    saved_id = data.get("saved_bank_details_id")
    if saved_id:
        saved = SavedBankDetails.objects.filter(pk=saved_id).first()
        if saved is None:
            raise NotFound("Saved bank details not found")
        return saved.bank_details()
    return {field: data[field] for field in BANK_FIELDS if field in data}


def save_bank_details_safely(data: Mapping[str, Any], bank_details: Mapping[str, Any], user=None):
    """Store the bank details under `bank_details_name` when asked to. Never fails the caller."""
    name = (data.get("bank_details_name") or "").strip()
    if not data.get("save_bank_details") or not name:
        return None
    try:
        with transaction.atomic():
            saved = SavedBankDetails.objects.create(
                name=name,
                created_by=user if getattr(user, "is_authenticated", False) else None,
                **{field: value for field, value in bank_details.items() if value is not None},
            )
    except DatabaseError:
        logger.exception("Could not save bank details %r", name)
        return None
    logger.info("Bank details saved: %s", name)
    return saved


def attach_qr_code_safely(document) -> None:
    """QR code pointing at the document's public page. Cleared when show_qr_code is off."""
    try:
        document.qr_code_base64 = qr_code_data_url(document.public_url) if document.show_qr_code else ""
        type(document).objects.filter(pk=document.pk).update(qr_code_base64=document.qr_code_base64)
    except Exception:
        logger.exception("QR code generation failed (%s id=%s)", type(document).__name__, document.pk)
