# backend/agreements/services/lifecycle.py
"""
Agreement lifecycle: creation from a template, signature state machine,
signature management and party documents.

Status is driven by signature rows while the agreement is in one of
draft / pending_signatures / signed:

    no signatures          -> draft
    some unsigned          -> pending_signatures
    every signature signed -> signed

active / expired / cancelled are set explicitly by an admin and are left alone.
"""
from __future__ import annotations

import base64
import logging
import mimetypes
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

from django.conf import settings
from django.core.files.base import ContentFile
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound

from core.client_info import describe_user_agent
from core.exceptions import BadRequest
from core.qrcodes import qr_code_data_url

from ..models import (
    Agreement,
    AgreementLog,
    AgreementLogAction,
    AgreementParty,
    AgreementPartyDocument,
    AgreementSignature,
    AgreementStatus,
)
from .pdf import schedule_agreement_pdf
from .templating import (
    build_agreement_variables,
    calculate_total_rent,
    party_prefix,
    replace_template_variables,
    replace_variables_in_structure,
)

logger = logging.getLogger(__name__)

SIGNATURE_DRIVEN_STATUSES = {
    AgreementStatus.DRAFT,
    AgreementStatus.PENDING_SIGNATURES,
    AgreementStatus.SIGNED,
}

AGREEMENT_FIELDS = (
    "type",
    "description",
    "city",
    "date_from",
    "date_to",
    "rent_amount_monthly",
    "rent_amount_total",
    "deposit_amount",
    "utilities_included",
    "bank_name",
    "bank_account_name",
    "bank_account_number",
    "upon_signed_pay",
    "upon_checkin_pay",
    "upon_checkout_pay",
)

PARTY_FIELDS = (
    "is_company",
    "individual_name",
    "individual_country",
    "individual_passport",
    "company_name",
    "company_address",
    "company_tax_id",
    "director_name",
    "director_passport",
    "director_country",
)


def log_action(agreement, action: str, description: str = "", user=None, ip_address=None) -> AgreementLog:
    return AgreementLog.objects.create(
        agreement=agreement,
        action=action,
        description=description,
        user=user if getattr(user, "is_authenticated", False) else None,
        ip_address=ip_address,
    )


def refresh_agreement_status(agreement_id: int) -> str:
    """Recompute a signature-driven status from the signature rows."""
    agreement = Agreement.objects.select_for_update().get(pk=agreement_id)
    if agreement.status not in SIGNATURE_DRIVEN_STATUSES:
        return agreement.status

    signatures = AgreementSignature.objects.filter(agreement_id=agreement_id)
    if not signatures.exists():
        new_status = AgreementStatus.DRAFT
    elif signatures.filter(is_signed=False).exists():
        new_status = AgreementStatus.PENDING_SIGNATURES
    else:
        new_status = AgreementStatus.SIGNED

    if new_status != agreement.status:
        agreement.status = new_status
        agreement.save(update_fields=["status", "updated_at"])
        logger.info("Agreement %s status -> %s", agreement.agreement_number, new_status)
    return new_status


def attach_qr_code_safely(agreement: Agreement) -> None:
    try:
        agreement.qr_code_base64 = qr_code_data_url(agreement.verify_url)
        agreement.save(update_fields=["qr_code_base64"])
    except Exception:
        logger.exception("QR code generation failed (agreement id=%s)", agreement.pk)


# ──────────────────────────────────────────────────────────────────────────────
# Creation
# ──────────────────────────────────────────────────────────────────────────────

def _party_values(party_data: Mapping[str, Any]) -> Dict[str, Any]:
    values = {field: party_data.get(field) or "" for field in PARTY_FIELDS if field != "is_company"}
    values["is_company"] = bool(party_data.get("is_company"))
    return values


def _property_variables(property_obj, data: Mapping[str, Any]) -> Dict[str, str]:
    values = {
        "property_name": data.get("property_name") or "",
        "property_number": data.get("property_number") or "",
        "property_address": data.get("property_address") or "",
    }
    if property_obj is not None:
        values["property_name"] = values["property_name"] or property_obj.display_name
        values["property_number"] = values["property_number"] or property_obj.property_number
        values["property_address"] = values["property_address"] or property_obj.address
    return values


def create_agreement(
    *,
    template,
    data: Mapping[str, Any],
    parties: Iterable[Mapping[str, Any]] = (),
    property_obj=None,
    user=None,
    ip_address: Optional[str] = None,
) -> Agreement:
    """
    Instantiate an agreement from `template`.

    `data` carries agreement fields plus optional property_* overrides;
    `parties` carries party dicts in signing order. One signature row is
    created per party.
    """
    parties = list(parties)
    values = {field: data.get(field) for field in AGREEMENT_FIELDS}
    values["type"] = values["type"] or template.type
    values["city"] = values["city"] or ""
    for text_field in ("description", "utilities_included", "bank_name", "bank_account_name", "bank_account_number"):
        values[text_field] = values[text_field] or ""

    if values["rent_amount_total"] in (None, ""):
        values["rent_amount_total"] = calculate_total_rent(
            values["rent_amount_monthly"], values["date_from"], values["date_to"]
        )

    number = Agreement.generate_number()
    variables = build_agreement_variables(
        {**values, **_property_variables(property_obj, data), "agreement_number": number},
        parties,
    )

    with transaction.atomic():
        agreement = Agreement.objects.create(
            agreement_number=number,
            template=template,
            property=property_obj,
            content=replace_template_variables(template.content, variables),
            structure=replace_variables_in_structure(template.structure, variables),
            created_by=user if getattr(user, "is_authenticated", False) else None,
            **values,
        )

        for index, party_data in enumerate(parties):
            role = party_prefix(party_data, index)
            party = AgreementParty.objects.create(
                agreement=agreement,
                role=role,
                **_party_values(party_data),
            )
            AgreementSignature.objects.create(
                agreement=agreement,
                signer_name=party.display_name,
                signer_role=role,
                position=index,
            )

        refresh_agreement_status(agreement.pk)
        agreement.refresh_from_db()
        attach_qr_code_safely(agreement)
        log_action(
            agreement,
            AgreementLogAction.CREATED,
            f"Agreement {number} created from template \"{template.name}\"",
            user=user,
            ip_address=ip_address,
        )
        schedule_agreement_pdf(agreement.pk)

    logger.info("Agreement created: %s (%d parties)", number, len(parties))
    return agreement


def update_agreement(agreement: Agreement, changes: Mapping[str, Any], user=None, ip_address=None) -> Agreement:
    if not changes:
        return agreement
    with transaction.atomic():
        for field, value in changes.items():
            setattr(agreement, field, value)
        agreement.save()
        log_action(
            agreement,
            AgreementLogAction.UPDATED,
            "Updated fields: " + ", ".join(sorted(changes)),
            user=user,
            ip_address=ip_address,
        )
        schedule_agreement_pdf(agreement.pk)
    return agreement


def delete_agreement(agreement: Agreement, user=None, ip_address=None) -> None:
    with transaction.atomic():
        agreement.soft_delete()
        log_action(agreement, AgreementLogAction.DELETED, "Agreement deleted", user=user, ip_address=ip_address)
    logger.info("Agreement soft-deleted: %s", agreement.agreement_number)


# ──────────────────────────────────────────────────────────────────────────────
# Signing
# ──────────────────────────────────────────────────────────────────────────────

def get_live_signature(*, signature_id=None, signature_link=None, for_update=False) -> AgreementSignature:
    qs = AgreementSignature.objects.select_related("agreement")
    if for_update:
        qs = qs.select_for_update()
    lookup = {"signature_link": signature_link} if signature_link is not None else {"pk": signature_id}
    try:
        signature = qs.get(**lookup)
    except (AgreementSignature.DoesNotExist, ValueError):
        raise NotFound("Signature not found") from None
    if signature.agreement.deleted_at is not None:
        raise NotFound("Signature not found")
    return signature


def record_first_visit(signature: AgreementSignature, ip_address, user_agent: str) -> bool:
    """Store device details on the first visit only. Returns True when stored."""
    if signature.first_visit_at is not None:
        return False

    info = describe_user_agent(user_agent)
    now = timezone.now()
    updated = AgreementSignature.objects.filter(pk=signature.pk, first_visit_at__isnull=True).update(
        first_visit_at=now,
        ip_address=ip_address,
        user_agent=user_agent,
        device_type=info["device_type"],
        browser=info["browser"],
        os=info["os"],
    )
    if updated:
        signature.refresh_from_db()
        logger.info("First visit recorded for signature %s (%s, %s)", signature.pk, info["device_type"], info["browser"])
    return bool(updated)


def sign(
    *,
    signature_data: str,
    signature_id=None,
    signature_link=None,
    analytics: Optional[Mapping[str, Any]] = None,
    ip_address=None,
    user=None,
) -> Dict[str, Any]:
    if not signature_data:
        raise BadRequest("Signature data is required")
    analytics = analytics or {}

    with transaction.atomic():
        signature = get_live_signature(
            signature_id=signature_id, signature_link=signature_link, for_update=True
        )
        if signature.is_signed:
            raise BadRequest("This signature has already been signed")

        signature.is_signed = True
        signature.signature_data = signature_data
        signature.signed_at = timezone.now()
        signature.ip_address = ip_address
        for field in ("agreement_view_duration", "signature_clear_count", "total_session_duration"):
            setattr(signature, field, AgreementSignature.clamp_analytics(analytics.get(field)))
        signature.save(update_fields=[
            "is_signed", "signature_data", "signed_at", "ip_address",
            "agreement_view_duration", "signature_clear_count", "total_session_duration",
            "updated_at",
        ])

        all_signed = not AgreementSignature.objects.filter(
            agreement_id=signature.agreement_id, is_signed=False
        ).exists()
        refresh_agreement_status(signature.agreement_id)

        log_action(
            signature.agreement,
            AgreementLogAction.SIGNED,
            f"Signed by {signature.signer_name} ({signature.signer_role})",
            user=user,
            ip_address=ip_address,
        )
        schedule_agreement_pdf(signature.agreement_id)

    logger.info(
        "Signature %s signed (agreement %s, all_signed=%s)",
        signature.pk, signature.agreement.agreement_number, all_signed,
    )
    return {"signature": signature, "all_signed": all_signed}


# ──────────────────────────────────────────────────────────────────────────────
# Signature management (admin)
# ──────────────────────────────────────────────────────────────────────────────

def add_signatures(agreement: Agreement, items: List[Mapping[str, Any]], user=None, ip_address=None) -> List[AgreementSignature]:
    roles = [item["signer_role"] for item in items]
    if len(roles) != len(set(roles)):
        raise BadRequest("Signer roles must be unique")

    with transaction.atomic():
        Agreement.objects.select_for_update().get(pk=agreement.pk)
        taken = set(agreement.signatures.values_list("signer_role", flat=True))
        for role in roles:
            if role in taken:
                raise BadRequest(f"Role {role} already in use")

        offset = agreement.signatures.count()
        created = [
            AgreementSignature.objects.create(
                agreement=agreement,
                signer_name=item["signer_name"],
                signer_role=item["signer_role"],
                position=item.get("position", offset + index),
            )
            for index, item in enumerate(items)
        ]
        refresh_agreement_status(agreement.pk)
        log_action(
            agreement,
            AgreementLogAction.SIGNATURE_ADDED,
            "Signatures added: " + ", ".join(f"{s.signer_name} ({s.signer_role})" for s in created),
            user=user,
            ip_address=ip_address,
        )
        schedule_agreement_pdf(agreement.pk)
    return created


def update_signature(signature: AgreementSignature, changes: Mapping[str, Any], user=None, ip_address=None):
    new_role = changes.get("signer_role")
    if new_role and new_role != signature.signer_role:
        clash = AgreementSignature.objects.filter(
            agreement_id=signature.agreement_id, signer_role=new_role
        ).exclude(pk=signature.pk)
        if clash.exists():
            raise BadRequest(f"Role {new_role} already in use")

    with transaction.atomic():
        for field in ("signer_name", "signer_role", "position"):
            if field in changes:
                setattr(signature, field, changes[field])
        signature.save()
        log_action(
            signature.agreement,
            AgreementLogAction.SIGNATURE_UPDATED,
            f"Signature {signature.pk} updated: {signature.signer_name} ({signature.signer_role})",
            user=user,
            ip_address=ip_address,
        )
        schedule_agreement_pdf(signature.agreement_id)
    return signature


def regenerate_signature_link(signature: AgreementSignature, user=None, ip_address=None) -> AgreementSignature:
    with transaction.atomic():
        signature.signature_link = uuid.uuid4()
        signature.save(update_fields=["signature_link", "updated_at"])
        log_action(
            signature.agreement,
            AgreementLogAction.LINK_REGENERATED,
            f"Signature link regenerated for {signature.signer_name} ({signature.signer_role})",
            user=user,
            ip_address=ip_address,
        )
    return signature


def delete_signature(signature: AgreementSignature, user=None, ip_address=None) -> str:
    agreement = signature.agreement
    with transaction.atomic():
        description = f"Signature deleted: {signature.signer_name} ({signature.signer_role})"
        signature.delete()
        new_status = refresh_agreement_status(agreement.pk)
        log_action(agreement, AgreementLogAction.SIGNATURE_DELETED, description, user=user, ip_address=ip_address)
        schedule_agreement_pdf(agreement.pk)
    return new_status


# ──────────────────────────────────────────────────────────────────────────────
# Party documents
# ──────────────────────────────────────────────────────────────────────────────

def attach_party_document(party: AgreementParty, uploaded_file, document_type: str = "passport") -> AgreementPartyDocument:
    mime_type = getattr(uploaded_file, "content_type", None) or mimetypes.guess_type(uploaded_file.name)[0] or ""
    if not mime_type.startswith("image/"):
        raise BadRequest("Only image files can be attached as party documents")
    if uploaded_file.size > settings.PARTY_DOCUMENT_MAX_SIZE:
        raise BadRequest("File is too large")

    payload = uploaded_file.read()
    extension = mime_type.split("/")[1] or "jpg"
    document = AgreementPartyDocument(
        party=party,
        document_base64=f"data:{mime_type};base64,{base64.b64encode(payload).decode('ascii')}",
        document_type=document_type,
        file_size=len(payload),
        mime_type=mime_type,
    )
    document.document.save(f"{uuid.uuid4()}.{extension}", ContentFile(payload), save=True)
    logger.info("Party document saved: party=%s file=%s (%d bytes)", party.pk, document.document.name, len(payload))
    return document


def remove_party_documents(party: AgreementParty) -> int:
    removed = 0
    for document in party.documents.all():
        if document.document and document.document.name:
            try:
                document.document.delete(save=False)
            except OSError:
                logger.warning("Failed to delete file %s", document.document.name)
        document.delete()
        removed += 1
    return removed


def upload_agreement_documents(agreement: Agreement, files: Mapping[str, Any], party_mapping: Optional[Mapping[str, Any]] = None, user=None, ip_address=None) -> int:
    """
    Files arrive as `party_<index>_doc_<n>`; <index> is the party's position
    in the create payload, resolved through `party_mapping` (index -> party id)
    or, without a mapping, through the agreement's parties in creation order.
    """
    parties = list(agreement.parties.all())
    by_id = {party.pk: party for party in parties}

    uploaded = 0
    with transaction.atomic():
        for field_name, uploaded_file in files.items():
            parts = field_name.split("_")
            if len(parts) != 4 or parts[0] != "party" or parts[2] != "doc" or not parts[1].isdigit():
                continue
            index = int(parts[1])
            if party_mapping:
                party = by_id.get(int(party_mapping.get(str(index)) or 0))
            else:
                party = parties[index] if index < len(parties) else None
            if party is None:
                logger.warning("No party found for upload field %s (agreement id=%s)", field_name, agreement.pk)
                continue
            attach_party_document(party, uploaded_file)
            uploaded += 1

        if uploaded:
            log_action(
                agreement,
                AgreementLogAction.DOCUMENTS_UPLOADED,
                f"Documents uploaded: {uploaded}",
                user=user,
                ip_address=ip_address,
            )
            schedule_agreement_pdf(agreement.pk)
    return uploaded
