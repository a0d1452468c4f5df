# backend/agreements/services/ai_editor.py
"""
AI-assisted agreement editing through the OpenAI-compatible AI proxy.

Two phases:
  1. `AgreementAIEditor.edit()` asks the model for a full replacement structure,
     renders preview HTML from it and stages the result as an
     AgreementAIEditLog (was_applied=False). The agreement is not touched.
  2. `apply_ai_edit()` commits a staged edit to the agreement row.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Mapping, Optional

import openai
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone
from rest_framework import status

from core.exceptions import BadRequest, UpstreamServiceError

from ..models import Agreement, AgreementAIEditLog, AgreementLogAction
from .lifecycle import log_action
from .pdf import schedule_agreement_pdf
from .rendering import PreviewRenderer, load_structure
from .templating import format_long_date

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a legal assistant editing real-estate agreements.

You receive the agreement as a JSON structure:
{"title": "...", "nodes": [ ... ]}
Node types:
- {"type": "section", "title": "...", "children": [nodes]}
- {"type": "subsection", "number": "1.1", "content": "..."}
- {"type": "paragraph", "content": "..."}
- {"type": "bulletList", "items": ["...", "..."]}

Apply the user's instruction and answer with ONE JSON object:
{
  "description": "short English summary of what changed",
  "descriptionRu": "the same summary in Russian",
  "changedFields": ["database field names whose values change"],
  "changedSections": ["numbers or titles of sections you changed"],
  "conflictsDetected": ["clauses that now contradict each other, if any"],
  "structureAfter": {"title": "...", "nodes": [ ... the COMPLETE updated structure ... ]},
  "databaseUpdates": {"field_name": "new value"}
}

Rules:
- Always return the complete structure, never a fragment.
- Keep numbering consistent after inserting or removing clauses.
- Only use these keys in databaseUpdates: %(fields)s.
- Amounts are plain numbers without currency symbols; dates are YYYY-MM-DD.
- Do not invent parties, amounts or dates the user did not ask for."""


class AIEditorError(UpstreamServiceError):
    pass


def new_conversation_id(agreement_id: int) -> str:
    return f"conv_{int(time.time() * 1000)}_{agreement_id}"


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _parse_structure(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("AI returned structureAfter that is not valid JSON")
            return None
    if not isinstance(value, dict) or not value:
        return None
    return value


def sanitize_database_updates(updates: Any) -> Dict[str, Any]:
    """Keep only agreement fields an AI edit is allowed to write."""
    if not isinstance(updates, dict):
        return {}
    allowed = {key: value for key, value in updates.items() if key in Agreement.FINANCIAL_FIELDS}
    dropped = set(updates) - set(allowed)
    if dropped:
        logger.warning("Ignoring AI database updates for non-editable fields: %s", ", ".join(sorted(dropped)))
    return allowed


def agreement_context(agreement: Agreement) -> Dict[str, Any]:
    context = {}
    for field in Agreement.FINANCIAL_FIELDS:
        value = getattr(agreement, field)
        context[field] = str(value) if value is not None else None
    context["agreement_number"] = agreement.agreement_number
    context["type"] = agreement.type
    context["parties"] = [
        {"role": party.role, "name": party.display_name, "is_company": party.is_company}
        for party in agreement.parties.all()
    ]
    return context


class AgreementAIEditor:
    def __init__(self, client: Optional[openai.OpenAI] = None):
        self.proxy_url = settings.AI_PROXY_URL
        self.proxy_secret = settings.AI_PROXY_SECRET
        self._client = client

    @property
    def is_enabled(self) -> bool:
        return bool(self.proxy_url and self.proxy_secret)

    @property
    def client(self) -> openai.OpenAI:
        if self._client is None:
            self._client = openai.OpenAI(
                api_key=self.proxy_secret,
                base_url=f"{self.proxy_url}/api/openai",
                timeout=settings.AI_TIMEOUT,
                max_retries=0,
            )
        return self._client

    # ── request ───────────────────────────────────────────────────────────────

    def build_messages(self, agreement: Agreement, prompt: str, history: Optional[List[Mapping[str, Any]]] = None):
        messages = [{
            "role": "system",
            "content": SYSTEM_PROMPT % {"fields": ", ".join(Agreement.FINANCIAL_FIELDS)},
        }]
        for item in history or []:
            role = item.get("role")
            content = item.get("content")
            if role in ("user", "assistant") and isinstance(content, str) and content:
                messages.append({"role": role, "content": content})

        structure = load_structure(agreement.structure) or {}
        messages.append({
            "role": "user",
            "content": (
                "Current agreement structure:\n"
                f"{json.dumps(structure, ensure_ascii=False)}\n\n"
                "Agreement data:\n"
                f"{json.dumps(agreement_context(agreement), ensure_ascii=False)}\n\n"
                f"Instruction: {prompt}"
            ),
        })
        return messages

    def complete(self, messages) -> str:
        try:
            completion = self.client.chat.completions.create(
                model=settings.AI_MODEL,
                messages=messages,
                temperature=0.3,
                response_format={"type": "json_object"},
            )
        except openai.AuthenticationError as exc:
            logger.error("AI proxy rejected credentials: %s", exc)
            raise AIEditorError("AI proxy authentication error") from exc
        except openai.APITimeoutError as exc:
            logger.error("AI proxy timed out: %s", exc)
            raise AIEditorError("AI service timed out", status_code=status.HTTP_504_GATEWAY_TIMEOUT) from exc
        except openai.APIConnectionError as exc:
            logger.error("AI proxy connection failed: %s", exc)
            raise AIEditorError("Cannot connect to AI service (connection refused)") from exc
        except openai.APIStatusError as exc:
            logger.error("AI proxy returned HTTP %s: %s", exc.status_code, exc)
            if exc.status_code == status.HTTP_503_SERVICE_UNAVAILABLE:
                raise AIEditorError(
                    "AI service temporarily unavailable",
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                )
            raise AIEditorError(f"AI service error (HTTP {exc.status_code})") from exc

        if not completion.choices:
            raise AIEditorError("AI service returned an empty response")
        return completion.choices[0].message.content or ""

    # ── phase 1 ───────────────────────────────────────────────────────────────

    def edit(self, agreement: Agreement, prompt: str, history=None) -> Dict[str, Any]:
        if not self.is_enabled:
            raise AIEditorError(
                "AI editing is not configured", status_code=status.HTTP_503_SERVICE_UNAVAILABLE
            )

        raw = self.complete(self.build_messages(agreement, prompt, history))
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("AI returned invalid JSON for agreement %s: %.200s", agreement.pk, raw)
            raise AIEditorError("AI returned invalid JSON")
        if not isinstance(data, dict):
            raise AIEditorError("AI returned invalid JSON")

        structure_after = _parse_structure(data.get("structureAfter"))
        html_after = ""
        if structure_after is not None:
            html_after = PreviewRenderer().render(
                structure_after,
                date_text=format_long_date(agreement.created_at),
                city=agreement.city,
            )

        if structure_after is None or not html_after:
            logger.warning("AI edit produced no usable structure for agreement %s; keeping original", agreement.pk)
            structure_after = load_structure(agreement.structure)
            html_after = agreement.content

        return {
            "description": data.get("description") or "",
            "descriptionRu": data.get("descriptionRu") or "",
            "changedFields": _as_list(data.get("changedFields")),
            "changedSections": _as_list(data.get("changedSections")),
            "conflictsDetected": _as_list(data.get("conflictsDetected")),
            "htmlAfter": html_after,
            "structureAfter": structure_after,
            "databaseUpdates": sanitize_database_updates(data.get("databaseUpdates")),
            "aiResponse": raw,
        }


def stage_ai_edit(agreement: Agreement, result: Mapping[str, Any], prompt: str, conversation_id: str, user=None):
    """Persist the pending change. Best-effort: returns None when logging fails."""
    try:
        return AgreementAIEditLog.objects.create(
            agreement=agreement,
            user=user if getattr(user, "is_authenticated", False) else None,
            conversation_id=conversation_id,
            prompt=prompt,
            description=result.get("description") or "",
            changes_summary={
                "changedFields": result.get("changedFields") or [],
                "changedSections": result.get("changedSections") or [],
                "conflictsDetected": result.get("conflictsDetected") or [],
                "descriptionRu": result.get("descriptionRu") or "",
            },
            structure_before=load_structure(agreement.structure),
            structure_after=result.get("structureAfter"),
            html_before=agreement.content,
            html_after=result.get("htmlAfter") or "",
            database_updates=result.get("databaseUpdates") or {},
            ai_response=result.get("aiResponse") or "",
        )
    except Exception:
        logger.exception("Failed to save AI edit log (agreement id=%s)", agreement.pk)
        return None


# ── phase 2 ───────────────────────────────────────────────────────────────────

def _coerce_update(field_name: str, value: Any):
    field = Agreement._meta.get_field(field_name)
    if value in (None, "") and field.null:
        return None
    return field.to_python(value)


def apply_ai_edit(
    agreement: Agreement,
    *,
    staged: Optional[AgreementAIEditLog] = None,
    html_after: Optional[str] = None,
    structure_after: Any = None,
    database_updates: Optional[Mapping[str, Any]] = None,
    user=None,
    ip_address=None,
) -> Agreement:
    """
    Commit an AI edit. Explicit html/structure/updates win over the staged
    record's values.
    """
    if staged is not None:
        html_after = html_after or staged.html_after
        if structure_after in (None, "", {}):
            structure_after = staged.structure_after
        if database_updates is None:
            database_updates = staged.database_updates

    if not html_after:
        raise BadRequest("htmlAfter is required")

    structure = _parse_structure(structure_after)
    updates = sanitize_database_updates(database_updates or {})

    with transaction.atomic():
        agreement = Agreement.objects.select_for_update().get(pk=agreement.pk)
        agreement.content = html_after
        if structure is not None:
            agreement.structure = structure

        applied_fields = []
        for field_name, value in updates.items():
            try:
                setattr(agreement, field_name, _coerce_update(field_name, value))
                applied_fields.append(field_name)
            except DjangoValidationError:
                logger.warning("Skipping invalid AI update %s=%r (agreement id=%s)", field_name, value, agreement.pk)
        agreement.save()

        if staged is not None:
            AgreementAIEditLog.objects.filter(pk=staged.pk).update(was_applied=True, applied_at=timezone.now())

        description = "AI edit applied"
        if staged is not None and staged.description:
            description = f"AI edit applied: {staged.description}"
        if applied_fields:
            description += f" (fields: {', '.join(applied_fields)})"
        log_action(agreement, AgreementLogAction.AI_EDIT, description, user=user, ip_address=ip_address)
        schedule_agreement_pdf(agreement.pk)

    logger.info("AI edit applied to agreement %s", agreement.agreement_number)
    return agreement


def find_staged_edit(agreement: Agreement, log_id=None, conversation_id=None) -> Optional[AgreementAIEditLog]:
    qs = AgreementAIEditLog.objects.filter(agreement=agreement)
    if log_id:
        return qs.filter(pk=log_id).first()
    if conversation_id:
        return qs.filter(conversation_id=conversation_id, was_applied=False).order_by("-created_at", "-id").first()
    return None
