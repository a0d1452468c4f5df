# backend/agreements/services/rendering.py
"""
Structure tree → HTML.

A structure is `{"title": ..., "nodes": [...]}` where each node is one of:

    {"type": "section", "title": "...", "children": [...]}
    {"type": "subsection", "number": "1.1", "content": "..."}
    {"type": "paragraph", "content": "..."}
    {"type": "bulletList", "items": ["...", "..."]}

`StructureRenderer` owns the depth-first walk; `DocumentBodyRenderer` (print /
public page) and `PreviewRenderer` (bare HTML after an AI edit) only decide
what each node type turns into. Node content is trusted admin HTML and is
emitted as-is. Unknown node types are skipped.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from django.conf import settings
from django.template.loader import render_to_string
from django.utils.safestring import mark_safe

from .templating import format_long_date, parse_date

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "LEASE AGREEMENT"
BLANK_SIGNATURE = "___________"
BLANK_SIGNED_DATE = "«____» __________ 20__"

ROLE_LABELS = {
    "tenant": "Tenant",
    "lessor": "Lessor",
    "landlord": "Landlord",
    "representative": "Representative",
    "principal": "Principal",
    "agent": "Agent",
    "buyer": "Buyer",
    "seller": "Seller",
}


def load_structure(raw: Any) -> Optional[Dict[str, Any]]:
    """Structure column value (dict, JSON string or None) → dict or None."""
    if raw in (None, "", {}):
        return None
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Agreement structure is not valid JSON; ignoring it")
            return None
    return raw if isinstance(raw, dict) else None


def format_role(role: str) -> str:
    if not role:
        return ""
    return ROLE_LABELS.get(role.lower(), role.replace("_", " ").title())


class StructureRenderer:
    handlers = {
        "section": "render_section",
        "subsection": "render_subsection",
        "paragraph": "render_paragraph",
        "bulletList": "render_bullet_list",
    }

    def render_nodes(self, nodes: Any) -> str:
        if not isinstance(nodes, list):
            return ""
        return "".join(self.render_node(node) for node in nodes)

    def render_node(self, node: Any) -> str:
        if not isinstance(node, dict):
            return ""
        handler_name = self.handlers.get(node.get("type"))
        if handler_name is None:
            logger.debug("Skipping unknown structure node type %r", node.get("type"))
            return ""
        return getattr(self, handler_name)(node)

    def render_children(self, node: Dict[str, Any]) -> str:
        return self.render_nodes(node.get("children"))

    @staticmethod
    def items_of(node: Dict[str, Any]) -> List[str]:
        items = node.get("items")
        if not isinstance(items, list):
            return []
        return [str(item) for item in items]

    def render_section(self, node):
        raise NotImplementedError

    def render_subsection(self, node):
        raise NotImplementedError

    def render_paragraph(self, node):
        raise NotImplementedError

    def render_bullet_list(self, node):
        raise NotImplementedError


class DocumentBodyRenderer(StructureRenderer):
    """Body of the print/public document; classes are styled by document.html."""

    NODE_WRAPPER = '<div style="margin: 5mm 0;">{}</div>'

    def render_node(self, node):
        html = super().render_node(node)
        return self.NODE_WRAPPER.format(html) if html else ""

    def render_section(self, node):
        title = node.get("title") or ""
        return f'<div class="section-header">{title}</div>{self.render_children(node)}'

    def render_subsection(self, node):
        number = node.get("number")
        number_html = f'<span class="number">{number}.</span> ' if number else ""
        return f'<div class="subsection">{number_html}{node.get("content") or ""}</div>'

    def render_paragraph(self, node):
        return f'<p class="paragraph">{node.get("content") or ""}</p>'

    def render_bullet_list(self, node):
        items = "".join(f"<li>{item}</li>" for item in self.items_of(node))
        return f'<ul class="bullet-list">{items}</ul>'


class PreviewRenderer(StructureRenderer):
    """Bare HTML returned to the admin after an AI edit."""

    def render_section(self, node):
        return f'<h2>{node.get("title") or ""}</h2>{self.render_children(node)}'

    def render_subsection(self, node):
        number = node.get("number")
        prefix = f"{number}. " if number else ""
        return f'<p>{prefix}{node.get("content") or ""}</p>'

    def render_paragraph(self, node):
        return f'<p>{node.get("content") or ""}</p>'

    def render_bullet_list(self, node):
        items = "".join(f"<li>{item}</li>" for item in self.items_of(node))
        return f"<ul>{items}</ul>"

    def render(self, structure: Any, date_text: str = "", city: str = "") -> str:
        structure = load_structure(structure)
        if not structure or not isinstance(structure.get("nodes"), list):
            return ""
        body = self.render_nodes(structure["nodes"])
        if not body:
            return ""
        title = structure.get("title") or DEFAULT_TITLE
        header = (
            f"<h1>{title}</h1>"
            f"<p>Date: {date_text}</p>"
            f"<p>City: {city or settings.DEFAULT_CITY}</p>"
        )
        return header + body


# ──────────────────────────────────────────────────────────────────────────────
# Full document (print / public page / PDF source)
# ──────────────────────────────────────────────────────────────────────────────

def format_signed_date(value) -> str:
    d = parse_date(value)
    if d is None:
        return BLANK_SIGNED_DATE
    return f"«{d:%d}» {d:%B} {d.year}"


def render_agreement_body(agreement) -> str:
    structure = load_structure(agreement.structure)
    if structure and isinstance(structure.get("nodes"), list):
        body = DocumentBodyRenderer().render_nodes(structure["nodes"])
        if body:
            return body
    return agreement.content or ""


def build_document_context(agreement) -> Dict[str, Any]:
    structure = load_structure(agreement.structure) or {}

    signatures = [
        {
            "role": format_role(sig.signer_role),
            "name": sig.signer_name,
            "is_signed": sig.is_signed,
            "signature_data": sig.signature_data if sig.is_signed else "",
            "signed_date": format_signed_date(sig.signed_at) if sig.is_signed else BLANK_SIGNED_DATE,
        }
        for sig in agreement.signatures.all()
    ]

    attachments = []
    for party in agreement.parties.all():
        docs = [doc.document_base64 for doc in party.documents.all() if doc.document_base64]
        if docs:
            attachments.append({
                "role": format_role(party.role),
                "name": party.display_name,
                "images": docs,
            })

    return {
        "agreement": agreement,
        "title": structure.get("title") or DEFAULT_TITLE,
        "city": agreement.city or settings.DEFAULT_CITY,
        "date": format_long_date(agreement.created_at),
        "body_html": mark_safe(render_agreement_body(agreement)),
        "signatures": signatures,
        "blank_signature": BLANK_SIGNATURE,
        "attachments": attachments,
        "watermark": agreement.agreement_number,
    }


def render_agreement_document(agreement) -> str:
    return render_to_string("agreements/document.html", build_document_context(agreement))
