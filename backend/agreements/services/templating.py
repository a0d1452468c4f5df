# backend/agreements/services/templating.py
"""
Placeholder substitution for agreement templates.

Templates carry `{{key}}` placeholders in their HTML `content` and in every
string leaf of their JSON `structure`. Only keys present in the variable map
are replaced; unknown placeholders stay in the output so template authors can
spot a mistyped variable name.
"""
from __future__ import annotations

import copy
import json
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional

from django.conf import settings

logger = logging.getLogger(__name__)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return format(value.normalize(), "f") if value == value.to_integral() else str(value)
    return str(value)


def replace_template_variables(text: str, variables: Mapping[str, Any]) -> str:
    if not text:
        return text or ""
    result = text
    for key, value in variables.items():
        result = result.replace("{{" + key + "}}", _as_text(value))
    return result


def replace_variables_in_structure(structure: Any, variables: Mapping[str, Any]) -> Any:
    """
    Substitute into every string leaf of a decoded JSON tree.

    A JSON string is decoded first; if it is not valid JSON it is treated as
    plain text. The input is never mutated.
    """
    if structure is None:
        return None

    if isinstance(structure, str):
        try:
            decoded = json.loads(structure)
        except (TypeError, ValueError):
            return replace_template_variables(structure, variables)
        return _walk(decoded, variables)

    return _walk(copy.deepcopy(structure), variables)


def _walk(node: Any, variables: Mapping[str, Any]) -> Any:
    if isinstance(node, str):
        return replace_template_variables(node, variables)
    if isinstance(node, list):
        return [_walk(item, variables) for item in node]
    if isinstance(node, dict):
        return {key: _walk(value, variables) for key, value in node.items()}
    return node


# ──────────────────────────────────────────────────────────────────────────────
# Dates & amounts
# ──────────────────────────────────────────────────────────────────────────────

def parse_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def to_decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def calculate_months(date_from: date, date_to: date) -> int:
    """
    Whole months between two dates; a partial trailing month counts as a
    full one, and the result is never below 1.

    >>> calculate_months(date(2024, 1, 1), date(2024, 3, 15))
    3
    """
    months = (date_to.year - date_from.year) * 12 + (date_to.month - date_from.month)
    if date_to.day > date_from.day:
        months += 1
    return max(1, months)


def calculate_total_rent(monthly: Any, date_from: Any, date_to: Any) -> Optional[Decimal]:
    amount = to_decimal(monthly)
    start, end = parse_date(date_from), parse_date(date_to)
    if amount is None or start is None or end is None:
        return None
    return amount * calculate_months(start, end)


def format_percent(part: Any, total: Any) -> str:
    part_d, total_d = to_decimal(part), to_decimal(total)
    if part_d is None or total_d is None or total_d <= 0:
        return ""
    return f"{float(part_d / total_d * 100):.1f}%"


def format_long_date(value: Any) -> str:
    d = parse_date(value)
    if d is None:
        return ""
    return f"{d:%B} {d.day}, {d.year}"


# ──────────────────────────────────────────────────────────────────────────────
# Variable map
# ──────────────────────────────────────────────────────────────────────────────

def party_prefix(party: Mapping[str, Any], index: int) -> str:
    return (party.get("role") or "").strip() or f"party_{index}"


def party_variables(party: Mapping[str, Any], index: int) -> Dict[str, str]:
    prefix = party_prefix(party, index)
    if party.get("is_company"):
        return {
            f"{prefix}_name": party.get("company_name") or "",
            f"{prefix}_company_name": party.get("company_name") or "",
            f"{prefix}_address": party.get("company_address") or "",
            f"{prefix}_tax_id": party.get("company_tax_id") or "",
            f"{prefix}_director_name": party.get("director_name") or "",
            f"{prefix}_director_passport": party.get("director_passport") or "",
            f"{prefix}_director_country": party.get("director_country") or "",
        }
    return {
        f"{prefix}_name": party.get("individual_name") or "",
        f"{prefix}_country": party.get("individual_country") or "",
        f"{prefix}_passport": party.get("individual_passport") or "",
        f"{prefix}_passport_country": party.get("individual_country") or "",
        f"{prefix}_passport_number": party.get("individual_passport") or "",
    }


def build_agreement_variables(
    data: Mapping[str, Any],
    parties: Iterable[Mapping[str, Any]] = (),
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Variable map for an agreement being created.

    `data` holds the agreement fields (agreement_number, city, dates, amounts,
    bank details, property_* values). `rent_amount_total` must already be
    resolved by the caller.
    """
    today = today or date.today()
    total = data.get("rent_amount_total")

    variables: Dict[str, Any] = {
        "agreement_number": data.get("agreement_number") or "",
        "city": data.get("city") or settings.DEFAULT_CITY,
        "date": format_long_date(today),
        "date_from": format_long_date(data.get("date_from")),
        "date_to": format_long_date(data.get("date_to")),
        "property_name": data.get("property_name") or "",
        "property_number": data.get("property_number") or "",
        "property_address": data.get("property_address") or "",
        "rent_amount_monthly": _as_text(data.get("rent_amount_monthly")),
        "rent_amount_total": _as_text(total),
        "deposit_amount": _as_text(data.get("deposit_amount")),
        "utilities_included": data.get("utilities_included") or "",
        "bank_name": data.get("bank_name") or "",
        "bank_account_name": data.get("bank_account_name") or "",
        "bank_account_number": data.get("bank_account_number") or "",
    }

    for stage in ("signed", "checkin", "checkout"):
        amount = data.get(f"upon_{stage}_pay")
        variables[f"upon_{stage}_pay"] = _as_text(amount)
        variables[f"upon_{stage}_pay_percent"] = format_percent(amount, total)

    for index, party in enumerate(parties):
        variables.update(party_variables(party, index))

    logger.debug("Built %d template variables", len(variables))
    return variables
