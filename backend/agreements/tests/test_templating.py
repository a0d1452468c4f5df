from datetime import date
from decimal import Decimal

from agreements.services.templating import (
    build_agreement_variables,
    calculate_months,
    calculate_total_rent,
    format_long_date,
    format_percent,
    replace_template_variables,
    replace_variables_in_structure,
)


def test_known_placeholders_are_replaced_and_unknown_kept():
    text = "Hello {{name}}, welcome to {{city}}. {{missing}}"
    result = replace_template_variables(text, {"name": "Anna", "city": "Phuket"})
    assert result == "Hello Anna, welcome to Phuket. {{missing}}"


def test_every_occurrence_is_replaced():
    assert replace_template_variables("{{a}}-{{a}}-{{a}}", {"a": "x"}) == "x-x-x"


def test_none_becomes_empty_and_zero_is_kept():
    result = replace_template_variables("[{{a}}][{{b}}][{{c}}]", {"a": None, "b": 0, "c": ""})
    assert result == "[][0][]"


def test_empty_text_is_returned_as_empty_string():
    assert replace_template_variables("", {"a": "b"}) == ""
    assert replace_template_variables(None, {"a": "b"}) == ""


def test_structure_substitution_walks_nested_strings_without_mutating_input():
    structure = {
        "title": "Lease {{agreement_number}}",
        "nodes": [
            {"type": "section", "title": "{{city}}", "children": [
                {"type": "paragraph", "content": "Rent {{rent}}"},
            ]},
            {"type": "bulletList", "items": ["{{rent}}", 42, None]},
        ],
    }
    result = replace_variables_in_structure(structure, {"agreement_number": "AGR-1", "city": "Phuket", "rent": "1000"})

    assert result["title"] == "Lease AGR-1"
    assert result["nodes"][0]["title"] == "Phuket"
    assert result["nodes"][0]["children"][0]["content"] == "Rent 1000"
    assert result["nodes"][1]["items"] == ["1000", 42, None]
    assert structure["title"] == "Lease {{agreement_number}}"


def test_structure_given_as_json_string_is_decoded():
    result = replace_variables_in_structure('{"title": "{{x}}"}', {"x": "ok"})
    assert result == {"title": "ok"}


def test_structure_given_as_plain_text_is_substituted_as_text():
    assert replace_variables_in_structure("not json {{x}}", {"x": "ok"}) == "not json ok"


def test_missing_structure_stays_missing():
    assert replace_variables_in_structure(None, {"x": "ok"}) is None


def test_partial_trailing_month_counts_as_full():
    assert calculate_months(date(2024, 1, 1), date(2024, 3, 15)) == 3
    assert calculate_months(date(2024, 1, 15), date(2024, 3, 15)) == 2
    assert calculate_months(date(2024, 1, 10), date(2024, 1, 12)) == 1


def test_total_rent_from_monthly_amount_and_dates():
    assert calculate_total_rent("1000", "2024-01-01", "2024-03-15") == Decimal("3000")
    assert calculate_total_rent(None, "2024-01-01", "2024-03-15") is None
    assert calculate_total_rent("1000", None, "2024-03-15") is None


def test_percent_of_total():
    assert format_percent(Decimal("1500"), Decimal("3000")) == "50.0%"
    assert format_percent(Decimal("1500"), Decimal("0")) == ""
    assert format_percent(None, Decimal("3000")) == ""


def test_long_date():
    assert format_long_date(date(2024, 3, 5)) == "March 5, 2024"
    assert format_long_date(None) == ""


def test_variables_include_party_prefixes_and_payment_shares(settings):
    settings.DEFAULT_CITY = "Bangkok"
    variables = build_agreement_variables(
        {
            "agreement_number": "AGR-1",
            "rent_amount_monthly": Decimal("1000"),
            "rent_amount_total": Decimal("3000"),
            "upon_signed_pay": Decimal("1500"),
        },
        parties=[
            {"role": "lessor", "is_company": True, "company_name": "Sea View Co", "director_name": "Dan"},
            {"role": "", "individual_name": "Tom", "individual_passport": "P1"},
        ],
        today=date(2024, 2, 1),
    )

    assert variables["city"] == "Bangkok"
    assert variables["date"] == "February 1, 2024"
    assert variables["rent_amount_total"] == "3000"
    assert variables["upon_signed_pay_percent"] == "50.0%"
    assert variables["upon_checkin_pay_percent"] == ""
    assert variables["lessor_name"] == "Sea View Co"
    assert variables["lessor_director_name"] == "Dan"
    assert variables["party_1_name"] == "Tom"
    assert variables["party_1_passport_number"] == "P1"
