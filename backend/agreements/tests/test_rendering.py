import pytest

from agreements.services.rendering import (
    DocumentBodyRenderer,
    PreviewRenderer,
    format_role,
    load_structure,
    render_agreement_body,
    render_agreement_document,
)

STRUCTURE = {
    "title": "RENTAL CONTRACT",
    "nodes": [
        {"type": "section", "title": "1. SUBJECT", "children": [
            {"type": "subsection", "number": "1.1", "content": "The lessor rents out the villa."},
            {"type": "paragraph", "content": "Plain <b>text</b>."},
        ]},
        {"type": "bulletList", "items": ["Water", "Electricity"]},
        {"type": "image", "src": "ignored.png"},
    ],
}


def test_preview_renders_header_and_nodes_in_order():
    html = PreviewRenderer().render(STRUCTURE, date_text="March 5, 2024", city="Phuket")

    assert html.startswith("<h1>RENTAL CONTRACT</h1><p>Date: March 5, 2024</p><p>City: Phuket</p>")
    assert "<h2>1. SUBJECT</h2><p>1.1. The lessor rents out the villa.</p><p>Plain <b>text</b>.</p>" in html
    assert html.endswith("<ul><li>Water</li><li>Electricity</li></ul>")
    assert "ignored.png" not in html


def test_preview_is_empty_without_nodes():
    assert PreviewRenderer().render({"title": "X", "nodes": []}) == ""
    assert PreviewRenderer().render(None) == ""
    assert PreviewRenderer().render("not json") == ""


def test_preview_rendering_is_deterministic():
    renderer = PreviewRenderer()
    assert renderer.render(STRUCTURE, "d", "c") == renderer.render(STRUCTURE, "d", "c")


def test_document_body_wraps_each_top_level_node():
    html = DocumentBodyRenderer().render_nodes(STRUCTURE["nodes"])

    assert html.count('<div style="margin: 5mm 0;">') == 4
    assert '<div class="section-header">1. SUBJECT</div>' in html
    assert '<span class="number">1.1.</span> The lessor rents out the villa.' in html
    assert '<ul class="bullet-list"><li>Water</li><li>Electricity</li></ul>' in html


def test_non_list_items_render_an_empty_list():
    html = DocumentBodyRenderer().render_node({"type": "bulletList", "items": "Water"})
    assert '<ul class="bullet-list"></ul>' in html


def test_load_structure_accepts_json_strings_and_rejects_garbage():
    assert load_structure('{"nodes": []}') == {"nodes": []}
    assert load_structure("[1, 2]") is None
    assert load_structure("{broken") is None
    assert load_structure("") is None


def test_role_labels():
    assert format_role("tenant") == "Tenant"
    assert format_role("party_2") == "Party 2"
    assert format_role("") == ""


@pytest.mark.django_db
def test_body_falls_back_to_content_when_structure_is_empty(agreement):
    agreement.structure = {"title": "X", "nodes": []}
    assert render_agreement_body(agreement) == agreement.content


@pytest.mark.django_db
def test_full_document_contains_signers_and_watermark(agreement):
    html = render_agreement_document(agreement)

    assert agreement.agreement_number in html
    assert "Anna Lessor" in html
    assert "Tom Tenant" in html
    assert "Lessor" in html and "Tenant" in html
    assert "{{not_a_variable}}" in html
