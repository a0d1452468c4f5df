import json
from decimal import Decimal
from types import SimpleNamespace

import pytest
from django.urls import reverse

from agreements.models import AgreementAIEditLog, AgreementLog, AgreementLogAction
from agreements.services.ai_editor import AgreementAIEditor, AIEditorError, sanitize_database_updates

pytestmark = pytest.mark.django_db

EDITED_STRUCTURE = {
    "title": "LEASE AGREEMENT",
    "nodes": [
        {"type": "section", "title": "1. RENT", "children": [
            {"type": "subsection", "number": "1.1", "content": "Monthly rent is 1200."},
        ]},
    ],
}

AI_ANSWER = {
    "description": "Raised the monthly rent to 1200",
    "descriptionRu": "Аренда увеличена до 1200",
    "changedFields": ["rent_amount_monthly"],
    "changedSections": ["1.1"],
    "conflictsDetected": [],
    "structureAfter": EDITED_STRUCTURE,
    "databaseUpdates": {"rent_amount_monthly": "1200", "agreement_number": "HACKED"},
}


def fake_client(mocker, answer):
    client = mocker.MagicMock()
    content = answer if isinstance(answer, str) else json.dumps(answer)
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    return client


def test_database_updates_are_limited_to_editable_fields():
    assert sanitize_database_updates({"rent_amount_monthly": "1", "status": "signed"}) == {"rent_amount_monthly": "1"}
    assert sanitize_database_updates(["not", "a", "dict"]) == {}


def test_edit_renders_preview_without_touching_agreement(mocker, agreement):
    content_before = agreement.content
    editor = AgreementAIEditor(client=fake_client(mocker, AI_ANSWER))

    result = editor.edit(agreement, "Raise the rent to 1200")

    assert result["htmlAfter"].startswith("<h1>LEASE AGREEMENT</h1>")
    assert "<p>1.1. Monthly rent is 1200.</p>" in result["htmlAfter"]
    assert result["databaseUpdates"] == {"rent_amount_monthly": "1200"}
    assert result["changedSections"] == ["1.1"]
    agreement.refresh_from_db()
    assert agreement.content == content_before


def test_edit_sends_history_and_current_structure(mocker, agreement):
    client = fake_client(mocker, AI_ANSWER)
    history = [
        {"role": "user", "content": "earlier question"},
        {"role": "system", "content": "dropped"},
        {"role": "assistant", "content": "earlier answer"},
    ]
    AgreementAIEditor(client=client).edit(agreement, "Raise the rent", history)

    messages = client.chat.completions.create.call_args.kwargs["messages"]
    assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
    assert "LEASE AGREEMENT" in messages[-1]["content"]
    assert messages[-1]["content"].endswith("Instruction: Raise the rent")


def test_unusable_structure_keeps_original_content(mocker, agreement):
    answer = dict(AI_ANSWER, structureAfter={"title": "Empty", "nodes": []})
    result = AgreementAIEditor(client=fake_client(mocker, answer)).edit(agreement, "noop")
    assert result["htmlAfter"] == agreement.content


def test_invalid_json_from_model_is_an_upstream_error(mocker, agreement):
    with pytest.raises(AIEditorError):
        AgreementAIEditor(client=fake_client(mocker, "not json at all")).edit(agreement, "anything")


def test_edit_and_apply_through_the_api(mocker, admin_client, agreement):
    mocker.patch.object(
        AgreementAIEditor, "client", new_callable=mocker.PropertyMock, return_value=fake_client(mocker, AI_ANSWER)
    )

    response = admin_client.post(
        reverse("agreements:agreements-ai-edit", args=[agreement.pk]),
        {"prompt": "Raise the rent to 1200"},
        format="json",
    )
    assert response.status_code == 200, response.content
    body = response.json()
    assert body["conversationId"].startswith("conv_")
    staged = AgreementAIEditLog.objects.get(pk=body["logId"])
    assert staged.was_applied is False

    agreement.refresh_from_db()
    assert agreement.rent_amount_monthly == Decimal("1000")

    response = admin_client.post(
        reverse("agreements:agreements-ai-edit-apply", args=[agreement.pk]),
        {"logId": staged.pk},
        format="json",
    )
    assert response.status_code == 200, response.content

    agreement.refresh_from_db()
    staged.refresh_from_db()
    assert staged.was_applied is True
    assert staged.applied_at is not None
    assert agreement.rent_amount_monthly == Decimal("1200")
    assert agreement.structure == EDITED_STRUCTURE
    assert agreement.content == staged.html_after
    assert AgreementLog.objects.filter(agreement=agreement, action=AgreementLogAction.AI_EDIT).exists()

    history = admin_client.get(reverse("agreements:agreements-ai-edit-history", args=[agreement.pk]))
    assert [item["id"] for item in history.json()] == [staged.pk]


def test_apply_with_unknown_log_is_404(admin_client, agreement):
    response = admin_client.post(
        reverse("agreements:agreements-ai-edit-apply", args=[agreement.pk]),
        {"logId": 999999, "htmlAfter": "<p>x</p>"},
        format="json",
    )
    assert response.status_code == 404


def test_apply_without_html_is_rejected(admin_client, agreement):
    response = admin_client.post(
        reverse("agreements:agreements-ai-edit-apply", args=[agreement.pk]),
        {},
        format="json",
    )
    assert response.status_code == 400


def test_unconfigured_proxy_answers_503(settings, admin_client, agreement):
    settings.AI_PROXY_SECRET = ""
    response = admin_client.post(
        reverse("agreements:agreements-ai-edit", args=[agreement.pk]),
        {"prompt": "anything"},
        format="json",
    )
    assert response.status_code == 503
