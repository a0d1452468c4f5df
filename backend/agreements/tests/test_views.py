import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from agreements.models import Agreement, AgreementPrintToken, AgreementStatus, AgreementTemplate

pytestmark = pytest.mark.django_db

SIGNATURE_PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


# ---------------- permissions ----------------

def test_anonymous_requests_are_rejected(api_client):
    response = api_client.get(reverse("agreements:agreements-list"))
    assert response.status_code == 401


def test_view_permission_allows_reads_but_not_writes(api_client, user_factory, agreement, template):
    viewer = user_factory(email="viewer@example.com", perms=["agreements.view_agreement"])
    api_client.force_authenticate(user=viewer)

    listing = api_client.get(reverse("agreements:agreements-list"))
    assert listing.status_code == 200
    assert listing.json()["results"][0]["agreement_number"] == agreement.agreement_number

    response = api_client.post(
        reverse("agreements:agreements-list"),
        {"template_id": template.pk},
        format="json",
    )
    assert response.status_code == 403


# ---------------- agreements ----------------

def test_create_from_template(admin_client, template, no_pdf):
    response = admin_client.post(
        reverse("agreements:agreements-list"),
        {
            "template_id": template.pk,
            "city": "Phuket",
            "date_from": "2024-01-01",
            "date_to": "2024-03-15",
            "rent_amount_monthly": "1000.00",
            "parties": [
                {"role": "lessor", "individual_name": "Anna Lessor"},
                {"role": "tenant", "individual_name": "Tom Tenant"},
            ],
        },
        format="json",
    )
    assert response.status_code == 201, response.content
    body = response.json()
    assert body["rent_amount_total"] == "3000.00"
    assert body["status"] == AgreementStatus.PENDING_SIGNATURES
    assert [s["signer_role"] for s in body["signatures"]] == ["lessor", "tenant"]
    assert "Anna Lessor" in body["content"]


def test_create_with_unknown_template_is_404(admin_client):
    response = admin_client.post(reverse("agreements:agreements-list"), {"template_id": 424242}, format="json")
    assert response.status_code == 404


def test_duplicate_party_roles_are_rejected(admin_client, template):
    response = admin_client.post(
        reverse("agreements:agreements-list"),
        {
            "template_id": template.pk,
            "parties": [
                {"role": "tenant", "individual_name": "A"},
                {"role": "tenant", "individual_name": "B"},
            ],
        },
        format="json",
    )
    assert response.status_code == 400


def test_delete_is_soft(admin_client, agreement):
    response = admin_client.delete(reverse("agreements:agreements-detail", args=[agreement.pk]))
    assert response.status_code == 204
    assert Agreement.objects.filter(pk=agreement.pk, deleted_at__isnull=False).exists()
    assert admin_client.get(reverse("agreements:agreements-detail", args=[agreement.pk])).status_code == 404


def test_add_signatures_endpoint(admin_client, agreement):
    response = admin_client.post(
        reverse("agreements:agreements-signatures", args=[agreement.pk]),
        {"signatures": [{"signer_name": "Agent", "signer_role": "agent"}]},
        format="json",
    )
    assert response.status_code == 201
    assert response.json()[0]["signer_role"] == "agent"


# ---------------- HTML / PDF ----------------

def test_internal_html_needs_the_internal_key(api_client, settings, agreement):
    url = reverse("agreements:agreements-internal", args=[agreement.pk])

    assert api_client.get(url, {"internalKey": "wrong"}).status_code == 403
    response = api_client.get(url, {"internalKey": settings.INTERNAL_API_KEY})
    assert response.status_code == 200
    assert agreement.agreement_number in response.content.decode()


def test_print_token_opens_html_once(admin_client, api_client, agreement):
    response = admin_client.post(reverse("agreements:agreements-print-token", args=[agreement.pk]))
    assert response.status_code == 201
    token = response.json()["token"]

    html_url = reverse("agreements:agreements-html", args=[agreement.pk])
    assert api_client.get(html_url, {"token": token}).status_code == 200
    assert api_client.get(html_url, {"token": token}).status_code == 403
    assert AgreementPrintToken.objects.get(token=token).used_at is not None


def test_pdf_is_printed_on_demand(admin_client, agreement, no_pdf):
    agreements_printer, _ = no_pdf
    response = admin_client.get(reverse("agreements:agreements-pdf", args=[agreement.pk]))

    assert response.status_code == 200
    assert response["Content-Type"] == "application/pdf"
    assert b"".join(response.streaming_content) == b"%PDF-1.4 test"
    agreements_printer.assert_called_once()
    printed_url = agreements_printer.call_args.args[0]
    assert f"/api/agreements/{agreement.pk}/internal" in printed_url
    assert "internalKey=" in printed_url


def test_pdf_failure_answers_500(admin_client, agreement, no_pdf):
    agreements_printer, _ = no_pdf
    agreements_printer.side_effect = RuntimeError("browser crashed")
    response = admin_client.get(reverse("agreements:agreements-pdf", args=[agreement.pk]))
    assert response.status_code == 500
    assert response.json() == {"detail": "Error generating PDF"}


# ---------------- public links ----------------

def test_public_link_of_deleted_agreement_is_404(api_client, agreement):
    url = reverse("agreements:public-agreement", args=[agreement.public_link])
    assert api_client.get(url).status_code == 200

    agreement.soft_delete()
    assert api_client.get(url).status_code == 404


def test_verify_link_reports_full_signature(api_client, agreement):
    url = reverse("agreements:verify-agreement", args=[agreement.verify_link])
    assert api_client.get(url).json()["is_fully_signed"] is False


def test_signature_link_records_visit_and_signs(api_client, agreement):
    signature = agreement.signatures.first()
    link_url = reverse("agreements:signature-link", args=[signature.signature_link])

    response = api_client.get(link_url, HTTP_USER_AGENT="Mozilla/5.0 (Windows NT 10.0; Win64; x64)", REMOTE_ADDR="203.0.113.9")
    assert response.status_code == 200
    assert response.json()["signature"]["signer_role"] == signature.signer_role
    assert agreement.agreement_number in response.json()["html"]
    signature.refresh_from_db()
    assert signature.first_visit_at is not None
    assert signature.ip_address == "203.0.113.9"

    sign_url = reverse("agreements:sign-by-link", args=[signature.signature_link])
    response = api_client.post(sign_url, {"signature_data": SIGNATURE_PNG, "signature_clear_count": 2}, format="json")
    assert response.status_code == 200
    assert response.json()["all_signed"] is False

    again = api_client.post(sign_url, {"signature_data": SIGNATURE_PNG}, format="json")
    assert again.status_code == 400


# ---------------- templates ----------------

def test_template_in_use_cannot_be_deleted(admin_client, agreement, template):
    url = reverse("agreements:agreement-templates-detail", args=[template.pk])

    response = admin_client.delete(url)
    assert response.status_code == 400
    assert "used by 1 agreement" in response.json()["detail"]

    agreement.soft_delete()
    assert admin_client.delete(url).status_code == 204
    template.refresh_from_db()
    assert template.is_active is False


def test_template_update_bumps_version(admin_client, template):
    url = reverse("agreements:agreement-templates-detail", args=[template.pk])
    response = admin_client.patch(url, {"name": "Standard lease 2025"}, format="json")
    assert response.status_code == 200
    assert response.json()["version"] == 2


def test_inactive_templates_are_hidden_from_list(admin_client, template):
    AgreementTemplate.objects.filter(pk=template.pk).update(is_active=False)
    response = admin_client.get(reverse("agreements:agreement-templates-list"))
    assert response.json()["count"] == 0


# ---------------- signatures (admin) ----------------

def test_deleting_last_signature_returns_agreement_to_draft(admin_client, agreement):
    for signature in list(agreement.signatures.all()):
        response = admin_client.delete(reverse("agreements:agreement-signatures-detail", args=[signature.pk]))
        assert response.status_code == 204

    agreement.refresh_from_db()
    assert agreement.status == AgreementStatus.DRAFT


def test_renaming_a_signature_to_a_taken_role_is_refused(admin_client, agreement):
    signature = agreement.signatures.get(signer_role="tenant")
    response = admin_client.patch(
        reverse("agreements:agreement-signatures-detail", args=[signature.pk]),
        {"signer_role": "lessor"},
        format="json",
    )
    assert response.status_code == 400


# ---------------- party documents & PDF scheduling ----------------

def test_party_document_must_be_an_image(admin_client, agreement):
    party = agreement.parties.get(role="tenant")
    url = reverse("agreements:party-document", args=[party.pk])

    text_file = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
    assert admin_client.post(url, {"document": text_file}, format="multipart").status_code == 400

    passport = SimpleUploadedFile("passport.png", b"\x89PNG\r\n\x1a\nfake", content_type="image/png")
    response = admin_client.post(url, {"document": passport}, format="multipart")
    assert response.status_code == 201
    assert party.documents.get().document_base64.startswith("data:image/png;base64,")

    assert admin_client.delete(url).status_code == 204
    assert not party.documents.exists()


def test_signing_regenerates_pdf_after_commit(api_client, agreement, no_pdf, django_capture_on_commit_callbacks):
    agreements_printer, _ = no_pdf
    signature = agreement.signatures.first()

    with django_capture_on_commit_callbacks(execute=True):
        api_client.post(
            reverse("agreements:sign-by-link", args=[signature.signature_link]),
            {"signature_data": SIGNATURE_PNG},
            format="json",
        )

    agreements_printer.assert_called_once()
    agreement.refresh_from_db()
    assert agreement.pdf_file.name.startswith("agreements-pdf/agreement-")
    assert agreement.pdf_generated_at is not None
