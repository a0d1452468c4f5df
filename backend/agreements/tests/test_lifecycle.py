from decimal import Decimal

import pytest

from rest_framework.exceptions import NotFound

from core.exceptions import BadRequest

from agreements.models import AgreementLog, AgreementLogAction, AgreementStatus
from agreements.models_signatures import MAX_ANALYTICS_VALUE
from agreements.services import lifecycle


pytestmark = pytest.mark.django_db

SIGNATURE_PNG = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


def test_create_substitutes_variables_and_computes_total(agreement):
    assert agreement.rent_amount_total == Decimal("3000")
    assert "Anna Lessor" in agreement.content
    assert "Tom Tenant" in agreement.content
    assert agreement.agreement_number in agreement.content
    assert "{{" not in agreement.content

    section = agreement.structure["nodes"][0]
    assert section["children"][1]["content"] == "Tenant: Tom Tenant, passport P1234567"
    assert agreement.structure["nodes"][1]["content"] == "Monthly rent 1000, total 3000."
    assert agreement.structure["nodes"][2]["items"] == ["Deposit 2000", "Unknown {{not_a_variable}}"]


def test_explicit_total_is_not_recomputed(agreement_factory):
    agreement = agreement_factory(rent_amount_total=Decimal("2500"))
    assert agreement.rent_amount_total == Decimal("2500")


def test_create_makes_one_signature_per_party_and_waits_for_signatures(agreement):
    signatures = list(agreement.signatures.order_by("position"))

    assert [s.signer_role for s in signatures] == ["lessor", "tenant"]
    assert [s.signer_name for s in signatures] == ["Anna Lessor", "Tom Tenant"]
    assert agreement.status == AgreementStatus.PENDING_SIGNATURES
    assert agreement.qr_code_base64.startswith("data:image/png;base64,")
    assert AgreementLog.objects.filter(agreement=agreement, action=AgreementLogAction.CREATED).exists()


def test_agreement_without_parties_is_a_draft(agreement_factory):
    assert agreement_factory(parties=[]).status == AgreementStatus.DRAFT


def test_blank_party_role_gets_positional_prefix(agreement_factory):
    agreement = agreement_factory(parties=[{"role": "", "individual_name": "Solo"}])
    assert agreement.parties.get().role == "party_0"
    assert agreement.signatures.get().signer_role == "party_0"


def test_signing_every_signature_marks_agreement_signed(agreement):
    first, second = agreement.signatures.order_by("position")

    result = lifecycle.sign(signature_id=first.pk, signature_data=SIGNATURE_PNG)
    agreement.refresh_from_db()
    assert result["all_signed"] is False
    assert agreement.status == AgreementStatus.PENDING_SIGNATURES

    result = lifecycle.sign(signature_link=second.signature_link, signature_data=SIGNATURE_PNG)
    agreement.refresh_from_db()
    assert result["all_signed"] is True
    assert agreement.status == AgreementStatus.SIGNED


def test_second_sign_is_rejected_and_keeps_first_timestamp(agreement):
    signature = agreement.signatures.first()
    lifecycle.sign(signature_id=signature.pk, signature_data=SIGNATURE_PNG)
    signature.refresh_from_db()
    signed_at = signature.signed_at

    with pytest.raises(BadRequest):
        lifecycle.sign(signature_id=signature.pk, signature_data="data:image/png;base64,other")

    signature.refresh_from_db()
    assert signature.signed_at == signed_at
    assert signature.signature_data == SIGNATURE_PNG


def test_sign_requires_signature_data(agreement):
    with pytest.raises(BadRequest):
        lifecycle.sign(signature_id=agreement.signatures.first().pk, signature_data="")


def test_analytics_are_clamped(agreement):
    signature = agreement.signatures.first()
    lifecycle.sign(
        signature_id=signature.pk,
        signature_data=SIGNATURE_PNG,
        analytics={
            "agreement_view_duration": 10 ** 12,
            "signature_clear_count": -4,
            "total_session_duration": "abc",
        },
    )
    signature.refresh_from_db()
    assert signature.agreement_view_duration == MAX_ANALYTICS_VALUE
    assert signature.signature_clear_count == 0
    assert signature.total_session_duration == 0


def test_deleting_signatures_recomputes_status(agreement):
    first, second = agreement.signatures.order_by("position")
    lifecycle.sign(signature_id=first.pk, signature_data=SIGNATURE_PNG)

    assert lifecycle.delete_signature(second) == AgreementStatus.SIGNED
    assert lifecycle.delete_signature(first) == AgreementStatus.DRAFT
    agreement.refresh_from_db()
    assert agreement.status == AgreementStatus.DRAFT


def test_adding_a_signature_to_signed_agreement_reopens_it(agreement):
    for signature in agreement.signatures.all():
        lifecycle.sign(signature_id=signature.pk, signature_data=SIGNATURE_PNG)

    lifecycle.add_signatures(agreement, [{"signer_name": "Agent Smith", "signer_role": "agent"}])
    agreement.refresh_from_db()
    assert agreement.status == AgreementStatus.PENDING_SIGNATURES
    assert agreement.signatures.get(signer_role="agent").position == 2


def test_adding_a_taken_role_is_refused(agreement):
    with pytest.raises(BadRequest):
        lifecycle.add_signatures(agreement, [{"signer_name": "Someone", "signer_role": "tenant"}])


def test_explicit_status_is_not_overridden_by_signatures(agreement):
    agreement.status = AgreementStatus.ACTIVE
    agreement.save()
    lifecycle.delete_signature(agreement.signatures.first())
    agreement.refresh_from_db()
    assert agreement.status == AgreementStatus.ACTIVE


def test_first_visit_is_recorded_once(agreement):
    signature = agreement.signatures.first()
    iphone = (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
    )

    assert lifecycle.record_first_visit(signature, "10.0.0.1", iphone) is True
    first_visit_at = signature.first_visit_at
    assert signature.device_type == "mobile"
    assert signature.ip_address == "10.0.0.1"

    assert lifecycle.record_first_visit(signature, "10.0.0.2", "curl/8.0") is False
    signature.refresh_from_db()
    assert signature.first_visit_at == first_visit_at
    assert signature.ip_address == "10.0.0.1"


def test_signature_of_deleted_agreement_is_not_found(agreement):
    signature = agreement.signatures.first()
    lifecycle.delete_agreement(agreement)
    with pytest.raises(NotFound):
        lifecycle.get_live_signature(signature_link=signature.signature_link)


def test_regenerated_link_replaces_old_one(agreement):
    signature = agreement.signatures.first()
    old_link = signature.signature_link
    lifecycle.regenerate_signature_link(signature)
    signature.refresh_from_db()
    assert signature.signature_link != old_link
