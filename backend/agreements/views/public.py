# backend/agreements/views/public.py
"""
Unauthenticated endpoints. Access is granted by knowing a UUID: the
agreement's public/verify link or a signer's signature link.
"""
import logging

from django.shortcuts import get_object_or_404

from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from core.client_info import get_client_ip, get_user_agent

from agreements.models import Agreement
from agreements.serializers.agreement import PublicAgreementSerializer, PublicSignatureSerializer
from agreements.serializers.signing import SignPayloadSerializer
from agreements.services import lifecycle
from agreements.services.rendering import render_agreement_document
from agreements.views.agreements import agreement_pdf_response
from agreements.views.signatures import analytics_from

logger = logging.getLogger(__name__)


def _alive_agreements():
    return (
        Agreement.objects.alive()
        .select_related("template")
        .prefetch_related("parties__documents", "signatures")
    )


class PublicView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []


class PublicAgreementView(PublicView):
    def get(self, request, link):
        agreement = get_object_or_404(_alive_agreements(), public_link=link)
        return Response(PublicAgreementSerializer(agreement).data)


class VerifyAgreementView(PublicView):
    def get(self, request, link):
        agreement = get_object_or_404(_alive_agreements(), verify_link=link)
        data = PublicAgreementSerializer(agreement).data
        data["is_fully_signed"] = bool(data["signatures"]) and all(s["is_signed"] for s in data["signatures"])
        return Response(data)


class VerifyAgreementPdfView(PublicView):
    def get(self, request, link):
        agreement = get_object_or_404(_alive_agreements(), verify_link=link)
        return agreement_pdf_response(agreement)


class SignatureLinkView(PublicView):
    """What the signer sees. The first visit records device details once."""

    def get(self, request, link):
        signature = lifecycle.get_live_signature(signature_link=link)
        lifecycle.record_first_visit(signature, get_client_ip(request), get_user_agent(request))

        agreement = _alive_agreements().get(pk=signature.agreement_id)
        return Response({
            "signature": PublicSignatureSerializer(signature).data,
            "agreement": PublicAgreementSerializer(agreement).data,
            "html": render_agreement_document(agreement),
        })


class SignatureLinkPdfView(PublicView):
    def get(self, request, link):
        signature = lifecycle.get_live_signature(signature_link=link)
        return agreement_pdf_response(_alive_agreements().get(pk=signature.agreement_id))


class SignByLinkView(PublicView):
    def post(self, request, link):
        payload = SignPayloadSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        result = lifecycle.sign(
            signature_link=link,
            signature_data=payload.validated_data.get("signature_data"),
            analytics=analytics_from(payload.validated_data),
            ip_address=get_client_ip(request),
        )
        return Response({
            "detail": "Signature saved",
            "all_signed": result["all_signed"],
            "signature": PublicSignatureSerializer(result["signature"]).data,
        })
