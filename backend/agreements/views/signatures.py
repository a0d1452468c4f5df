# backend/agreements/views/signatures.py
import logging

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.client_info import get_client_ip
from core.permissions import ActionPermission

from agreements.models import AgreementSignature
from agreements.serializers.agreement import SignatureSerializer
from agreements.serializers.signing import SignatureUpdateSerializer, SignPayloadSerializer
from agreements.services import lifecycle

logger = logging.getLogger(__name__)


def analytics_from(validated_data):
    return {
        field: validated_data.get(field)
        for field in ("agreement_view_duration", "signature_clear_count", "total_session_duration")
    }


class AgreementSignatureViewSet(
    mixins.RetrieveModelMixin,
    mixins.UpdateModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    """Admin management of individual signature rows."""
    serializer_class = SignatureSerializer
    permission_classes = [ActionPermission]
    lookup_value_regex = r"\d+"

    default_permission = "agreements.manage_signatures"
    action_permissions = {
        "retrieve": "agreements.view_agreement",
    }

    def get_queryset(self):
        return AgreementSignature.objects.select_related("agreement").filter(agreement__deleted_at__isnull=True)

    def update(self, request, *args, **kwargs):
        signature = self.get_object()
        serializer = SignatureUpdateSerializer(signature, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        signature = lifecycle.update_signature(
            signature, serializer.validated_data, user=request.user, ip_address=get_client_ip(request)
        )
        return Response(SignatureSerializer(signature).data)

    def destroy(self, request, *args, **kwargs):
        signature = self.get_object()
        new_status = lifecycle.delete_signature(signature, user=request.user, ip_address=get_client_ip(request))
        logger.info("Signature %s deleted; agreement status now %s", kwargs.get("pk"), new_status)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["post"], url_path="regenerate-link")
    def regenerate_link(self, request, pk=None):
        signature = lifecycle.regenerate_signature_link(
            self.get_object(), user=request.user, ip_address=get_client_ip(request)
        )
        return Response(SignatureSerializer(signature).data)

    @action(detail=True, methods=["post"], url_path="sign")
    def sign(self, request, pk=None):
        signature = self.get_object()
        payload = SignPayloadSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        result = lifecycle.sign(
            signature_id=signature.pk,
            signature_data=payload.validated_data.get("signature_data"),
            analytics=analytics_from(payload.validated_data),
            ip_address=get_client_ip(request),
            user=request.user,
        )
        return Response({
            "detail": "Signature saved",
            "all_signed": result["all_signed"],
            "signature": SignatureSerializer(result["signature"]).data,
        })
