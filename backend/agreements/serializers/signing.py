# backend/agreements/serializers/signing.py
from rest_framework import serializers

from agreements.models import AgreementSignature


class SignPayloadSerializer(serializers.Serializer):
    """
    POST body of both sign endpoints. Analytics counters are optional and
    clamped later; anything non-numeric counts as 0.
    """
    signature_data = serializers.CharField(required=False, allow_blank=True, default="")
    agreement_view_duration = serializers.JSONField(required=False, default=0)
    signature_clear_count = serializers.JSONField(required=False, default=0)
    total_session_duration = serializers.JSONField(required=False, default=0)


class SignatureCreateItemSerializer(serializers.Serializer):
    signer_name = serializers.CharField(max_length=255)
    signer_role = serializers.CharField(max_length=50)
    position = serializers.IntegerField(required=False, min_value=0)


class SignaturesCreateSerializer(serializers.Serializer):
    signatures = SignatureCreateItemSerializer(many=True, allow_empty=False)


class SignatureUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = AgreementSignature
        fields = ["signer_name", "signer_role", "position"]
        extra_kwargs = {
            "signer_name": {"required": False},
            "signer_role": {"required": False},
            "position": {"required": False},
        }


class AIEditRequestSerializer(serializers.Serializer):
    prompt = serializers.CharField()
    conversationId = serializers.CharField(required=False, allow_blank=True, max_length=100)
    conversationHistory = serializers.ListField(child=serializers.DictField(), required=False, default=list)


class AIEditApplySerializer(serializers.Serializer):
    logId = serializers.IntegerField(required=False)
    conversationId = serializers.CharField(required=False, allow_blank=True, max_length=100)
    htmlAfter = serializers.CharField(required=False, allow_blank=True)
    structureAfter = serializers.JSONField(required=False, allow_null=True)
    databaseUpdates = serializers.DictField(required=False)
