# backend/agreements/serializers/template.py
from rest_framework import serializers

from agreements.models import AgreementTemplate


class AgreementTemplateSerializer(serializers.ModelSerializer):
    agreements_count = serializers.SerializerMethodField()

    class Meta:
        model = AgreementTemplate
        fields = [
            "id", "name", "type", "content", "structure", "description",
            "is_active", "version", "agreements_count",
            "created_by", "created_at", "updated_at",
        ]
        read_only_fields = ["version", "created_by", "created_at", "updated_at"]

    def get_agreements_count(self, obj):
        return obj.agreements.filter(deleted_at__isnull=True).count()

    def validate_structure(self, value):
        if value in (None, ""):
            return None
        if not isinstance(value, dict) or not isinstance(value.get("nodes", []), list):
            raise serializers.ValidationError("Structure must be an object with a 'nodes' list.")
        return value

    def update(self, instance, validated_data):
        changed = [
            field for field, value in validated_data.items()
            if getattr(instance, field) != value
        ]
        if changed:
            instance.version += 1
        return super().update(instance, validated_data)
