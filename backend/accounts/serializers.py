from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class MeSerializer(serializers.ModelSerializer):
    """
    Current user + effective permission codes, so the admin UI can hide
    modules the user cannot reach.
    """
    roles = serializers.SerializerMethodField()
    permissions = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id", "email", "full_name", "phone_number",
            "is_staff", "is_superuser", "last_login", "date_joined",
            "roles", "permissions",
        ]
        read_only_fields = fields

    def get_roles(self, obj):
        return list(obj.groups.values_list("name", flat=True))

    def get_permissions(self, obj):
        return sorted(obj.get_all_permissions())
