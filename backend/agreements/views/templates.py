# backend/agreements/views/templates.py
import logging

import django_filters
from rest_framework import filters, status, viewsets
from rest_framework.response import Response

from core.exceptions import BadRequest
from core.permissions import ActionPermission

from agreements.models import AgreementTemplate
from agreements.serializers.template import AgreementTemplateSerializer

logger = logging.getLogger(__name__)


class AgreementTemplateViewSet(viewsets.ModelViewSet):
    """
    Template library. Reads need view_agreement; any write needs
    manage_templates. Delete only deactivates, and is refused while live
    agreements still reference the template.
    """
    serializer_class = AgreementTemplateSerializer
    permission_classes = [ActionPermission]
    lookup_value_regex = r"\d+"
    filter_backends = [django_filters.rest_framework.DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ["type", "is_active"]
    search_fields = ["name", "description"]

    default_permission = "agreements.manage_templates"
    action_permissions = {
        "list": "agreements.view_agreement",
        "retrieve": "agreements.view_agreement",
    }

    def get_queryset(self):
        qs = AgreementTemplate.objects.select_related("created_by")
        if self.action == "list" and "is_active" not in self.request.query_params:
            qs = qs.filter(is_active=True)
        return qs

    def perform_create(self, serializer):
        template = serializer.save(created_by=self.request.user)
        logger.info("Agreement template created: %s (id=%s)", template.name, template.pk)

    def perform_update(self, serializer):
        template = serializer.save()
        logger.info("Agreement template updated: %s (v%s)", template.name, template.version)

    def destroy(self, request, *args, **kwargs):
        template = self.get_object()
        in_use = template.agreements.filter(deleted_at__isnull=True).count()
        if in_use:
            raise BadRequest(f"Template is used by {in_use} agreement(s) and cannot be deleted")

        template.is_active = False
        template.save(update_fields=["is_active", "updated_at"])
        logger.info("Agreement template deactivated: %s (id=%s)", template.name, template.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)
