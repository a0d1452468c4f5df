# backend/agreements/views/agreements.py
from __future__ import annotations

import json
import logging

import django_filters
from django.conf import settings
from django.db.models import Q
from django.http import FileResponse, HttpResponse
from django.utils import timezone
from django.utils.crypto import constant_time_compare

from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.client_info import get_client_ip
from core.exceptions import BadRequest
from core.pagination import LargeResultsSetPagination
from core.permissions import ActionPermission

from agreements.models import Agreement, AgreementPrintToken, AgreementTemplate, Property
from agreements.serializers.agreement import (
    AIEditLogSerializer,
    AgreementCreateSerializer,
    AgreementDetailSerializer,
    AgreementListSerializer,
    AgreementUpdateSerializer,
    AgreementWithPartiesSerializer,
    PropertySerializer,
    SignatureSerializer,
)
from agreements.serializers.signing import (
    AIEditApplySerializer,
    AIEditRequestSerializer,
    SignaturesCreateSerializer,
)
from agreements.services import lifecycle
from agreements.services.ai_editor import (
    AgreementAIEditor,
    apply_ai_edit,
    find_staged_edit,
    new_conversation_id,
    stage_ai_edit,
)
from agreements.services.pdf import ensure_agreement_pdf
from agreements.services.rendering import render_agreement_document

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPE = "text/html; charset=utf-8"


class AgreementFilter(django_filters.FilterSet):
    property_id = django_filters.NumberFilter(field_name="property_id")
    template_id = django_filters.NumberFilter(field_name="template_id")
    created_from = django_filters.DateFilter(field_name="created_at", lookup_expr="date__gte")
    created_to = django_filters.DateFilter(field_name="created_at", lookup_expr="date__lte")

    class Meta:
        model = Agreement
        fields = ["type", "status", "property_id", "template_id"]


def agreement_pdf_response(agreement: Agreement) -> HttpResponse:
    """Stream the stored PDF, printing it first when missing."""
    try:
        agreement = ensure_agreement_pdf(agreement)
    except Exception:
        logger.exception("PDF generation failed (agreement id=%s)", agreement.pk)
        return Response({"detail": "Error generating PDF"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    return FileResponse(
        agreement.pdf_file.open("rb"),
        content_type="application/pdf",
        as_attachment=False,
        filename=f"{agreement.agreement_number}.pdf",
    )


class AgreementViewSet(viewsets.ModelViewSet):
    permission_classes = [ActionPermission]
    parser_classes = (JSONParser, MultiPartParser, FormParser)
    lookup_value_regex = r"\d+"
    filter_backends = [django_filters.rest_framework.DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = AgreementFilter
    search_fields = ["agreement_number", "description", "property__property_name", "parties__individual_name", "parties__company_name"]
    ordering_fields = ["created_at", "updated_at", "agreement_number", "status"]
    ordering = ["-created_at"]

    action_permissions = {
        "list": "agreements.view_agreement",
        "retrieve": "agreements.view_agreement",
        "with_parties": "agreements.view_agreement",
        "properties": "agreements.view_agreement",
        "print_token": "agreements.view_agreement",
        "pdf": "agreements.view_agreement",
        "ai_edit_history": "agreements.view_agreement",
        "create": "agreements.add_agreement",
        "update": "agreements.change_agreement",
        "partial_update": "agreements.change_agreement",
        "documents": "agreements.change_agreement",
        "ai_edit": "agreements.change_agreement",
        "ai_edit_apply": "agreements.change_agreement",
        "destroy": "agreements.delete_agreement",
        "signatures": "agreements.manage_signatures",
    }

    # html/internal authenticate themselves (print token / internal key)
    public_actions = ("html", "internal")

    def get_permissions(self):
        if self.action in self.public_actions:
            return [AllowAny()]
        return super().get_permissions()

    def get_queryset(self):
        qs = Agreement.objects.alive().select_related("template", "property")
        if self.action == "list":
            return qs.prefetch_related("signatures").distinct()
        return qs.prefetch_related("parties__documents", "signatures", "logs__user")

    def get_serializer_class(self):
        if self.action == "list":
            return AgreementListSerializer
        if self.action == "create":
            return AgreementCreateSerializer
        if self.action in ("update", "partial_update"):
            return AgreementUpdateSerializer
        return AgreementDetailSerializer

    def _detail(self, agreement, serializer_class=AgreementDetailSerializer, status_code=status.HTTP_200_OK):
        fresh = self.get_queryset().get(pk=agreement.pk)
        return Response(serializer_class(fresh, context=self.get_serializer_context()).data, status=status_code)

    # ---------------- CRUD ----------------

    def create(self, request, *args, **kwargs):
        serializer = AgreementCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            template = AgreementTemplate.objects.get(pk=data["template_id"], is_active=True)
        except AgreementTemplate.DoesNotExist:
            raise NotFound("Template not found")

        property_obj = None
        if data.get("property_id"):
            property_obj = Property.objects.filter(pk=data["property_id"], deleted_at__isnull=True).first()
            if property_obj is None:
                raise NotFound("Property not found")

        agreement = lifecycle.create_agreement(
            template=template,
            data=data,
            parties=data.get("parties") or [],
            property_obj=property_obj,
            user=request.user,
            ip_address=get_client_ip(request),
        )
        return self._detail(agreement, status_code=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        agreement = self.get_object()
        serializer = AgreementUpdateSerializer(agreement, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        changes = {
            field: value for field, value in serializer.validated_data.items()
            if getattr(agreement, field) != value
        }
        lifecycle.update_agreement(agreement, changes, user=request.user, ip_address=get_client_ip(request))
        return self._detail(agreement)

    def destroy(self, request, *args, **kwargs):
        agreement = self.get_object()
        lifecycle.delete_agreement(agreement, user=request.user, ip_address=get_client_ip(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ---------------- lookups ----------------

    @action(detail=False, methods=["get"], url_path="properties")
    def properties(self, request):
        qs = Property.objects.filter(deleted_at__isnull=True)
        search = (request.query_params.get("search") or "").strip()
        if search:
            qs = qs.filter(
                Q(property_number__icontains=search)
                | Q(property_name__icontains=search)
                | Q(complex_name__icontains=search)
                | Q(address__icontains=search)
            )
        paginator = LargeResultsSetPagination()
        page = paginator.paginate_queryset(qs, request, view=self)
        return paginator.get_paginated_response(PropertySerializer(page, many=True).data)

    @action(detail=True, methods=["get"], url_path="with-parties")
    def with_parties(self, request, pk=None):
        agreement = self.get_object()
        return self._detail(agreement, serializer_class=AgreementWithPartiesSerializer)

    # ---------------- documents & signatures ----------------

    @action(detail=True, methods=["post"], url_path="documents", parser_classes=[MultiPartParser, FormParser])
    def documents(self, request, pk=None):
        agreement = self.get_object()
        mapping = None
        raw_mapping = request.data.get("partyMapping")
        if raw_mapping:
            try:
                mapping = json.loads(raw_mapping)
            except ValueError:
                raise BadRequest("partyMapping must be valid JSON")

        uploaded = lifecycle.upload_agreement_documents(
            agreement,
            request.FILES,
            party_mapping=mapping,
            user=request.user,
            ip_address=get_client_ip(request),
        )
        return Response({"detail": f"Documents uploaded: {uploaded}", "uploaded_count": uploaded})

    @action(detail=True, methods=["post"], url_path="signatures")
    def signatures(self, request, pk=None):
        agreement = self.get_object()
        serializer = SignaturesCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        created = lifecycle.add_signatures(
            agreement,
            serializer.validated_data["signatures"],
            user=request.user,
            ip_address=get_client_ip(request),
        )
        return Response(SignatureSerializer(created, many=True).data, status=status.HTTP_201_CREATED)

    # ---------------- HTML / PDF ----------------

    @action(detail=True, methods=["post"], url_path="print-token")
    def print_token(self, request, pk=None):
        agreement = self.get_object()
        token = AgreementPrintToken.issue(agreement)
        return Response({
            "token": token.token,
            "expires_at": token.expires_at,
            "url": request.build_absolute_uri(f"{request.path.rsplit('/print-token', 1)[0]}/html/?token={token.token}"),
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="html")
    def html(self, request, pk=None):
        agreement = self._get_alive_or_404(pk)
        user = request.user

        allowed = bool(user and user.is_authenticated and (
            user.is_superuser or user.has_perm("agreements.view_agreement")
        ))
        if not allowed:
            token_value = request.query_params.get("token") or ""
            token = AgreementPrintToken.objects.filter(token=token_value, agreement=agreement).first()
            if token is None or not token.is_usable:
                raise PermissionDenied("Invalid or expired print token")
            token.used_at = timezone.now()
            token.save(update_fields=["used_at"])

        return HttpResponse(render_agreement_document(agreement), content_type=HTML_CONTENT_TYPE)

    @action(detail=True, methods=["get"], url_path="internal")
    def internal(self, request, pk=None):
        key = request.query_params.get("internalKey") or ""
        if not constant_time_compare(key, settings.INTERNAL_API_KEY):
            logger.warning("Internal HTML request with a wrong key (agreement id=%s)", pk)
            raise PermissionDenied("Access denied")
        agreement = self._get_alive_or_404(pk)
        return HttpResponse(render_agreement_document(agreement), content_type=HTML_CONTENT_TYPE)

    @action(detail=True, methods=["get"], url_path="pdf")
    def pdf(self, request, pk=None):
        return agreement_pdf_response(self.get_object())

    def _get_alive_or_404(self, pk) -> Agreement:
        agreement = (
            Agreement.objects.alive()
            .prefetch_related("parties__documents", "signatures")
            .filter(pk=pk)
            .first()
        )
        if agreement is None:
            raise NotFound("Agreement not found")
        return agreement

    # ---------------- AI editing ----------------

    @action(detail=True, methods=["post"], url_path="ai-edit")
    def ai_edit(self, request, pk=None):
        agreement = self.get_object()
        serializer = AIEditRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        conversation_id = data.get("conversationId") or new_conversation_id(agreement.pk)
        result = AgreementAIEditor().edit(agreement, data["prompt"], data.get("conversationHistory"))
        staged = stage_ai_edit(agreement, result, data["prompt"], conversation_id, user=request.user)

        logger.info("AI edit staged for agreement %s (conversation %s)", agreement.agreement_number, conversation_id)
        return Response({
            **result,
            "conversationId": conversation_id,
            "logId": staged.pk if staged else None,
        })

    @action(detail=True, methods=["post"], url_path="ai-edit/apply")
    def ai_edit_apply(self, request, pk=None):
        agreement = self.get_object()
        serializer = AIEditApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        staged = find_staged_edit(agreement, log_id=data.get("logId"), conversation_id=data.get("conversationId"))
        if data.get("logId") and staged is None:
            raise NotFound("AI edit not found")

        agreement = apply_ai_edit(
            agreement,
            staged=staged,
            html_after=data.get("htmlAfter"),
            structure_after=data.get("structureAfter"),
            database_updates=data.get("databaseUpdates"),
            user=request.user,
            ip_address=get_client_ip(request),
        )
        return self._detail(agreement)

    @action(detail=True, methods=["get"], url_path="ai-edit/history")
    def ai_edit_history(self, request, pk=None):
        agreement = self.get_object()
        logs = agreement.ai_edits.all().order_by("-created_at", "-id")
        return Response(AIEditLogSerializer(logs, many=True).data)
