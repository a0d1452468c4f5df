# backend/agreements/views/documents.py
import logging

from django.shortcuts import get_object_or_404

from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.client_info import get_client_ip
from core.exceptions import BadRequest
from core.permissions import ActionPermission

from agreements.models import AgreementLogAction, AgreementParty
from agreements.serializers.agreement import PartyDocumentSerializer
from agreements.services import lifecycle
from agreements.services.pdf import schedule_agreement_pdf

logger = logging.getLogger(__name__)


class PartyDocumentView(APIView):
    """Attach (POST, multipart `document`) or remove (DELETE) a single party's documents."""
    permission_classes = [ActionPermission]
    parser_classes = [MultiPartParser, FormParser]
    default_permission = "agreements.change_agreement"

    def _get_party(self, party_id):
        return get_object_or_404(
            AgreementParty.objects.select_related("agreement"),
            pk=party_id,
            agreement__deleted_at__isnull=True,
        )

    def post(self, request, party_id):
        party = self._get_party(party_id)
        uploaded = request.FILES.get("document")
        if uploaded is None:
            raise BadRequest("No file uploaded")

        document = lifecycle.attach_party_document(
            party, uploaded, document_type=request.data.get("document_type") or "passport"
        )
        lifecycle.log_action(
            party.agreement,
            AgreementLogAction.DOCUMENTS_UPLOADED,
            f"Document uploaded for {party.display_name or party.role}",
            user=request.user,
            ip_address=get_client_ip(request),
        )
        schedule_agreement_pdf(party.agreement_id)
        return Response(
            PartyDocumentSerializer(document, context={"request": request}).data,
            status=status.HTTP_201_CREATED,
        )

    def delete(self, request, party_id):
        party = self._get_party(party_id)
        removed = lifecycle.remove_party_documents(party)
        if removed:
            schedule_agreement_pdf(party.agreement_id)
        logger.info("Removed %d document(s) from party %s", removed, party.pk)
        return Response(status=status.HTTP_204_NO_CONTENT)
