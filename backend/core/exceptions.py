# backend/core/exceptions.py
from rest_framework import status
from rest_framework.exceptions import APIException


class BadRequest(APIException):
    """400 with a plain {"detail": "..."} body (conflicts such as "already signed")."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request."
    default_code = "bad_request"


class UpstreamServiceError(APIException):
    """An external dependency (AI proxy, PDF printer) failed."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Upstream service error."
    default_code = "upstream_error"

    def __init__(self, detail=None, code=None, status_code=None):
        super().__init__(detail, code)
        if status_code is not None:
            self.status_code = status_code
