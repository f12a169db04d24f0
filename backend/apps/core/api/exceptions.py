import logging

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.errors import BakeOpsError

logger = logging.getLogger(__name__)


def bakeops_exception_handler(exc, context):
    if isinstance(exc, BakeOpsError):
        logger.info("Request rejected with %s: %s", exc.code, exc.message)
        return Response(exc.as_payload(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, ValidationError):
        response.data = {
            "error": "validation_error",
            "message": "Request validation failed.",
            "details": response.data,
        }
        return response

    detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
    code = getattr(exc, "default_code", "api_error")

    if response.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        code = "internal"
    elif response.status_code == status.HTTP_401_UNAUTHORIZED:
        code = "authentication_failed"
    elif response.status_code == status.HTTP_403_FORBIDDEN:
        code = "permission_denied"
    elif response.status_code == status.HTTP_404_NOT_FOUND:
        code = "not_found"

    response.data = {
        "error": code,
        "message": str(detail),
        "details": {},
    }
    return response
