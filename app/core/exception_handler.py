"""
DRF exception handler that renders application errors.

Domain services raise core.exceptions; views let them propagate and this
handler converts them into the standard error payload:

    {"error": "...", "error_code": "...", "details": {...}}

Registered through REST_FRAMEWORK["EXCEPTION_HANDLER"] in settings.
"""

from __future__ import annotations

import logging

from django_fsm import TransitionNotAllowed
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def api_exception_handler(exc, context):
    """
    Map BaseApplicationError subclasses to HTTP responses.

    Anything else falls through to DRF's default handler.
    """
    if isinstance(exc, BaseApplicationError):
        view = context.get("view")
        logger.info(
            f"Request failed with {exc.error_code}",
            extra={
                "error_code": exc.error_code,
                "view": view.__class__.__name__ if view else None,
                "status": exc.http_status,
            },
        )
        return Response(exc.to_dict(), status=exc.http_status)

    if isinstance(exc, TransitionNotAllowed):
        # Raised by a model transition that no service wrapped
        return Response(
            {"error": str(exc), "error_code": "INVALID_STATE_TRANSITION"},
            status=409,
        )

    return exception_handler(exc, context)
