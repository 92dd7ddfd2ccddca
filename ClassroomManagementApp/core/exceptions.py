"""Project-wide DRF exception handler producing the `{success: false, ...}` envelope."""

import logging
from typing import Any

from django.conf import settings
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again later."


def _first_message(detail: Any) -> str:
    """Flatten DRF error detail (str / list / dict) into one readable sentence."""
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_message(value)
            if field in ("non_field_errors", "detail"):
                return message
            return f"{field}: {message}"
        return "Invalid request."
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else "Invalid request."
    return str(detail)


def api_exception_handler(exc: Exception, context: dict) -> Response:
    """Render every failure as `{success: false, message, error?}`.

    Known API exceptions keep their status code. Anything else is logged with
    its traceback and answered with a generic 500; the exception text is only
    exposed while DEBUG is on.
    """
    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data
        body: dict[str, Any] = {"success": False, "message": _first_message(detail)}
        if isinstance(detail, dict) and not set(detail) <= {"detail"}:
            body["errors"] = detail
        response.data = body
        return response

    view = context.get("view")
    set_rollback()
    logger.exception("Unhandled error in %s", type(view).__name__ if view else "unknown view")
    body = {"success": False, "message": GENERIC_ERROR_MESSAGE}
    if settings.DEBUG:
        body["error"] = str(exc)
    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
