"""
Custom exception handler that returns all errors in the standard format:
{"error": {"code": "...", "message": "..."}}

Handles: custom API exceptions, escaped model guard violations, DRF errors,
IntegrityError and, as a last resort, any unexpected exception (generic 500).
"""
import logging

from django.db import IntegrityError
from rest_framework.response import Response
from rest_framework.views import exception_handler

from .exceptions import APIError, AppointmentStateError, DomainRuleError

logger = logging.getLogger(__name__)

DRF_CODES = {
    400: "VALIDATION_ERROR",
    401: "NOT_AUTHENTICATED",
    403: "PERMISSION_DENIED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _normalize_message(detail):
    """Extract a single message string from DRF error detail."""
    if isinstance(detail, str):
        return detail
    if isinstance(detail, dict):
        parts = []
        for k, v in detail.items():
            msg = _normalize_message(v)
            parts.append(f"{k}: {msg}" if k != "non_field_errors" else msg)
        return "; ".join(parts)
    if isinstance(detail, list):
        return "; ".join(_normalize_message(d) for d in detail)
    return str(detail)


def _error_response(code, message, status=400):
    """Build standardized error response."""
    return Response(
        {"error": {"code": code, "message": message}},
        status=status,
    )


def custom_exception_handler(exc, context):
    """Convert all API errors to standard format."""
    if isinstance(exc, APIError):
        return _error_response(exc.code, str(exc), status=exc.status_code)

    # Model guard violation that no service re-raised: still a business rule conflict
    if isinstance(exc, AppointmentStateError):
        return _error_response(DomainRuleError.code, str(exc), status=DomainRuleError.status_code)

    if isinstance(exc, IntegrityError):
        logger.warning("Integrity error", extra={"error": str(exc)})
        return _error_response("DATA_INTEGRITY", "Data integrity violation.", status=409)

    # DRF exception_handler (ValidationError, AuthenticationFailed, Http404, etc.)
    response = exception_handler(exc, context)

    if response is not None:
        detail = getattr(exc, "detail", str(exc))
        message = _normalize_message(detail)
        code = DRF_CODES.get(response.status_code, "API_ERROR")
        response.data = {"error": {"code": code, "message": message}}
        response["Content-Type"] = "application/json"
        return response

    view = context.get("view") if context else None
    logger.error(
        "Unhandled exception",
        extra={"error_type": type(exc).__name__, "view": type(view).__name__ if view else None},
        exc_info=exc,
    )
    return _error_response(
        "INTERNAL_ERROR",
        "Internal server error.",
        status=500,
    )
