"""
OpenAPI schema definitions for standardized error responses.
Format: {"error": {"code": "...", "message": "..."}}
"""
from drf_spectacular.utils import OpenApiExample, OpenApiResponse

# Reusable error response definitions for drf-spectacular
# Used in extend_schema(responses=...) to document error format in Swagger

ERROR_400 = OpenApiResponse(
    description="Malformed or missing request data",
    examples=[
        OpenApiExample(
            "validation_error",
            value={"error": {"code": "VALIDATION_ERROR", "message": "quantity: Ensure this value is greater than or equal to 1."}},
            response_only=True,
            status_codes=["400"],
        ),
        OpenApiExample(
            "invalid_input",
            value={"error": {"code": "INVALID_INPUT", "message": "Installments are required for CARD payments."}},
            response_only=True,
            status_codes=["400"],
        ),
    ],
)

ERROR_404 = OpenApiResponse(
    description="Referenced resource does not exist",
    examples=[
        OpenApiExample(
            "not_found",
            value={"error": {"code": "NOT_FOUND", "message": "Appointment not found."}},
            response_only=True,
            status_codes=["404"],
        ),
    ],
)

ERROR_409 = OpenApiResponse(
    description="Business rule conflict with the current state",
    examples=[
        OpenApiExample(
            "conflict_schedule",
            value={
                "error": {
                    "code": "CONFLICT_SCHEDULE",
                    "message": "This pet already has an appointment scheduled for the same date/time.",
                }
            },
            response_only=True,
            status_codes=["409"],
        ),
        OpenApiExample(
            "invalid_transition",
            value={"error": {"code": "INVALID_TRANSITION", "message": "Appointment is already canceled."}},
            response_only=True,
            status_codes=["409"],
        ),
        OpenApiExample(
            "already_paid",
            value={"error": {"code": "ALREADY_PAID", "message": "This appointment already has an approved payment."}},
            response_only=True,
            status_codes=["409"],
        ),
    ],
)

# Dict for easy inclusion in extend_schema(responses={...})
ERROR_RESPONSES = {
    400: ERROR_400,
    404: ERROR_404,
    409: ERROR_409,
}
