"""
Custom API exceptions with standardized codes for error responses.
All exceptions have a `code` attribute used in {"error": {"code": "...", "message": "..."}}.

Three failure kinds reach callers: NotFoundError (404), InvalidInputError (400)
and DomainRuleError (409). AppointmentStateError is internal to the models and
is re-raised as a DomainRuleError by the services.
"""


class APIError(Exception):
    """Base exception for API errors with code and message."""

    code = "API_ERROR"
    status_code = 400

    def __init__(self, message, code=None):
        self._message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class NotFoundError(APIError):
    """Raised when a referenced owner, pet, catalog entry, appointment or payment does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, message="Resource not found."):
        super().__init__(message)


class InvalidInputError(APIError):
    """Raised when request data is malformed or missing."""

    code = "INVALID_INPUT"
    status_code = 400


class DomainRuleError(APIError):
    """Raised when a business invariant would be violated by the request."""

    code = "DOMAIN_RULE"
    status_code = 409


class AppointmentConflictError(DomainRuleError):
    """Raised when the pet already has an open appointment at the same time."""

    code = "CONFLICT_SCHEDULE"

    def __init__(self, message="This pet already has an appointment scheduled for the same date/time."):
        super().__init__(message)


class InvalidTransitionError(DomainRuleError):
    """Raised when a lifecycle action is not allowed from the current status."""

    code = "INVALID_TRANSITION"

    def __init__(self, message, current_status=None, action=None):
        self.current_status = current_status
        self.action = action
        super().__init__(message)


class AppointmentLockedError(DomainRuleError):
    """Raised when content changes hit an appointment waiting for payment or completed."""

    code = "APPOINTMENT_LOCKED"

    def __init__(self, message="Appointments waiting for payment cannot be modified."):
        super().__init__(message)


class InactiveOwnerError(DomainRuleError):
    code = "INACTIVE_OWNER"


class InactiveCatalogEntryError(DomainRuleError):
    code = "INACTIVE_CATALOG_ENTRY"

    def __init__(self, message="Inactive catalog items cannot be used."):
        super().__init__(message)


class PaymentAlreadyRegisteredError(DomainRuleError):
    code = "ALREADY_PAID"

    def __init__(self, message="This appointment already has an approved payment."):
        super().__init__(message)


class AppointmentBusyError(DomainRuleError):
    """Raised when the appointment lock could not be acquired within the configured wait."""

    code = "APPOINTMENT_BUSY"

    def __init__(self, appointment_id):
        self.appointment_id = appointment_id
        super().__init__(f"Appointment {appointment_id} is busy with another operation. Try again.")


class AppointmentStateError(Exception):
    """Guard violation raised by model transition and update methods."""
