"""Error taxonomy shared by the services and the HTTP layer.

Every error carries a machine-readable ``kind``, the HTTP status it maps to and
whether retrying the same call can succeed.
"""


class AppointmentError(Exception):
    status_code: int = 400
    kind: str = "error"
    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthenticationError(AppointmentError):
    status_code = 401
    kind = "authentication_error"


class AuthorizationError(AppointmentError):
    status_code = 403
    kind = "authorization_error"


class NotFoundError(AppointmentError):
    status_code = 404
    kind = "not_found"


class ValidationError(AppointmentError):
    status_code = 400
    kind = "validation_error"


class SlotConflictError(AppointmentError):
    status_code = 409
    kind = "slot_conflict"


class InvalidStateError(AppointmentError):
    status_code = 400
    kind = "invalid_state"


class StoreError(AppointmentError):
    status_code = 503
    kind = "store_error"
    retryable = True
