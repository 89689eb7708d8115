"""Error taxonomy shared by services and the HTTP layer.

Services raise these; ``main.py`` registers a single handler that renders them
with the same structured body used for ``HTTPException``.
"""

from typing import Optional


class AppError(Exception):
    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"


class InvalidTransitionError(AppError):
    status_code = 400
    code = "invalid_transition"


class ConflictError(AppError):
    status_code = 409
    code = "conflict"


class InsufficientBalanceError(AppError):
    status_code = 400
    code = "insufficient_balance"


class ExternalServiceError(AppError):
    status_code = 502
    code = "external_service_error"


class InternalError(AppError):
    status_code = 500
    code = "internal_error"


class AccessDeniedError(AppError):
    status_code = 403
    code = "access_denied"
