"""
Typed errors raised by the services.

Every error carries a machine-readable ``code`` and the HTTP ``status_code``
the API layer answers with. Routes never build error payloads themselves;
the handler registered in ``main.py`` renders::

    {"success": false, "error": {"code": ..., "message": ...}}

Hierarchy::

    BackofficeError
    +-- AuthenticationError          401
    +-- NotFoundError                404
    +-- ValidationFailedError        400
    |   +-- MissingFieldError
    |   +-- InvalidAmountError
    +-- InvalidStateError            400
    |   +-- NotApprovedError
    |   +-- AlreadyPaidError
    +-- FinalizedError               400
    |   +-- AlreadyClearedError
    |   +-- AlreadyBouncedError
    |   +-- AlreadyCancelledError
    +-- UnauthorizedError            403
    +-- ForbiddenError               403
    +-- DuplicateEntryError          409
        +-- ScheduleAlreadyExistsError
"""
from typing import Optional


class BackofficeError(Exception):
    """Base class for all business-rule and lookup failures."""

    code: str = "BACKOFFICE_ERROR"
    status_code: int = 400

    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class AuthenticationError(BackofficeError):
    code = "AUTHENTICATION_REQUIRED"
    status_code = 401


class NotFoundError(BackofficeError):
    """Referenced id does not resolve to an active record."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id=None, code: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(
            f"{resource} not found",
            code or f"{_snake(resource).upper()}_NOT_FOUND",
        )


class ValidationFailedError(BackofficeError):
    code = "VALIDATION_ERROR"
    status_code = 400


class MissingFieldError(ValidationFailedError):
    code = "MISSING_FIELD"

    def __init__(self, field: str, message: Optional[str] = None, code: Optional[str] = None):
        self.field = field
        super().__init__(message or f"{field} is required", code)


class InvalidAmountError(ValidationFailedError):
    code = "INVALID_AMOUNT"

    def __init__(self, message: str = "Amount must be greater than zero", code: Optional[str] = None):
        super().__init__(message, code)


class InvalidStateError(BackofficeError):
    """Action attempted from a status that does not permit it."""

    code = "INVALID_STATE"
    status_code = 400


class NotApprovedError(InvalidStateError):
    code = "NOT_APPROVED"


class AlreadyPaidError(InvalidStateError):
    code = "ALREADY_PAID"


class FinalizedError(BackofficeError):
    """Mutation attempted on a record in a terminal status."""

    code = "FINALIZED"
    status_code = 400


class AlreadyClearedError(FinalizedError):
    code = "CHEQUE_ALREADY_CLEARED"


class AlreadyBouncedError(FinalizedError):
    code = "CHEQUE_ALREADY_BOUNCED"


class AlreadyCancelledError(FinalizedError):
    code = "CHEQUE_ALREADY_CANCELLED"


class UnauthorizedError(BackofficeError):
    """Caller role does not match the role required at this workflow stage."""

    code = "UNAUTHORIZED"
    status_code = 403


class ForbiddenError(BackofficeError):
    code = "FORBIDDEN"
    status_code = 403


class DuplicateEntryError(BackofficeError):
    code = "DUPLICATE_ENTRY"
    status_code = 409


class ScheduleAlreadyExistsError(DuplicateEntryError):
    code = "SCHEDULE_ALREADY_EXISTS"

    def __init__(self, cancellation_id: int):
        self.cancellation_id = cancellation_id
        super().__init__("Refund schedule already exists for this cancellation")


def _snake(name: str) -> str:
    out = []
    for i, ch in enumerate(name.replace(" ", "")):
        if ch.isupper() and i:
            out.append("_")
        out.append(ch)
    return "".join(out)
