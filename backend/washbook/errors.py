# backend/washbook/errors.py
"""
Error taxonomy for the slots / reservation engine.

    EngineError
    ├─ InvalidInputError (400) ─ InvalidServiceError
    ├─ NotFoundError (404)
    ├─ ConflictError (409) ─ OverlapConflictError
    ├─ ExpiredError (410)
    └─ UnavailableError (503, retryable)

Routers do not catch these; main.py maps them to JSON responses.
"""

from typing import Optional


class EngineError(Exception):
    """Base class for every error raised by the booking engine."""

    code = "engine_error"
    status_code = 500
    retryable = False
    user_message = "Something went wrong, please try again later."

    def __init__(self, message: Optional[str] = None, **context):
        super().__init__(message or self.user_message)
        self.context = context

    @property
    def message(self) -> str:
        return str(self)

    def to_response(self) -> dict:
        return {"error": {"code": self.code, "message": self.user_message}}


class InvalidInputError(EngineError):
    code = "invalid_input"
    status_code = 400
    user_message = "The request is not valid."

    def to_response(self) -> dict:
        # Validation messages are safe to show as-is
        return {"error": {"code": self.code, "message": self.message}}


class InvalidServiceError(InvalidInputError):
    code = "invalid_service"
    user_message = "This service cannot be booked."


class NotFoundError(EngineError):
    code = "not_found"
    status_code = 404
    user_message = "Not found."

    def to_response(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class ConflictError(EngineError):
    """Slot already held or booked. Expected and frequent."""

    code = "conflict"
    status_code = 409
    user_message = "This slot was just taken."

    def __init__(self, message: Optional[str] = None, conflicts: Optional[list] = None, **context):
        super().__init__(message, **context)
        self.conflicts = conflicts or []

    def to_response(self) -> dict:
        body = super().to_response()
        body["error"]["conflicts"] = [
            {"type": c.type, "message": c.message} for c in self.conflicts
        ]
        return body


class OverlapConflictError(ConflictError):
    """Raised by the ledger when an insert would exceed capacity."""

    code = "overlap_conflict"


class ExpiredError(EngineError):
    code = "expired"
    status_code = 410
    user_message = "Your reservation expired, please pick a time again."


class UnavailableError(EngineError):
    """Hold store or booking ledger unreachable."""

    code = "unavailable"
    status_code = 503
    retryable = True
    user_message = "Please try again in a moment."
