from __future__ import annotations


class EngineError(Exception):
    """Base class for user-visible engine errors."""

    kind = "EngineError"
    status_code = 500
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class NotFound(EngineError):
    kind = "NotFound"
    status_code = 404


class IllegalTransition(EngineError):
    kind = "IllegalTransition"
    status_code = 400


class Forbidden(EngineError):
    kind = "Forbidden"
    status_code = 403


class AlreadyAssigned(EngineError):
    kind = "AlreadyAssigned"
    status_code = 409
    retryable = True


class ValidationError(EngineError):
    kind = "ValidationError"
    status_code = 422


class StoreUnavailable(EngineError):
    kind = "StoreUnavailable"
    status_code = 503
    retryable = True
