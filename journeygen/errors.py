"""Error taxonomy shared by the pipeline, the auth guard and the HTTP layer.

Every error carries the HTTP status it maps to and a message that is safe to
return to the caller. Pipeline failures keep their diagnostics on the
exception (``detail``) so they can be logged server-side while the caller only
sees the generic message.
"""
from __future__ import annotations

from typing import Any, Optional


class JourneyError(Exception):
    status_code: int = 500
    public_message: str = "Internal server error."

    def __init__(self, message: Optional[str] = None, *, detail: Any = None):
        self.message = message or self.public_message
        self.detail = detail
        super().__init__(self.message)


# ---------- request / auth ----------

class ValidationError(JourneyError):
    status_code = 400
    public_message = "Invalid request."

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None, detail: Any = None):
        self.field = field
        if message is None and field:
            message = f'Missing or invalid "{field}".'
        super().__init__(message, detail=detail)


class Unauthenticated(JourneyError):
    status_code = 401
    public_message = "Missing Authorization header"


class Forbidden(JourneyError):
    status_code = 403
    public_message = "Forbidden"


class NotFound(JourneyError):
    status_code = 404
    public_message = "Not found."


# ---------- pipeline ----------

class GenerationError(JourneyError):
    """Base for failures of the generation pipeline; callers get a generic message."""
    status_code = 500
    public_message = "Server error generating content."


class GenerationUnavailable(GenerationError):
    pass


class EmptyGeneration(GenerationError):
    pass


class MalformedGeneration(GenerationError):
    def __init__(self, message: Optional[str] = None, *, raw: str = "", detail: Any = None):
        self.raw = raw
        super().__init__(message, detail=detail)


class UnexpectedShape(GenerationError):
    def __init__(self, message: Optional[str] = None, *, issues: Optional[list[str]] = None, detail: Any = None):
        self.issues = list(issues or [])
        super().__init__(message, detail=detail if detail is not None else self.issues)


# ---------- storage ----------

class PersistenceFailure(JourneyError):
    status_code = 500
    public_message = "Server error."


__all__ = [
    "JourneyError",
    "ValidationError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "GenerationError",
    "GenerationUnavailable",
    "EmptyGeneration",
    "MalformedGeneration",
    "UnexpectedShape",
    "PersistenceFailure",
]
