"""
Error taxonomy shared by the dispatcher and the HTTP routes.
"""

from __future__ import annotations

from typing import Optional


class PlaygroundError(Exception):
    """Base exception converted to the JSON error envelope."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def as_dict(self) -> dict:
        return {"error": self.message}


class InvalidRequestError(PlaygroundError):
    """Missing or malformed field, detected before any data access."""

    code = "INVALID_REQUEST"
    status_code = 400


class UnauthorizedError(PlaygroundError):
    code = "UNAUTHORIZED"
    status_code = 401


class MethodNotAllowed(PlaygroundError):
    code = "METHOD_NOT_ALLOWED"
    status_code = 405

    def __init__(self, message: str, allow: list[str]):
        super().__init__(message)
        self.allow = allow

    def as_dict(self) -> dict:
        supported = [method for method in self.allow if method != "OPTIONS"]
        return {"error": self.message, "supportedMethods": supported}


class UpstreamError(PlaygroundError):
    """A collaborator (database, storage, auth) reported a failure."""

    code = "UPSTREAM_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.details = details
        self.hint = hint


class InternalError(PlaygroundError):
    code = "INTERNAL_ERROR"
    status_code = 500


def validation_message(errors: list[dict]) -> str:
    """Collapse pydantic validation errors into one client-facing message."""
    if not errors:
        return "Invalid request body"
    first = errors[0]
    loc = [part for part in first.get("loc", ()) if part != "body"]
    # Union members append their type to the location; the field comes first.
    name = str(loc[0]) if loc else "body"
    if first.get("type") in ("missing", "string_too_short"):
        return f"{name} is required"
    return f"Invalid '{name}': {first.get('msg', 'invalid value')}"
