"""Typed failures raised by the asset and request services."""

from __future__ import annotations

# purpose: shared error taxonomy so routes can translate service failures into HTTP responses
# status: active


class ModelShareError(RuntimeError):
    """Base error for asset lifecycle and consent flows."""

    status_code = 400


class NotFound(ModelShareError):
    """Raised when an asset, user, request or alert does not exist or is hidden."""

    status_code = 404


class Forbidden(ModelShareError):
    """Raised when the actor lacks permission for the operation."""

    status_code = 403


class InvalidTransition(ModelShareError):
    """Raised when a status or request-state transition is not permitted."""

    status_code = 409


class DuplicateRequest(ModelShareError):
    """Raised when an identical request is still awaiting a response."""

    status_code = 409


class RequestPreviouslyDeclined(ModelShareError):
    """Raised when the responder already declined an identical request."""

    status_code = 409


class SelfReference(ModelShareError):
    """Raised for self-links and self-reports."""

    status_code = 400


class ValidationFailure(ModelShareError):
    """Raised when a business rule on the entity is violated."""

    status_code = 422


class ConflictOnWrite(ModelShareError):
    """Raised when the store rejects a write because of a concurrent or duplicate row."""

    status_code = 409


class DuplicateLink(ConflictOnWrite):
    """Raised when two assets are already linked in either direction."""
