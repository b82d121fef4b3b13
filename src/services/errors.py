"""Error taxonomy for the complaint engine.

Every error carries a machine-readable ``kind`` and the HTTP status the
API layer renders it with.  Services raise these; only the API layer
turns them into responses.
"""

from __future__ import annotations

from typing import Any


class ShikayatError(Exception):
    """Base class for all engine errors."""

    kind: str = "error"
    status_code: int = 500

    def __init__(self, message: str, *, fields: dict[str, str] | None = None) -> None:
        self.message = message
        self.fields: dict[str, str] = fields or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        if self.fields:
            payload["fields"] = self.fields
        return payload


class ValidationError(ShikayatError):
    """Malformed input, illegal transition, or disallowed assignment."""

    kind = "validation_error"
    status_code = 400


class NotFoundError(ShikayatError):
    kind = "not_found"
    status_code = 404


class ConflictError(ShikayatError):
    """Optimistic-concurrency check failed; the caller should retry."""

    kind = "conflict"
    status_code = 409


class TrackingIdCollision(ConflictError):
    """Storage rejected an insert because the tracking ID already exists.

    Handled inside the intake retry loop; never shown to callers.
    """

    kind = "tracking_id_collision"


class DependencyError(ShikayatError):
    """Storage or notification collaborator failed or timed out."""

    kind = "dependency_error"
    status_code = 503
