"""Service-level error taxonomy mapped onto HTTP responses by main.py."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class ServiceError(Exception):
    """Base error carrying an HTTP status and a user-facing message."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"detail": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(ServiceError):
    """Bad or missing input."""

    status_code = 400


class InvalidTransitionError(ValidationError):
    """A moderation decision that would flip an already reviewed story."""

    status_code = 409


class NotFoundError(ServiceError):
    status_code = 404


class StorageError(ServiceError):
    """Underlying persistence unavailable or a write failed."""

    status_code = 503


class PartialFailure(ServiceError):
    """Batch where some items were stored and some were not."""

    status_code = 207

    def __init__(self, succeeded: List[str], failed: List[Dict[str, Any]]):
        super().__init__(
            f"{len(succeeded)} item(s) stored, {len(failed)} failed.",
            details={"succeeded": list(succeeded), "failed": list(failed)},
        )
        self.succeeded = list(succeeded)
        self.failed = list(failed)
