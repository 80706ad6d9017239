from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base error raised by work item services; carries an HTTP status for the route layer."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def to_detail(self) -> dict[str, Any] | str:
        if not self.details:
            return self.message
        return {"message": self.message, "details": self.details}


class NotFoundError(ServiceError):
    status_code = 404


class ValidationError(ServiceError):
    status_code = 422
