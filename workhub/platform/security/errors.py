from __future__ import annotations

from workhub.errors import ServiceError


class AuthorizationError(ServiceError):
    """Raised when the caller's scope does not cover the requested record or action."""

    status_code = 403
