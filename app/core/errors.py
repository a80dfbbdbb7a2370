from typing import Any


class AppError(Exception):
    """Base class for errors rendered as ``{"error": ..., "details": ...}``."""

    status_code = 500

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(AppError):
    status_code = 500


class ExternalServiceError(AppError):
    """The grading server could not be reached or answered garbage."""

    status_code = 502


class RemoteError(ExternalServiceError):
    """Non-2xx response from the grading server."""

    def __init__(self, upstream_status: int, body: str = ""):
        super().__init__(
            f"Grading server responded with HTTP {upstream_status}",
            details=body or None,
        )
        self.upstream_status = upstream_status
        self.status_code = upstream_status if upstream_status >= 400 else 502


class GradingTimeoutError(ExternalServiceError):
    status_code = 504


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class PersistenceError(AppError):
    status_code = 500
