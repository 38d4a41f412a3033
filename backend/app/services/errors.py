from __future__ import annotations


class ServiceError(Exception):
    """Base for failures surfaced to clients with a machine-readable reason."""

    status_code = 400

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message

    def __str__(self) -> str:
        return self.message


class NotFoundError(ServiceError):
    status_code = 404


class InvalidStateError(ServiceError):
    status_code = 409


class UnauthorizedError(ServiceError):
    status_code = 403


class ValidationError(ServiceError):
    status_code = 400
