"""
Errors raised by the service modules.

Every error carries a human-readable message meant to be shown to the user as-is,
and the HTTP status the API layer answers with.
"""


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ServiceError):
    status_code = 400


class InsufficientFunds(ServiceError):
    status_code = 400

    def __init__(self, message: str = "Insufficient funds"):
        super().__init__(message)


class PermissionDenied(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class DatabaseUnavailable(ServiceError):
    status_code = 500

    def __init__(self, message: str = "Database not configured"):
        super().__init__(message)
