# backoffice/errors.py
"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; backoffice/main.py maps them to HTTP responses.
"""


class BackofficeError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BackofficeError, ValueError):
    """Missing or invalid field. Also a ValueError so pydantic validators can raise it."""

    status_code = 400


class NotFoundError(BackofficeError):
    status_code = 404


class ConflictError(BackofficeError):
    """External id already taken within its scope."""

    status_code = 409


class StorageError(BackofficeError):
    status_code = 500
