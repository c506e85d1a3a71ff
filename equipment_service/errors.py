"""Domain errors raised by the directory, ledger and lifecycle layers.

Each error carries the HTTP status it maps to; ``main.py`` renders them as
``{"message": ...}`` bodies. Business-rule violations are reported as 400,
matching the public API contract.
"""


class DomainError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    """Malformed input detected before any mutation."""

    status_code = 400


class NotFound(DomainError):
    """Unknown equipment, booking or user id."""

    status_code = 404


class Conflict(DomainError):
    """Business-rule violation: unavailable equipment, taken slot, terminal booking."""

    status_code = 400
