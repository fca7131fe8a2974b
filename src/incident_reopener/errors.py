"""Error types raised by the incident reopener."""

from typing import Any, Optional


class ReopenerError(Exception):
    """Base class for every error raised by the reopener."""


class ConfigError(ReopenerError):
    """Required settings are missing or invalid. Raised before any network call."""


class AuthError(ReopenerError):
    """A management API token could not be acquired."""


class StoreError(ReopenerError):
    """
    The Sentinel incidents API returned a failure or could not be reached.

    Attributes:
        status: HTTP status code, or None for network errors and timeouts
        body: Decoded JSON error body, or the raw response text
    """

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body

    def __str__(self) -> str:
        message = super().__str__()
        if self.status is not None:
            return f"{message} (HTTP {self.status})"
        return message


class PerIncidentError(ReopenerError):
    """Unexpected failure while evaluating or remediating a single incident."""

    def __init__(self, incident_number: int, cause: BaseException):
        super().__init__(f"Incident {incident_number}: {type(cause).__name__}: {cause}")
        self.incident_number = incident_number
        self.cause = cause
