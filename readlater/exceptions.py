"""Application-level exception types.

Convention:
- ``ReadLaterError`` subclasses describe why a provider call did not happen or
  did not succeed. Adapters raise them, the save orchestrator records them on
  a failed ``SaveResult``, and the API maps each kind to its own status code
  so a client can tell "reconnect the account" apart from "wait and retry".
- ``InternalServerError`` is for errors whose details must never reach
  clients (decryption failures, storage faults). The global handler logs the
  full message and returns a generic 500.
- ``ValueError`` is for input validation errors that are safe to forward.
"""

from __future__ import annotations


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients."""


class ReadLaterError(Exception):
    """Base class for every read-later provider failure."""

    retryable: bool = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ProviderNotConfiguredError(ReadLaterError):
    """No enabled adapter exists for the requested service. No call was attempted."""


class AuthenticationRequiredError(ReadLaterError):
    """The generic handshake cannot start without caller-supplied setup material."""


class CredentialInvalidError(ReadLaterError):
    """The credential is missing, rejected or expired; the account must be reconnected."""


class RateLimitedError(ReadLaterError):
    """The service is throttling requests."""

    retryable = True

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class MalformedResponseError(ReadLaterError):
    """The transport succeeded but the payload did not have the expected shape."""


class ProviderApplicationError(ReadLaterError):
    """The service answered with a success status but reported a logical failure."""

    def __init__(self, message: str, error_codes: list[str] | None = None) -> None:
        super().__init__(message)
        self.error_codes = list(error_codes or [])


class ProviderRequestError(ReadLaterError):
    """The service rejected the request or failed with an unexpected status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_bad_request(self) -> bool:
        return self.status_code == 400
