"""HTTP status codes for read-later error kinds."""

from __future__ import annotations

from readlater.exceptions import (
    AuthenticationRequiredError,
    CredentialInvalidError,
    MalformedResponseError,
    ProviderApplicationError,
    ProviderNotConfiguredError,
    ProviderRequestError,
    RateLimitedError,
    ReadLaterError,
)

ERROR_STATUS: dict[type[ReadLaterError], int] = {
    ProviderNotConfiguredError: 404,
    AuthenticationRequiredError: 409,
    CredentialInvalidError: 401,
    RateLimitedError: 429,
    MalformedResponseError: 502,
    ProviderApplicationError: 502,
    ProviderRequestError: 502,
}


def error_status(exc: ReadLaterError) -> int:
    """Status for the most specific mapped class of ``exc``; 502 otherwise."""
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 502


def error_headers(exc: ReadLaterError) -> dict[str, str] | None:
    if isinstance(exc, RateLimitedError) and exc.retry_after is not None:
        return {"Retry-After": str(int(exc.retry_after))}
    return None
