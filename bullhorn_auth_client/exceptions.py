"""
Custom exception types for the Bullhorn authentication client.

These exceptions allow callers to distinguish between bad input,
failures reported by Bullhorn during authentication, and failures of
the HTTP requests themselves.
"""

from __future__ import annotations

from typing import Any, Optional


class BullhornError(Exception):
    """Base exception for all Bullhorn client errors."""


class BullhornInputError(BullhornError, ValueError):
    """Raised when the supplied credentials, tokens or configuration are unusable."""


class BullhornAuthError(BullhornError):
    """Raised when Bullhorn answers but does not grant a code, token or session."""


class BullhornAPIError(BullhornError):
    """Raised when an HTTP request to Bullhorn fails.

    Parameters
    ----------
    message : str
        Human readable description.  Never contains credentials or tokens.
    status_code : int, optional
        The HTTP status of the response, when one was received.
    status_text : str, optional
        The HTTP reason phrase of the response, when one was received.
    response : requests.Response, optional
        The offending response, kept for diagnostics.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        status_text: Optional[str] = None,
        response: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text
        self.response = response


class BullhornTimeoutError(BullhornAPIError):
    """Raised when no response arrived within the configured timeout."""


class BullhornConnectionError(BullhornAPIError):
    """Raised when the request could not be sent or the connection dropped."""


class BullhornRetryableStatusError(BullhornAPIError):
    """Raised for HTTP 429 and 5xx responses, which are eligible for retry."""
