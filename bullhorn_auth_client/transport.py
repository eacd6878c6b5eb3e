"""
Request execution with timeout, bounded retries and capped backoff.

Every request made by :class:`~bullhorn_auth_client.client.BullhornAuthClient`
goes through :func:`execute`.  Connection problems, timeouts and
HTTP 429/5xx responses are retried up to ``policy.retries`` times with
an exponential delay of 1s, 2s, 4s, 4s, ...  Other responses, including
redirects and 4xx errors, are handed back to the caller untouched.

URLs are never logged because Bullhorn expects credentials and tokens
in the query string.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

import requests

from .exceptions import (
    BullhornAPIError,
    BullhornConnectionError,
    BullhornRetryableStatusError,
    BullhornTimeoutError,
)
from .models import HttpPolicy, RetryAttempt

logger = logging.getLogger(__name__)

RATE_LIMIT_HEADERS = ("x-ratelimit-limit-minute", "x-ratelimit-remaining-minute")

_BASE_DELAY_MS = 1000
_MAX_DELAY_MS = 4000


def backoff_delay_ms(attempt: int) -> int:
    """Delay before the retry that follows failed attempt ``attempt`` (from 1)."""
    return min(_BASE_DELAY_MS * 2 ** (attempt - 1), _MAX_DELAY_MS)


def is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def response_diagnostics(response: requests.Response) -> Dict[str, Any]:
    """Return the parts of a response that are safe to log or report.

    Only the status line and the two per-minute rate-limit headers are
    kept.
    """
    return {
        "status": response.status_code,
        "status_text": response.reason,
        "headers": {name: response.headers.get(name) for name in RATE_LIMIT_HEADERS},
    }


def _send(
    method: str,
    url: str,
    policy: HttpPolicy,
    session: Any,
    headers: Dict[str, str],
    allow_redirects: bool,
) -> requests.Response:
    """Perform a single attempt, converting failures into client exceptions."""
    try:
        response = session.request(
            method=method,
            url=url,
            headers=headers,
            timeout=policy.timeout_seconds,
            allow_redirects=allow_redirects,
        )
    except requests.Timeout as exc:
        raise BullhornTimeoutError(
            f"{method} request timed out after {policy.timeout_ms} ms"
        ) from exc
    except requests.RequestException as exc:
        # The exception text may echo the URL, so only its type is kept.
        raise BullhornConnectionError(
            f"{method} request failed: {type(exc).__name__}"
        ) from exc

    if is_retryable_status(response.status_code):
        raise BullhornRetryableStatusError(
            f"HTTP {response.status_code}",
            status_code=response.status_code,
            status_text=response.reason,
            response=response,
        )
    return response


def _notify(policy: HttpPolicy, attempt: int, error: BullhornAPIError) -> None:
    if policy.on_retry_attempt is None:
        return
    try:
        policy.on_retry_attempt(
            RetryAttempt(attempt=attempt, status=error.status_code, error=str(error))
        )
    except Exception:
        logger.debug("on_retry_attempt callback raised; ignoring", exc_info=True)


def execute(
    method: str,
    url: str,
    policy: HttpPolicy,
    *,
    session: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
    allow_redirects: bool = True,
) -> requests.Response:
    """Send a request, retrying transient failures according to ``policy``.

    Parameters
    ----------
    method : str
        HTTP verb.
    url : str
        Fully built request URL, query string included.
    policy : HttpPolicy
        Timeout, retry count, user agent and retry observer.
    session : requests.Session, optional
        Anything with a ``requests.Session.request`` compatible method.
        The ``requests`` module itself is used when omitted, so no
        connection is kept open between calls.
    headers : dict, optional
        Extra request headers.
    allow_redirects : bool
        Set to False to receive 3xx responses instead of following them.

    Returns
    -------
    requests.Response
        The first response that is not a retryable failure.

    Raises
    ------
    BullhornTimeoutError, BullhornConnectionError, BullhornRetryableStatusError
        The failure of the last attempt once all attempts are used.
    """
    http = session if session is not None else requests
    req_headers = {"User-Agent": policy.user_agent}
    if headers:
        req_headers.update(headers)

    attempts = policy.retries + 1
    attempt = 0
    while True:
        attempt += 1
        try:
            return _send(method, url, policy, http, req_headers, allow_redirects)
        except BullhornAPIError as exc:
            if attempt >= attempts:
                logger.debug("%s failed after %d attempt(s): %s", method, attempt, exc)
                raise
            delay_ms = backoff_delay_ms(attempt)
            logger.warning(
                "%s attempt %d/%d failed (%s); retrying in %d ms",
                method,
                attempt,
                attempts,
                exc,
                delay_ms,
            )
            time.sleep(delay_ms / 1000.0)
            _notify(policy, attempt, exc)
