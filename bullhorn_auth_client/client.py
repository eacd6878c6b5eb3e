"""
Session acquisition for the Bullhorn REST API.

This module defines :class:`BullhornAuthClient`, which obtains a REST
session (``BhRestToken`` plus the per-user ``restUrl``) using the
cheapest authentication path the caller's inputs allow:

1. ``existing`` - ping a supplied REST session and reuse it when its
   per-minute request quota is above the threshold.
2. ``refresh`` - trade a refresh token for new OAuth tokens.
3. ``access`` - trade a supplied access token for a REST session.
4. ``full`` - the headless OAuth authorization code flow with the
   user's password.

A failed ping or a rejected refresh token moves on to the next path.
Every other failure is raised to the caller.

Usage
-----

.. code-block:: python

    from bullhorn_auth_client import credentials_from_env, login_to_bullhorn, tokens_from_env

    session = login_to_bullhorn(
        credentials=credentials_from_env(),
        tokens=tokens_from_env(),
        config={"http": {"retries": 2}},
    )
    print(session.method, session.rest_url)

The client keeps nothing between calls.  Persist ``rest_url``,
``rest_token`` and ``refresh_token`` yourself and pass them back in on
the next call to take the cheaper paths.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import parse_qs, quote, urlparse

import requests

from .config import resolve_config
from .exceptions import BullhornAPIError, BullhornAuthError, BullhornInputError
from .models import (
    AcquisitionConfig,
    AuthMethod,
    AuthorizationCode,
    CredentialSet,
    LoginInfo,
    PingResult,
    RestSession,
    SessionResult,
    TokenBundle,
    TokenGrant,
)
from .transport import execute, response_diagnostics

logger = logging.getLogger(__name__)

REST_TOKEN_HEADER = "BhRestToken"
REMAINING_HEADER = "x-ratelimit-remaining-minute"

INSUFFICIENT_INPUT_MESSAGE = (
    "Insufficient input: provide either (rest_url+rest_token) or "
    "(refresh_token+client credentials) or full credentials"
)


def _encode(value: Any) -> str:
    return quote(str(value), safe="")


def _query(**params: Any) -> str:
    return "&".join(f"{key}={_encode(value)}" for key, value in params.items())


def _json_body(response: requests.Response, what: str) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError as exc:
        raise BullhornAPIError(
            f"{what} returned a body that is not JSON",
            status_code=response.status_code,
            status_text=response.reason,
        ) from exc
    if not isinstance(body, dict):
        raise BullhornAPIError(
            f"{what} returned unexpected JSON",
            status_code=response.status_code,
            status_text=response.reason,
        )
    return body


def _parse_remaining(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class BullhornAuthClient:
    """Obtains Bullhorn REST sessions.

    Parameters
    ----------
    config : AcquisitionConfig, optional
        Session lifetime, quota threshold and HTTP policy.  Defaults are
        used when omitted.
    session : requests.Session, optional
        Transport used for every request.  The module-level
        ``requests`` functions are used when omitted.

    Notes
    -----
    Instances hold only their configuration, so one client may be
    shared between threads and every :meth:`login` call is independent.
    """

    def __init__(
        self,
        config: Optional[AcquisitionConfig] = None,
        *,
        session: Optional[Any] = None,
    ) -> None:
        self.config = config or AcquisitionConfig()
        self._session = session

    # ------------------------------------------------------------------
    # Protocol operations
    # ------------------------------------------------------------------
    def _execute(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return execute(method, url, self.config.http, session=self._session, **kwargs)

    def discover(self, username: str) -> LoginInfo:
        """Look up the OAuth and REST base URLs for ``username``.

        Raises
        ------
        BullhornInputError
            If ``username`` is empty.
        BullhornAPIError
            If the lookup fails or does not name both URLs.
        """
        if not username or not isinstance(username, str):
            raise BullhornInputError("username must be a non-empty string")
        url = f"{self.config.discovery_url}?{_query(username=username)}"
        response = self._execute("GET", url)
        raw = response_diagnostics(response)
        if not response.ok:
            raise BullhornAPIError(
                f"loginInfo failed with status {response.status_code}",
                status_code=response.status_code,
                status_text=response.reason,
            )
        body = _json_body(response, "loginInfo")
        oauth_url, rest_url = body.get("oauthUrl"), body.get("restUrl")
        if not oauth_url or not rest_url:
            raise BullhornAPIError(
                "loginInfo response did not contain oauthUrl and restUrl",
                status_code=response.status_code,
            )
        return LoginInfo(oauth_url=oauth_url, rest_url=rest_url, raw=raw)

    def refresh_exchange(
        self,
        oauth_url: str,
        refresh_token: str,
        client_id: str,
        client_secret: str,
    ) -> TokenGrant:
        """Trade a refresh token for new access and refresh tokens.

        A rejected or failed exchange is reported through ``ok=False``
        instead of an exception.
        """
        url = f"{oauth_url.rstrip('/')}/token?" + _query(
            grant_type="refresh_token",
            refresh_token=refresh_token,
            client_id=client_id,
            client_secret=client_secret,
        )
        try:
            response = self._execute("POST", url)
        except BullhornAPIError as exc:
            return TokenGrant(
                ok=False,
                status=exc.status_code,
                error=str(exc),
                raw={"status": exc.status_code, "status_text": exc.status_text, "error": str(exc)},
            )

        raw = response_diagnostics(response)
        if not response.ok:
            return TokenGrant(
                ok=False,
                status=response.status_code,
                error=f"HTTP {response.status_code}",
                raw=raw,
            )
        try:
            body = _json_body(response, "refresh token exchange")
        except BullhornAPIError as exc:
            return TokenGrant(ok=False, status=response.status_code, error=str(exc), raw=raw)
        if not body.get("access_token"):
            return TokenGrant(
                ok=False,
                status=response.status_code,
                error="response did not contain an access_token",
                raw=raw,
            )
        return TokenGrant(
            ok=True,
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            status=response.status_code,
            raw=raw,
        )

    def authorize(
        self,
        oauth_url: str,
        client_id: str,
        username: str,
        password: str,
    ) -> AuthorizationCode:
        """Submit the login form headlessly and capture the authorization code.

        Bullhorn answers a successful login with a redirect whose
        ``Location`` carries ``code``.  The redirect is not followed.

        Raises
        ------
        BullhornAuthError
            If the response has no usable ``Location`` header.
        """
        url = f"{oauth_url.rstrip('/')}/authorize?" + _query(
            client_id=client_id,
            response_type="code",
            action="Login",
            username=username,
            password=password,
        )
        response = self._execute(
            "GET",
            url,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            allow_redirects=False,
        )
        raw = response_diagnostics(response)
        location = response.headers.get("location")
        code = None
        if location:
            try:
                code = parse_qs(urlparse(location).query).get("code", [None])[0]
            except ValueError:
                code = None
        if not code:
            raise BullhornAuthError(
                f"Authorization did not return a code (status {response.status_code})"
            )
        return AuthorizationCode(code=code, raw=raw)

    def code_exchange(
        self,
        oauth_url: str,
        client_id: str,
        client_secret: str,
        code: str,
    ) -> TokenGrant:
        """Trade an authorization code for access and refresh tokens."""
        url = f"{oauth_url.rstrip('/')}/token?" + _query(
            grant_type="authorization_code",
            client_id=client_id,
            client_secret=client_secret,
            code=code,
        )
        response = self._execute("POST", url)
        raw = response_diagnostics(response)
        if not response.ok:
            raise BullhornAuthError(
                f"Authorization code exchange failed with status {response.status_code}"
            )
        body = _json_body(response, "authorization code exchange")
        if not body.get("access_token"):
            raise BullhornAuthError("Token response did not contain an access_token")
        return TokenGrant(
            ok=True,
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            status=response.status_code,
            raw=raw,
        )

    def rest_login(self, rest_url: str, access_token: str, ttl_days: Optional[int] = None) -> RestSession:
        """Trade an access token for a REST session.

        Parameters
        ----------
        rest_url : str
            REST base URL of the user's data centre.
        access_token : str
            OAuth access token.
        ttl_days : int, optional
            Requested session lifetime.  Defaults to ``config.ttl_days``.

        Raises
        ------
        BullhornAuthError
            If Bullhorn refuses the login or omits ``restUrl`` or
            ``BhRestToken``.
        """
        ttl = self.config.ttl_days if ttl_days is None else ttl_days
        url = f"{rest_url.rstrip('/')}/login?version=*&" + _query(
            access_token=access_token, ttl=ttl
        )
        response = self._execute("POST", url)
        raw = response_diagnostics(response)
        if not response.ok:
            raise BullhornAuthError(f"REST login failed with status {response.status_code}")
        body = _json_body(response, "REST login")
        session_url, session_token = body.get("restUrl"), body.get(REST_TOKEN_HEADER)
        if not session_url or not session_token:
            raise BullhornAuthError("REST login response did not contain restUrl and BhRestToken")
        return RestSession(rest_url=session_url, rest_token=session_token, raw=raw)

    def ping_session(self, rest_url: str, rest_token: str) -> PingResult:
        """Check that a REST session is alive and read its remaining quota.

        Never raises for HTTP failures; ``ok`` is False instead.
        """
        url = f"{rest_url.rstrip('/')}/ping"
        try:
            response = self._execute("GET", url, headers={REST_TOKEN_HEADER: rest_token})
        except BullhornAPIError as exc:
            return PingResult(
                ok=False,
                status=exc.status_code,
                error=str(exc),
                raw={"status": exc.status_code, "status_text": exc.status_text, "error": str(exc)},
            )
        raw = response_diagnostics(response)
        if not response.ok:
            return PingResult(
                ok=False,
                status=response.status_code,
                error=f"HTTP {response.status_code}",
                raw=raw,
            )
        return PingResult(
            ok=True,
            min_remaining=_parse_remaining(response.headers.get(REMAINING_HEADER)),
            status=response.status_code,
            raw=raw,
        )

    # ------------------------------------------------------------------
    # Authentication paths
    # ------------------------------------------------------------------
    def _try_existing(self, credentials: CredentialSet, tokens: TokenBundle) -> Optional[SessionResult]:
        if not (tokens.rest_url and tokens.rest_token):
            return None
        ping = self.ping_session(tokens.rest_url, tokens.rest_token)
        if not ping.ok:
            logger.debug("Existing session rejected (status %s)", ping.status)
            return None
        remaining = ping.min_remaining if ping.min_remaining is not None else 0
        if remaining <= self.config.min_remaining_threshold:
            logger.debug(
                "Existing session quota %d not above threshold %s",
                remaining,
                self.config.min_remaining_threshold,
            )
            return None
        return SessionResult(
            rest_url=tokens.rest_url,
            rest_token=tokens.rest_token,
            refresh_token=tokens.refresh_token,
            access_token=tokens.access_token,
            min_remaining=remaining,
            method=AuthMethod.EXISTING,
        )

    def _try_refresh(self, credentials: CredentialSet, tokens: TokenBundle) -> Optional[SessionResult]:
        if not (tokens.refresh_token and credentials.has_client_identity):
            return None
        info = self.discover(credentials.username)
        grant = self.refresh_exchange(
            info.oauth_url,
            tokens.refresh_token,
            credentials.client_id,
            credentials.client_secret,
        )
        if not grant.ok:
            logger.debug("Refresh token exchange failed (status %s)", grant.status)
            return None
        rest = self.rest_login(info.rest_url, grant.access_token)
        return SessionResult(
            rest_url=rest.rest_url,
            rest_token=rest.rest_token,
            refresh_token=grant.refresh_token,
            access_token=grant.access_token,
            method=AuthMethod.REFRESH,
        )

    def _try_access(self, credentials: CredentialSet, tokens: TokenBundle) -> Optional[SessionResult]:
        if not tokens.access_token:
            return None
        rest_url = tokens.rest_url
        if not rest_url and credentials.username:
            rest_url = self.discover(credentials.username).rest_url
        if not rest_url:
            # Deliberately not a fall-through: the caller gave an access
            # token but no way to use it.
            raise BullhornInputError(
                "access_token provided but rest_url (or credentials.username to derive it) is missing"
            )
        rest = self.rest_login(rest_url, tokens.access_token)
        return SessionResult(
            rest_url=rest.rest_url,
            rest_token=rest.rest_token,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            method=AuthMethod.ACCESS,
        )

    def _full_login(self, credentials: CredentialSet, tokens: TokenBundle) -> SessionResult:
        if not credentials.is_complete:
            raise BullhornInputError(INSUFFICIENT_INPUT_MESSAGE)
        info = self.discover(credentials.username)
        auth = self.authorize(
            info.oauth_url,
            credentials.client_id,
            credentials.username,
            credentials.password,
        )
        grant = self.code_exchange(
            info.oauth_url,
            credentials.client_id,
            credentials.client_secret,
            auth.code,
        )
        rest = self.rest_login(info.rest_url, grant.access_token)
        return SessionResult(
            rest_url=rest.rest_url,
            rest_token=rest.rest_token,
            refresh_token=grant.refresh_token,
            access_token=grant.access_token,
            method=AuthMethod.FULL,
        )

    def login(
        self,
        credentials: Union[CredentialSet, Mapping[str, Any], None] = None,
        tokens: Union[TokenBundle, Mapping[str, Any], None] = None,
    ) -> SessionResult:
        """Return a REST session using the cheapest path available.

        Parameters
        ----------
        credentials : CredentialSet or mapping, optional
            Client id, client secret, username and password.  Partial
            credentials are enough for the refresh path.
        tokens : TokenBundle or mapping, optional
            Previously obtained ``rest_url``, ``rest_token``,
            ``refresh_token`` and/or ``access_token``.

        Mapping keys must be the snake_case field names above; any other
        key raises :class:`BullhornInputError`.

        Returns
        -------
        SessionResult
            The session and the :class:`AuthMethod` that produced it.

        Raises
        ------
        BullhornInputError
            If the inputs cannot support any path.
        BullhornAuthError
            If Bullhorn rejects the login.
        BullhornAPIError
            If a request fails after all retries.
        """
        credentials = _coerce(credentials, CredentialSet, "credentials")
        tokens = _coerce(tokens, TokenBundle, "tokens")

        for step in (self._try_existing, self._try_refresh, self._try_access):
            result = step(credentials, tokens)
            if result is not None:
                logger.debug("Bullhorn session obtained via %s", result.method.value)
                return result

        result = self._full_login(credentials, tokens)
        logger.debug("Bullhorn session obtained via %s", result.method.value)
        return result


def _coerce(value: Any, cls: type, name: str) -> Any:
    if value is None:
        return cls()
    if isinstance(value, cls):
        return value
    if isinstance(value, Mapping):
        return cls.from_mapping(value)
    raise BullhornInputError(f"{name} must be a {cls.__name__}, a mapping or None")


def login_to_bullhorn(
    credentials: Union[CredentialSet, Mapping[str, Any], None] = None,
    tokens: Union[TokenBundle, Mapping[str, Any], None] = None,
    config: Union[AcquisitionConfig, Mapping[str, Any], None] = None,
    *,
    session: Optional[Any] = None,
    env: Optional[Mapping[str, str]] = None,
) -> SessionResult:
    """Log in to Bullhorn using the most efficient path available.

    ``config`` may be a ready :class:`AcquisitionConfig` or a mapping of
    overrides; missing values come from ``env`` (``os.environ`` by
    default) and then the built-in defaults.  All validation happens
    before the first request.  See :meth:`BullhornAuthClient.login`.
    """
    resolved = resolve_config(config, env)
    return BullhornAuthClient(resolved, session=session).login(credentials, tokens)
