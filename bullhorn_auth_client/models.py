"""
Value types shared by the transport and the session acquisition engine.

Policy and configuration objects are frozen and validate themselves on
construction so that a bad value fails before any request is sent.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from .exceptions import BullhornInputError

DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RETRIES = 0
DEFAULT_USER_AGENT = "bullhorn-auth-client"
DEFAULT_TTL_DAYS = 30
DEFAULT_MIN_REMAINING_THRESHOLD = 100
DEFAULT_DISCOVERY_URL = "https://rest.bullhornstaffing.com/rest-services/loginInfo"


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _pick(data: Mapping[str, Any], names: tuple, what: str) -> Dict[str, Any]:
    unknown = sorted(str(key) for key in data if key not in names)
    if unknown:
        raise BullhornInputError(
            f"Unknown {what} key(s): {', '.join(unknown)}; expected {', '.join(names)}"
        )
    return {name: data.get(name) for name in names}


class AuthMethod(str, Enum):
    """The authentication path that produced a session."""

    EXISTING = "existing"
    REFRESH = "refresh"
    ACCESS = "access"
    FULL = "full"


@dataclass(frozen=True)
class CredentialSet:
    """Registered application identity plus the Bullhorn API user.

    All four values are needed for a full login.  The refresh path only
    needs ``client_id``, ``client_secret`` and ``username``, so the
    fields may be left unset.
    """

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)

    @property
    def has_client_identity(self) -> bool:
        return bool(self.client_id and self.client_secret and self.username)

    @property
    def is_complete(self) -> bool:
        return self.has_client_identity and bool(self.password)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> CredentialSet:
        return cls(**_pick(data, ("client_id", "client_secret", "username", "password"), "credentials"))


@dataclass(frozen=True)
class TokenBundle:
    """Previously obtained tokens.  Any subset may be present."""

    rest_url: Optional[str] = None
    rest_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    access_token: Optional[str] = field(default=None, repr=False)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> TokenBundle:
        return cls(**_pick(data, ("rest_url", "rest_token", "refresh_token", "access_token"), "tokens"))

    def to_dict(self) -> Dict[str, str]:
        """Return the present tokens only."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class RetryAttempt:
    """Information handed to :attr:`HttpPolicy.on_retry_attempt`.

    Parameters
    ----------
    attempt : int
        Number of the attempt that just failed, counted from 1.
    status : int, optional
        HTTP status of the failed attempt, if a response arrived.
    error : str
        Message of the failure.
    """

    attempt: int
    status: Optional[int]
    error: str


@dataclass(frozen=True)
class HttpPolicy:
    """Timeout and retry settings applied to every request of one login.

    Parameters
    ----------
    timeout_ms : int
        Abort a request when no response arrived after this many
        milliseconds.  Must be positive.
    retries : int
        Number of additional attempts after a transient failure.  Must
        not be negative.
    user_agent : str
        Sent as the ``User-Agent`` header.
    on_retry_attempt : callable, optional
        Called with a :class:`RetryAttempt` before each retry.  Anything
        it raises is ignored.
    """

    timeout_ms: float = DEFAULT_TIMEOUT_MS
    retries: int = DEFAULT_RETRIES
    user_agent: str = DEFAULT_USER_AGENT
    on_retry_attempt: Optional[Callable[[RetryAttempt], Any]] = None

    def __post_init__(self) -> None:
        if not _is_number(self.timeout_ms) or self.timeout_ms <= 0:
            raise BullhornInputError("timeout_ms must be a positive number")
        if not _is_number(self.retries) or self.retries < 0 or int(self.retries) != self.retries:
            raise BullhornInputError("retries must be a non-negative integer")
        if not self.user_agent or not isinstance(self.user_agent, str):
            raise BullhornInputError("user_agent must be a non-empty string")
        if self.on_retry_attempt is not None and not callable(self.on_retry_attempt):
            raise BullhornInputError("on_retry_attempt must be callable")
        object.__setattr__(self, "retries", int(self.retries))

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0


@dataclass(frozen=True)
class AcquisitionConfig:
    """Freshness policy and requested session lifetime for one login.

    Parameters
    ----------
    ttl_days : int
        Lifetime requested for a new REST session.  Must be positive.
    min_remaining_threshold : int
        An existing session is reused only when its remaining
        per-minute request quota is strictly greater than this value.
    http : HttpPolicy
        Transport settings.
    discovery_url : str
        The ``loginInfo`` endpoint used to find a user's data centre.
    """

    ttl_days: int = DEFAULT_TTL_DAYS
    min_remaining_threshold: int = DEFAULT_MIN_REMAINING_THRESHOLD
    http: HttpPolicy = field(default_factory=HttpPolicy)
    discovery_url: str = DEFAULT_DISCOVERY_URL

    def __post_init__(self) -> None:
        if not _is_number(self.ttl_days) or self.ttl_days <= 0:
            raise BullhornInputError("ttl_days must be a positive number")
        if not _is_number(self.min_remaining_threshold) or self.min_remaining_threshold < 0:
            raise BullhornInputError("min_remaining_threshold must be a non-negative number")
        if not isinstance(self.http, HttpPolicy):
            raise BullhornInputError("http must be an HttpPolicy")
        if not self.discovery_url:
            raise BullhornInputError("discovery_url must be provided")


@dataclass(frozen=True)
class SessionResult:
    """A usable REST session and the path that produced it."""

    rest_url: str
    rest_token: str = field(repr=False)
    method: AuthMethod
    refresh_token: Optional[str] = field(default=None, repr=False)
    access_token: Optional[str] = field(default=None, repr=False)
    min_remaining: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Return a plain dict, leaving out unset optional values."""
        data = {key: value for key, value in asdict(self).items() if value is not None}
        data["method"] = self.method.value
        return data


# ----------------------------------------------------------------------
# Results of the individual protocol operations
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class LoginInfo:
    oauth_url: str
    rest_url: str
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TokenGrant:
    """Outcome of a token request.  ``ok`` is False for a rejected refresh."""

    ok: bool
    access_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)
    status: Optional[int] = None
    error: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthorizationCode:
    code: str = field(repr=False)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RestSession:
    rest_url: str
    rest_token: str = field(repr=False)
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PingResult:
    """Outcome of validating an existing REST session."""

    ok: bool
    min_remaining: Optional[int] = None
    status: Optional[int] = None
    error: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)
