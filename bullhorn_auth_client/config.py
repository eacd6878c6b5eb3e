"""
Environment extraction and configuration resolution.

Every lookup takes an explicit environment mapping (``os.environ`` when
omitted) so callers and tests can supply their own snapshot.  Each
setting is resolved independently: explicit override first, then the
environment, then the built-in default.

Environment variables:
    - BH_CLIENT_ID, BH_CLIENT_SECRET, BH_USERNAME, BH_PASSWORD
    - BH_REST_URL, BH_REST_TOKEN, BH_REFRESH_TOKEN, BH_ACCESS_TOKEN
    - BULLHORN_TTL
    - THRESHOLD_REMAINING_MIN
    - BULLHORN_HTTP_TIMEOUT_MS
    - BULLHORN_HTTP_RETRIES
    - BULLHORN_USER_AGENT
"""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from .exceptions import BullhornInputError
from .models import (
    DEFAULT_DISCOVERY_URL,
    DEFAULT_MIN_REMAINING_THRESHOLD,
    DEFAULT_RETRIES,
    DEFAULT_TIMEOUT_MS,
    DEFAULT_TTL_DAYS,
    DEFAULT_USER_AGENT,
    AcquisitionConfig,
    CredentialSet,
    HttpPolicy,
    TokenBundle,
)


def _environ(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if env is None else env


def _blank_as_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class _EnvModel(BaseModel):
    """Reads a fixed group of variables; unset and empty both give ``None``."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def _empty_as_unset(cls, v: Any) -> Any:
        return _blank_as_none(v)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None):
        """Validate only this model's variables from ``env`` (``os.environ`` by default)."""
        source = _environ(env)
        keys = [field.validation_alias for field in cls.model_fields.values()]
        return cls.model_validate({key: source[key] for key in keys if key in source})


class CredentialEnv(_EnvModel):
    client_id: Optional[str] = Field(default=None, validation_alias="BH_CLIENT_ID")
    client_secret: Optional[str] = Field(default=None, validation_alias="BH_CLIENT_SECRET")
    username: Optional[str] = Field(default=None, validation_alias="BH_USERNAME")
    password: Optional[str] = Field(default=None, validation_alias="BH_PASSWORD")


class TokenEnv(_EnvModel):
    rest_url: Optional[str] = Field(default=None, validation_alias="BH_REST_URL")
    rest_token: Optional[str] = Field(default=None, validation_alias="BH_REST_TOKEN")
    refresh_token: Optional[str] = Field(default=None, validation_alias="BH_REFRESH_TOKEN")
    access_token: Optional[str] = Field(default=None, validation_alias="BH_ACCESS_TOKEN")


# Policy settings are parsed one key at a time, and only when the caller
# gave no explicit value for them.
ENV_KEYS: Dict[str, str] = {
    "ttl_days": "BULLHORN_TTL",
    "min_remaining_threshold": "THRESHOLD_REMAINING_MIN",
    "timeout_ms": "BULLHORN_HTTP_TIMEOUT_MS",
    "retries": "BULLHORN_HTTP_RETRIES",
    "user_agent": "BULLHORN_USER_AGENT",
}

_ENV_TYPES: Dict[str, TypeAdapter] = {
    "ttl_days": TypeAdapter(float),
    "min_remaining_threshold": TypeAdapter(float),
    "timeout_ms": TypeAdapter(float),
    "retries": TypeAdapter(int),
    "user_agent": TypeAdapter(str),
}


def env_setting(name: str, env: Optional[Mapping[str, str]] = None) -> Any:
    """Return policy setting ``name`` from the environment, or ``None`` if unset.

    Raises
    ------
    BullhornInputError
        If the variable is set but cannot be parsed.
    """
    key = ENV_KEYS[name]
    raw = _blank_as_none(_environ(env).get(key))
    if raw is None:
        return None
    try:
        value = _ENV_TYPES[name].validate_python(raw)
    except ValidationError as exc:
        raise BullhornInputError(f"Invalid Bullhorn environment setting: {key}") from exc
    # Whole numbers arrive as floats.
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return value


def credentials_from_env(env: Optional[Mapping[str, str]] = None) -> Optional[CredentialSet]:
    """Return the credentials from the environment, or ``None`` if any is missing."""
    found = CredentialEnv.from_env(env)
    credentials = CredentialSet(
        client_id=found.client_id,
        client_secret=found.client_secret,
        username=found.username,
        password=found.password,
    )
    return credentials if credentials.is_complete else None


def tokens_from_env(env: Optional[Mapping[str, str]] = None) -> TokenBundle:
    """Return whichever tokens the environment holds."""
    found = TokenEnv.from_env(env)
    return TokenBundle(
        rest_url=found.rest_url,
        rest_token=found.rest_token,
        refresh_token=found.refresh_token,
        access_token=found.access_token,
    )


def _resolve(
    name: str,
    overrides: Mapping[str, Any],
    env: Optional[Mapping[str, str]],
    default: Any,
) -> Any:
    value = overrides.get(name)
    if value is None:
        value = env_setting(name, env)
    return default if value is None else value


def resolve_http_policy(
    overrides: Union[HttpPolicy, Mapping[str, Any], None] = None,
    env: Optional[Mapping[str, str]] = None,
) -> HttpPolicy:
    """Build an :class:`HttpPolicy` from overrides, environment and defaults."""
    if isinstance(overrides, HttpPolicy):
        return overrides
    if overrides is not None and not isinstance(overrides, Mapping):
        raise BullhornInputError("http must be an HttpPolicy or a mapping")
    overrides = overrides or {}
    return HttpPolicy(
        timeout_ms=_resolve("timeout_ms", overrides, env, DEFAULT_TIMEOUT_MS),
        retries=_resolve("retries", overrides, env, DEFAULT_RETRIES),
        user_agent=_resolve("user_agent", overrides, env, DEFAULT_USER_AGENT),
        on_retry_attempt=overrides.get("on_retry_attempt"),
    )


def resolve_config(
    overrides: Union[AcquisitionConfig, Mapping[str, Any], None] = None,
    env: Optional[Mapping[str, str]] = None,
) -> AcquisitionConfig:
    """Resolve the configuration for one login.

    Parameters
    ----------
    overrides : AcquisitionConfig or mapping, optional
        A ready configuration, returned unchanged, or a mapping with any
        of ``ttl_days``, ``min_remaining_threshold``, ``http`` and
        ``discovery_url``.
    env : mapping, optional
        Environment snapshot.  Defaults to ``os.environ``.

    Raises
    ------
    BullhornInputError
        If any resolved value is invalid.  Nothing is sent over the
        network before this check.
    """
    if isinstance(overrides, AcquisitionConfig):
        return overrides
    if overrides is not None and not isinstance(overrides, Mapping):
        raise BullhornInputError("config must be an AcquisitionConfig or a mapping")
    overrides = overrides or {}
    return AcquisitionConfig(
        ttl_days=_resolve("ttl_days", overrides, env, DEFAULT_TTL_DAYS),
        min_remaining_threshold=_resolve(
            "min_remaining_threshold", overrides, env, DEFAULT_MIN_REMAINING_THRESHOLD
        ),
        http=resolve_http_policy(overrides.get("http"), env),
        discovery_url=overrides.get("discovery_url") or DEFAULT_DISCOVERY_URL,
    )
