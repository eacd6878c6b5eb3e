"""Unit tests for models validation and configuration resolution."""

from __future__ import annotations

import pytest

from bullhorn_auth_client.config import (
    credentials_from_env,
    resolve_config,
    resolve_http_policy,
    tokens_from_env,
)
from bullhorn_auth_client.exceptions import BullhornInputError
from bullhorn_auth_client.models import (
    AcquisitionConfig,
    AuthMethod,
    CredentialSet,
    HttpPolicy,
    SessionResult,
    TokenBundle,
)

FULL_ENV = {
    "BH_CLIENT_ID": "id",
    "BH_CLIENT_SECRET": "sec",
    "BH_USERNAME": "u",
    "BH_PASSWORD": "p",
}


class TestHttpPolicy:
    """Eager validation of HttpPolicy."""

    def test_defaults(self) -> None:
        policy = HttpPolicy()
        assert policy.timeout_ms == 30000
        assert policy.retries == 0
        assert policy.user_agent == "bullhorn-auth-client"
        assert policy.on_retry_attempt is None
        assert policy.timeout_seconds == 30.0

    @pytest.mark.parametrize("timeout_ms", [0, -1, float("nan"), "30000", None])
    def test_rejects_bad_timeout(self, timeout_ms) -> None:
        with pytest.raises(BullhornInputError, match="timeout_ms"):
            HttpPolicy(timeout_ms=timeout_ms)

    @pytest.mark.parametrize("retries", [-1, 1.5, "2"])
    def test_rejects_bad_retries(self, retries) -> None:
        with pytest.raises(BullhornInputError, match="retries"):
            HttpPolicy(retries=retries)

    def test_rejects_non_callable_observer(self) -> None:
        with pytest.raises(BullhornInputError, match="on_retry_attempt"):
            HttpPolicy(on_retry_attempt="print")

    def test_is_immutable(self) -> None:
        policy = HttpPolicy()
        with pytest.raises(AttributeError):
            policy.retries = 5  # type: ignore[misc]


class TestAcquisitionConfig:
    """Eager validation of AcquisitionConfig."""

    @pytest.mark.parametrize("ttl_days", [0, -3])
    def test_rejects_non_positive_ttl(self, ttl_days) -> None:
        with pytest.raises(BullhornInputError, match="ttl_days"):
            AcquisitionConfig(ttl_days=ttl_days)

    def test_rejects_negative_threshold(self) -> None:
        with pytest.raises(BullhornInputError, match="min_remaining_threshold"):
            AcquisitionConfig(min_remaining_threshold=-1)

    def test_zero_threshold_is_allowed(self) -> None:
        assert AcquisitionConfig(min_remaining_threshold=0).min_remaining_threshold == 0

    def test_input_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            AcquisitionConfig(ttl_days=0)


class TestEnvironmentExtraction:
    """Tests for credentials_from_env and tokens_from_env."""

    def test_credentials_when_all_present(self) -> None:
        assert credentials_from_env(FULL_ENV) == CredentialSet("id", "sec", "u", "p")

    @pytest.mark.parametrize("missing", sorted(FULL_ENV))
    def test_credentials_none_when_any_missing(self, missing: str) -> None:
        env = {k: v for k, v in FULL_ENV.items() if k != missing}
        assert credentials_from_env(env) is None

    def test_credentials_none_when_any_empty(self) -> None:
        assert credentials_from_env({**FULL_ENV, "BH_PASSWORD": ""}) is None

    def test_tokens_keep_only_present_keys(self) -> None:
        tokens = tokens_from_env({"BH_REST_URL": "https://rest/", "BH_REFRESH_TOKEN": "R1", "BH_ACCESS_TOKEN": ""})
        assert tokens == TokenBundle(rest_url="https://rest/", refresh_token="R1")
        assert tokens.to_dict() == {"rest_url": "https://rest/", "refresh_token": "R1"}

    def test_tokens_empty_environment(self) -> None:
        assert tokens_from_env({}).to_dict() == {}

    def test_unrelated_keys_are_ignored(self) -> None:
        assert tokens_from_env({"PATH": "/usr/bin", "BH_REST_TOKEN": "T"}).to_dict() == {"rest_token": "T"}

    def test_token_lookup_ignores_malformed_policy_settings(self) -> None:
        env = {"BH_REST_URL": "https://rest", "BH_REST_TOKEN": "T", "BULLHORN_TTL": "soon"}
        assert tokens_from_env(env) == TokenBundle(rest_url="https://rest", rest_token="T")

    def test_credential_lookup_ignores_malformed_policy_settings(self) -> None:
        env = {**FULL_ENV, "BULLHORN_HTTP_RETRIES": "lots", "THRESHOLD_REMAINING_MIN": "many"}
        assert credentials_from_env(env) == CredentialSet("id", "sec", "u", "p")

    def test_reads_process_environment_by_default(self, monkeypatch) -> None:
        for key, value in FULL_ENV.items():
            monkeypatch.setenv(key, value)
        assert credentials_from_env() == CredentialSet("id", "sec", "u", "p")


class TestResolveConfig:
    """Precedence: explicit override, then environment, then default."""

    def test_defaults(self) -> None:
        config = resolve_config(None, env={})
        assert config == AcquisitionConfig()
        assert config.ttl_days == 30
        assert config.min_remaining_threshold == 100

    def test_environment_fallback(self) -> None:
        config = resolve_config(
            None,
            env={
                "BULLHORN_TTL": "7",
                "THRESHOLD_REMAINING_MIN": "50",
                "BULLHORN_HTTP_TIMEOUT_MS": "1000",
                "BULLHORN_HTTP_RETRIES": "2",
                "BULLHORN_USER_AGENT": "svc/2",
            },
        )
        assert config.ttl_days == 7
        assert config.min_remaining_threshold == 50
        assert config.http.timeout_ms == 1000
        assert config.http.retries == 2
        assert config.http.user_agent == "svc/2"

    def test_overrides_win_independently(self) -> None:
        config = resolve_config(
            {"ttl_days": 3, "http": {"retries": 1}},
            env={"BULLHORN_TTL": "7", "THRESHOLD_REMAINING_MIN": "50", "BULLHORN_HTTP_RETRIES": "4"},
        )
        assert config.ttl_days == 3
        assert config.min_remaining_threshold == 50
        assert config.http.retries == 1

    def test_zero_override_is_not_treated_as_unset(self) -> None:
        config = resolve_config({"min_remaining_threshold": 0}, env={"THRESHOLD_REMAINING_MIN": "50"})
        assert config.min_remaining_threshold == 0

    def test_ready_config_is_returned_unchanged(self) -> None:
        config = AcquisitionConfig(ttl_days=2)
        assert resolve_config(config, env={"BULLHORN_TTL": "9"}) is config

    def test_http_policy_instance_is_kept(self) -> None:
        policy = HttpPolicy(retries=3)
        assert resolve_config({"http": policy}, env={}).http is policy
        assert resolve_http_policy(policy) is policy

    def test_override_shields_malformed_environment_value(self) -> None:
        config = resolve_config(
            {"ttl_days": 3, "min_remaining_threshold": 5, "http": {"retries": 1, "timeout_ms": 500}},
            env={
                "BULLHORN_TTL": "soon",
                "THRESHOLD_REMAINING_MIN": "many",
                "BULLHORN_HTTP_RETRIES": "lots",
                "BULLHORN_HTTP_TIMEOUT_MS": "forever",
            },
        )
        assert config.ttl_days == 3
        assert config.min_remaining_threshold == 5
        assert config.http.retries == 1
        assert config.http.timeout_ms == 500

    def test_malformed_value_only_affects_its_own_setting(self) -> None:
        with pytest.raises(BullhornInputError, match="BULLHORN_HTTP_RETRIES"):
            resolve_config({"ttl_days": 3}, env={"BULLHORN_HTTP_RETRIES": "lots"})

    def test_invalid_environment_number(self) -> None:
        with pytest.raises(BullhornInputError, match="BULLHORN_TTL"):
            resolve_config(None, env={"BULLHORN_TTL": "soon"})

    def test_invalid_environment_value_range(self) -> None:
        with pytest.raises(BullhornInputError, match="min_remaining_threshold"):
            resolve_config(None, env={"THRESHOLD_REMAINING_MIN": "-5"})

    def test_rejects_non_mapping_config(self) -> None:
        with pytest.raises(BullhornInputError):
            resolve_config(["ttl_days", 3], env={})  # type: ignore[arg-type]

    def test_discovery_url_override(self) -> None:
        config = resolve_config({"discovery_url": "https://sandbox/loginInfo"}, env={})
        assert config.discovery_url == "https://sandbox/loginInfo"


class TestValueTypes:
    """Tests for the input and output value types."""

    def test_credentials_from_partial_mapping(self) -> None:
        creds = CredentialSet.from_mapping({"client_id": "id", "client_secret": "sec", "username": "u"})
        assert creds.has_client_identity is True
        assert creds.is_complete is False

    def test_unknown_credential_keys_are_named(self) -> None:
        with pytest.raises(BullhornInputError, match="clientId"):
            CredentialSet.from_mapping({"clientId": "id", "client_secret": "sec"})

    def test_unknown_token_keys_are_named(self) -> None:
        with pytest.raises(BullhornInputError, match="restToken, restUrl"):
            TokenBundle.from_mapping({"restUrl": "https://rest", "restToken": "T"})

    def test_secrets_are_not_in_repr(self) -> None:
        assert "hunter2" not in repr(CredentialSet("id", "sec", "u", "hunter2"))
        assert "secret-token" not in repr(TokenBundle(rest_token="secret-token"))

    def test_session_result_to_dict_drops_unset(self) -> None:
        result = SessionResult(rest_url="https://rest/", rest_token="RT", method=AuthMethod.ACCESS, access_token="A")
        assert result.to_dict() == {
            "rest_url": "https://rest/",
            "rest_token": "RT",
            "access_token": "A",
            "method": "access",
        }
