"""
Python client for obtaining Bullhorn REST API sessions.

This package provides :func:`login_to_bullhorn`, which returns a
``BhRestToken`` and ``restUrl`` using the cheapest authentication path
the supplied inputs allow: reusing a live session, exchanging a refresh
token, exchanging an access token, or running the full headless OAuth
login with the API user's password.

Examples
--------

```python
from bullhorn_auth_client import credentials_from_env, login_to_bullhorn, tokens_from_env

# BH_CLIENT_ID, BH_CLIENT_SECRET, BH_USERNAME, BH_PASSWORD and,
# optionally, BH_REST_URL, BH_REST_TOKEN, BH_REFRESH_TOKEN, BH_ACCESS_TOKEN
auth = login_to_bullhorn(
    credentials=credentials_from_env(),
    tokens=tokens_from_env(),
    config={"ttl_days": 7, "http": {"retries": 2, "timeout_ms": 10000}},
)

print(auth.method.value)   # "existing", "refresh", "access" or "full"
print(auth.rest_url)       # use with the BhRestToken header or query parameter
```

Nothing is stored.  Keep ``auth.rest_url``, ``auth.rest_token`` and
``auth.refresh_token`` and pass them back as ``tokens`` next time to
avoid a full login.
"""

from .client import BullhornAuthClient, login_to_bullhorn
from .config import credentials_from_env, resolve_config, tokens_from_env
from .exceptions import (
    BullhornAPIError,
    BullhornAuthError,
    BullhornConnectionError,
    BullhornError,
    BullhornInputError,
    BullhornRetryableStatusError,
    BullhornTimeoutError,
)
from .models import (
    AcquisitionConfig,
    AuthMethod,
    CredentialSet,
    HttpPolicy,
    RetryAttempt,
    SessionResult,
    TokenBundle,
)

__version__ = "0.1.0"

__all__ = [
    "BullhornAuthClient",
    "login_to_bullhorn",
    "credentials_from_env",
    "tokens_from_env",
    "resolve_config",
    "AcquisitionConfig",
    "AuthMethod",
    "CredentialSet",
    "HttpPolicy",
    "RetryAttempt",
    "SessionResult",
    "TokenBundle",
    "BullhornError",
    "BullhornInputError",
    "BullhornAuthError",
    "BullhornAPIError",
    "BullhornTimeoutError",
    "BullhornConnectionError",
    "BullhornRetryableStatusError",
]
