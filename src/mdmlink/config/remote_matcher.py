"""Remote matching service configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass

from .env import require_env_vars
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

MATCHER_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True, slots=True)
class RemoteMatcherConfig:
    """Holds the endpoint and credentials of an external matching service."""

    base_url: str
    token: str | None
    resilience: ResilienceConfig


def remote_matcher_enabled() -> bool:
    value = os.getenv("MDM_MATCHER_URL")
    return value is not None and bool(value.strip())


def get_remote_matcher_config(*, resilience: ResilienceConfig | None = None) -> RemoteMatcherConfig:
    values = require_env_vars(("MDM_MATCHER_URL",))
    base_url = values["MDM_MATCHER_URL"].rstrip("/") + "/"
    token = os.getenv("MDM_MATCHER_TOKEN") or None
    headers = {"Accept": "application/json"}
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"
    return RemoteMatcherConfig(
        base_url=base_url,
        token=token,
        resilience=resilience
        or ResilienceConfig(
            name="remote-matcher",
            base_url=base_url,
            timeout_seconds=MATCHER_TIMEOUT_SECONDS,
            retry=RetryPolicy(total=3),
            ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
            cache=CacheConfig(backend="sqlite"),
            default_headers=headers,
        ),
    )
