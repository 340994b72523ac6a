"""In-process remote matcher client wired to httpx.MockTransport."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from mdmlink.adapters.http_resilience import ResilientClient
from mdmlink.adapters.remote_matcher import RemoteMatcherClient
from mdmlink.config import RemoteMatcherConfig, ResilienceConfig, RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Callable

BASE_URL = "http://matcher.test/"
TOKEN = "secret-token"


def make_matcher_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> RemoteMatcherClient:
    """A client whose requests are answered by ``handler`` without touching the network."""

    resilience = ResilienceConfig(
        name="remote-matcher-test",
        base_url=BASE_URL,
        retry=RetryPolicy(total=0),
        cache=None,
        default_headers={"Authorization": f"Bearer {TOKEN}"},
    )
    transport = httpx.MockTransport(handler)

    def factory(config: ResilienceConfig) -> ResilientClient:
        return ResilientClient(config, transport=transport)

    return RemoteMatcherClient(
        config=RemoteMatcherConfig(base_url=BASE_URL, token=TOKEN, resilience=resilience),
        client_factory=factory,
    )
