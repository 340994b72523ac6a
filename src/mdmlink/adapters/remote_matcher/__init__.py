"""Public interface for the remote matcher adapter."""

from __future__ import annotations

from .client import RemoteMatcherClient, RemoteMatcherError
from .provider import RemoteMatchingProvider, remote_matcher_factory
from .schema import ConfigurationPayload, MatchResponse, RecordPayload, ResultPayload
from .translator import parse_results, record_to_payload

__all__ = [
    "ConfigurationPayload",
    "MatchResponse",
    "RecordPayload",
    "RemoteMatcherClient",
    "RemoteMatcherError",
    "RemoteMatchingProvider",
    "ResultPayload",
    "parse_results",
    "record_to_payload",
    "remote_matcher_factory",
]
