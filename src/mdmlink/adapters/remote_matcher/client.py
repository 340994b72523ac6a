"""HTTP client for an external matching service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from mdmlink.adapters.http_resilience import ResilientClient
from mdmlink.config import get_remote_matcher_config

from .schema import (
    BlockRequest,
    BlockResponse,
    ClassifyRequest,
    ConfigurationsResponse,
    ErrorResponse,
    MatchResponse,
)
from .translator import record_to_payload

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Sequence
    from uuid import UUID

    import httpx

    from mdmlink.config import RemoteMatcherConfig, ResilienceConfig
    from mdmlink.domain.model import Record

    from .schema import ConfigurationPayload, ResultPayload

log = getLogger(__name__)


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


class RemoteMatcherError(RuntimeError):
    """Raised when the matching service answers with an error or an unusable payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class RemoteMatcherClient:
    """Synchronous facade over the async matcher endpoints.

    ``POST block`` returns candidate ids, ``POST classify`` classifies given candidates,
    ``POST match`` does both, ``GET configurations`` lists what the service can run (cacheable).
    """

    config: RemoteMatcherConfig = field(default_factory=get_remote_matcher_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def configurations(self) -> list[ConfigurationPayload]:
        return asyncio.run(self._configurations_async())

    def block(
        self, record: Record, configuration: str, ignore_keys: Collection[UUID] = ()
    ) -> list[UUID]:
        request = BlockRequest(
            configuration=configuration,
            record=record_to_payload(record),
            ignore=list(ignore_keys),
        )
        payload = asyncio.run(self._post_async("block", request.model_dump(mode="json")))
        return self._validate(BlockResponse, payload).candidates

    def classify(
        self, record: Record, candidates: Sequence[Record], configuration: str
    ) -> list[ResultPayload]:
        request = ClassifyRequest(
            configuration=configuration,
            record=record_to_payload(record),
            candidates=[record_to_payload(candidate) for candidate in candidates],
        )
        payload = asyncio.run(self._post_async("classify", request.model_dump(mode="json")))
        return self._validate(MatchResponse, payload).results

    def match(
        self, record: Record, configuration: str, ignore_keys: Collection[UUID] = ()
    ) -> list[ResultPayload]:
        request = BlockRequest(
            configuration=configuration,
            record=record_to_payload(record),
            ignore=list(ignore_keys),
        )
        payload = asyncio.run(self._post_async("match", request.model_dump(mode="json")))
        return self._validate(MatchResponse, payload).results

    async def _configurations_async(self) -> list[ConfigurationPayload]:
        async with self.client_factory(self.config.resilience) as client:
            response = await client.get("configurations")
            payload = self._payload(response)
        return self._validate(ConfigurationsResponse, payload).configurations

    async def _post_async(self, path: str, body: dict[str, object]) -> object:
        async with self.client_factory(self.config.resilience) as client:
            response = await client.post(path, json=body)
            return self._payload(response)

    @staticmethod
    def _payload(response: httpx.Response) -> object:
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if response.is_error:
            message = f"Matcher responded with HTTP {response.status_code}"
            if isinstance(payload, dict) and "error" in payload:
                error = ErrorResponse.model_validate(payload)
                message = f"{message}: {error.error}"
            log.error(message)
            raise RemoteMatcherError(message, status_code=response.status_code)
        if payload is None:
            raise RemoteMatcherError("Matcher returned a non-JSON body")
        return payload

    @staticmethod
    def _validate[TModel: (BlockResponse, MatchResponse, ConfigurationsResponse)](
        model: type[TModel], payload: object
    ) -> TModel:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RemoteMatcherError(f"Unexpected matcher payload: {exc}") from exc
