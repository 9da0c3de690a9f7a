"""HTTP transport for compute triggers, bulk feeds and the chat stream.

Wraps a single ``httpx.AsyncClient``. Response bodies are read with
``aiter_bytes()``, so gzip / deflate content encodings are decoded by httpx
before framing. httpx failures surface as TransportError.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

import httpx

from helix_stream.config import ClientConfig, get_client_config
from helix_stream.errors import TransportError
from helix_stream.models.chat import ChatRequest
from helix_stream.models.schemas import ComputeResult
from helix_stream.streaming.feeds import FeedSpec

logger = logging.getLogger(__name__)

CHAT_STREAM_PATH = "/api/v1/chat/stream"

# Keys a compute acknowledgement may use for the number of items produced
ITEMS_PRODUCED_KEYS = ("items_produced", "total_results", "variants_with_hpo", "results_count")


def _compute_result(data: Any) -> ComputeResult:
    if not isinstance(data, dict):
        return ComputeResult()
    for key in ITEMS_PRODUCED_KEYS:
        value = data.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            return ComputeResult(items_produced=value, raw=data)
    return ComputeResult(raw=data)


async def _iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for chunk in response.aiter_bytes():
            yield chunk
    except httpx.HTTPError as e:
        raise TransportError(f"Stream interrupted: {e}") from e


class HelixClient:
    """Async client for the analysis services.

    Args:
        config: Client configuration. Loads from environment if not provided.
        http: Optional preconfigured httpx client (tests pass one bound to an
            ASGI transport). The caller keeps ownership of a client it passes.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or get_client_config()
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=self._config.request_timeout)

    @property
    def config(self) -> ClientConfig:
        return self._config

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> "HelixClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _base_url(self, service: str) -> str:
        bases = {
            "api": self._config.api_base_url,
            "literature": self._config.literature_api_url,
            "ai": self._config.ai_service_url,
        }
        try:
            return bases[service]
        except KeyError:
            raise ValueError(f"Unknown service: {service}") from None

    def _feed_url(self, spec: FeedSpec, template: str, session_id: str) -> str:
        path = template.format(session_id=quote(session_id, safe=""))
        return f"{self._base_url(spec.service)}{path}"

    async def trigger_compute(
        self,
        spec: FeedSpec,
        session_id: str,
        params: dict[str, Any],
    ) -> ComputeResult:
        """Ask the backend to (re)compute a session's results.

        Results are persisted server-side; the feed becomes readable afterward.

        Args:
            spec: Feed whose results should be computed.
            session_id: Analysis session identifier.
            params: Compute parameters sent as the JSON body.

        Returns:
            The acknowledgement, with the produced item count when reported.

        Raises:
            TransportError: On connection failure or a non-2xx response.
        """
        url = self._feed_url(spec, spec.compute_path, session_id)
        try:
            response = await self._http.post(url, json=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"{spec.domain} compute failed: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"Connection failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None
        result = _compute_result(data)
        logger.info(f"{spec.domain} compute for {session_id}: {result.items_produced} items")
        return result

    @asynccontextmanager
    async def open_feed(self, spec: FeedSpec, session_id: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """Open a session's NDJSON feed and yield its decoded body chunks.

        Raises:
            TransportError: On connection failure or a non-2xx response.
        """
        url = self._feed_url(spec, spec.stream_path, session_id)
        async with self._open_stream(
            "GET", url, headers={"Accept": "application/x-ndjson"}
        ) as chunks:
            yield chunks

    @asynccontextmanager
    async def open_chat_stream(self, request: ChatRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """Send a chat message and yield the response event stream chunks.

        Raises:
            TransportError: On connection failure or a non-2xx response.
        """
        url = f"{self._base_url('ai')}{CHAT_STREAM_PATH}"
        async with self._open_stream(
            "POST",
            url,
            json=request.model_dump(exclude_none=True),
            headers={"Accept": "text/event-stream"},
        ) as chunks:
            yield chunks

    @asynccontextmanager
    async def _open_stream(
        self, method: str, url: str, **kwargs: Any
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        try:
            async with self._http.stream(method, url, **kwargs) as response:
                if response.is_error:
                    raise TransportError(
                        f"HTTP {response.status_code}: {response.reason_phrase}",
                        status_code=response.status_code,
                    )
                yield _iter_body(response)
        except httpx.RequestError as e:
            raise TransportError(f"Connection failed: {e}") from e
