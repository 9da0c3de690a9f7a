"""Integration tests for HelixClient against the fake services.

Uses httpx AsyncClient with ASGITransport bound to the FastAPI fake backend.
"""

import httpx
import pytest
import pytest_check as check

from helix_stream.client import HelixClient
from helix_stream.config import ClientConfig
from helix_stream.errors import TransportError
from helix_stream.models import ChatRequest
from helix_stream.streaming import GENE_FEED, PUBLICATION_FEED, BulkFeedLoader
from tests.factories import gene_feed, publication_feed, publication_record
from tests.fake_backend import FakeBackend


class TestFeeds:
    """Tests for opening NDJSON result feeds."""

    async def test_streams_gzip_encoded_feed(
        self, helix_client: HelixClient, backend: FakeBackend, session_id: str
    ) -> None:
        """Gzip content encoding is decoded before framing."""
        backend.set_feed("phenotype", session_id, gene_feed(75), gzipped=True)

        async with helix_client.open_feed(GENE_FEED, session_id) as chunks:
            result = await BulkFeedLoader(GENE_FEED).run(chunks)

        assert result is not None
        check.equal(len(result.items), 75)
        check.equal(result.items[74].gene_symbol, "GENE74")

    async def test_streams_literature_feed(
        self, helix_client: HelixClient, backend: FakeBackend, session_id: str
    ) -> None:
        """The literature feed is read from the literature service."""
        records = [publication_record(str(i), ["BRCA1"]) for i in range(12)]
        backend.set_feed("literature", session_id, publication_feed(records))

        async with helix_client.open_feed(PUBLICATION_FEED, session_id) as chunks:
            result = await BulkFeedLoader(PUBLICATION_FEED).run(chunks)

        assert result is not None
        assert [p.pmid for p in result.items] == [str(i) for i in range(12)]

    async def test_missing_feed_raises_transport_error(
        self, helix_client: HelixClient, session_id: str
    ) -> None:
        """A 404 feed raises TransportError with the status code."""
        with pytest.raises(TransportError) as exc_info:
            async with helix_client.open_feed(GENE_FEED, session_id):
                pass

        assert exc_info.value.status_code == 404


class TestComputeTrigger:
    """Tests for compute requests."""

    async def test_posts_params_and_reads_count(
        self, helix_client: HelixClient, backend: FakeBackend, session_id: str
    ) -> None:
        """Parameters are sent as JSON and the produced count is read back."""
        backend.compute_responses[("phenotype", session_id)] = {
            "status": "completed",
            "variants_with_hpo": 42,
        }

        result = await helix_client.trigger_compute(
            GENE_FEED, session_id, {"patient_hpo_ids": ["HP:0001250"]}
        )

        check.equal(result.items_produced, 42)
        check.equal(result.raw["status"], "completed")
        check.equal(
            backend.compute_calls,
            [("phenotype", session_id, {"patient_hpo_ids": ["HP:0001250"]})],
        )

    async def test_unknown_count(
        self, helix_client: HelixClient, backend: FakeBackend, session_id: str
    ) -> None:
        """An acknowledgement without a count leaves it unknown."""
        backend.compute_responses[("literature", session_id)] = {"status": "ok"}

        result = await helix_client.trigger_compute(
            PUBLICATION_FEED, session_id, {"genes": ["A"], "patient_hpo_terms": [{}]}
        )

        assert result.items_produced is None

    async def test_server_error(
        self, helix_client: HelixClient, backend: FakeBackend, session_id: str
    ) -> None:
        """A 5xx response raises TransportError."""
        backend.compute_status[("phenotype", session_id)] = 500

        with pytest.raises(TransportError, match="compute failed: HTTP 500") as exc_info:
            await helix_client.trigger_compute(GENE_FEED, session_id, {"patient_hpo_ids": ["x"]})

        assert exc_info.value.status_code == 500

    async def test_connection_failure(self, config: ClientConfig, session_id: str) -> None:
        """Network failures raise TransportError without a status code."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
            client = HelixClient(config, http=http)
            with pytest.raises(TransportError, match="Connection failed") as exc_info:
                await client.trigger_compute(GENE_FEED, session_id, {"patient_hpo_ids": ["x"]})

        assert exc_info.value.status_code is None


class TestChatStream:
    """Tests for opening the chat stream."""

    async def test_sends_request_without_nulls(
        self, helix_client: HelixClient, backend: FakeBackend, session_id: str
    ) -> None:
        """Unset request fields are not sent."""
        backend.add_chat("data: Hi\n\ndata: [DONE]\n\n")

        async with helix_client.open_chat_stream(
            ChatRequest(message="  Hello  ", session_id=session_id)
        ) as chunks:
            body = b"".join([chunk async for chunk in chunks])

        check.equal(backend.chat_requests, [{"message": "Hello", "session_id": session_id}])
        check.equal(body, b"data: Hi\n\ndata: [DONE]\n\n")
