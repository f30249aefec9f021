"""
Tests for the Workers AI embedding client and the Vectorize client
"""
import json

import httpx
import pytest

from askemail.embeddings import EmbeddingClient
from askemail.errors import EmbeddingError
from askemail.vector_index import VectorIndexClient

API = "https://api.cloudflare.com/client/v4/accounts/acct"


def recording_transport(response: httpx.Response, requests: list) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return response
    return httpx.MockTransport(handler)


class TestEmbeddingClient:
    """Test EmbeddingClient"""

    @pytest.mark.asyncio
    async def test_embed_one(self):
        requests = []
        response = httpx.Response(200, json={"success": True, "result": {"shape": [1, 3], "data": [[0.1, 0.2, 0.3]]}})
        client = EmbeddingClient("acct", "token", transport=recording_transport(response, requests))

        vector = await client.embed_one("remember my flight")
        await client.close()

        assert vector == [0.1, 0.2, 0.3]
        assert requests[0].url == f"{API}/ai/run/@cf/baai/bge-large-en-v1.5"
        assert requests[0].headers["Authorization"] == "Bearer token"
        assert json.loads(requests[0].content) == {"text": ["remember my flight"]}

    @pytest.mark.asyncio
    async def test_empty_result_raises(self):
        response = httpx.Response(200, json={"success": True, "result": {"shape": [0], "data": []}})
        client = EmbeddingClient("acct", "token", transport=recording_transport(response, []))

        with pytest.raises(EmbeddingError):
            await client.embed_one("anything")

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        client = EmbeddingClient("acct", "token", transport=recording_transport(httpx.Response(500), []))

        with pytest.raises(httpx.HTTPStatusError):
            await client.embed_one("anything")


class TestVectorIndexClient:
    """Test VectorIndexClient"""

    @pytest.mark.asyncio
    async def test_upsert_sends_ndjson(self):
        requests = []
        response = httpx.Response(200, json={"success": True, "result": {"mutationId": "m1"}})
        client = VectorIndexClient("acct", "token", "memories", transport=recording_transport(response, requests))

        await client.upsert("7", [0.5, 0.25], namespace="a@x.com")

        request = requests[0]
        assert request.url == f"{API}/vectorize/v2/indexes/memories/upsert"
        assert request.headers["Content-Type"] == "application/x-ndjson"
        assert json.loads(request.content.decode().strip()) == {
            "id": "7",
            "values": [0.5, 0.25],
            "namespace": "a@x.com",
        }

    @pytest.mark.asyncio
    async def test_query_in_namespace(self):
        requests = []
        response = httpx.Response(200, json={
            "success": True,
            "result": {"count": 2, "matches": [{"id": "7", "score": 0.91}, {"id": "3", "score": 0.42}]},
        })
        client = VectorIndexClient("acct", "token", "memories", transport=recording_transport(response, requests))

        matches = await client.query([0.5, 0.25], top_k=3, namespace="a@x.com")

        assert [(m.id, m.score) for m in matches] == [("7", 0.91), ("3", 0.42)]
        body = json.loads(requests[0].content)
        assert body["topK"] == 3
        assert body["namespace"] == "a@x.com"
        assert body["vector"] == [0.5, 0.25]

    @pytest.mark.asyncio
    async def test_query_without_matches(self):
        response = httpx.Response(200, json={"success": True, "result": {"count": 0, "matches": []}})
        client = VectorIndexClient("acct", "token", "memories", transport=recording_transport(response, []))

        assert await client.query([0.1], top_k=3, namespace="a@x.com") == []
