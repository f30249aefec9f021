"""Client for the Cloudflare Vectorize similarity index."""

import json
import logging
from typing import List, Optional, Sequence

import httpx

from .models import VectorMatch

logger = logging.getLogger(__name__)


class VectorIndexClient:
    """Upserts and queries vectors in a Vectorize (v2) index, one namespace per sender."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        index_name: str,
        api_base: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize Vectorize client.

        Args:
            account_id: Cloudflare account ID
            api_token: API token with Vectorize access
            index_name: Name of the Vectorize index
            api_base: Cloudflare API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.index_url = f"{api_base.rstrip('/')}/accounts/{account_id}/vectorize/v2/indexes/{index_name}"
        self.headers = {"Authorization": f"Bearer {api_token}"}
        self.timeout = timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers=self.headers,
                transport=self.transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def upsert(self, vector_id: str, values: Sequence[float], namespace: str) -> None:
        """
        Insert or replace one vector.

        Upserting the same id twice leaves a single vector, so retries are safe.
        """
        client = await self._get_client()

        line = json.dumps({"id": vector_id, "values": list(values), "namespace": namespace})
        response = await client.post(
            f"{self.index_url}/upsert",
            content=line + "\n",
            headers={"Content-Type": "application/x-ndjson"},
        )
        response.raise_for_status()
        logger.debug(f"Upserted vector {vector_id} in namespace {namespace}")

    async def query(self, values: Sequence[float], top_k: int, namespace: str) -> List[VectorMatch]:
        """
        Nearest neighbours of a vector within one namespace.

        Returns:
            Matches ordered by the index, best first
        """
        client = await self._get_client()

        response = await client.post(
            f"{self.index_url}/query",
            json={
                "vector": list(values),
                "topK": top_k,
                "namespace": namespace,
                "returnValues": False,
                "returnMetadata": "none",
            },
        )
        response.raise_for_status()

        result = response.json().get("result") or {}
        return [
            VectorMatch(id=str(match["id"]), score=match["score"])
            for match in result.get("matches") or []
        ]
