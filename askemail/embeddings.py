"""Client for Cloudflare Workers AI text embeddings."""

import logging
from typing import List, Optional, Sequence

import httpx

from .errors import EmbeddingError

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """Computes text embeddings with a Workers AI model (bge-large-en-v1.5 by default)."""

    def __init__(
        self,
        account_id: str,
        api_token: str,
        model: str = "@cf/baai/bge-large-en-v1.5",
        api_base: str = "https://api.cloudflare.com/client/v4",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize embedding client.

        Args:
            account_id: Cloudflare account ID
            api_token: API token with Workers AI access
            model: Embedding model name
            api_base: Cloudflare API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.url = f"{api_base.rstrip('/')}/accounts/{account_id}/ai/run/{model}"
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

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed one or more texts.

        Returns:
            One vector per input text, in order (may be empty if the
            service returned nothing)
        """
        client = await self._get_client()

        response = await client.post(self.url, json={"text": list(texts)})
        response.raise_for_status()

        result = response.json().get("result") or {}
        return result.get("data") or []

    async def embed_one(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingError: If the service returned no vector
        """
        vectors = await self.embed([text])
        if not vectors or not vectors[0]:
            raise EmbeddingError("Failed to generate embedding")
        return vectors[0]
