"""
Per-sender memories backed by the database and a vector index

Saving is two-phase: the record is persisted first and only marked as
indexed once its vector has been upserted. Records left unindexed (for
example because the embedding service returned nothing) are picked up again
by ``reconcile``.
"""
import logging
from typing import List

from .database import DatabaseManager
from .embeddings import EmbeddingClient
from .errors import EmbeddingError
from .models import MemoryLookup, MemoryRecord, RecalledMemory
from .vector_index import VectorIndexClient

logger = logging.getLogger(__name__)

SIMILARITY_THRESHOLD = 0.65
TOP_K = 3
NOT_FOUND_MESSAGE = "No matching memories found for the text received, you may try again with different text."


def memory_embedding_text(request: str, content: str) -> str:
    """Text embedded for a saved memory: the originating request plus what was remembered"""
    return f"User Request: {request} \nLLM text saved: {content}"


class MemoryStore:
    """Save and recall memories, isolated by sender address"""

    def __init__(
        self,
        db: DatabaseManager,
        embeddings: EmbeddingClient,
        index: VectorIndexClient,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        top_k: int = TOP_K,
    ):
        self.db = db
        self.embeddings = embeddings
        self.index = index
        self.similarity_threshold = similarity_threshold
        self.top_k = top_k

    async def _index(self, record: MemoryRecord) -> None:
        vector = await self.embeddings.embed_one(memory_embedding_text(record.request, record.content))
        await self.index.upsert(str(record.id), vector, namespace=record.email)
        self.db.mark_memory_indexed(record.id)

    async def save(self, email: str, request: str, content: str) -> MemoryRecord:
        """
        Remember something for a sender

        Args:
            email: Sender address, also the index namespace
            request: The request the sender made when asking to remember
            content: What the agent chose to remember

        Returns:
            The persisted record

        Raises:
            EmbeddingError: If no vector could be computed. The record is
                kept and left for ``reconcile``.
        """
        record = self.db.create_memory(email=email, request=request, content=content)
        await self._index(record)
        logger.info(f"Saved memory {record.id} for {email}")
        return record

    async def retrieve(self, email: str, query: str) -> MemoryLookup:
        """
        Recall up to ``top_k`` memories of a sender related to ``query``

        Returns a failed MemoryLookup, not an exception, when nothing scores
        above the similarity threshold.
        """
        vector = await self.embeddings.embed_one(query)
        matches = await self.index.query(vector, top_k=self.top_k, namespace=email)

        ids: List[int] = []
        for match in matches:
            if match.score <= self.similarity_threshold:
                continue
            try:
                ids.append(int(match.id))
            except ValueError:
                logger.warning(f"Ignoring non-numeric vector id {match.id!r} in namespace {email}")

        if not ids:
            logger.info(f"No memories above threshold for {email} ({len(matches)} candidates)")
            return MemoryLookup(success=False, error=NOT_FOUND_MESSAGE)

        records = self.db.get_memories(ids, email=email)
        if not records:
            return MemoryLookup(success=False, error=NOT_FOUND_MESSAGE)

        return MemoryLookup(
            success=True,
            memories=[
                RecalledMemory(
                    remembered_at=record.created_at.isoformat(),
                    original_request=record.request,
                    remembered_content=record.content,
                )
                for record in records
            ],
        )

    async def reconcile(self, limit: int = 100) -> int:
        """
        Index memories that were persisted but never made it into the index

        Returns:
            Number of memories indexed in this pass
        """
        pending = self.db.get_unindexed_memories(limit=limit)
        indexed = 0

        for record in pending:
            try:
                await self._index(record)
                indexed += 1
            except EmbeddingError as e:
                logger.warning(f"Memory {record.id} still not indexed: {e}")

        if pending:
            logger.info(f"Reconciled {indexed}/{len(pending)} unindexed memories")
        return indexed
