from __future__ import annotations

import logging

from assistant.services.rag.embedding_client import EmbeddingClient
from assistant.services.rag.store import DocumentStore
from assistant.services.rag.types import RetrievalHit

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_MIN_SCORE = 0.7


class RetrievalEngine:
    def __init__(
        self,
        *,
        embedding_client: EmbeddingClient,
        store: DocumentStore,
        default_top_k: int = DEFAULT_TOP_K,
        default_min_score: float = DEFAULT_MIN_SCORE,
    ) -> None:
        self._embedding_client = embedding_client
        self._store = store
        self._default_top_k = default_top_k
        self._default_min_score = default_min_score

    async def retrieve(
        self,
        query: str,
        *,
        top_k: int | None = None,
        min_score: float | None = None,
    ) -> list[RetrievalHit]:
        """Embed `query` and return the best matching documents.

        Embedding failures (including an empty embedding response) propagate to
        the caller, which decides whether to answer without grounding.
        """
        normalized_query = query.strip()
        if not normalized_query:
            raise ValueError("query must not be empty")

        resolved_top_k = self._default_top_k if top_k is None else top_k
        resolved_min_score = self._default_min_score if min_score is None else min_score

        query_embedding = await self._embedding_client.embed(normalized_query)
        hits = self._store.search(
            query_embedding,
            top_k=resolved_top_k,
            min_score=resolved_min_score,
        )
        logger.info(
            "Retrieved %d/%d documents top_k=%d min_score=%.2f",
            len(hits),
            len(self._store),
            resolved_top_k,
            resolved_min_score,
        )
        return hits
