from __future__ import annotations

import math
from threading import Lock

from assistant.services.rag.types import IndexedDocument, ProcessedDocument, RetrievalHit


class DuplicateSourceError(ValueError):
    pass


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b) or not a:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    # clamp float drift so identical vectors score exactly within [-1, 1]
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


class DocumentStore:
    """In-memory index of documents and their embeddings.

    Duplicate `source_id`s are rejected rather than overwritten. All access goes
    through one lock so a search never sees a half-inserted entry.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._entries: dict[str, IndexedDocument] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, source_id: object) -> bool:
        with self._lock:
            return source_id in self._entries

    def insert(self, document: ProcessedDocument, embedding: list[float]) -> IndexedDocument:
        indexed = IndexedDocument(document=document, embedding=list(embedding))
        with self._lock:
            if document.source_id in self._entries:
                raise DuplicateSourceError(f"Document already indexed: {document.source_id}")
            self._entries[document.source_id] = indexed
        return indexed

    def search(
        self,
        query_embedding: list[float],
        *,
        top_k: int,
        min_score: float,
    ) -> list[RetrievalHit]:
        if top_k <= 0:
            return []

        with self._lock:
            entries = list(self._entries.values())

        hits = [
            RetrievalHit(indexed=entry, score=cosine_similarity(query_embedding, entry.embedding))
            for entry in entries
        ]
        hits = [hit for hit in hits if hit.score > min_score]
        # sort is stable: equal scores keep insertion order
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:top_k]

    def get_all(self) -> list[ProcessedDocument]:
        with self._lock:
            return [entry.document for entry in self._entries.values()]

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()
