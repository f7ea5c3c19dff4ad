from assistant.services.rag.context import ContextAssembler
from assistant.services.rag.ingest import (
    ingest_configured_sources,
    ingest_corpus,
    ingest_files,
    ingest_records,
)
from assistant.services.rag.query import RetrievalEngine
from assistant.services.rag.store import DocumentStore, cosine_similarity
from assistant.services.rag.types import (
    IndexedDocument,
    IngestionSummary,
    ProcessedDocument,
    RetrievalHit,
    SkippedDocument,
)

__all__ = [
    "ContextAssembler",
    "DocumentStore",
    "IndexedDocument",
    "IngestionSummary",
    "ProcessedDocument",
    "RetrievalEngine",
    "RetrievalHit",
    "SkippedDocument",
    "cosine_similarity",
    "ingest_configured_sources",
    "ingest_corpus",
    "ingest_files",
    "ingest_records",
]
