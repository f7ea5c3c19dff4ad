from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
from pathlib import Path
from typing import Any

from assistant.services.rag.embedding_client import (
    EmbeddingClient,
    EmbeddingServiceError,
    EmptyResponseError,
)
from assistant.services.rag.loader import discover_documents, load_corpus_records
from assistant.services.rag.parser import DocumentParseError, parse, parse_chunk_record
from assistant.services.rag.store import DocumentStore, DuplicateSourceError
from assistant.services.rag.types import IngestionSummary, ProcessedDocument, SkippedDocument

logger = logging.getLogger(__name__)

DocumentFactory = Callable[[], Awaitable[ProcessedDocument]]


async def _ingest_one(
    source: str,
    make_document: DocumentFactory,
    *,
    store: DocumentStore,
    embedding_client: EmbeddingClient,
    semaphore: asyncio.Semaphore,
) -> SkippedDocument | None:
    async with semaphore:
        try:
            document = await make_document()
        except DocumentParseError as exc:
            logger.warning("Skipping %s: %s", source, exc)
            return SkippedDocument(source=source, reason=str(exc))

        try:
            embedding = await embedding_client.embed(document.content)
        except EmptyResponseError:
            logger.warning("Empty embedding for %s; indexing without a vector", source)
            embedding = []
        except EmbeddingServiceError as exc:
            logger.warning("Skipping %s: embedding failed: %s", source, exc)
            return SkippedDocument(source=source, reason=f"embedding failed: {exc}")

    try:
        store.insert(document, embedding)
    except DuplicateSourceError as exc:
        logger.warning("Skipping %s: %s", source, exc)
        return SkippedDocument(source=source, reason=str(exc))

    logger.info("Processed and embedded document: %s", document.source_id)
    return None


async def _ingest_all(
    jobs: list[tuple[str, DocumentFactory]],
    *,
    store: DocumentStore,
    embedding_client: EmbeddingClient,
    concurrency: int,
) -> IngestionSummary:
    semaphore = asyncio.Semaphore(max(1, concurrency))
    results = await asyncio.gather(
        *(
            _ingest_one(
                source,
                make_document,
                store=store,
                embedding_client=embedding_client,
                semaphore=semaphore,
            )
            for source, make_document in jobs
        )
    )

    skipped = [result for result in results if result is not None]
    summary = IngestionSummary(document_count=len(jobs) - len(skipped), skipped=skipped)
    logger.info(
        "Ingestion finished documents=%d skipped=%d",
        summary.document_count,
        summary.skipped_count,
    )
    return summary


async def ingest_files(
    paths: list[Path],
    *,
    store: DocumentStore,
    embedding_client: EmbeddingClient,
    concurrency: int = 4,
) -> IngestionSummary:
    def factory(path: Path) -> DocumentFactory:
        async def make_document() -> ProcessedDocument:
            return await asyncio.to_thread(parse, path)

        return make_document

    return await _ingest_all(
        [(path.name, factory(path)) for path in paths],
        store=store,
        embedding_client=embedding_client,
        concurrency=concurrency,
    )


async def ingest_records(
    records: list[dict[str, Any]],
    *,
    store: DocumentStore,
    embedding_client: EmbeddingClient,
    concurrency: int = 4,
) -> IngestionSummary:
    def factory(record: dict[str, Any]) -> DocumentFactory:
        async def make_document() -> ProcessedDocument:
            return parse_chunk_record(record)

        return make_document

    def label(index: int, record: dict[str, Any]) -> str:
        metadata = record.get("metadata")
        if isinstance(metadata, dict) and metadata.get("source") and metadata.get("heading"):
            return f"{metadata['source']}-{metadata['heading']}"
        return f"record-{index}"

    return await _ingest_all(
        [(label(index, record), factory(record)) for index, record in enumerate(records)],
        store=store,
        embedding_client=embedding_client,
        concurrency=concurrency,
    )


async def ingest_corpus(
    corpus_path: Path,
    *,
    store: DocumentStore,
    embedding_client: EmbeddingClient,
    concurrency: int = 4,
) -> IngestionSummary:
    records = load_corpus_records(corpus_path)
    return await ingest_records(
        records,
        store=store,
        embedding_client=embedding_client,
        concurrency=concurrency,
    )


def _merge(summaries: list[IngestionSummary]) -> IngestionSummary:
    return IngestionSummary(
        document_count=sum(summary.document_count for summary in summaries),
        skipped=[skipped for summary in summaries for skipped in summary.skipped],
    )


async def ingest_configured_sources(
    *,
    docs_dir: Path,
    store: DocumentStore,
    embedding_client: EmbeddingClient,
    corpus_path: Path | None = None,
    seed_document: Path | None = None,
    concurrency: int = 4,
) -> IngestionSummary:
    """Ingest the docs directory and, when configured, the JSON-lines corpus."""
    summaries: list[IngestionSummary] = []
    try:
        paths = discover_documents(docs_dir, seed_document=seed_document)
    except OSError as exc:
        logger.error("Could not scan docs directory %s: %s", docs_dir, exc)
        summaries.append(
            IngestionSummary(
                document_count=0,
                skipped=[SkippedDocument(source=str(docs_dir), reason=str(exc))],
            )
        )
    else:
        summaries.append(
            await ingest_files(
                paths,
                store=store,
                embedding_client=embedding_client,
                concurrency=concurrency,
            )
        )

    if corpus_path is not None:
        try:
            records = load_corpus_records(corpus_path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Could not load corpus %s: %s", corpus_path, exc)
            summaries.append(
                IngestionSummary(
                    document_count=0,
                    skipped=[SkippedDocument(source=str(corpus_path), reason=str(exc))],
                )
            )
        else:
            summaries.append(
                await ingest_records(
                    records,
                    store=store,
                    embedding_client=embedding_client,
                    concurrency=concurrency,
                )
            )

    return _merge(summaries)
