import asyncio
import json
from pathlib import Path

import fitz
import pytest

from assistant.services.rag.embedding_client import EmbeddingServiceError, EmptyResponseError
from assistant.services.rag.ingest import (
    ingest_configured_sources,
    ingest_corpus,
    ingest_files,
)
from assistant.services.rag.loader import discover_documents, load_corpus_records
from assistant.services.rag.store import DocumentStore


class FakeEmbeddingClient:
    def __init__(self, dimensions: int = 4) -> None:
        self._dimensions = dimensions
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        await asyncio.sleep(0)
        return [float(index + 1) for index in range(self._dimensions)]


class SelectiveEmbeddingClient:
    async def embed(self, text: str) -> list[float]:
        if "explode" in text:
            raise EmbeddingServiceError("service error")
        if "hollow" in text:
            raise EmptyResponseError("no vectors")
        return [1.0, 0.0]


def _write_corpus(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _record(chunk: str, heading: str, source: str = "mofa.gov.sa", **extra: str) -> str:
    return json.dumps({"chunk": chunk, "metadata": {"heading": heading, "source": source, **extra}})


def test_discover_documents_creates_directory_and_filters_extensions(tmp_path: Path) -> None:
    docs_dir = tmp_path / "docs"

    assert discover_documents(docs_dir) == []
    assert docs_dir.is_dir()

    (docs_dir / "b.txt").write_text("b", encoding="utf-8")
    (docs_dir / "a.CSV").write_text("h\nv\n", encoding="utf-8")
    (docs_dir / "notes.md").write_text("ignored", encoding="utf-8")
    (docs_dir / "nested").mkdir()

    assert [path.name for path in discover_documents(docs_dir)] == ["a.CSV", "b.txt"]


def test_discover_documents_seeds_default_document_once(tmp_path: Path) -> None:
    seed = tmp_path / "bundled" / "mofa_services.txt"
    seed.parent.mkdir()
    seed.write_text("Bundled consular guide", encoding="utf-8")
    docs_dir = tmp_path / "docs"

    first = discover_documents(docs_dir, seed_document=seed)
    (docs_dir / "mofa_services.txt").write_text("edited locally", encoding="utf-8")
    second = discover_documents(docs_dir, seed_document=seed)

    assert [path.name for path in first] == ["mofa_services.txt"]
    assert [path.name for path in second] == ["mofa_services.txt"]
    assert (docs_dir / "mofa_services.txt").read_text(encoding="utf-8") == "edited locally"


def test_load_corpus_records_skips_blank_and_malformed_lines(tmp_path: Path) -> None:
    corpus = _write_corpus(
        tmp_path / "corpus.jsonl",
        [_record("one", "First"), "", "{not json", "[1, 2]", _record("two", "Second")],
    )

    records = load_corpus_records(corpus)

    assert [record["chunk"] for record in records] == ["one", "two"]


def test_load_corpus_records_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_corpus_records(tmp_path / "missing.jsonl")


@pytest.mark.asyncio
async def test_ingest_files_skips_bad_documents_and_keeps_going(tmp_path: Path) -> None:
    (tmp_path / "fees.txt").write_text("Visa fees are 100 SAR.", encoding="utf-8")
    (tmp_path / "people.csv").write_text("name,age\nAna,30\n", encoding="utf-8")
    (tmp_path / "empty.txt").write_text("", encoding="utf-8")
    (tmp_path / "broken.pdf").write_bytes(b"not a pdf")
    (tmp_path / "slides.pptx").write_text("unsupported", encoding="utf-8")

    store = DocumentStore()
    embedding_client = FakeEmbeddingClient()
    paths = sorted(tmp_path.iterdir())

    summary = await ingest_files(paths, store=store, embedding_client=embedding_client)

    assert summary.document_count == 2
    assert sorted(skipped.source for skipped in summary.skipped) == [
        "broken.pdf",
        "empty.txt",
        "slides.pptx",
    ]
    assert sorted(document.source_id for document in store.get_all()) == ["fees.txt", "people.csv"]
    assert len(embedding_client.texts) == 2


@pytest.mark.asyncio
async def test_ingest_files_isolates_embedding_failures(tmp_path: Path) -> None:
    (tmp_path / "good.txt").write_text("regular content", encoding="utf-8")
    (tmp_path / "bad.txt").write_text("explode please", encoding="utf-8")
    (tmp_path / "hollow.txt").write_text("hollow content", encoding="utf-8")

    store = DocumentStore()
    summary = await ingest_files(
        sorted(tmp_path.iterdir()),
        store=store,
        embedding_client=SelectiveEmbeddingClient(),
    )

    assert summary.document_count == 2
    assert [skipped.source for skipped in summary.skipped] == ["bad.txt"]
    assert "embedding failed" in summary.skipped[0].reason
    assert "hollow.txt" in store
    assert store.search([1.0, 0.0], top_k=5, min_score=0.7)[0].document.source_id == "good.txt"


@pytest.mark.asyncio
async def test_ingest_corpus_rejects_duplicate_source_ids(tmp_path: Path) -> None:
    corpus = _write_corpus(
        tmp_path / "corpus.jsonl",
        [
            _record("Visa fees are 100 SAR.", "Visa Fees", url="https://www.mofa.gov.sa/visa"),
            _record("Duplicate heading text", "Visa Fees"),
            _record("Embassy hours are 9-3.", "Embassy Hours"),
            json.dumps({"chunk": "no metadata"}),
        ],
    )
    store = DocumentStore()

    summary = await ingest_corpus(corpus, store=store, embedding_client=FakeEmbeddingClient())

    assert summary.document_count == 2
    assert summary.skipped_count == 2
    assert "record-3" in [skipped.source for skipped in summary.skipped]
    ids = sorted(document.source_id for document in store.get_all())
    assert ids == ["mofa.gov.sa-Embassy Hours", "mofa.gov.sa-Visa Fees"]


@pytest.mark.asyncio
async def test_ingest_configured_sources_combines_directory_and_corpus(tmp_path: Path) -> None:
    docs_dir = tmp_path / "docs"
    docs_dir.mkdir()
    (docs_dir / "fees.txt").write_text("Visa fees are 100 SAR.", encoding="utf-8")
    corpus = _write_corpus(tmp_path / "corpus.jsonl", [_record("Passport renewal", "Passport")])

    store = DocumentStore()
    summary = await ingest_configured_sources(
        docs_dir=docs_dir,
        corpus_path=corpus,
        store=store,
        embedding_client=FakeEmbeddingClient(),
        concurrency=2,
    )

    assert summary.document_count == 2
    assert summary.skipped == []
    assert len(store) == 2


@pytest.mark.asyncio
async def test_ingest_configured_sources_reports_missing_corpus(tmp_path: Path) -> None:
    store = DocumentStore()

    summary = await ingest_configured_sources(
        docs_dir=tmp_path / "docs",
        corpus_path=tmp_path / "missing.jsonl",
        store=store,
        embedding_client=FakeEmbeddingClient(),
    )

    assert summary.document_count == 0
    assert [skipped.source for skipped in summary.skipped] == [str(tmp_path / "missing.jsonl")]


@pytest.mark.asyncio
async def test_ingest_files_skips_password_protected_pdf(tmp_path: Path) -> None:
    locked = fitz.open()
    locked.new_page().insert_text((72, 72), "Locked guide")
    locked.save(
        tmp_path / "a_locked.pdf",
        encryption=fitz.PDF_ENCRYPT_AES_256,
        owner_pw="owner",
        user_pw="secret",
    )
    locked.close()
    (tmp_path / "b_good.txt").write_text("Embassy hours are 9-3.", encoding="utf-8")

    store = DocumentStore()
    summary = await ingest_files(
        sorted(tmp_path.iterdir()),
        store=store,
        embedding_client=FakeEmbeddingClient(),
    )

    assert summary.document_count == 1
    assert [skipped.source for skipped in summary.skipped] == ["a_locked.pdf"]
    assert [document.source_id for document in store.get_all()] == ["b_good.txt"]


@pytest.mark.asyncio
async def test_ingest_configured_sources_reports_docs_path_that_is_a_file(tmp_path: Path) -> None:
    docs_path = tmp_path / "docs"
    docs_path.write_text("not a directory", encoding="utf-8")
    corpus = _write_corpus(tmp_path / "corpus.jsonl", [_record("Passport renewal", "Passport")])

    store = DocumentStore()
    summary = await ingest_configured_sources(
        docs_dir=docs_path,
        corpus_path=corpus,
        store=store,
        embedding_client=FakeEmbeddingClient(),
    )

    assert summary.document_count == 1
    assert [skipped.source for skipped in summary.skipped] == [str(docs_path)]
    assert "not a directory" in summary.skipped[0].reason
