import pytest

from assistant.services.rag.context import ContextAssembler
from assistant.services.rag.embedding_client import EmbeddingServiceError, EmptyResponseError
from assistant.services.rag.query import RetrievalEngine
from assistant.services.rag.store import DocumentStore
from assistant.services.rag.types import ProcessedDocument


class ConstantEmbeddingClient:
    def __init__(self, vector: list[float]) -> None:
        self._vector = vector
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return list(self._vector)


class KeywordEmbeddingClient:
    async def embed(self, text: str) -> list[float]:
        normalized = text.lower()
        return [
            float(normalized.count("visa")),
            float(normalized.count("passport")),
        ]


class FailingEmbeddingClient:
    def __init__(self, error: Exception) -> None:
        self._error = error

    async def embed(self, text: str) -> list[float]:
        raise self._error


def _doc(source_id: str, content: str) -> ProcessedDocument:
    return ProcessedDocument(
        content=content,
        metadata={"type": "txt", "filename": source_id},
        source_id=source_id,
    )


@pytest.mark.asyncio
async def test_visa_question_retrieves_matching_document_and_context() -> None:
    embedding_client = ConstantEmbeddingClient([0.25, 0.5, 0.75])
    store = DocumentStore()
    document = _doc("fees.txt", "Visa fees are 100 SAR.")
    store.insert(document, await embedding_client.embed(document.content))

    engine = RetrievalEngine(embedding_client=embedding_client, store=store)
    hits = await engine.retrieve("How much is a visa?")

    assert len(hits) == 1
    assert hits[0].document is document
    assert hits[0].score == pytest.approx(1.0)
    assert "Visa fees are 100 SAR." in ContextAssembler().assemble(hits)
    assert embedding_client.calls[-1] == "How much is a visa?"


@pytest.mark.asyncio
async def test_retrieve_applies_threshold_and_top_k() -> None:
    store = DocumentStore()
    store.insert(_doc("visa.txt", "visa visa"), [2.0, 0.0])
    store.insert(_doc("mixed.txt", "visa passport"), [1.0, 1.0])
    store.insert(_doc("passport.txt", "passport"), [0.0, 1.0])

    engine = RetrievalEngine(embedding_client=KeywordEmbeddingClient(), store=store)

    default_hits = await engine.retrieve("visa")
    assert [hit.document.source_id for hit in default_hits] == ["visa.txt", "mixed.txt"]

    strict_hits = await engine.retrieve("visa", min_score=0.9)
    assert [hit.document.source_id for hit in strict_hits] == ["visa.txt"]

    limited_hits = await engine.retrieve("visa", top_k=1, min_score=0.0)
    assert [hit.document.source_id for hit in limited_hits] == ["visa.txt"]


@pytest.mark.asyncio
async def test_retrieve_uses_configured_defaults() -> None:
    store = DocumentStore()
    store.insert(_doc("a.txt", "visa"), [1.0, 0.0])
    store.insert(_doc("b.txt", "visa"), [1.0, 0.1])

    engine = RetrievalEngine(
        embedding_client=KeywordEmbeddingClient(),
        store=store,
        default_top_k=1,
        default_min_score=0.5,
    )

    hits = await engine.retrieve("visa")

    assert [hit.document.source_id for hit in hits] == ["a.txt"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [EmbeddingServiceError("down"), EmptyResponseError("no vectors")],
)
async def test_retrieve_propagates_embedding_failures(error: Exception) -> None:
    store = DocumentStore()
    store.insert(_doc("a.txt", "visa"), [1.0, 0.0])
    engine = RetrievalEngine(embedding_client=FailingEmbeddingClient(error), store=store)

    with pytest.raises(type(error)):
        await engine.retrieve("visa")


@pytest.mark.asyncio
async def test_retrieve_rejects_blank_query() -> None:
    engine = RetrievalEngine(embedding_client=KeywordEmbeddingClient(), store=DocumentStore())

    with pytest.raises(ValueError, match="must not be empty"):
        await engine.retrieve("   ")
