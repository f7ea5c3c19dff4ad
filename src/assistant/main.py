import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging
from pathlib import Path
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field

from assistant.chat import ChatAssistant
from assistant.config import Settings, get_settings
from assistant.llm import ChatClient, OpenAIChatClient
from assistant.log import configure_logging
from assistant.prompts import UserProfile
from assistant.services.rag import (
    DocumentStore,
    IngestionSummary,
    RetrievalEngine,
    RetrievalHit,
    ingest_configured_sources,
)
from assistant.services.rag.embedding_client import (
    EmbeddingClient,
    EmbeddingServiceError,
    OpenAIEmbeddingClient,
)
from assistant.session import ConversationSession, Message

logger = logging.getLogger(__name__)


class ProfileModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    citizenship: str = Field(min_length=1)
    age: int = Field(ge=0, le=150)


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str = Field(min_length=1)
    profile: ProfileModel | None = None


def get_llm_client() -> ChatClient:
    settings = get_settings()
    return OpenAIChatClient(
        base_url=settings.openai_base_url,
        model=settings.openai_chat_model,
        api_key=settings.openai_api_key,
        temperature=settings.openai_temperature,
        max_tokens=settings.openai_max_tokens,
        timeout_seconds=settings.openai_timeout_seconds,
    )


def get_embedding_client() -> EmbeddingClient:
    settings = get_settings()
    return OpenAIEmbeddingClient(
        base_url=settings.openai_base_url,
        model=settings.openai_embed_model,
        api_key=settings.openai_api_key,
        timeout_seconds=settings.openai_timeout_seconds,
    )


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_session(request: Request) -> ConversationSession:
    return request.app.state.session


async def _ingest(
    settings: Settings,
    store: DocumentStore,
    embedding_client: EmbeddingClient,
) -> IngestionSummary:
    return await ingest_configured_sources(
        docs_dir=Path(settings.rag_docs_dir),
        corpus_path=Path(settings.rag_corpus_path) if settings.rag_corpus_path else None,
        seed_document=Path(settings.rag_seed_document) if settings.rag_seed_document else None,
        store=store,
        embedding_client=embedding_client,
        concurrency=settings.rag_ingest_concurrency,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    settings = get_settings()

    app.state.store = DocumentStore()
    app.state.session = ConversationSession(history_window=settings.chat_history_window)
    app.state.profile = None
    app.state.turn_lock = asyncio.Lock()
    app.state.last_ingestion = None

    if settings.rag_ingest_on_startup:
        app.state.last_ingestion = await _ingest(
            settings, app.state.store, get_embedding_client()
        )
    else:
        logger.info("Startup ingestion disabled; store is empty")
    yield


app = FastAPI(title="MOFA Assistant API", version="0.1.0", lifespan=lifespan)


def _summary_payload(summary: IngestionSummary | None) -> dict[str, Any] | None:
    if summary is None:
        return None
    return {
        "documents": summary.document_count,
        "skipped": [
            {"source": skipped.source, "reason": skipped.reason} for skipped in summary.skipped
        ],
    }


def _hit_payload(hit: RetrievalHit) -> dict[str, Any]:
    return {
        "source_id": hit.document.source_id,
        "score": round(hit.score, 6),
        "content": hit.document.content,
        "metadata": hit.document.metadata,
    }


def _message_payload(message: Message) -> dict[str, Any]:
    text = message.text
    return {
        "id": message.id,
        "role": message.role.value,
        "type": "text" if text is not None else "image",
        "content": text,
        "timestamp": message.timestamp.isoformat(),
    }


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/documents")
def list_documents(store: Annotated[DocumentStore, Depends(get_store)]) -> list[dict[str, Any]]:
    return [
        {"source_id": document.source_id, "metadata": document.metadata}
        for document in store.get_all()
    ]


@app.post("/documents/reindex")
async def reindex_documents(
    request: Request,
    store: Annotated[DocumentStore, Depends(get_store)],
    embedding_client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
) -> dict[str, Any]:
    async with request.app.state.turn_lock:
        store.reset()
        summary = await _ingest(get_settings(), store, embedding_client)

    request.app.state.last_ingestion = summary
    return _summary_payload(summary) or {}


@app.get("/rag/search")
async def rag_search(
    q: str,
    store: Annotated[DocumentStore, Depends(get_store)],
    embedding_client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
    k: int | None = None,
    min_score: float | None = None,
) -> list[dict[str, Any]]:
    if not q.strip():
        raise HTTPException(status_code=400, detail="q must not be empty")
    if len(store) == 0:
        raise HTTPException(
            status_code=503,
            detail="No documents indexed. Add files to the docs directory and POST /documents/reindex.",
        )

    settings = get_settings()
    engine = RetrievalEngine(
        embedding_client=embedding_client,
        store=store,
        default_top_k=settings.rag_top_k,
        default_min_score=settings.rag_min_score,
    )
    top_k = None if k is None else max(1, min(k, 20))

    try:
        hits = await engine.retrieve(q, top_k=top_k, min_score=min_score)
    except EmbeddingServiceError as exc:
        raise HTTPException(status_code=502, detail=f"Embedding request failed: {exc}") from exc

    return [_hit_payload(hit) for hit in hits]


@app.post("/chat")
async def chat(
    request: ChatRequest,
    http_request: Request,
    store: Annotated[DocumentStore, Depends(get_store)],
    session: Annotated[ConversationSession, Depends(get_session)],
    llm_client: Annotated[ChatClient, Depends(get_llm_client)],
    embedding_client: Annotated[EmbeddingClient, Depends(get_embedding_client)],
) -> dict[str, Any]:
    message = request.message.strip()
    if not message:
        raise HTTPException(status_code=400, detail="message must not be empty")

    state = http_request.app.state
    if request.profile is not None:
        state.profile = UserProfile(**request.profile.model_dump())

    settings = get_settings()
    assistant = ChatAssistant(
        session=session,
        retrieval_engine=RetrievalEngine(
            embedding_client=embedding_client,
            store=store,
            default_top_k=settings.rag_top_k,
            default_min_score=settings.rag_min_score,
        ),
        chat_client=llm_client,
        profile=state.profile,
    )

    async with state.turn_lock:
        reply = await assistant.ask(message)

    return {"message": _message_payload(reply)}


@app.get("/chat/history")
def chat_history(
    session: Annotated[ConversationSession, Depends(get_session)],
) -> list[dict[str, Any]]:
    return [_message_payload(message) for message in session.messages]


@app.get("/status")
def status(request: Request) -> dict[str, Any]:
    return {
        "documents": len(request.app.state.store),
        "messages": len(request.app.state.session),
        "last_ingestion": _summary_payload(request.app.state.last_ingestion),
    }


def run() -> None:
    import uvicorn

    uvicorn.run("assistant.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
