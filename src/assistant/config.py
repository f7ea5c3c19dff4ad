from dataclasses import dataclass
from functools import lru_cache
import os


def _to_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _to_int(value: str | None, *, default: int, minimum: int) -> int:
    if value is None:
        return default
    parsed = int(value)
    return max(minimum, parsed)


def _to_float(value: str | None, *, default: float, minimum: float, maximum: float) -> float:
    if value is None:
        return default
    parsed = float(value)
    return min(maximum, max(minimum, parsed))


def _to_optional_path(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    openai_base_url: str
    openai_api_key: str
    openai_embed_model: str
    openai_chat_model: str
    openai_temperature: float
    openai_max_tokens: int
    openai_timeout_seconds: float
    rag_top_k: int
    rag_min_score: float
    rag_docs_dir: str
    rag_corpus_path: str | None
    rag_seed_document: str | None
    rag_ingest_concurrency: int
    rag_ingest_on_startup: bool
    chat_history_window: int
    log_level: str
    log_file: str | None


@lru_cache
def get_settings() -> Settings:
    return Settings(
        openai_base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_embed_model=os.getenv("OPENAI_EMBED_MODEL", "text-embedding-ada-002"),
        openai_chat_model=os.getenv("OPENAI_CHAT_MODEL", "gpt-4"),
        openai_temperature=_to_float(
            os.getenv("OPENAI_TEMPERATURE"), default=0.2, minimum=0.0, maximum=2.0
        ),
        openai_max_tokens=_to_int(os.getenv("OPENAI_MAX_TOKENS"), default=1000, minimum=1),
        openai_timeout_seconds=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "30")),
        rag_top_k=_to_int(os.getenv("RAG_TOP_K"), default=5, minimum=1),
        rag_min_score=_to_float(
            os.getenv("RAG_MIN_SCORE"), default=0.7, minimum=-1.0, maximum=1.0
        ),
        rag_docs_dir=os.getenv("RAG_DOCS_DIR", "data/docs"),
        rag_corpus_path=_to_optional_path(os.getenv("RAG_CORPUS_PATH")),
        rag_seed_document=_to_optional_path(os.getenv("RAG_SEED_DOCUMENT")),
        rag_ingest_concurrency=_to_int(
            os.getenv("RAG_INGEST_CONCURRENCY"), default=4, minimum=1
        ),
        rag_ingest_on_startup=_to_bool(os.getenv("RAG_INGEST_ON_STARTUP"), default=True),
        chat_history_window=_to_int(os.getenv("CHAT_HISTORY_WINDOW"), default=10, minimum=0),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_file=_to_optional_path(os.getenv("LOG_FILE")),
    )
