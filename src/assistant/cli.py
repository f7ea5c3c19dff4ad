from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
import sys

from assistant.chat import ChatAssistant
from assistant.config import get_settings
from assistant.llm import OpenAIChatClient
from assistant.log import configure_logging
from assistant.prompts import UserProfile
from assistant.services.rag import DocumentStore, RetrievalEngine, ingest_configured_sources
from assistant.services.rag.embedding_client import OpenAIEmbeddingClient
from assistant.services.rag.types import IngestionSummary
from assistant.session import ConversationSession


def _add_source_arguments(parser: argparse.ArgumentParser) -> None:
    settings = get_settings()
    parser.add_argument(
        "--docs-dir",
        default=settings.rag_docs_dir,
        help="Directory scanned for .pdf/.csv/.txt documents (created if missing)",
    )
    parser.add_argument(
        "--corpus",
        default=settings.rag_corpus_path,
        help="Optional JSON-lines corpus of pre-chunked records",
    )
    parser.add_argument(
        "--seed-document",
        default=settings.rag_seed_document,
        help="Optional file copied into the docs directory on first run",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.rag_ingest_concurrency,
        help="Documents parsed and embedded in parallel",
    )


def _build_ingest_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rag-ingest",
        description="Parse and embed the configured documents and report the result",
    )
    _add_source_arguments(parser)
    return parser


def _build_chat_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="assistant-chat",
        description="Chat with the MOFA assistant in the terminal",
    )
    _add_source_arguments(parser)
    parser.add_argument("--name", default=None, help="User name for a tailored answer")
    parser.add_argument("--citizenship", default=None, help="User citizenship")
    parser.add_argument("--age", type=int, default=None, help="User age")
    return parser


def _embedding_client() -> OpenAIEmbeddingClient:
    settings = get_settings()
    return OpenAIEmbeddingClient(
        base_url=settings.openai_base_url,
        model=settings.openai_embed_model,
        api_key=settings.openai_api_key,
        timeout_seconds=settings.openai_timeout_seconds,
    )


async def _ingest(args: argparse.Namespace, store: DocumentStore) -> IngestionSummary:
    return await ingest_configured_sources(
        docs_dir=Path(args.docs_dir),
        corpus_path=Path(args.corpus) if args.corpus else None,
        seed_document=Path(args.seed_document) if args.seed_document else None,
        store=store,
        embedding_client=_embedding_client(),
        concurrency=args.concurrency,
    )


def _print_summary(prog: str, summary: IngestionSummary) -> None:
    print(
        f"[{prog}] completed documents={summary.document_count} skipped={summary.skipped_count}",
        flush=True,
    )
    for skipped in summary.skipped:
        print(f"[{prog}] skipped {skipped.source}: {skipped.reason}", flush=True)


def ingest_main() -> None:
    parser = _build_ingest_parser()
    args = parser.parse_args()
    configure_logging()

    try:
        summary = asyncio.run(_ingest(args, DocumentStore()))
    except Exception as exc:
        print(f"[rag-ingest] failed: {exc}", file=sys.stderr, flush=True)
        raise SystemExit(1) from exc

    _print_summary("rag-ingest", summary)


def _profile_from_args(args: argparse.Namespace) -> UserProfile | None:
    if not args.name or not args.citizenship or args.age is None:
        return None
    return UserProfile(name=args.name, citizenship=args.citizenship, age=args.age)


async def _chat_loop(args: argparse.Namespace) -> None:
    settings = get_settings()
    store = DocumentStore()
    summary = await _ingest(args, store)
    _print_summary("assistant-chat", summary)

    assistant = ChatAssistant(
        session=ConversationSession(history_window=settings.chat_history_window),
        retrieval_engine=RetrievalEngine(
            embedding_client=_embedding_client(),
            store=store,
            default_top_k=settings.rag_top_k,
            default_min_score=settings.rag_min_score,
        ),
        chat_client=OpenAIChatClient(
            base_url=settings.openai_base_url,
            model=settings.openai_chat_model,
            api_key=settings.openai_api_key,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
            timeout_seconds=settings.openai_timeout_seconds,
        ),
        profile=_profile_from_args(args),
    )

    while True:
        try:
            line = await asyncio.to_thread(input, "you> ")
        except EOFError:
            break
        if line.strip() in {"/quit", "/exit"}:
            break
        if not line.strip():
            continue
        reply = await assistant.ask(line)
        print(f"assistant> {reply.text}\n", flush=True)

    assistant.close()


def chat_main() -> None:
    parser = _build_chat_parser()
    args = parser.parse_args()
    configure_logging()

    try:
        asyncio.run(_chat_loop(args))
    except KeyboardInterrupt:
        print("", flush=True)


if __name__ == "__main__":
    chat_main()
