from __future__ import annotations

import asyncio
from enum import Enum
import logging

from assistant.llm import ChatClient, ChatClientError
from assistant.prompts import ERROR_RESPONSE, UserProfile, build_system_prompt
from assistant.services.rag.context import ContextAssembler
from assistant.services.rag.embedding_client import EmbeddingServiceError
from assistant.services.rag.query import RetrievalEngine
from assistant.session import ConversationSession, Message, Role, TextContent

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    IDLE = "idle"
    AWAITING_RETRIEVAL = "awaiting_retrieval"
    AWAITING_GENERATION = "awaiting_generation"


class ChatAssistant:
    """Runs one question/answer turn at a time against a conversation session.

    Retrieval always finishes (or fails) before generation starts. A turn ends
    with exactly one new assistant message: the answer, or `ERROR_RESPONSE`.
    """

    def __init__(
        self,
        *,
        session: ConversationSession,
        retrieval_engine: RetrievalEngine,
        chat_client: ChatClient,
        assembler: ContextAssembler | None = None,
        profile: UserProfile | None = None,
        top_k: int | None = None,
        min_score: float | None = None,
        fallback_on_retrieval_error: bool = False,
    ) -> None:
        self._session = session
        self._retrieval_engine = retrieval_engine
        self._chat_client = chat_client
        self._assembler = assembler or ContextAssembler()
        self._top_k = top_k
        self._min_score = min_score
        self._fallback_on_retrieval_error = fallback_on_retrieval_error
        self._turn_lock = asyncio.Lock()
        self._state = TurnState.IDLE
        self._closed = False
        self.profile = profile

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def state(self) -> TurnState:
        return self._state

    def close(self) -> None:
        self._closed = True

    async def ask(self, query: str) -> Message:
        normalized_query = query.strip()
        if not normalized_query:
            raise ValueError("query must not be empty")

        async with self._turn_lock:
            if self._closed:
                raise RuntimeError("chat session is closed")
            history = self._session.recent_window()
            self._session.append_user(normalized_query)
            try:
                answer = await self._run_turn(normalized_query, history)
            except Exception:
                logger.exception("Turn failed unexpectedly")
                answer = ERROR_RESPONSE
            finally:
                self._state = TurnState.IDLE

            if self._closed:
                logger.info("Session closed during turn; discarding response")
                return Message(role=Role.ASSISTANT, content=TextContent(answer))
            return self._session.append_assistant(answer)

    async def _run_turn(self, query: str, history: list[Message]) -> str:
        self._state = TurnState.AWAITING_RETRIEVAL
        try:
            hits = await self._retrieval_engine.retrieve(
                query,
                top_k=self._top_k,
                min_score=self._min_score,
            )
            context = self._assembler.assemble(hits)
        except EmbeddingServiceError as exc:
            if not self._fallback_on_retrieval_error:
                logger.error("Retrieval failed: %s", exc)
                return ERROR_RESPONSE
            logger.warning("Retrieval failed, answering without context: %s", exc)
            context = ""

        self._state = TurnState.AWAITING_GENERATION
        messages = self._session.build_prompt(
            build_system_prompt(self.profile),
            context,
            query,
            history=history,
        )
        try:
            return await self._chat_client.complete(messages)
        except ChatClientError as exc:
            logger.error("Generation failed: %s", exc)
            return ERROR_RESPONSE
