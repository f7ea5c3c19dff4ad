"""Conversation history and prompt construction.

`ConversationSession` owns an append-only list of `Message`s. Prompts only
ever see a bounded window of the most recent messages, and only their text:
image messages stay in the history but are skipped when a text prompt is built.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from assistant.prompts import CONTEXT_INSTRUCTION

DEFAULT_HISTORY_WINDOW = 10


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class TextContent:
    text: str


@dataclass(frozen=True)
class ImageContent:
    data: bytes
    media_type: str = "image/png"


MessageContent = TextContent | ImageContent


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class Message:
    role: Role
    content: MessageContent
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_now)

    @property
    def text(self) -> str | None:
        if isinstance(self.content, TextContent):
            return self.content.text
        return None


def _as_content(content: str | MessageContent) -> MessageContent:
    if isinstance(content, str):
        return TextContent(content)
    return content


class ConversationSession:
    def __init__(self, *, history_window: int = DEFAULT_HISTORY_WINDOW) -> None:
        self._history_window = history_window
        self._messages: list[Message] = []

    @property
    def history_window(self) -> int:
        return self._history_window

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def append_user(self, content: str | MessageContent) -> Message:
        return self.append(Message(role=Role.USER, content=_as_content(content)))

    def append_assistant(self, content: str | MessageContent) -> Message:
        return self.append(Message(role=Role.ASSISTANT, content=_as_content(content)))

    def recent_window(self, max_messages: int | None = None) -> list[Message]:
        limit = self._history_window if max_messages is None else max_messages
        if limit <= 0:
            return []
        return self._messages[-limit:]

    def build_prompt(
        self,
        system_prompt: str,
        context: str | None,
        user_query: str,
        *,
        history: Sequence[Message] | None = None,
        context_instruction: str | None = None,
    ) -> list[dict[str, str]]:
        """Return chat messages: system, optional context, text history, current query.

        `history` defaults to the session's recent window; callers that have
        already recorded the current query pass the window captured before it.
        """
        prompt = [{"role": "system", "content": system_prompt}]
        if context:
            instruction = context_instruction or CONTEXT_INSTRUCTION
            prompt.append({"role": "system", "content": f"{instruction}{context}"})

        window = self.recent_window() if history is None else history
        for message in window:
            text = message.text
            if text is None:
                continue
            prompt.append({"role": message.role.value, "content": text})

        prompt.append({"role": "user", "content": user_query})
        return prompt
