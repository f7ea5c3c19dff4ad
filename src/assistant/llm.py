from __future__ import annotations

from typing import Protocol

import httpx

FALLBACK_RESPONSE = "I apologize, but I couldn't generate a response."

ChatMessages = list[dict[str, str]]


class ChatClientError(RuntimeError):
    pass


class ChatClient(Protocol):
    async def complete(self, messages: ChatMessages) -> str: ...


class OpenAIChatClient:
    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str = "",
        temperature: float = 0.2,
        max_tokens: int | None = 1000,
        timeout_seconds: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def model(self) -> str:
        return self._model

    async def complete(self, messages: ChatMessages) -> str:
        try:
            if self._http_client is not None:
                response = await self._chat_completion(self._http_client, messages)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._chat_completion(client, messages)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise ChatClientError(str(exc)) from exc
        except ValueError as exc:
            raise ChatClientError(f"Invalid chat completion payload: {exc}") from exc

        return _first_choice_content(payload) or FALLBACK_RESPONSE

    async def _chat_completion(
        self,
        client: httpx.AsyncClient,
        messages: ChatMessages,
    ) -> httpx.Response:
        body: dict[str, object] = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
        }
        if self._max_tokens is not None:
            body["max_tokens"] = self._max_tokens

        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        return await client.post(
            f"{self._base_url}/chat/completions",
            json=body,
            headers=headers,
            timeout=self._timeout_seconds,
        )


def _first_choice_content(payload: object) -> str | None:
    choices = payload.get("choices") if isinstance(payload, dict) else None
    if not isinstance(choices, list) or not choices:
        return None

    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        return None

    return content.strip()
