from __future__ import annotations

from typing import Protocol

import httpx


class EmbeddingServiceError(RuntimeError):
    pass


class EmptyResponseError(EmbeddingServiceError):
    pass


class EmbeddingClient(Protocol):
    async def embed(self, text: str) -> list[float]: ...


def _auth_headers(api_key: str) -> dict[str, str]:
    if not api_key:
        return {}
    return {"Authorization": f"Bearer {api_key}"}


class OpenAIEmbeddingClient:
    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds
        self._http_client = http_client

    @property
    def model(self) -> str:
        return self._model

    async def embed(self, text: str) -> list[float]:
        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, text)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, text)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            raise EmbeddingServiceError(str(exc)) from exc
        except ValueError as exc:
            raise EmbeddingServiceError(f"Invalid embeddings payload: {exc}") from exc

        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise EmbeddingServiceError("Invalid embeddings payload: missing data")
        if not data:
            raise EmptyResponseError("Embedding service returned no vectors")

        first = data[0]
        embedding = first.get("embedding") if isinstance(first, dict) else None
        if not isinstance(embedding, list):
            raise EmbeddingServiceError("Invalid embeddings payload: missing embedding vector")

        try:
            return [float(value) for value in embedding]
        except (TypeError, ValueError) as exc:
            raise EmbeddingServiceError("Invalid embeddings payload: non-numeric vector") from exc

    async def _post(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        return await client.post(
            f"{self._base_url}/embeddings",
            json={"model": self._model, "input": text},
            headers=_auth_headers(self._api_key),
            timeout=self._timeout_seconds,
        )
