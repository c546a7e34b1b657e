from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from .errors import EmbeddingApiError


class HttpEmbeddingProvider:
    """
    Embedding provider for OpenAI-compatible ``/embeddings`` endpoints.

    ``base_url`` includes the API version prefix, e.g.
    ``https://api.openai.com/v1``.
    """

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        *,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._logger = logging.getLogger(__name__)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def embed(self, text: str) -> List[float]:
        try:
            self._logger.debug("HttpEmbeddingProvider.embed: POST %s/embeddings model=%s", self.base_url, self.model)
            r = await self._client.post(
                f"{self.base_url}/embeddings",
                headers=self._headers(),
                json={"model": self.model, "input": text},
            )
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise EmbeddingApiError(
                f"Embedding request failed: {e.response.status_code}",
                status_code=e.response.status_code,
                details=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingApiError(f"Embedding request failed: {e}") from e

        data = r.json()
        try:
            return [float(x) for x in data["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingApiError("Unexpected embeddings response shape", status_code=r.status_code, details=data) from e
