# src/rag/embeddings/ollama_embedder.py
"""Ollama embedding adapter (local inference).

Uses the Ollama REST API for local embedding generation.
Models: nomic-embed-text, mxbai-embed-large, etc.
"""

from __future__ import annotations

import logging

import httpx

from passagelink.core.errors import OracleError
from passagelink.rag.embeddings.base_embedder import BaseEmbedder

logger = logging.getLogger(__name__)


class OllamaEmbedder(BaseEmbedder):
    """Local embeddings via Ollama API."""

    def __init__(
        self,
        model: str = "nomic-embed-text",
        base_url: str = "http://localhost:11434",
        dimensions: int = 768,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._model_name = model
        self._base_url = base_url.rstrip("/")
        self._dimensions = dimensions
        self._timeout_s = timeout_s
        self._transport = transport

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed document texts via Ollama API (one request for the batch)."""
        if not texts:
            return []
        return await self._embed(texts)

    async def embed_query(self, query: str) -> list[float]:
        """Embed a single query via Ollama API."""
        return (await self._embed([query]))[0]

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        url = f"{self._base_url}/api/embed"
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout_s), transport=self._transport
        ) as client:
            resp = await client.post(url, json={"model": self._model_name, "input": texts})

        if resp.status_code != 200:
            raise OracleError(
                f"Ollama embeddings HTTP {resp.status_code}: {resp.text[:300]}"
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise OracleError(f"Ollama embeddings returned non-JSON body: {exc}") from exc

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not embeddings or len(embeddings) != len(texts):
            raise OracleError(
                f"Ollama returned {len(embeddings or [])} embeddings for "
                f"{len(texts)} inputs (model {self._model_name})"
            )
        return embeddings

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def model_name(self) -> str:
        return self._model_name
