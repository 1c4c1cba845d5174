# tests/unit/rag/embeddings/test_embedders.py
"""Tests for embedding adapters and the embedder factory."""

from __future__ import annotations

import json

import httpx
import numpy as np
import pytest

from passagelink.core.errors import OracleError
from passagelink.rag.embeddings.embedder_factory import (
    UnsupportedEmbeddingProviderError,
    create_embedder,
)
from passagelink.rag.embeddings.ollama_embedder import OllamaEmbedder
from passagelink.rag.embeddings.openai_embedder import OpenAIEmbedder
from passagelink.rag.embeddings.sentence_tf_embedder import SentenceTransformerEmbedder


class TestEmbedderFactory:
    def test_default_is_openai(self):
        embedder = create_embedder()
        assert isinstance(embedder, OpenAIEmbedder)
        assert embedder.model_name == "text-embedding-3-large"
        assert embedder.dimensions == 3072

    def test_from_settings_openai(self, settings):
        embedder = create_embedder(settings)
        assert embedder.provider_name == "openai"

    def test_ollama(self, settings):
        embedder = create_embedder(settings.model_copy(update={"embedding_provider": "ollama"}))
        assert isinstance(embedder, OllamaEmbedder)
        assert embedder.model_name == settings.embedding_ollama_model

    def test_sentence_transformers_is_lazy(self, settings):
        embedder = create_embedder(
            settings.model_copy(update={"embedding_provider": "sentence_transformers"})
        )
        assert isinstance(embedder, SentenceTransformerEmbedder)
        assert embedder.model_name == "all-MiniLM-L6-v2"

    def test_unknown(self, settings):
        with pytest.raises(UnsupportedEmbeddingProviderError):
            create_embedder(settings.model_copy(update={"embedding_provider": "voyage"}))


class TestOllamaEmbedder:
    @pytest.mark.asyncio
    async def test_batch_request(self):
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"embeddings": [[0.1, 0.2], [0.3, 0.4]]})

        embedder = OllamaEmbedder(
            model="nomic-embed-text",
            base_url="http://ollama.test/",
            transport=httpx.MockTransport(handler),
        )
        vectors = await embedder.embed_texts(["a", "b"])
        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        assert seen["url"] == "http://ollama.test/api/embed"
        assert seen["body"] == {"model": "nomic-embed-text", "input": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_empty_batch_skips_request(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        embedder = OllamaEmbedder(transport=httpx.MockTransport(handler))
        assert await embedder.embed_texts([]) == []

    @pytest.mark.asyncio
    async def test_http_error(self):
        embedder = OllamaEmbedder(
            transport=httpx.MockTransport(lambda r: httpx.Response(404, text="model not found")),
        )
        with pytest.raises(OracleError, match="HTTP 404"):
            await embedder.embed_query("a")

    @pytest.mark.asyncio
    async def test_count_mismatch(self):
        embedder = OllamaEmbedder(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"embeddings": []})),
        )
        with pytest.raises(OracleError, match="0 embeddings for 1 inputs"):
            await embedder.embed_query("a")


class TestRegisterEmbeddingProvider:
    def test_custom_provider(self, monkeypatch, settings):
        from passagelink.rag.embeddings import embedder_factory

        monkeypatch.setattr(
            embedder_factory, "_PROVIDER_REGISTRY", dict(embedder_factory._PROVIDER_REGISTRY)
        )
        embedder_factory.register_embedding_provider(
            "ollama-remote", "passagelink.rag.embeddings.ollama_embedder.OllamaEmbedder"
        )
        embedder = create_embedder(
            settings.model_copy(update={"embedding_provider": "ollama-remote"})
        )
        assert isinstance(embedder, OllamaEmbedder)
        assert embedder.dimensions == settings.embedding_dimensions


class FakeSentenceModel:
    """Stands in for a loaded SentenceTransformer."""

    def __init__(self, dimensions: int = 3) -> None:
        self._dimensions = dimensions
        self.calls: list[dict] = []

    def get_sentence_embedding_dimension(self) -> int:
        return self._dimensions

    def encode(self, texts, batch_size, show_progress_bar, normalize_embeddings):
        self.calls.append(
            {"texts": list(texts), "batch_size": batch_size, "normalize": normalize_embeddings}
        )
        return np.array([[float(len(t)), 0.0, 0.0] for t in texts])


class TestSentenceTransformerEmbedder:
    @pytest.mark.asyncio
    async def test_embed_texts_batches_and_normalizes(self):
        model = FakeSentenceModel()
        embedder = SentenceTransformerEmbedder(batch_size=8, model_instance=model)

        vectors = await embedder.embed_texts(["ab", "abcd"])

        assert vectors == [[2.0, 0.0, 0.0], [4.0, 0.0, 0.0]]
        assert model.calls == [{"texts": ["ab", "abcd"], "batch_size": 8, "normalize": True}]
        assert embedder.dimensions == 3

    @pytest.mark.asyncio
    async def test_empty_batch_skips_model(self):
        model = FakeSentenceModel()
        embedder = SentenceTransformerEmbedder(model_instance=model)
        assert await embedder.embed_texts([]) == []
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_e5_models_get_prefixes(self):
        model = FakeSentenceModel()
        embedder = SentenceTransformerEmbedder(
            model="intfloat/multilingual-e5-large", model_instance=model
        )
        await embedder.embed_texts(["sky"])
        await embedder.embed_query("why blue")
        assert model.calls[0]["texts"] == ["passage: sky"]
        assert model.calls[1]["texts"] == ["query: why blue"]

    @pytest.mark.asyncio
    async def test_other_models_unprefixed(self):
        model = FakeSentenceModel()
        embedder = SentenceTransformerEmbedder(model_instance=model)
        await embedder.embed_query("why blue")
        assert model.calls[0]["texts"] == ["why blue"]

    def test_factory_passes_batch_size(self, settings):
        embedder = create_embedder(
            settings.model_copy(
                update={"embedding_provider": "sentence_transformers", "embedding_batch_size": 4}
            )
        )
        assert embedder._batch_size == 4
