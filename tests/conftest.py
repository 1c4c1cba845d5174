# tests/conftest.py
"""Shared test fixtures for all unit tests.

Provides a deterministic bag-of-words embedder, a scripted LLM client that
answers from the passage ids found in the prompt, sample corpora and an
orchestrator factory wired with in-memory stores. No network access.
"""

from __future__ import annotations

import json
import re
from typing import Callable

import pytest

from passagelink.config.settings import Settings
from passagelink.core.models import Corpus, Passage
from passagelink.llm.base_client import BaseLLMClient
from passagelink.llm.models import LLMResponse, Message
from passagelink.llm.oracle import TextOracle
from passagelink.pipeline.orchestrator import ComparisonOrchestrator
from passagelink.rag.embeddings.base_embedder import BaseEmbedder
from passagelink.rag.embeddings.oracle import EmbeddingOracle
from passagelink.rag.vector_store.memory_store import MemoryVectorStore
from passagelink.relations.classifier import RelationClassifier
from passagelink.relations.decomposer import CorpusDecomposer
from passagelink.storage.base_relation_store import BaseRelationStore
from passagelink.storage.memory_store import MemoryCorpusStore

_WORD_RE = re.compile(r"[a-z0-9]+")
PASSAGE_ID_RE = re.compile(r"PASSAGE ID: (\S+)")
FOCUS_ID_RE = re.compile(r"FOCUS ID: (\S+)")


# === FAKES ===


class VocabularyEmbedder(BaseEmbedder):
    """Word-count vectors over a vocabulary that grows as texts arrive."""

    def __init__(self, dimensions: int = 1024, fail_on: set[str] | None = None) -> None:
        self._dimensions = dimensions
        self._vocab: dict[str, int] = {}
        self._fail_on = fail_on or set()
        self.calls = 0

    def vectorize(self, text: str) -> list[float]:
        vector = [0.0] * self._dimensions
        for word in _WORD_RE.findall(text.lower()):
            index = self._vocab.setdefault(word, len(self._vocab)) % self._dimensions
            vector[index] += 1.0
        return vector

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls += 1
        for text in texts:
            if text in self._fail_on:
                raise RuntimeError(f"embedding backend rejected {text[:20]!r}")
        return [self.vectorize(t) for t in texts]

    async def embed_query(self, query: str) -> list[float]:
        return (await self.embed_texts([query]))[0]

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def provider_name(self) -> str:
        return "vocabulary"

    @property
    def model_name(self) -> str:
        return "bag-of-words"


class ScriptedLLM(BaseLLMClient):
    """LLM client answering from the ids present in the prompt.

    By default every candidate (retrieval mode) or every source/target pair
    (full-context mode) gets the configured relation. A responder callable
    can replace that; it may also raise to simulate provider failures.
    """

    def __init__(
        self,
        relation: str = "supports",
        responder: Callable[[str], str] | None = None,
    ) -> None:
        self._relation = relation
        self._responder = responder
        self.prompts: list[str] = []
        self.systems: list[str | None] = []

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.2,
    ) -> LLMResponse:
        prompt = messages[-1].content
        self.prompts.append(prompt)
        self.systems.append(system)
        if self._responder is not None:
            content = self._responder(prompt)
        else:
            content = self.default_response(prompt)
        return LLMResponse(
            content=content,
            input_tokens=len(prompt) // 4,
            output_tokens=len(content) // 4,
            model="scripted",
            provider="scripted",
            latency_ms=1,
        )

    def default_response(self, prompt: str) -> str:
        targets = PASSAGE_ID_RE.findall(prompt)
        focus_ids = FOCUS_ID_RE.findall(prompt)
        if focus_ids:
            items = [
                {
                    "focus_passage_id": f,
                    "passage_id": t,
                    "relation": self._relation,
                    "evidence": "Same subject.",
                }
                for f in focus_ids
                for t in targets
            ]
        else:
            items = [
                {"passage_id": t, "relation": self._relation, "evidence": "Same subject."}
                for t in targets
            ]
        return json.dumps(items)

    @property
    def provider_name(self) -> str:
        return "scripted"

    @property
    def model_name(self) -> str:
        return "scripted"


# === HELPERS ===


def make_corpus(corpus_id: str, texts: list[str], title: str | None = None) -> Corpus:
    """Corpus whose passages are texts, ids <corpus_id>_p<index>."""
    passages = []
    offset = 0
    for i, text in enumerate(texts):
        passages.append(
            Passage(
                id=f"{corpus_id}_p{i}",
                corpus_id=corpus_id,
                text=text,
                start=offset,
                end=offset + len(text),
            )
        )
        offset += len(text) + 2
    return Corpus(id=corpus_id, title=title or corpus_id.title(), passages=tuple(passages))


# === FIXTURES ===


@pytest.fixture
def settings() -> Settings:
    """Defaults only, never reading a local .env file."""
    return Settings(_env_file=None)  # type: ignore[call-arg]


@pytest.fixture
def embedder() -> VocabularyEmbedder:
    return VocabularyEmbedder()


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def rayleigh_corpora() -> tuple[Corpus, Corpus]:
    a = make_corpus("optics", ["The sky is blue because of Rayleigh scattering."])
    b = make_corpus("atmosphere", ["Rayleigh scattering explains the sky's color."])
    return a, b


@pytest.fixture
def make_orchestrator(settings: Settings, embedder: VocabularyEmbedder, scripted_llm: ScriptedLLM):
    """Factory: orchestrator over in-memory stores holding the given corpora."""

    def _make(
        corpora: list[Corpus],
        llm: BaseLLMClient | None = None,
        emb: BaseEmbedder | None = None,
        relation_store: BaseRelationStore | None = None,
        **setting_overrides: object,
    ) -> ComparisonOrchestrator:
        cfg = settings.model_copy(update=setting_overrides) if setting_overrides else settings
        oracle = TextOracle(llm or scripted_llm, timeout_s=5.0, max_retries=0)
        classifier = RelationClassifier(oracle)
        return ComparisonOrchestrator(
            settings=cfg,
            corpus_store=MemoryCorpusStore(corpora),
            vector_store=MemoryVectorStore(),
            embedding_oracle=EmbeddingOracle(emb or embedder, timeout_s=5.0),
            classifier=classifier,
            decomposer=CorpusDecomposer.from_settings(classifier, cfg),
            relation_store=relation_store,
        )

    return _make
