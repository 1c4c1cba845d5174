# src/core/models.py
"""Shared Pydantic domain models used across modules.

No module redefines these types; all imports come from core.models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from passagelink.config.settings import Settings

RelationType = Literal["supports", "contradicts", "extends", "analogous"]
RELATION_TYPES: tuple[str, ...] = get_args(RelationType)

JobStatus = Literal["pending", "running", "complete", "error"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"complete", "error"})

ProgressStage = Literal[
    "index_source",
    "index_target",
    "retrieval",
    "classification",
    "segments",
    "analysis",
    "complete",
]

# Similarity recorded on relations that were not found through embeddings
# (whole-corpus or chapter-batched classification).
NO_EMBEDDING_SIMILARITY = 1.0


# === CORPUS MODELS ===


class Passage(BaseModel):
    """Contiguous excerpt of a corpus: the unit of comparison."""

    model_config = ConfigDict(frozen=True)

    id: str
    corpus_id: str
    text: str
    start: int = 0
    end: int = 0

    @property
    def char_count(self) -> int:
        return len(self.text)


class Corpus(BaseModel):
    """One complete text ("book") made of ordered passages."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    passages: tuple[Passage, ...] = ()
    file_name: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def passage_ids(self) -> list[str]:
        return [p.id for p in self.passages]

    @property
    def char_count(self) -> int:
        return sum(len(p.text) for p in self.passages)

    def get_passage(self, passage_id: str) -> Passage | None:
        for passage in self.passages:
            if passage.id == passage_id:
                return passage
        return None


# === RETRIEVAL / CLASSIFICATION ===


class SimilarityCandidate(BaseModel):
    """Ephemeral nearest-neighbor hit, recomputed per query."""

    passage: Passage
    similarity: float


class PassageRelation(BaseModel):
    """Typed, evidenced relationship from a focus passage to a related passage."""

    focus_passage_id: str
    related_passage_id: str
    relation_type: RelationType
    evidence: str = ""
    similarity: float = NO_EMBEDDING_SIMILARITY
    basis: Literal["embedding", "full_context"] = "embedding"

    @property
    def has_embedding_basis(self) -> bool:
        """False when the similarity is the sentinel, not a real match score."""
        return self.basis == "embedding"


RelationMap = dict[str, list[PassageRelation]]


class ClassificationResult(BaseModel):
    """Relations plus the diagnostics gathered while parsing one oracle response."""

    relations: list[PassageRelation] = Field(default_factory=list)
    strategy: str | None = None
    dropped: list[str] = Field(default_factory=list)


# === PASSAGE ANALYSIS ===


class PassageSummary(BaseModel):
    """Summary, concepts and key points extracted from one passage."""

    passage_id: str
    corpus_id: str
    summary: str
    concepts: list[str] = Field(default_factory=list)
    key_points: list[str] = Field(default_factory=list)


# === JOBS AND PROGRESS ===


class ProgressEvent(BaseModel):
    """Milestone emitted while a comparison runs."""

    stage: ProgressStage
    progress: float = Field(ge=0.0, le=100.0)
    message: str


class ComparisonJob(BaseModel):
    """Status snapshot of one directed corpus-pair comparison."""

    job_id: str
    source_corpus_id: str
    target_corpus_id: str
    status: JobStatus = "pending"
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    message: str = ""
    error: str | None = None
    relation_count: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ComparisonConfig(BaseModel):
    """Per-job comparison parameters, passed explicitly to every selection."""

    model_config = ConfigDict(frozen=True)

    threshold: float
    top_k: int = Field(ge=1)
    mode: Literal["interactive", "automatic"] = "interactive"

    @classmethod
    def interactive(cls, settings: Settings, **overrides: object) -> ComparisonConfig:
        """User-directed comparison with the tunable threshold."""
        values: dict[str, object] = {
            "threshold": settings.similarity_threshold,
            "top_k": settings.compare_all_top_k,
            "mode": "interactive",
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]

    @classmethod
    def automatic(cls, settings: Settings) -> ComparisonConfig:
        """Unattended corpus-pair discovery with its own threshold and a smaller top-k."""
        return cls(
            threshold=settings.auto_similarity_threshold,
            top_k=settings.auto_top_k,
            mode="automatic",
        )
