# src/config/settings.py
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings. Comparison
jobs never read thresholds from here directly: they receive a
ComparisonConfig built from these defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === LLM (text-generation oracle) ===
    llm_provider: str = "compat"
    llm_model: str = "Llama-4-Maverick-17B-128E-Instruct-FP8"
    llm_base_url: str = "https://api.llama.com/compat/v1"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 2000

    # Provider API keys
    llm_api_key: str = ""
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # === EMBEDDINGS ===
    embedding_provider: str = "openai"
    embedding_model: str = "text-embedding-3-large"
    embedding_dimensions: int = 3072
    embedding_ollama_model: str = "nomic-embed-text"
    embedding_st_model: str = "all-MiniLM-L6-v2"
    embedding_batch_size: int = 32

    # === Comparison ===
    similarity_threshold: float = 0.75
    auto_similarity_threshold: float = 0.50
    compare_one_top_k: int = 5
    compare_all_top_k: int = 3
    auto_top_k: int = 2
    max_concurrency: int = 8

    # === Oracle calls ===
    oracle_timeout_s: float = 180.0
    embedding_timeout_s: float = 60.0
    oracle_max_retries: int = 2

    # === Full-context mode ===
    full_context_token_budget: int = 800_000
    full_context_reserved_tokens: int = 32_000
    chapter_short_passage_chars: int = 100
    chapter_target_segments: int = 10
    chapter_batch_size: int = 1

    # === Passage analysis ===
    analysis_batch_size: int = 5
    analysis_single_call_limit: int = 10

    # === Storage ===
    vector_store_type: Literal["memory", "chromadb"] = "memory"
    vector_db_path: Path = Path("~/.passagelink/vectordb")
    store_root: Path = Path("~/.passagelink/store")
    passage_target_size: int = 1500

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("similarity_threshold", "auto_similarity_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Cosine similarity lives in [-1, 1]."""
        if not -1.0 <= v <= 1.0:
            raise ValueError("similarity thresholds must be within [-1, 1]")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        for name in ("compare_one_top_k", "compare_all_top_k", "auto_top_k"):
            if getattr(self, name) < 1:
                errors.append(f"{name.upper()} must be >= 1")

        if self.max_concurrency < 1:
            errors.append("MAX_CONCURRENCY must be >= 1")

        if self.oracle_timeout_s <= 0 or self.embedding_timeout_s <= 0:
            errors.append("Oracle timeouts must be > 0")

        if self.oracle_max_retries < 0:
            errors.append("ORACLE_MAX_RETRIES must be >= 0")

        if self.full_context_reserved_tokens >= self.full_context_token_budget:
            errors.append(
                "FULL_CONTEXT_RESERVED_TOKENS must be < FULL_CONTEXT_TOKEN_BUDGET"
            )

        if self.chapter_target_segments < 1 or self.chapter_batch_size < 1:
            errors.append("Chapter segment settings must be >= 1")

        if self.analysis_batch_size < 1 or self.analysis_single_call_limit < 1:
            errors.append("Passage analysis batch settings must be >= 1")

        if self.embedding_batch_size < 1:
            errors.append("EMBEDDING_BATCH_SIZE must be >= 1")

        if self.passage_target_size < 1:
            errors.append("PASSAGE_TARGET_SIZE must be >= 1")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def full_context_limit(self) -> int:
        """Token estimate a corpus pair may reach and still run in one call."""
        return self.full_context_token_budget - self.full_context_reserved_tokens


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or per-job config).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
