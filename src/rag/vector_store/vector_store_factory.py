# src/rag/vector_store/vector_store_factory.py
"""Factory: instantiate vector index from configuration."""

from __future__ import annotations

import logging

from passagelink.config.settings import Settings
from passagelink.rag.vector_store.base_vector_store import BaseVectorStore

logger = logging.getLogger(__name__)


class UnsupportedVectorStoreError(ValueError):
    """Raised when a vector store type is not supported."""


def create_vector_store(settings: Settings | None = None) -> BaseVectorStore:
    """Instantiate the configured vector index.

    Args:
        settings: Application settings (VECTOR_STORE_TYPE, VECTOR_DB_PATH).
            The in-memory index is used when omitted.

    Returns:
        Configured BaseVectorStore instance.

    Raises:
        UnsupportedVectorStoreError: If type is not supported.
    """
    store_type = settings.vector_store_type if settings is not None else "memory"

    if store_type == "memory":
        from passagelink.rag.vector_store.memory_store import MemoryVectorStore
        return MemoryVectorStore()

    if store_type == "chromadb":
        from passagelink.rag.vector_store.chromadb_store import ChromaDBStore
        return ChromaDBStore(persist_path=settings.vector_db_path)

    raise UnsupportedVectorStoreError(
        f"Unsupported vector store type: {store_type!r}. "
        f"Available: chromadb, memory"
    )
