# src/storage/store_factory.py
"""Factory: instantiate corpus, relation and summary stores from configuration."""

from __future__ import annotations

from passagelink.config.settings import Settings
from passagelink.storage.base_corpus_store import BaseCorpusStore
from passagelink.storage.base_relation_store import BaseRelationStore
from passagelink.storage.base_summary_store import BaseSummaryStore
from passagelink.storage.json_store import JsonCorpusStore, JsonRelationStore, JsonSummaryStore


def create_corpus_store(settings: Settings) -> BaseCorpusStore:
    """JSON corpus store rooted at STORE_ROOT."""
    return JsonCorpusStore(settings.store_root)


def create_relation_store(settings: Settings) -> BaseRelationStore:
    """JSON relation store rooted at STORE_ROOT."""
    return JsonRelationStore(settings.store_root)


def create_summary_store(settings: Settings) -> BaseSummaryStore:
    """JSON passage summary store rooted at STORE_ROOT."""
    return JsonSummaryStore(settings.store_root)
