# src/relations/parsing.py
"""Layered parsing of classifier responses.

Each strategy is a pure function (text) -> (items, ok). They are tried in
order and the first one reporting ok wins. Items are then validated one by
one against RelationItem; a bad item is dropped, never the whole response.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from passagelink.core.models import RelationType

logger = logging.getLogger(__name__)

RawItems = list[dict[str, Any]]
ParserStrategy = Callable[[str], tuple[RawItems | None, bool]]

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)\s*```")
_FRAGMENT_RE = re.compile(r"\{[^{}]*\"passage_id\"\s*:\s*\"[^\"]*\"[^{}]*\}")


class RelationItem(BaseModel):
    """One relation object as the oracle is asked to return it."""

    model_config = ConfigDict(extra="ignore")

    passage_id: str
    relation: RelationType
    evidence: str = ""
    focus_passage_id: str | None = None

    @field_validator("relation", mode="before")
    @classmethod
    def normalize_relation(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("passage_id", "focus_passage_id", mode="before")
    @classmethod
    def normalize_id(cls, v: Any) -> Any:
        # Ids are strings; models occasionally emit bare integers
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("evidence", mode="before")
    @classmethod
    def normalize_evidence(cls, v: Any) -> Any:
        return "" if v is None else v


def _as_items(value: Any) -> RawItems | None:
    """Coerce decoded JSON into a list of objects, or None if unusable.

    A non-empty list holding no objects is unusable; "[]" is a valid empty answer.
    """
    if isinstance(value, list):
        items = [v for v in value if isinstance(v, dict)]
        return items if items or not value else None
    if isinstance(value, dict):
        for key in ("relations", "results", "items"):
            if isinstance(value.get(key), list):
                return _as_items(value[key])
        if "passage_id" in value:
            return [value]
    return None


def _loads(text: str) -> RawItems | None:
    try:
        return _as_items(json.loads(text))
    except (json.JSONDecodeError, ValueError):
        return None


def parse_fenced(text: str) -> tuple[RawItems | None, bool]:
    """Strip an outer markdown code fence, then parse the inside."""
    match = _FENCE_RE.search(text)
    if match is None:
        return None, False
    items = _loads(match.group(1))
    return items, items is not None


def parse_bracket_slice(text: str) -> tuple[RawItems | None, bool]:
    """Parse the substring from the first '[' to the last ']'."""
    start = text.find("[")
    end = text.rfind("]")
    if start == -1 or end <= start:
        return None, False
    items = _loads(text[start:end + 1])
    return items, items is not None


def parse_raw(text: str) -> tuple[RawItems | None, bool]:
    """Parse the whole response as JSON."""
    items = _loads(text.strip())
    return items, items is not None


def parse_object_fragments(text: str) -> tuple[RawItems | None, bool]:
    """Scan for individual passage_id objects; keep whichever parse."""
    items: RawItems = []
    for fragment in _FRAGMENT_RE.findall(text):
        try:
            value = json.loads(fragment)
        except (json.JSONDecodeError, ValueError):
            logger.debug("Skipping unparseable fragment: %.80s", fragment)
            continue
        if isinstance(value, dict):
            items.append(value)
    return (items, True) if items else (None, False)


PARSER_STRATEGIES: tuple[tuple[str, ParserStrategy], ...] = (
    ("fenced", parse_fenced),
    ("bracket_slice", parse_bracket_slice),
    ("raw", parse_raw),
    ("fragments", parse_object_fragments),
)


def parse_response(
    text: str,
    strategies: tuple[tuple[str, ParserStrategy], ...] = PARSER_STRATEGIES,
) -> tuple[RawItems, str | None]:
    """Run strategies in order.

    Returns:
        (raw items, name of the strategy that succeeded). When every
        strategy fails the result is ([], None).
    """
    for name, strategy in strategies:
        items, ok = strategy(text)
        if ok and items is not None:
            return items, name
    return [], None


def validate_items(raw_items: RawItems) -> tuple[list[RelationItem], list[str]]:
    """Validate raw items; returns (valid items, one diagnostic per rejected item)."""
    valid: list[RelationItem] = []
    rejected: list[str] = []
    for index, raw in enumerate(raw_items):
        try:
            valid.append(RelationItem.model_validate(raw))
        except ValidationError as exc:
            errors = "; ".join(
                f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()
            )
            rejected.append(f"item {index} malformed ({errors})")
    return valid, rejected
