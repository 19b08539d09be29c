from __future__ import annotations

import logging
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from pathlib import Path
from typing import Iterable, Mapping, Protocol, Union

import yaml


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TermMatch:
    term: str
    class_number: int
    score: float


@dataclass(frozen=True)
class TermValidation:
    found: bool
    suggestions: list[TermMatch] = field(default_factory=list)


class TermCatalog(Protocol):
    """Goods/services term lookup consulted before the classification step."""

    def search(self, term: str, *, limit: int = 10) -> list[TermMatch]:
        ...

    def validate(self, term: str, class_number: int) -> TermValidation:
        ...


def _norm(s: str) -> str:
    return " ".join((s or "").lower().split())


def _similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, a, b).ratio()


class StaticTermCatalog:
    """
    In-memory term catalog with fuzzy matching.

    Match strategy: exact > contains > fuzzy (SequenceMatcher ratio).
    """

    def __init__(self, entries: Iterable[tuple[int, str]], *, min_score: float = 0.6) -> None:
        self._entries: list[tuple[int, str, str]] = [(int(c), t, _norm(t)) for c, t in entries if t]
        self.min_score = min_score

    @classmethod
    def from_mapping(cls, data: Mapping[object, Iterable[str]], **kwargs: float) -> "StaticTermCatalog":
        entries = [(int(str(k)), str(t)) for k, terms in data.items() for t in (terms or [])]
        return cls(entries, **kwargs)

    def __len__(self) -> int:
        return len(self._entries)

    def _score(self, query: str, candidate: str) -> float:
        if query == candidate:
            return 1.0
        if query in candidate or candidate in query:
            return 0.9
        return _similarity(query, candidate)

    def search(self, term: str, *, limit: int = 10) -> list[TermMatch]:
        q = _norm(term)
        if not q:
            return []
        hits = [
            TermMatch(term=t, class_number=c, score=round(self._score(q, n), 3))
            for c, t, n in self._entries
        ]
        hits = [h for h in hits if h.score >= self.min_score]
        hits.sort(key=lambda h: (-h.score, h.class_number, h.term))
        return hits[:limit]

    def validate(self, term: str, class_number: int) -> TermValidation:
        q = _norm(term)
        for c, _t, n in self._entries:
            if c == class_number and n == q:
                return TermValidation(found=True)
        suggestions = [m for m in self.search(term, limit=25) if m.class_number == class_number][:5]
        return TermValidation(found=False, suggestions=suggestions)


def load_term_catalog(path: Union[str, Path]) -> StaticTermCatalog:
    """
    Load a catalog from YAML (or JSON) shaped like `{classes: {9: ["Computersoftware", ...], 25: [...]}}`.
    A bare mapping of class -> terms is accepted as well.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Term catalog must be a mapping of class -> terms: {p}")
    data = raw.get("classes", raw)
    catalog = StaticTermCatalog.from_mapping(data)
    logger.info("Loaded term catalog with %d terms from %s", len(catalog), p)
    return catalog
