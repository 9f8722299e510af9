"""Inverted index over the operation catalogue.

Maps normalized terms, domains and operations to sets of entry names so that
a query touches only the terms it needs instead of scanning every entry.
An index is never modified after ``build_search_index`` returns; the
``SearchIndexService`` replaces it wholesale when a rebuild is requested.
"""

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from .models import CatalogueEntry

EXACT_MATCH_WEIGHT = 1.0
FUZZY_MATCH_WEIGHT = 0.7
PREFIX_MATCH_BONUS = 0.5

_SEPARATORS = re.compile(r"[-_]")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


@dataclass(frozen=True)
class IndexConfig:
    min_term_length: int = 2
    enable_fuzzy: bool = True
    max_edit_distance: int = 2


@dataclass(frozen=True)
class SearchIndex:
    terms: Dict[str, Set[str]]
    domains: Dict[str, Set[str]]
    operations: Dict[str, Set[str]]
    tools_by_id: Dict[str, CatalogueEntry]
    build_time: float
    generation: int = 0


def normalize_text(text: str) -> str:
    text = _SEPARATORS.sub(" ", text.lower())
    return _NON_ALNUM.sub("", text).strip()


def tokenize(text: str, min_length: int = 2) -> List[str]:
    return [term for term in normalize_text(text).split() if len(term) >= min_length]


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance between two strings (insertions, deletions, substitutions)"""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j - 1] + cost, current[j - 1] + 1, previous[j] + 1))
        previous = current
    return previous[-1]


def build_search_index(
    entries: Iterable[CatalogueEntry],
    config: Optional[IndexConfig] = None,
    generation: int = 0,
) -> SearchIndex:
    config = config or IndexConfig()
    terms: Dict[str, Set[str]] = {}
    domains: Dict[str, Set[str]] = {}
    operations: Dict[str, Set[str]] = {}
    tools_by_id: Dict[str, CatalogueEntry] = {}

    for entry in entries:
        tools_by_id[entry.name] = entry
        domains.setdefault(entry.domain.lower(), set()).add(entry.name)
        operations.setdefault(entry.operation.value, set()).add(entry.name)

        searchable = " ".join([entry.name, entry.domain, entry.resource, entry.operation.value, entry.summary])
        for term in tokenize(searchable, config.min_term_length):
            terms.setdefault(term, set()).add(entry.name)

    return SearchIndex(
        terms=terms,
        domains=domains,
        operations=operations,
        tools_by_id=tools_by_id,
        build_time=time.time(),
        generation=generation,
    )


def search_index(index: SearchIndex, query_terms: Iterable[str], config: Optional[IndexConfig] = None) -> Dict[str, float]:
    """Score entries against query terms

    Exact term hits add 1.0, fuzzy hits within the edit distance add
    ``(1 - distance / max_edit_distance) * 0.7`` and indexed terms that
    start with the query term add a flat 0.5. Scores accumulate.

    Returns:
        Mapping of entry name to accumulated score
    """
    config = config or IndexConfig()
    scores: Dict[str, float] = {}

    def add(names: Set[str], amount: float) -> None:
        for name in names:
            scores[name] = scores.get(name, 0.0) + amount

    for query_term in query_terms:
        normalized = normalize_text(query_term)
        if len(normalized) < config.min_term_length:
            continue

        exact = index.terms.get(normalized)
        if exact:
            add(exact, EXACT_MATCH_WEIGHT)

        for term, names in index.terms.items():
            if term == normalized:
                continue
            if config.enable_fuzzy and config.max_edit_distance > 0 and abs(len(term) - len(normalized)) <= config.max_edit_distance:
                distance = levenshtein_distance(normalized, term)
                if distance <= config.max_edit_distance:
                    add(names, (1 - distance / config.max_edit_distance) * FUZZY_MATCH_WEIGHT)
            if term.startswith(normalized):
                add(names, PREFIX_MATCH_BONUS)

    return scores


def filter_by_domain(index: SearchIndex, domains: Iterable[str]) -> Set[str]:
    result: Set[str] = set()
    for domain in domains:
        result |= index.domains.get(domain.lower(), set())
    return result


def filter_by_operation(index: SearchIndex, operations: Iterable[str]) -> Set[str]:
    result: Set[str] = set()
    for operation in operations:
        result |= index.operations.get(operation.lower(), set())
    return result


def get_index_stats(index: SearchIndex) -> dict:
    total_tools = len(index.tools_by_id)
    postings = sum(len(names) for names in index.terms.values())
    return {
        "total_tools": total_tools,
        "total_terms": len(index.terms),
        "total_domains": len(index.domains),
        "total_operations": len(index.operations),
        "avg_terms_per_tool": postings / total_tools if total_tools else 0,
        "build_time": index.build_time,
        "generation": index.generation,
        "age_seconds": time.time() - index.build_time,
    }


class SearchIndexService:
    """Owns the published search index for one catalogue

    The index is built on first use and cached. ``rebuild`` and ``clear``
    swap the reference; readers holding the previous index keep a complete,
    unchanged structure.
    """

    def __init__(self, entries_provider, config: Optional[IndexConfig] = None):
        self._entries_provider = entries_provider
        self.config = config or IndexConfig()
        self._index: Optional[SearchIndex] = None
        self._generation = 0
        self._lock = threading.Lock()

    def get(self) -> SearchIndex:
        index = self._index
        if index is not None:
            return index
        with self._lock:
            if self._index is None:
                self._index = self._build()
            return self._index

    def _build(self) -> SearchIndex:
        self._generation += 1
        started = time.perf_counter()
        index = build_search_index(self._entries_provider(), self.config, generation=self._generation)
        logging.info(
            f"[Search] Built index #{index.generation}: {len(index.tools_by_id)} tools, "
            f"{len(index.terms)} terms in {(time.perf_counter() - started) * 1000:.1f}ms"
        )
        return index

    def rebuild(self) -> SearchIndex:
        with self._lock:
            self._index = self._build()
            return self._index

    def clear(self) -> None:
        with self._lock:
            self._index = None

    @property
    def generation(self) -> int:
        return self._generation


__all__ = [
    "EXACT_MATCH_WEIGHT",
    "FUZZY_MATCH_WEIGHT",
    "PREFIX_MATCH_BONUS",
    "IndexConfig",
    "SearchIndex",
    "normalize_text",
    "tokenize",
    "levenshtein_distance",
    "build_search_index",
    "search_index",
    "filter_by_domain",
    "filter_by_operation",
    "get_index_stats",
    "SearchIndexService",
]
