"""Natural language search across the operation catalogue."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .dependencies import DependencyGraph
from .models import CatalogueEntry, DangerLevel, Operation
from .search_index import (
    SearchIndex,
    filter_by_domain,
    filter_by_operation,
    normalize_text,
    search_index,
    tokenize,
)

DOMAIN_BOOST = 1.2
OPERATION_BOOST = 1.3
RESOURCE_BOOST = 1.4

_OPERATION_TERMS = ("create", "get", "list", "update", "delete", "patch")


@dataclass
class SearchResult:
    """One ranked search hit

    Args:
        entry: Matching catalogue entry
        score: Normalized relevance in (0, 1]
        matched_terms: Query terms the ranking was computed from
        prerequisites: Prerequisite hint for create operations, when requested
    """
    entry: CatalogueEntry
    score: float
    matched_terms: List[str] = field(default_factory=list)
    prerequisites: Optional[dict] = None

    def to_dict(self) -> dict:
        result = {
            "tool": {
                "name": self.entry.name,
                "domain": self.entry.domain,
                "resource": self.entry.resource,
                "operation": self.entry.operation.value,
                "method": self.entry.method.value,
                "path": self.entry.path,
                "summary": self.entry.summary,
                "danger_level": self.entry.danger_level.value if self.entry.danger_level else None,
            },
            "score": round(self.score, 4),
            "matched_terms": self.matched_terms,
        }
        if self.prerequisites is not None:
            result["prerequisites"] = self.prerequisites
        return result


def _boosted_score(entry: CatalogueEntry, query: str, base_score: float, term_count: int) -> float:
    score = base_score / term_count
    words = query.split()
    first_word = normalize_text(words[0]) if words else ""
    if first_word in normalize_text(entry.domain):
        score *= DOMAIN_BOOST

    lowered = query.lower()
    for op_term in _OPERATION_TERMS:
        if op_term in lowered and entry.operation.value == op_term:
            score *= OPERATION_BOOST
            break

    if normalize_text(query) in normalize_text(entry.resource):
        score *= RESOURCE_BOOST

    return min(score, 1.0)


def _prerequisite_hint(entry: CatalogueEntry, graph: DependencyGraph) -> Optional[dict]:
    prerequisites = graph.get_prerequisite_resources(entry.domain, entry.resource)
    optional = [r for r in graph.get_prerequisite_resources(entry.domain, entry.resource, include_optional=True) if not r.required]
    if not prerequisites and graph.get_resource_dependencies(entry.domain, entry.resource) is None:
        return None
    if prerequisites:
        hint = f"To create {entry.resource}, you first need: {', '.join(r.resource_type for r in prerequisites)}"
    else:
        hint = f"No strict prerequisites for {entry.resource}"
    return {
        "resources": [r.key for r in prerequisites],
        "optional": [r.key for r in optional],
        "hint": hint,
    }


def search_tools(
    index: SearchIndex,
    query: str,
    limit: int = 10,
    domains: Optional[Iterable[str]] = None,
    operations: Optional[Iterable[str]] = None,
    min_score: float = 0.1,
    exclude_dangerous: bool = False,
    include_dependencies: bool = False,
    graph: Optional[DependencyGraph] = None,
) -> List[SearchResult]:
    """Rank catalogue entries against a natural language query

    Args:
        index: Published search index
        query: Free-form query, e.g. "create http load balancer"
        limit: Maximum number of results
        domains: Restrict results to these domains
        operations: Restrict results to these operations
        min_score: Drop results scoring below this value
        exclude_dangerous: Drop entries classified as high danger
        include_dependencies: Attach prerequisite hints to create operations
        graph: Dependency graph used for prerequisite hints

    Returns:
        Results ordered by score descending, ties broken by entry name
    """
    query_terms = tokenize(query)
    if not query_terms:
        return []
    scores = search_index(index, query_terms)

    candidates = None
    domains = list(domains or [])
    operations = list(operations or [])
    if domains:
        candidates = filter_by_domain(index, domains)
    if operations:
        by_operation = filter_by_operation(index, operations)
        candidates = by_operation if candidates is None else candidates & by_operation

    results: List[SearchResult] = []
    for name, base_score in scores.items():
        if candidates is not None and name not in candidates:
            continue
        entry = index.tools_by_id.get(name)
        if entry is None:
            continue
        if exclude_dangerous and entry.danger_level is DangerLevel.HIGH:
            continue

        score = _boosted_score(entry, query, base_score, len(query_terms))
        if score < min_score:
            continue

        result = SearchResult(entry=entry, score=score, matched_terms=list(query_terms))
        if include_dependencies and graph is not None and entry.operation is Operation.CREATE:
            result.prerequisites = _prerequisite_hint(entry, graph)
        results.append(result)

    results.sort(key=lambda r: (-r.score, r.entry.name))
    logging.info(f"[Search] '{query}' matched {len(results)} tools, returning {min(len(results), limit)}")
    return results[:limit]


def get_tools_by_domain(index: SearchIndex, domain: str) -> List[CatalogueEntry]:
    names = filter_by_domain(index, [domain])
    return sorted((index.tools_by_id[n] for n in names), key=lambda e: e.name)


def get_tools_by_resource(index: SearchIndex, resource: str) -> List[CatalogueEntry]:
    normalized = normalize_text(resource)
    scores = search_index(index, tokenize(normalized))
    matches = [
        index.tools_by_id[name]
        for name in scores
        if normalized in normalize_text(index.tools_by_id[name].resource)
    ]
    return sorted(matches, key=lambda e: e.name)


def get_available_domains(index: SearchIndex) -> List[str]:
    return sorted({entry.domain for entry in index.tools_by_id.values()})


def get_tool_count_by_domain(index: SearchIndex) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for entry in index.tools_by_id.values():
        counts[entry.domain] = counts.get(entry.domain, 0) + 1
    return dict(sorted(counts.items()))


__all__ = [
    "DOMAIN_BOOST",
    "OPERATION_BOOST",
    "RESOURCE_BOOST",
    "SearchResult",
    "search_tools",
    "get_tools_by_domain",
    "get_tools_by_resource",
    "get_available_domains",
    "get_tool_count_by_domain",
]
