"""Process-level container for the discovery and dispatch services.

Owns the catalogue and every shared service built from it (search index,
dependency graph, rate limiter, response cache, quota cache) and hands them
to the components that need them. Each service can be cleared on its own.
"""

import logging
from typing import List, Optional, Union

from ..transport import APIClient, Credentials
from ..utils.body_validation import BodyLimits, body_limits_from_env
from ..utils.config import env_flag
from ..utils.http_cache import HttpCache, create_http_cache_from_env
from ..utils.rate_limiter import RateLimiter, create_rate_limiter_from_env
from .catalogue import Catalogue
from .cost_estimator import (
    estimate_multiple_tools_cost,
    estimate_tool_cost,
    estimate_workflow_cost,
)
from .dependencies import DependencyGraph, DependencyGraphService
from .describe import describe_tool
from .execute import ExecuteOutcome, ExecutionDispatcher
from .models import CreationPlan, ExecuteParams, ResolveParams, ResolveResult, ValidationResult
from .quota import QuotaService, QuotaStatus, create_quota_service_from_env
from .resolver import generate_compact_plan, resolve_dependencies
from .search import SearchResult, get_tool_count_by_domain, search_tools
from .search_index import SearchIndex, SearchIndexService, get_index_stats
from .suggest import SuggestionResult, suggest_parameters
from .validate import validate_tool_params


class DiscoveryEngine:
    """Search, planning and dispatch over one catalogue

    Args:
        catalogue: Loaded operation catalogue
        credentials: Credentials for live execution; documentation mode when unconfigured
        rate_limiter: Token bucket for outgoing calls
        cache: GET response cache
        quota_service: Quota collaborator
        body_limits: Request body limits
        quota_check_enabled: Whether create operations are quota checked
        client_factory: Builds an API client from credentials
    """

    def __init__(
        self,
        catalogue: Catalogue,
        credentials: Optional[Credentials] = None,
        rate_limiter: Optional[RateLimiter] = None,
        cache: Optional[HttpCache] = None,
        quota_service: Optional[QuotaService] = None,
        body_limits: Optional[BodyLimits] = None,
        quota_check_enabled: bool = True,
        client_factory=None,
    ):
        self.catalogue = catalogue
        self.credentials = credentials or Credentials()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.cache = cache or HttpCache()
        self.quota_service = quota_service or QuotaService()
        self.search_index_service = SearchIndexService(lambda: self.catalogue.entries)
        self.dependency_graph_service = DependencyGraphService(lambda: self.catalogue.dependencies)
        self.client_factory = client_factory or APIClient
        self.dispatcher = ExecutionDispatcher(
            catalogue,
            self.rate_limiter,
            self.cache,
            quota_service=self.quota_service,
            credentials=self.credentials,
            body_limits=body_limits,
            quota_check_enabled=quota_check_enabled,
            client_factory=self.client_factory,
        )

    @classmethod
    def from_env(cls, catalogue: Catalogue) -> "DiscoveryEngine":
        return cls(
            catalogue,
            credentials=Credentials.from_env(),
            rate_limiter=create_rate_limiter_from_env(),
            cache=create_http_cache_from_env(),
            quota_service=create_quota_service_from_env(),
            body_limits=body_limits_from_env(),
            quota_check_enabled=env_flag("QUOTA_CHECK_ENABLED", True),
        )

    @property
    def index(self) -> SearchIndex:
        return self.search_index_service.get()

    @property
    def graph(self) -> DependencyGraph:
        return self.dependency_graph_service.get()

    def search(self, query: str, **options) -> List[SearchResult]:
        graph = self.graph if options.get("include_dependencies") else None
        return search_tools(self.index, query, graph=graph, **options)

    def describe(self, tool_name: str) -> Optional[dict]:
        return describe_tool(self.catalogue, tool_name, self.graph)

    def suggest(self, tool_name: str) -> Optional[SuggestionResult]:
        return suggest_parameters(self.catalogue, tool_name, self.graph)

    def validate(self, tool_name: str, path_params=None, query_params=None, body=None) -> ValidationResult:
        entry = self.catalogue.get(tool_name)
        extra = self.graph.get_one_of_groups(entry.domain, entry.resource) if entry else None
        return validate_tool_params(self.catalogue, tool_name, path_params, query_params, body, extra)

    def resolve(self, params: ResolveParams) -> ResolveResult:
        return resolve_dependencies(params, self.graph, self.catalogue)

    def compact_plan(self, params: ResolveParams) -> dict:
        return generate_compact_plan(params, self.graph, self.catalogue)

    def dependency_report(self, domain: str, resource: str, action: str = "full") -> dict:
        return self.graph.generate_dependency_report(domain, resource, action)

    async def execute(self, params: ExecuteParams, credentials: Optional[Credentials] = None) -> ExecuteOutcome:
        return await self.dispatcher.execute_tool(params, credentials)

    async def quota_status(self, namespace: str, resource_type: str) -> QuotaStatus:
        return await self.quota_service.get_quota_status(namespace, resource_type, self.client_factory(self.credentials))

    async def namespace_quotas(self, namespace: str, only_limited: bool = False) -> List[QuotaStatus]:
        statuses = await self.quota_service.get_all_namespace_quotas(namespace, self.client_factory(self.credentials))
        if only_limited:
            statuses = [s for s in statuses if 0 < s.limits.limit < float("inf")]
        return statuses

    def clear_quota_cache(self, namespace: Optional[str] = None) -> None:
        if namespace:
            self.quota_service.clear_namespace_cache(namespace)
        else:
            self.quota_service.clear()
        logging.info(f"[Engine] Cleared quota cache for {namespace or 'all namespaces'}")

    def estimate_cost(self, target: Union[str, List[str], CreationPlan]):
        if isinstance(target, CreationPlan):
            return estimate_workflow_cost(self.catalogue, target)
        if isinstance(target, str):
            return estimate_tool_cost(self.catalogue, target)
        return estimate_multiple_tools_cost(self.catalogue, target)

    def server_info(self) -> dict:
        stats = self.cache.get_stats()
        state = self.rate_limiter.get_state()
        return {
            "authentication_mode": self.credentials.auth_mode,
            "execution_enabled": self.credentials.configured,
            "tool_count": len(self.catalogue),
            "domains": get_tool_count_by_domain(self.index),
            "search_index": get_index_stats(self.index),
            "dependencies": self.graph.get_dependency_stats(),
            "cache": {
                "hits": stats.hits,
                "misses": stats.misses,
                "size": stats.size,
                "max_size": stats.max_size,
                "hit_rate": stats.hit_rate,
            },
            "rate_limiter": {
                "tokens": round(state.tokens, 2),
                "capacity": state.capacity,
                "refill_rate_per_second": state.refill_rate_per_second,
                "queued_requests": state.queued_requests,
            },
        }

    def clear(self) -> None:
        """Drop every derived structure and reset shared dispatch state"""
        self.search_index_service.clear()
        self.dependency_graph_service.clear()
        self.cache.clear()
        self.rate_limiter.reset()
        self.quota_service.clear()
        logging.info("[Engine] Cleared search index, dependency graph, cache, rate limiter and quota cache")


__all__ = [
    "DiscoveryEngine",
]
