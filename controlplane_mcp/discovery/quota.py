"""Quota admission checks for resource creation.

Usage is looked up per namespace from the control plane and cached per
``namespace:resource`` pair. Lookup failures never block a request: the
check fails open with unlimited quota.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote

from ..transport import APIClient, RemoteCallError
from ..utils.config import env_float, env_int
from .models import QuotaCheckResult, QuotaInfo

DEFAULT_QUOTA_CACHE_TTL = 300.0

# Resource names used by the catalogue differ from the quota API's object names.
QUOTA_RESOURCE_MAP: Dict[str, str] = {
    "http-loadbalancer": "http_loadbalancer",
    "tcp-loadbalancer": "tcp_loadbalancer",
    "origin-pool": "origin_pool",
    "healthcheck": "healthcheck",
    "dns-zone": "dns_zone",
    "dns-lb-pool": "dns_lb_pool",
    "waf-policy": "app_firewall",
    "app-firewall": "app_firewall",
    "service-policy": "service_policy",
    "aws-vpc-site": "aws_vpc_site",
    "azure-vnet-site": "azure_vnet_site",
    "gcp-vpc-site": "gcp_vpc_site",
    "namespace": "namespace",
    "api-credential": "api_credential",
}


def get_quota_resource_type(resource: str) -> str:
    return QUOTA_RESOURCE_MAP.get(resource, resource.replace("-", "_"))


@dataclass(frozen=True)
class QuotaThresholds:
    """Usage percentages at which a quota turns yellow and red"""
    yellow: int = 80
    red: int = 100

    @classmethod
    def from_env(cls) -> "QuotaThresholds":
        yellow = env_int("QUOTA_YELLOW_THRESHOLD", cls.yellow)
        red = env_int("QUOTA_RED_THRESHOLD", cls.red)
        if yellow >= red:
            logging.warning(f"[Quota] Yellow threshold {yellow} is not below red threshold {red}, using defaults")
            return cls()
        return cls(yellow=yellow, red=red)


def get_threshold_level(percentage: float, thresholds: Optional[QuotaThresholds] = None) -> str:
    thresholds = thresholds or QuotaThresholds()
    if percentage >= thresholds.red:
        return "red"
    if percentage >= thresholds.yellow:
        return "yellow"
    return "green"


def calculate_quota_info(current: float, limit: float, thresholds: Optional[QuotaThresholds] = None) -> QuotaInfo:
    remaining = max(0, limit - current)
    percentage = round(current / limit * 100) if limit > 0 and limit != float("inf") else 0
    return QuotaInfo(
        limit=limit,
        current=current,
        remaining=remaining,
        percentage=percentage,
        threshold=get_threshold_level(percentage, thresholds),
    )


@dataclass
class QuotaUsage:
    resource_type: str
    current: float
    limit: float


def parse_quota_usage(payload: Dict[str, Any]) -> List[QuotaUsage]:
    """Flatten the quota usage payload into one record per object type

    Understands the ``quota_usage``, ``objects``, ``float_quota_usage`` and
    ``usage`` sections; missing limits are treated as unlimited.
    """
    usage: List[QuotaUsage] = []
    for section in ("quota_usage", "objects"):
        for resource_type, info in (payload.get(section) or {}).items():
            usage.append(QuotaUsage(
                resource_type=resource_type,
                current=(info.get("usage") or {}).get("current", 0),
                limit=(info.get("limit") or {}).get("maximum", float("inf")),
            ))
    for resource_type, info in (payload.get("float_quota_usage") or {}).items():
        usage.append(QuotaUsage(resource_type=resource_type, current=info.get("usage", 0), limit=float("inf")))
    for item in payload.get("usage") or []:
        usage.append(QuotaUsage(
            resource_type=item["resource_type"],
            current=item.get("current", 0),
            limit=item.get("limit", float("inf")),
        ))
    return usage


def _amount(value: float) -> Any:
    if value == float("inf"):
        return "unlimited"
    return int(value) if float(value).is_integer() else value


@dataclass
class QuotaStatus:
    resource_type: str
    namespace: str
    limits: QuotaInfo

    def to_dict(self) -> Dict[str, Any]:
        info = self.limits
        return {
            "resource_type": self.resource_type,
            "namespace": self.namespace,
            "limit": _amount(info.limit),
            "current": _amount(info.current),
            "remaining": _amount(info.remaining),
            "percentage": info.percentage,
            "threshold": info.threshold,
        }


class QuotaService:
    """Quota lookups with a per namespace+resource TTL cache

    Args:
        cache_ttl: Seconds a fetched status stays valid
        thresholds: Yellow/red percentage thresholds
        clock: Monotonic clock, injectable for tests
    """

    def __init__(
        self,
        cache_ttl: float = DEFAULT_QUOTA_CACHE_TTL,
        thresholds: Optional[QuotaThresholds] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cache_ttl = cache_ttl
        self.thresholds = thresholds or QuotaThresholds()
        self._clock = clock
        self._cache: Dict[str, tuple] = {}

    @staticmethod
    def cache_key(namespace: str, resource_type: str) -> str:
        return f"{namespace}:{resource_type}:quota"

    async def fetch_quota_usage(self, namespace: str, client: APIClient) -> Dict[str, Any]:
        response = await client.get(f"/web/namespaces/{quote(namespace, safe='')}/quota/usage")
        if not response.ok:
            raise RemoteCallError(f"Quota usage lookup returned {response.status}", response.status)
        return response.data if isinstance(response.data, dict) else {}

    async def get_quota_status(self, namespace: str, resource_type: str, client: APIClient) -> QuotaStatus:
        key = self.cache_key(namespace, resource_type)
        cached = self._cache.get(key)
        if cached is not None:
            stored_at, status = cached
            if self._clock() - stored_at <= self.cache_ttl:
                return status
            del self._cache[key]

        usage = parse_quota_usage(await self.fetch_quota_usage(namespace, client))
        api_type = get_quota_resource_type(resource_type)
        match = next((u for u in usage if u.resource_type == api_type), None)
        if match is None:
            logging.warning(f"[Quota] {api_type} not present in quota data for namespace {namespace}")
            info = QuotaInfo.unlimited()
        else:
            info = calculate_quota_info(match.current, match.limit, self.thresholds)

        status = QuotaStatus(resource_type=resource_type, namespace=namespace, limits=info)
        self._cache[key] = (self._clock(), status)
        return status

    async def check_quota_availability(self, namespace: str, resource_type: str, client: APIClient) -> QuotaCheckResult:
        try:
            status = await self.get_quota_status(namespace, resource_type, client)
        except Exception as e:
            logging.error(f"[Quota] Quota check failed for {resource_type} in {namespace}: {e}")
            return QuotaCheckResult(
                allowed=True,
                quota_info=QuotaInfo.unlimited(),
                reason="Quota check failed - proceeding without quota validation",
            )

        allowed = status.limits.threshold != "red"
        return QuotaCheckResult(
            allowed=allowed,
            quota_info=status.limits,
            reason=None if allowed else f"Cannot create additional {resource_type} resources.",
        )

    async def get_all_namespace_quotas(self, namespace: str, client: APIClient) -> List[QuotaStatus]:
        usage = parse_quota_usage(await self.fetch_quota_usage(namespace, client))
        return [
            QuotaStatus(u.resource_type, namespace, calculate_quota_info(u.current, u.limit, self.thresholds))
            for u in usage
        ]

    def clear_namespace_cache(self, namespace: str) -> None:
        for key in [k for k in self._cache if k.startswith(f"{namespace}:")]:
            del self._cache[key]

    def clear(self) -> None:
        self._cache.clear()


def create_quota_service_from_env() -> QuotaService:
    return QuotaService(
        cache_ttl=env_float("QUOTA_CACHE_TTL", DEFAULT_QUOTA_CACHE_TTL),
        thresholds=QuotaThresholds.from_env(),
    )


_STATUS_ICONS = {"green": "✅", "yellow": "⚠️", "red": "❌"}
_STATUS_TEXT = {
    "green": "Available capacity",
    "yellow": "Approaching limit",
    "red": "At limit - cannot create resources",
}


def format_quota_error(check: QuotaCheckResult) -> str:
    info = check.quota_info
    reason = check.reason or "Cannot create additional resources."
    return f"Resource quota limit reached: {info.current}/{info.limit} used ({info.percentage}%). {reason}"


def format_quota_warning(info: QuotaInfo, resource_type: str) -> str:
    return f"Quota approaching limit: {info.current}/{info.limit} used ({info.percentage}%) for {resource_type}"


def format_quota_status(status: QuotaStatus) -> str:
    info = status.limits
    lines = [
        f"Quota Status for {status.resource_type}",
        "",
        f"Namespace: {status.namespace}",
        f"Current Usage: {info.current}/{info.limit} ({info.percentage}%)",
        f"Remaining: {info.remaining}",
        f"Status: {_STATUS_ICONS[info.threshold]} {_STATUS_TEXT[info.threshold]}",
    ]
    if info.threshold == "red":
        lines += [
            "",
            "Action Required:",
            f"1. Delete unused {status.resource_type} resources in '{status.namespace}' namespace",
            "2. Request a quota increase",
            "3. Use a different namespace with available quota",
        ]
    elif info.threshold == "yellow":
        lines += ["", f"Recommendation: review and clean up unused {status.resource_type} resources before reaching the limit."]
    return "\n".join(lines)


def format_quota_table(statuses: List[QuotaStatus]) -> str:
    if not statuses:
        return "No quota information available."
    width = max(len("Resource"), *(len(s.resource_type) for s in statuses))
    header = f"{'Resource':<{width}} | {'Limit':<9} | Current | Remaining | Usage | Status"
    rows = [header, "-" * len(header)]
    for status in statuses:
        info = status.limits
        rows.append(
            f"{status.resource_type:<{width}} | {str(_amount(info.limit)):>9} | {str(_amount(info.current)):>7} | "
            f"{str(_amount(info.remaining)):>9} | {str(info.percentage) + '%':>5} | {_STATUS_ICONS[info.threshold]}"
        )
    return "\n".join(rows)


__all__ = [
    "QUOTA_RESOURCE_MAP",
    "get_quota_resource_type",
    "QuotaThresholds",
    "get_threshold_level",
    "calculate_quota_info",
    "QuotaUsage",
    "parse_quota_usage",
    "QuotaStatus",
    "QuotaService",
    "create_quota_service_from_env",
    "format_quota_error",
    "format_quota_warning",
    "format_quota_status",
    "format_quota_table",
]
