"""Resource dependency graph.

An explicit adjacency structure keyed by ``(domain, resource)``. Each node
lists the resources it requires, the resources that require it, its
mutually exclusive body field groups and the add-on subscriptions it needs.

Lookups resolve a resource in this order: the exact ``(domain, resource)``
key, then the only node with that resource name in any domain. Anything
else is unknown and contributes no edges.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .models import OneOfGroup, ResourceDependencies, ResourceRef, SubscriptionRequirement
from .catalogue import create_one_of_group_from_config, create_subscription_from_config

NodeKey = Tuple[str, str]

# Tier/category tags that imply an add-on subscription.
TIER_SUBSCRIPTIONS: Dict[str, SubscriptionRequirement] = {
    "advanced": SubscriptionRequirement(
        service="advanced", display_name="Advanced add-on services", tier="Advanced", required=True
    ),
    "security": SubscriptionRequirement(
        service="security", display_name="Security add-on services", tier="Security", required=True
    ),
}

REPORT_ACTIONS = ("prerequisites", "dependents", "oneOf", "subscriptions", "creationOrder", "full")


def node_key_str(key: NodeKey) -> str:
    return f"{key[0]}/{key[1]}"


@dataclass
class Traversal:
    """Result of walking prerequisite edges from one resource

    Args:
        order: Resources in creation order, prerequisites first
        depths: Distance of each resource from the start of the walk
        warnings: Cycles and depth truncations encountered
        truncated: Whether the depth limit cut off part of the graph
    """
    order: List[NodeKey] = field(default_factory=list)
    depths: Dict[NodeKey, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    truncated: bool = False
    cycles: List[List[str]] = field(default_factory=list)


def _ref_from_config(config: dict, required_default: bool = True) -> ResourceRef:
    return ResourceRef(
        domain=config["domain"],
        resource_type=config.get("resource_type") or config["resource"],
        required=config.get("required", required_default),
    )


class DependencyGraph:
    """Read-only dependency graph

    Args:
        nodes: Adjacency records keyed by (domain, resource)
    """

    def __init__(self, nodes: Dict[NodeKey, ResourceDependencies]):
        self._nodes = nodes
        self._by_resource: Dict[str, List[NodeKey]] = {}
        for key in nodes:
            self._by_resource.setdefault(key[1], []).append(key)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> "DependencyGraph":
        """Build a graph from the loader's dependency records

        Each record holds ``domain``, ``resource`` and optionally ``requires``,
        ``optional``, ``required_by``, ``one_of_groups``, ``subscriptions`` and
        ``tier``. Reverse edges are derived when ``required_by`` is absent.
        """
        nodes: Dict[NodeKey, ResourceDependencies] = {}
        for record in records:
            key = (record["domain"], record["resource"])
            requires = [_ref_from_config(r) for r in record.get("requires", [])]
            requires += [_ref_from_config(r, required_default=False) for r in record.get("optional", [])]
            nodes[key] = ResourceDependencies(
                domain=key[0],
                resource_type=key[1],
                requires=requires,
                required_by=[_ref_from_config(r) for r in record.get("required_by", [])],
                one_of_groups=[create_one_of_group_from_config(g) for g in record.get("one_of_groups", [])],
                subscriptions=[create_subscription_from_config(s) for s in record.get("subscriptions", [])],
                tier=record.get("tier"),
            )

        for key, node in list(nodes.items()):
            for ref in node.requires:
                target = nodes.get((ref.domain, ref.resource_type))
                if target is None:
                    continue
                if not any(d.domain == key[0] and d.resource_type == key[1] for d in target.required_by):
                    target.required_by.append(ResourceRef(key[0], key[1], ref.required))
        return cls(nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, key: NodeKey) -> bool:
        return key in self._nodes

    def resolve_key(self, domain: str, resource: str) -> Optional[NodeKey]:
        if (domain, resource) in self._nodes:
            return (domain, resource)
        candidates = self._by_resource.get(resource, [])
        if len(candidates) == 1:
            return candidates[0]
        return None

    def get_resource_dependencies(self, domain: str, resource: str) -> Optional[ResourceDependencies]:
        key = self.resolve_key(domain, resource)
        return self._nodes[key] if key else None

    def get_prerequisite_resources(self, domain: str, resource: str, include_optional: bool = False) -> List[ResourceRef]:
        node = self.get_resource_dependencies(domain, resource)
        if node is None:
            return []
        return [ref for ref in node.requires if ref.required or include_optional]

    def get_dependent_resources(self, domain: str, resource: str) -> List[ResourceRef]:
        node = self.get_resource_dependencies(domain, resource)
        return list(node.required_by) if node else []

    def get_one_of_groups(self, domain: str, resource: str) -> List[OneOfGroup]:
        node = self.get_resource_dependencies(domain, resource)
        return list(node.one_of_groups) if node else []

    def get_subscription_requirements(self, domain: str, resource: str) -> List[SubscriptionRequirement]:
        node = self.get_resource_dependencies(domain, resource)
        if node is None:
            return []
        requirements = list(node.subscriptions)
        implied = TIER_SUBSCRIPTIONS.get((node.tier or "").lower())
        if implied and all(r.service != implied.service for r in requirements):
            requirements.append(implied)
        return requirements

    def _edges(self, key: NodeKey, include_optional: bool) -> List[NodeKey]:
        node = self._nodes.get(key)
        if node is None:
            return []
        edges = []
        for ref in node.requires:
            if not ref.required and not include_optional:
                continue
            edges.append(self.resolve_key(ref.domain, ref.resource_type) or (ref.domain, ref.resource_type))
        return edges

    def traverse(
        self,
        domain: str,
        resource: str,
        include_optional: bool = False,
        max_depth: Optional[int] = None,
    ) -> Traversal:
        """Iterative depth-first walk over prerequisite edges

        Prerequisites are emitted before their dependents. An edge back onto
        the current path is a cycle: it is skipped and reported. Nodes deeper
        than ``max_depth`` are not visited and the walk is marked truncated.
        """
        start = self.resolve_key(domain, resource) or (domain, resource)
        result = Traversal()
        done = set()
        on_path = [start]
        stack: List[list] = [[start, 0, None]]

        while stack:
            frame = stack[-1]
            key, depth, children = frame
            if children is None:
                children = iter(self._edges(key, include_optional))
                frame[2] = children
            child = next(children, None)
            if child is None:
                stack.pop()
                on_path.pop()
                if key not in done:
                    done.add(key)
                    result.order.append(key)
                    result.depths[key] = depth
                continue
            if child in done:
                continue
            if child in on_path:
                cycle = [node_key_str(k) for k in on_path[on_path.index(child):]] + [node_key_str(child)]
                result.cycles.append(cycle)
                result.warnings.append(f"Dependency cycle detected: {' -> '.join(cycle)}; edge skipped")
                logging.warning(f"[Dependencies] Cycle detected: {' -> '.join(cycle)}")
                continue
            if max_depth is not None and depth + 1 > max_depth:
                result.truncated = True
                message = (
                    f"Maximum depth {max_depth} reached at {node_key_str(key)}; "
                    f"{node_key_str(child)} and its dependencies were not expanded"
                )
                if message not in result.warnings:
                    result.warnings.append(message)
                continue
            on_path.append(child)
            stack.append([child, depth + 1, None])

        return result

    def get_creation_order(self, domain: str, resource: str, include_optional: bool = False) -> List[str]:
        """Resources to create, prerequisites first, ending with the resource itself"""
        return [node_key_str(k) for k in self.traverse(domain, resource, include_optional).order]

    def get_all_domains(self) -> List[str]:
        return sorted({key[0] for key in self._nodes})

    def get_resources_in_domain(self, domain: str) -> List[str]:
        return sorted(key[1] for key in self._nodes if key[0] == domain)

    def get_available_addon_services(self) -> List[str]:
        services = set()
        for key in self._nodes:
            for requirement in self.get_subscription_requirements(*key):
                services.add(requirement.service)
        return sorted(services)

    def get_resources_requiring_subscription(self, service: str) -> List[str]:
        return sorted(
            node_key_str(key)
            for key in self._nodes
            if any(r.service == service for r in self.get_subscription_requirements(*key))
        )

    def get_dependency_stats(self) -> dict:
        edges = sum(len(node.requires) for node in self._nodes.values())
        return {
            "total_resources": len(self._nodes),
            "total_dependencies": edges,
            "resources_with_prerequisites": sum(1 for n in self._nodes.values() if n.requires),
            "resources_with_one_of_groups": sum(1 for n in self._nodes.values() if n.one_of_groups),
            "domains": self.get_all_domains(),
            "addon_services": self.get_available_addon_services(),
        }

    def generate_dependency_report(self, domain: str, resource: str, action: str = "full") -> dict:
        """Dependency information for one resource, narrowed by ``action``"""
        if action not in REPORT_ACTIONS:
            return {"success": False, "error": f"Unknown action '{action}'. Use one of: {', '.join(REPORT_ACTIONS)}"}
        node = self.get_resource_dependencies(domain, resource)
        if node is None:
            return {
                "success": False,
                "error": f"Resource '{domain}/{resource}' not found in dependency graph",
                "resource": resource,
                "domain": domain,
            }

        report = {"success": True, "resource": node.resource_type, "domain": node.domain}
        if action in ("prerequisites", "full"):
            report["prerequisites"] = [
                {"resource": r.key, "required": r.required} for r in node.requires
            ]
        if action in ("dependents", "full"):
            report["dependents"] = [r.key for r in node.required_by]
        if action in ("oneOf", "full"):
            report["one_of_groups"] = [
                {
                    "choice_field": g.choice_field,
                    "options": list(g.options),
                    "recommended_option": g.recommended_option,
                    "description": g.description,
                }
                for g in node.one_of_groups
            ]
        if action in ("subscriptions", "full"):
            report["subscriptions"] = [
                {"service": s.service, "display_name": s.display_name, "tier": s.tier, "required": s.required}
                for s in self.get_subscription_requirements(domain, resource)
            ]
        if action in ("creationOrder", "full"):
            traversal = self.traverse(domain, resource)
            report["creation_order"] = [node_key_str(k) for k in traversal.order]
            if traversal.warnings:
                report["warnings"] = traversal.warnings
        return report


class DependencyGraphService:
    """Owns the published dependency graph; ``clear`` drops it, next ``get`` reloads"""

    def __init__(self, records_provider: Callable[[], Iterable[dict]]):
        self._records_provider = records_provider
        self._graph: Optional[DependencyGraph] = None
        self._lock = threading.Lock()

    def get(self) -> DependencyGraph:
        graph = self._graph
        if graph is not None:
            return graph
        with self._lock:
            if self._graph is None:
                self._graph = DependencyGraph.from_records(self._records_provider())
                logging.info(f"[Dependencies] Loaded dependency graph with {len(self._graph)} resources")
            return self._graph

    def clear(self) -> None:
        with self._lock:
            self._graph = None


__all__ = [
    "TIER_SUBSCRIPTIONS",
    "REPORT_ACTIONS",
    "Traversal",
    "DependencyGraph",
    "DependencyGraphService",
    "node_key_str",
]
