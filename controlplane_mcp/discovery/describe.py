"""Full description of a single catalogue operation."""

from typing import Any, Dict, Optional

from .catalogue import Catalogue
from .dependencies import DependencyGraph
from .models import Operation


def describe_tool(catalogue: Catalogue, tool_name: str, graph: Optional[DependencyGraph] = None) -> Optional[Dict[str, Any]]:
    """Describe a tool's parameters, body and related resources

    Args:
        catalogue: Operation catalogue
        tool_name: Exact catalogue entry name
        graph: Dependency graph; when given, prerequisites and oneOf groups
            recorded for the resource are included

    Returns:
        Description dictionary, or None when the tool is unknown
    """
    entry = catalogue.get(tool_name)
    if entry is None:
        return None

    description = {
        "name": entry.name,
        "summary": entry.summary,
        "domain": entry.domain,
        "resource": entry.resource,
        "operation": entry.operation.value,
        "method": entry.method.value,
        "path": entry.path,
        "path_parameters": [
            {"name": p.name, "required": p.required, "description": p.description} for p in entry.path_parameters
        ],
        "query_parameters": [
            {"name": p.name, "required": p.required, "description": p.description} for p in entry.query_parameters
        ],
        "request_body": entry.request_body_ref,
        "danger_level": entry.danger_level.value if entry.danger_level else None,
        "required_fields": list(entry.required_fields),
        "one_of_groups": [
            {
                "choice_field": g.choice_field,
                "options": list(g.options),
                "recommended_option": g.recommended_option,
                "description": g.description,
            }
            for g in entry.one_of_groups
        ],
        "subscriptions": [
            {"service": s.service, "display_name": s.display_name, "tier": s.tier, "required": s.required}
            for s in entry.subscriptions
        ],
    }

    if graph is not None:
        known = {g["choice_field"] for g in description["one_of_groups"]}
        for group in graph.get_one_of_groups(entry.domain, entry.resource):
            if group.choice_field not in known:
                description["one_of_groups"].append({
                    "choice_field": group.choice_field,
                    "options": list(group.options),
                    "recommended_option": group.recommended_option,
                    "description": group.description,
                })
        if entry.operation is Operation.CREATE:
            description["prerequisites"] = [
                r.key for r in graph.get_prerequisite_resources(entry.domain, entry.resource)
            ]
    return description


__all__ = [
    "describe_tool",
]
