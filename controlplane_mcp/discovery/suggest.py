"""Example request bodies for catalogue operations.

Examples are looked up in priority order: the example shipped with the
catalogue record, a curated example for common operations, and finally a
payload generated from the entry's required fields and recommended oneOf
options.
"""

import copy
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .catalogue import Catalogue
from .dependencies import DependencyGraph
from .models import CatalogueEntry, OneOfGroup

SOURCE_CATALOGUE = "catalogue"
SOURCE_CURATED = "curated"
SOURCE_GENERATED = "generated"

CURATED_EXAMPLES: Dict[str, Dict[str, Any]] = {
    "virtual-create-http-loadbalancer": {
        "metadata": {"name": "example-http-lb", "namespace": "default"},
        "spec": {
            "domains": ["example.com"],
            "http": {"port": 80},
            "default_route_pools": [
                {"pool": {"name": "example-origin-pool", "namespace": "default"}, "weight": 1}
            ],
        },
    },
    "virtual-create-origin-pool": {
        "metadata": {"name": "example-origin-pool", "namespace": "default"},
        "spec": {
            "origin_servers": [{"public_name": {"dns_name": "backend.example.com"}}],
            "port": 80,
            "no_tls": {},
        },
    },
    "virtual-create-healthcheck": {
        "metadata": {"name": "example-healthcheck", "namespace": "default"},
        "spec": {
            "http_health_check": {"path": "/health", "expected_status_codes": ["200"]},
            "timeout": 3,
            "interval": 15,
            "unhealthy_threshold": 1,
            "healthy_threshold": 3,
        },
    },
    "waf-create-app-firewall": {
        "metadata": {"name": "example-app-firewall", "namespace": "default"},
        "spec": {"blocking": {}, "default_detection_settings": {}, "use_default_blocking_page": {}},
    },
    "dns-create-dns-zone": {
        "metadata": {"name": "example-com-zone", "namespace": "system"},
        "spec": {
            "primary": {
                "default_soa_parameters": {
                    "refresh": 86400,
                    "retry": 7200,
                    "expire": 3600000,
                    "negative_ttl": 300,
                    "ttl": 3600,
                },
                "default_ttl": 3600,
            },
        },
    },
    "tenant-create-namespace": {
        "metadata": {"name": "example-namespace", "namespace": "system"},
        "spec": {},
    },
}

# Values for generated payloads, keyed by the last segment of a field path.
FIELD_DEFAULTS: Dict[str, Any] = {
    "domains": ["example.com"],
    "port": 80,
    "origin_servers": [{"public_name": {"dns_name": "backend.example.com"}}],
    "labels": {},
}

_SOURCE_NOTES = {
    SOURCE_CATALOGUE: ["Example shipped with the operation catalogue"],
    SOURCE_CURATED: [
        "Complete example based on common usage patterns",
        "Modify the values to match your requirements",
    ],
    SOURCE_GENERATED: [
        "Generated from the operation's required fields",
        "Review and fill in values before executing",
    ],
}


@dataclass
class SuggestionResult:
    tool_name: str
    example_payload: Dict[str, Any]
    description: str
    source: str
    required_fields: List[str] = field(default_factory=list)
    one_of_groups: List[OneOfGroup] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool_name": self.tool_name,
            "example_payload": self.example_payload,
            "description": self.description,
            "source": self.source,
            "required_fields": self.required_fields,
            "one_of_groups": [
                {
                    "choice_field": g.choice_field,
                    "options": list(g.options),
                    "recommended_option": g.recommended_option,
                }
                for g in self.one_of_groups
            ],
            "notes": self.notes,
        }


def _merge_groups(*sources: Iterable[OneOfGroup]) -> List[OneOfGroup]:
    merged: Dict[str, OneOfGroup] = {}
    for groups in sources:
        for group in groups:
            merged.setdefault(group.choice_field, group)
    return list(merged.values())


def _has_path(payload: Dict[str, Any], path: str) -> bool:
    current: Any = payload
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return False
        current = current[part]
    return True


def _set_path(payload: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = payload
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _default_namespace(entry: CatalogueEntry) -> str:
    return "system" if "/namespaces/system/" in entry.path else "default"


def generate_example_payload(entry: CatalogueEntry, one_of_groups: Iterable[OneOfGroup] = ()) -> Optional[Dict[str, Any]]:
    """Skeleton body from required fields and recommended oneOf options

    Returns:
        The payload, or None when the operation takes no request body
    """
    if not entry.request_body_ref and not entry.required_fields:
        return None

    payload: Dict[str, Any] = {
        "metadata": {"name": f"example-{entry.resource}", "namespace": _default_namespace(entry)},
        "spec": {},
    }
    for field_path in entry.required_fields:
        if _has_path(payload, field_path):
            continue
        value = FIELD_DEFAULTS.get(field_path.split(".")[-1], {})
        _set_path(payload, field_path, copy.deepcopy(value))

    for group in one_of_groups:
        if not group.recommended_option or any(_has_path(payload, o) for o in group.options):
            continue
        _set_path(payload, group.recommended_option, {})
    return payload


def one_of_notes(groups: Iterable[OneOfGroup]) -> List[str]:
    notes = []
    for group in groups:
        note = f"Configuration choice ({group.choice_field}): {', '.join(group.options)}"
        if group.recommended_option:
            note += f" (Recommended: {group.recommended_option})"
        notes.append(note)
    return notes


def _catalogue_example(entry: CatalogueEntry) -> Optional[Dict[str, Any]]:
    if not entry.example_json:
        return None
    try:
        payload = json.loads(entry.example_json)
    except json.JSONDecodeError as e:
        logging.warning(f"[Suggest] Ignoring unreadable example for {entry.name}: {e}")
        return None
    return payload if isinstance(payload, dict) else None


def suggest_parameters(
    catalogue: Catalogue,
    tool_name: str,
    graph: Optional[DependencyGraph] = None,
) -> Optional[SuggestionResult]:
    """Example body for a tool, or None when the tool is unknown or takes no body"""
    entry = catalogue.get(tool_name)
    if entry is None:
        return None

    groups = _merge_groups(
        entry.one_of_groups,
        graph.get_one_of_groups(entry.domain, entry.resource) if graph is not None else [],
    )
    label = f"{entry.resource} {entry.operation.value}"

    payload = _catalogue_example(entry)
    source = SOURCE_CATALOGUE
    description = f"Example payload for {label}"
    if payload is None and tool_name in CURATED_EXAMPLES:
        payload = copy.deepcopy(CURATED_EXAMPLES[tool_name])
        source = SOURCE_CURATED
        description = f"Curated example payload for {label}"
    if payload is None:
        payload = generate_example_payload(entry, groups)
        source = SOURCE_GENERATED
        description = f"Generated example payload for {label}"
    if payload is None:
        return None

    return SuggestionResult(
        tool_name=tool_name,
        example_payload=payload,
        description=description,
        source=source,
        required_fields=list(entry.required_fields),
        one_of_groups=groups,
        notes=_SOURCE_NOTES[source] + one_of_notes(groups),
    )


def format_suggestion(result: SuggestionResult) -> str:
    lines = [f"{result.description} ({result.source})", ""]
    if result.required_fields:
        lines.append(f"Required fields: {', '.join(result.required_fields)}")
    lines += [f" • {note}" for note in result.notes]
    return "\n".join(lines)


__all__ = [
    "CURATED_EXAMPLES",
    "SuggestionResult",
    "generate_example_payload",
    "one_of_notes",
    "suggest_parameters",
    "format_suggestion",
]
