"""Loading of the generated operation catalogue.

The catalogue itself is produced offline from the control plane's OpenAPI
documents. This module only reads that output, turns each record into a
frozen ``CatalogueEntry`` and refuses to start on malformed data.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from .models import (
    APIParameter,
    CatalogueEntry,
    DangerLevel,
    HTTPMethod,
    OneOfGroup,
    Operation,
    SubscriptionRequirement,
)


class CatalogueError(ValueError):
    """Raised for malformed or inconsistent catalogue data"""


def create_one_of_group_from_config(config: dict) -> OneOfGroup:
    return OneOfGroup(
        choice_field=config["choice_field"],
        options=tuple(config.get("options", [])),
        recommended_option=config.get("recommended_option"),
        description=config.get("description", ""),
    )


def create_subscription_from_config(config: dict) -> SubscriptionRequirement:
    return SubscriptionRequirement(
        service=config["service"],
        display_name=config.get("display_name", config["service"]),
        tier=config.get("tier", ""),
        required=config.get("required", True),
    )


def create_entry_from_config(config: dict) -> CatalogueEntry:
    """Create a CatalogueEntry from a configuration dictionary

    Args:
        config: Dictionary containing one generated tool record

    Returns:
        CatalogueEntry instance

    Raises:
        CatalogueError: If required keys are missing or values are invalid
    """
    try:
        danger = config.get("danger_level")
        return CatalogueEntry(
            name=config["name"],
            domain=config["domain"],
            resource=config["resource"],
            operation=Operation(config["operation"].lower()),
            method=HTTPMethod(config["method"].upper()),
            path=config["path"],
            summary=config.get("summary", ""),
            path_parameters=tuple(APIParameter(**p) for p in config.get("path_parameters", [])),
            query_parameters=tuple(APIParameter(**p) for p in config.get("query_parameters", [])),
            request_body_ref=config.get("request_body_ref"),
            danger_level=DangerLevel(danger.lower()) if danger else None,
            required_fields=tuple(config.get("required_fields", [])),
            one_of_groups=tuple(create_one_of_group_from_config(g) for g in config.get("one_of_groups", [])),
            subscriptions=tuple(create_subscription_from_config(s) for s in config.get("subscriptions", [])),
            tier=config.get("tier"),
            example_json=config.get("example_json"),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CatalogueError(f"Invalid catalogue record {config.get('name', '<unnamed>')!r}: {e}") from e


def check_dependency_record(config: dict) -> dict:
    """Check one dependency record before the graph is built from it

    Raises:
        CatalogueError: If the resource key or any edge, oneOf group or subscription is malformed
    """
    try:
        for key in ("domain", "resource"):
            if not isinstance(config[key], str) or not config[key]:
                raise ValueError(f"'{key}' must be a non-empty string")
        for edge in ("requires", "optional", "required_by"):
            for ref in config.get(edge, []):
                if not ref.get("domain") or not (ref.get("resource_type") or ref.get("resource")):
                    raise ValueError(f"{edge} entry {ref!r} needs a domain and a resource")
        for group in config.get("one_of_groups", []):
            create_one_of_group_from_config(group)
        for subscription in config.get("subscriptions", []):
            create_subscription_from_config(subscription)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        label = f"{config.get('domain')}/{config.get('resource')}" if isinstance(config, dict) else repr(config)
        raise CatalogueError(f"Invalid dependency record {label!r}: {e}") from e
    return config


class Catalogue(Mapping):
    """Immutable name -> entry lookup over the generated operations

    Args:
        entries: Catalogue entries; names must be unique

    Raises:
        CatalogueError: If two entries share a name
    """

    def __init__(self, entries: Iterable[CatalogueEntry], dependencies: Optional[List[dict]] = None):
        by_name: Dict[str, CatalogueEntry] = {}
        for entry in entries:
            if entry.name in by_name:
                raise CatalogueError(f"Duplicate catalogue entry '{entry.name}'")
            by_name[entry.name] = entry
        self._entries = MappingProxyType(by_name)
        self.dependencies: List[dict] = list(dependencies or [])

    def __getitem__(self, name: str) -> CatalogueEntry:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> List[CatalogueEntry]:
        return list(self._entries.values())

    def find_create_entry(self, domain: str, resource: str) -> Optional[CatalogueEntry]:
        """First create operation for a resource, preferring an exact domain match"""
        fallback = None
        for entry in self._entries.values():
            if entry.operation is not Operation.CREATE or entry.resource != resource:
                continue
            if entry.domain == domain:
                return entry
            if fallback is None:
                fallback = entry
        return fallback

    def has_resource(self, domain: str, resource: str) -> bool:
        return any(e.domain == domain and e.resource == resource for e in self._entries.values())

    def domain_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for entry in self._entries.values():
            counts[entry.domain] = counts.get(entry.domain, 0) + 1
        return dict(sorted(counts.items()))


def catalogue_from_document(document: Dict[str, Any]) -> Catalogue:
    entries = [create_entry_from_config(record) for record in document.get("tools", [])]
    dependencies = [check_dependency_record(record) for record in document.get("dependencies", [])]
    return Catalogue(entries, dependencies)


def load_catalogue(path: Union[str, Path]) -> Catalogue:
    """Read a generated catalogue document from disk

    Raises:
        CatalogueError: If the file cannot be parsed or holds invalid records
    """
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogueError(f"Cannot read catalogue {path}: {e}") from e
    catalogue = catalogue_from_document(document)
    logging.info(
        f"[Catalogue] Loaded {len(catalogue)} operations and {len(catalogue.dependencies)} dependency records from {path}"
    )
    return catalogue


__all__ = [
    "CatalogueError",
    "Catalogue",
    "create_entry_from_config",
    "create_one_of_group_from_config",
    "create_subscription_from_config",
    "check_dependency_record",
    "catalogue_from_document",
    "load_catalogue",
]
