"""Discovery and dispatch over the control plane API catalogue.

Instead of registering every catalogue operation as an MCP tool, this package
exposes a handful of meta-tools that search the catalogue, explain and
validate operations, plan multi-resource creation and execute calls.
"""

from .catalogue import Catalogue, CatalogueError, load_catalogue
from .core import DiscoveryMCPServer, build_discovery_server
from .engine import DiscoveryEngine
from .meta_tools import MetaToolManager
from .models import CatalogueEntry, ExecuteParams, HTTPMethod, Operation, ResolveParams

__all__ = [
    "Catalogue",
    "CatalogueError",
    "load_catalogue",
    "DiscoveryMCPServer",
    "build_discovery_server",
    "DiscoveryEngine",
    "MetaToolManager",
    "CatalogueEntry",
    "ExecuteParams",
    "HTTPMethod",
    "Operation",
    "ResolveParams",
]
