"""Meta-operations exposed as MCP tools.

The catalogue is never registered tool-by-tool. Instead a small fixed set of
functions (search, describe, suggest parameters, validate, resolve,
dependencies, execute, estimate cost, quota status, server info) is wrapped
in ``FunctionTool`` instances that delegate to a ``DiscoveryEngine``.
"""

import logging
from typing import Dict, List, Optional

from google.adk.tools.function_tool import FunctionTool

from ..transport import RemoteCallError
from .cost_estimator import format_cost_estimate, format_workflow_cost_estimate
from .engine import DiscoveryEngine
from .models import DocumentationResponse, ExecuteParams, ResolveParams
from .quota import format_quota_status, format_quota_table
from .resolver import format_creation_plan
from .suggest import format_suggestion
from .validate import format_validation_result


class MetaToolManager:
    """Builds the meta-operation tools for one engine

    Args:
        engine: DiscoveryEngine the tools delegate to
    """

    def __init__(self, engine: DiscoveryEngine):
        self.engine = engine
        self.tools: Dict[str, FunctionTool] = {}
        for function in self._build_functions():
            self.tools[function.__name__] = FunctionTool(function)
        logging.info(f"[MetaTools] Registered {len(self.tools)} meta tools: {list(self.tools)}")

    def _build_functions(self) -> list:
        engine = self.engine

        async def search_tools(
            query: str,
            limit: int = 10,
            domains: Optional[List[str]] = None,
            operations: Optional[List[str]] = None,
            exclude_dangerous: bool = False,
            include_dependencies: bool = False,
        ) -> dict:
            """Search the control plane API catalogue in natural language.

            Returns ranked tool names with scores. Filter by domains or by
            operations (create, get, list, update, delete).
            """
            results = engine.search(
                query,
                limit=limit,
                domains=domains,
                operations=operations,
                exclude_dangerous=exclude_dangerous,
                include_dependencies=include_dependencies,
            )
            lines = [f"Found {len(results)} tools for '{query}'"]
            lines += [f" • {r.entry.name} ({r.score:.2f}) - {r.entry.summary}" for r in results]
            return {"success": True, "message": "\n".join(lines), "data": [r.to_dict() for r in results]}

        async def describe_tool(tool_name: str) -> dict:
            """Describe a tool's path, query and body parameters."""
            description = engine.describe(tool_name)
            if description is None:
                return {"success": False, "message": f"Tool '{tool_name}' not found. Use search_tools to find tools."}
            return {"success": True, "message": f"{description['method']} {description['path']}", "data": description}

        async def suggest_parameters(tool_name: str) -> dict:
            """Example request body for a tool, with its required fields and configuration choices."""
            if tool_name not in engine.catalogue:
                return {"success": False, "message": f"Tool '{tool_name}' not found. Use search_tools to find tools."}
            suggestion = engine.suggest(tool_name)
            if suggestion is None:
                return {"success": False, "message": f"No example parameters available for '{tool_name}'"}
            return {"success": True, "message": format_suggestion(suggestion), "data": suggestion.to_dict()}

        async def validate_tool(
            tool_name: str,
            path_params: Optional[dict] = None,
            query_params: Optional[dict] = None,
            body: Optional[dict] = None,
        ) -> dict:
            """Check parameters for a tool before executing it."""
            result = engine.validate(tool_name, path_params, query_params, body)
            return {"success": result.valid, "message": format_validation_result(result), "data": result.to_dict()}

        async def resolve_dependencies(
            resource: str,
            domain: str,
            existing_resources: Optional[List[str]] = None,
            include_optional: bool = False,
            max_depth: int = 10,
            expand_alternatives: bool = False,
            compact: bool = False,
        ) -> dict:
            """Plan every step needed to create a resource, prerequisites first."""
            params = ResolveParams(
                resource=resource,
                domain=domain,
                existing_resources=existing_resources or [],
                include_optional=include_optional,
                max_depth=max_depth,
                expand_alternatives=expand_alternatives,
            )
            if compact:
                plan = engine.compact_plan(params)
                if not plan["success"]:
                    return {"success": False, "message": plan["error"]}
                return {"success": True, "message": f"{len(plan['steps'])} steps", "data": plan}

            result = engine.resolve(params)
            if not result.success:
                return {"success": False, "message": result.error}
            return {"success": True, "message": format_creation_plan(result.plan), "data": result.to_dict()}

        async def get_dependencies(resource: str, domain: str, action: str = "full") -> dict:
            """Dependency details for a resource.

            action is one of prerequisites, dependents, oneOf, subscriptions,
            creationOrder or full.
            """
            report = engine.dependency_report(domain, resource, action)
            if not report["success"]:
                return {"success": False, "message": report["error"]}
            return {"success": True, "message": f"Dependencies for {domain}/{resource} ({action})", "data": report}

        async def execute_tool(
            tool_name: str,
            path_params: Optional[dict] = None,
            query_params: Optional[dict] = None,
            body: Optional[dict] = None,
        ) -> dict:
            """Execute a catalogue tool.

            Without configured credentials a curl example is returned instead
            of calling the API.
            """
            outcome = await engine.execute(ExecuteParams(
                tool_name=tool_name,
                path_params=path_params or {},
                query_params=query_params or {},
                body=body,
            ))
            if isinstance(outcome, DocumentationResponse):
                return {
                    "success": True,
                    "message": f"{outcome.auth_message}\n\n{outcome.curl_example}",
                    "data": outcome.to_dict(),
                }
            if outcome.success:
                return {
                    "success": True,
                    "message": f"Successfully called {tool_name} ({outcome.status_code})",
                    "data": outcome.to_dict(),
                }
            return {"success": False, "message": outcome.error, "data": outcome.to_dict()}

        async def estimate_cost(
            tool_name: Optional[str] = None,
            tool_names: Optional[List[str]] = None,
            resource: Optional[str] = None,
            domain: Optional[str] = None,
        ) -> dict:
            """Estimate tokens and latency for a tool, a list of tools, or the plan for a resource."""
            if resource and domain:
                result = engine.resolve(ResolveParams(resource=resource, domain=domain))
                if not result.success:
                    return {"success": False, "message": result.error}
                estimate = engine.estimate_cost(result.plan)
                return {"success": True, "message": format_workflow_cost_estimate(estimate), "data": estimate.to_dict()}
            if tool_names:
                estimates = engine.estimate_cost(list(tool_names))
                return {
                    "success": True,
                    "message": "\n\n".join(format_cost_estimate(e) for e in estimates),
                    "data": [e.to_dict() for e in estimates],
                }
            if tool_name:
                estimate = engine.estimate_cost(tool_name)
                return {"success": True, "message": format_cost_estimate(estimate), "data": estimate.to_dict()}
            return {"success": False, "message": "Provide tool_name, tool_names, or resource and domain"}

        async def get_quota_status(namespace: str, resource_type: Optional[str] = None, only_limited: bool = False) -> dict:
            """Quota usage and limits for a namespace.

            With resource_type, the status of that resource; otherwise every
            quota in the namespace, optionally only those with a finite limit.
            """
            if not engine.credentials.configured:
                return {
                    "success": False,
                    "message": "Quota checking requires credentials. Set CONTROLPLANE_API_URL and CONTROLPLANE_API_TOKEN.",
                }
            try:
                if resource_type:
                    status = await engine.quota_status(namespace, resource_type)
                    return {"success": True, "message": format_quota_status(status), "data": status.to_dict()}
                statuses = await engine.namespace_quotas(namespace, only_limited)
            except RemoteCallError as e:
                logging.error(f"[MetaTools] Quota lookup for {namespace} failed: {e}")
                return {"success": False, "message": f"Error fetching quota status: {e}"}

            if not statuses:
                scope = "limited quota resources" if only_limited else "quota information"
                return {"success": True, "message": f"No {scope} found in namespace '{namespace}'", "data": []}
            return {
                "success": True,
                "message": f"Quota Status for Namespace: {namespace}\n\n{format_quota_table(statuses)}",
                "data": [s.to_dict() for s in statuses],
            }

        async def clear_quota_cache(namespace: Optional[str] = None) -> dict:
            """Drop cached quota lookups for one namespace, or for all when omitted."""
            engine.clear_quota_cache(namespace)
            target = f"namespace: {namespace}" if namespace else "all namespaces"
            return {"success": True, "message": f"Cleared quota cache for {target}"}

        async def server_info() -> dict:
            """Authentication mode, available domains, cache and rate limiter state."""
            info = engine.server_info()
            mode = "execution" if info["execution_enabled"] else "documentation"
            return {
                "success": True,
                "message": f"{info['tool_count']} tools across {len(info['domains'])} domains, {mode} mode",
                "data": info,
            }

        return [
            search_tools,
            describe_tool,
            suggest_parameters,
            validate_tool,
            resolve_dependencies,
            get_dependencies,
            execute_tool,
            estimate_cost,
            get_quota_status,
            clear_quota_cache,
            server_info,
        ]

    def get_tools(self) -> Dict[str, FunctionTool]:
        return self.tools


__all__ = [
    "MetaToolManager",
]
