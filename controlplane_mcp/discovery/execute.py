"""Execution dispatcher for catalogue operations.

Each call runs the same fixed sequence: lookup, documentation-mode check,
quota gate (create only), body guard, path/query construction, GET cache
check, rate-limited dispatch, cache update, result. Every failure along the
way becomes a ``success=False`` result; nothing raises past ``execute_tool``.
"""

import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import quote, urlencode

from ..transport import API_ROOT, APIClient, APIResponse, Credentials, RemoteCallError
from ..utils.body_validation import BodyLimits, BodyValidationError, validate_request_body
from ..utils.http_cache import HttpCache
from ..utils.rate_limiter import RateLimiter, RateLimitExceeded
from .catalogue import Catalogue
from .models import (
    CatalogueEntry,
    DocumentationResponse,
    ExecuteParams,
    ExecutionResult,
    HTTPMethod,
    Operation,
    QuotaCheckResult,
)
from .quota import QuotaService, format_quota_error, format_quota_warning
from .validate import lookup_path_value

DOCUMENTATION_API_URL = "https://{tenant}.console.example.com/api"
AUTH_MESSAGE = (
    "API execution disabled. Set CONTROLPLANE_API_URL and CONTROLPLANE_API_TOKEN to enable execution."
)
SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")
MUTATING_METHODS = ("POST", "PUT", "DELETE")

_PLACEHOLDER = re.compile(r"\{([^}]+)\}")

ExecuteOutcome = Union[ExecutionResult, DocumentationResponse]


class MissingPathParameterError(ValueError):
    """Raised when a path template placeholder has no value"""

    def __init__(self, missing: List[str]):
        super().__init__(f"Missing path parameters: {', '.join('{' + m + '}' for m in missing)}")
        self.missing = missing


class UnsupportedMethodError(ValueError):
    pass


def build_path(template: str, path_params: Dict[str, Any], strict: bool = True) -> str:
    """Substitute ``{name}`` placeholders with percent-encoded values

    ``{metadata.x}`` placeholders also accept a plain ``x`` parameter.

    Raises:
        MissingPathParameterError: If ``strict`` and a placeholder is left without a value
    """
    missing: List[str] = []

    def substitute(match: "re.Match") -> str:
        name = match.group(1)
        value = lookup_path_value(path_params, name)
        if value is None:
            missing.append(name)
            return match.group(0)
        return quote(str(value), safe="")

    path = _PLACEHOLDER.sub(substitute, template)
    if missing and strict:
        raise MissingPathParameterError(missing)
    return path


def build_query_string(query_params: Optional[Dict[str, Any]]) -> str:
    """Percent-encode query parameters; list values repeat their key"""
    if not query_params:
        return ""
    pairs = []
    for key, value in query_params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, str(v)) for v in value)
        else:
            pairs.append((key, str(value)))
    if not pairs:
        return ""
    return "?" + urlencode(pairs, quote_via=quote, safe="")


def normalize_tool_path(path: str) -> str:
    """Drop the API root the base URL already contributes"""
    if path.startswith(f"{API_ROOT}/"):
        return path[len(API_ROOT):]
    return path


def extract_namespace(path_params: Optional[Dict[str, Any]], body: Optional[Dict[str, Any]]) -> Optional[str]:
    """Namespace from ``metadata.namespace`` or ``namespace`` path params, else body metadata"""
    path_params = path_params or {}
    if path_params.get("metadata.namespace"):
        return path_params["metadata.namespace"]
    if path_params.get("namespace"):
        return path_params["namespace"]
    metadata = (body or {}).get("metadata")
    if isinstance(metadata, dict) and isinstance(metadata.get("namespace"), str) and metadata["namespace"]:
        return metadata["namespace"]
    return None


def generate_curl_command(entry: CatalogueEntry, params: ExecuteParams, api_url: str = DOCUMENTATION_API_URL) -> str:
    path = build_path(normalize_tool_path(entry.path), params.path_params or {}, strict=False)
    url = f"{api_url}{path}{build_query_string(params.query_params)}"
    command = f'curl -X {entry.method.value} "{url}"'
    command += ' \\\n  -H "Authorization: APIToken $CONTROLPLANE_API_TOKEN"'
    command += ' \\\n  -H "Content-Type: application/json"'
    if params.body and entry.method.value in ("POST", "PUT", "PATCH"):
        command += f" \\\n  -d '{json.dumps(params.body, indent=2)}'"
    return command


def generate_documentation_response(entry: CatalogueEntry, params: ExecuteParams) -> DocumentationResponse:
    return DocumentationResponse(
        tool={
            "name": entry.name,
            "summary": entry.summary,
            "method": entry.method.value,
            "path": entry.path,
            "domain": entry.domain,
            "resource": entry.resource,
            "operation": entry.operation.value,
        },
        curl_example=generate_curl_command(entry, params),
        auth_message=AUTH_MESSAGE,
    )


def validate_execute_params(catalogue: Catalogue, params: ExecuteParams) -> dict:
    """Quick pre-flight check of path parameters and body presence"""
    entry = catalogue.get(params.tool_name)
    if entry is None:
        return {"valid": False, "errors": [f'Tool "{params.tool_name}" not found']}

    errors = []
    for param in entry.path_parameters:
        if param.required and lookup_path_value(params.path_params or {}, param.name) is None:
            errors.append(f"Missing required path parameter: {param.name}")
    if entry.request_body_ref and not params.body and entry.method.value in ("POST", "PUT", "PATCH"):
        errors.append("Request body is required for this operation")
    return {"valid": not errors, "errors": errors}


class ExecutionDispatcher:
    """Runs catalogue operations against the remote API

    Args:
        catalogue: Operation catalogue
        rate_limiter: Shared token bucket for outgoing calls
        cache: Shared GET response cache
        quota_service: Quota collaborator; None disables the quota gate
        credentials: Default credentials used when a call supplies none
        body_limits: Structural limits applied to request bodies
        quota_check_enabled: Whether create operations are quota checked
        client_factory: Builds an API client from credentials
    """

    def __init__(
        self,
        catalogue: Catalogue,
        rate_limiter: RateLimiter,
        cache: HttpCache,
        quota_service: Optional[QuotaService] = None,
        credentials: Optional[Credentials] = None,
        body_limits: Optional[BodyLimits] = None,
        quota_check_enabled: bool = True,
        client_factory: Callable[[Credentials], APIClient] = APIClient,
    ):
        self.catalogue = catalogue
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.quota_service = quota_service
        self.credentials = credentials or Credentials()
        self.body_limits = body_limits or BodyLimits()
        self.quota_check_enabled = quota_check_enabled
        self._client_factory = client_factory

    async def execute_tool(self, params: ExecuteParams, credentials: Optional[Credentials] = None) -> ExecuteOutcome:
        entry = self.catalogue.get(params.tool_name)
        if entry is None:
            return ExecutionResult(
                success=False,
                tool_info={"name": params.tool_name, "method": "UNKNOWN", "path": "UNKNOWN", "operation": "UNKNOWN"},
                error=f'Tool "{params.tool_name}" not found. Use search to find available tools.',
            )

        credentials = credentials or self.credentials
        if not credentials.configured:
            logging.info(f"[Dispatcher] No credentials configured, documenting {entry.name}")
            return generate_documentation_response(entry, params)

        tool_info = entry.tool_info()
        try:
            return await self._dispatch(entry, params, credentials, tool_info)
        except (BodyValidationError, MissingPathParameterError, UnsupportedMethodError) as e:
            logging.warning(f"[Dispatcher] Rejected {entry.name}: {e}")
            return ExecutionResult(success=False, tool_info=tool_info, error=self._describe_error(e))
        except RateLimitExceeded as e:
            logging.warning(f"[Dispatcher] Rate limited {entry.name}: {e}")
            return ExecutionResult(success=False, tool_info=tool_info, error=str(e))
        except RemoteCallError as e:
            return ExecutionResult(success=False, tool_info=tool_info, error=str(e), status_code=e.status_code)
        except Exception as e:
            logging.exception(f"[Dispatcher] Tool execution failed: {entry.name}: {e}")
            return ExecutionResult(success=False, tool_info=tool_info, error=f"Error calling API: {e}")

    @staticmethod
    def _describe_error(error: Exception) -> str:
        if isinstance(error, BodyValidationError):
            detail = f" (at {error.path}"
            if error.actual is not None and error.limit is not None:
                detail += f", actual {error.actual}, maximum {error.limit}"
            return f"{error}{detail})"
        return str(error)

    async def _quota_gate(self, entry: CatalogueEntry, params: ExecuteParams, client: APIClient) -> Optional[QuotaCheckResult]:
        namespace = extract_namespace(params.path_params, params.body)
        if namespace is None:
            return None
        check = await self.quota_service.check_quota_availability(namespace, entry.resource, client)
        if not check.allowed:
            logging.warning(f"[Dispatcher] Quota limit reached for {entry.resource} in {namespace}")
        elif check.quota_info.threshold == "yellow":
            logging.warning(f"[Dispatcher] {format_quota_warning(check.quota_info, entry.resource)} in {namespace}")
        return check

    async def _dispatch(
        self,
        entry: CatalogueEntry,
        params: ExecuteParams,
        credentials: Credentials,
        tool_info: Dict[str, str],
    ) -> ExecutionResult:
        client = self._client_factory(credentials)

        quota_info = None
        if entry.operation is Operation.CREATE and self.quota_check_enabled and self.quota_service is not None:
            check = await self._quota_gate(entry, params, client)
            if check is not None:
                quota_info = check.quota_info
                if not check.allowed:
                    return ExecutionResult(
                        success=False,
                        tool_info=tool_info,
                        error=format_quota_error(check),
                        quota_info=quota_info,
                    )

        if params.body:
            validate_request_body(params.body, self.body_limits)

        path = build_path(normalize_tool_path(entry.path), params.path_params or {})
        full_path = f"{path}{build_query_string(params.query_params)}"
        method = entry.method.value

        if entry.method is HTTPMethod.GET:
            cached = self.cache.get(full_path)
            if cached is not None:
                logging.info(f"[Dispatcher] Cache hit for {full_path}")
                return ExecutionResult(
                    success=True, tool_info=tool_info, data=cached.data, status_code=cached.status_code
                )

        logging.info(f"[Dispatcher] Executing {entry.name}: {method} {full_path}")

        async def call() -> APIResponse:
            if method == "GET":
                return await client.get(full_path)
            if method == "POST":
                return await client.post(full_path, params.body)
            if method == "PUT":
                return await client.put(full_path, params.body)
            if method == "DELETE":
                return await client.delete(full_path)
            raise UnsupportedMethodError(f"Unsupported HTTP method: {method}")

        response = await self.rate_limiter.execute(call)

        if method == "GET" and response.ok:
            self.cache.set(full_path, response.data, response.status, headers=response.headers)
        if method in MUTATING_METHODS:
            self.cache.invalidate(full_path)

        if not response.ok:
            return ExecutionResult(
                success=False,
                tool_info=tool_info,
                data=response.data,
                error=f"API call failed with status {response.status}",
                status_code=response.status,
                quota_info=quota_info,
            )
        return ExecutionResult(
            success=True,
            tool_info=tool_info,
            data=response.data,
            status_code=response.status,
            quota_info=quota_info,
        )


__all__ = [
    "DOCUMENTATION_API_URL",
    "AUTH_MESSAGE",
    "SUPPORTED_METHODS",
    "MissingPathParameterError",
    "UnsupportedMethodError",
    "build_path",
    "build_query_string",
    "normalize_tool_path",
    "extract_namespace",
    "generate_curl_command",
    "generate_documentation_response",
    "validate_execute_params",
    "ExecutionDispatcher",
]
