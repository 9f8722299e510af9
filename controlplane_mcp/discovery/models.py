"""Data models for the operation catalogue, dependency plans and execution results.

This module contains the core data structures shared by search, dependency
resolution and execution. Catalogue records are frozen: they are created once
by the catalogue loader and never mutated afterwards.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class HTTPMethod(Enum):
    """Supported HTTP methods for catalogue operations"""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class Operation(Enum):
    """CRUD operation a catalogue entry performs on its resource"""
    CREATE = "create"
    GET = "get"
    LIST = "list"
    UPDATE = "update"
    DELETE = "delete"


class DangerLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class APIParameter:
    """Path or query parameter of a catalogue operation

    Args:
        name: Parameter name as it appears in the path template or query string
        required: Whether the parameter must be supplied
        description: Parameter description for tool documentation
    """
    name: str
    required: bool = True
    description: str = ""


@dataclass(frozen=True)
class OneOfGroup:
    """A set of mutually exclusive request-body fields under one logical choice

    Args:
        choice_field: Name of the logical choice (e.g. "origin_pools_weights")
        options: Field paths of which at most one should be populated
        recommended_option: Option suggested when the caller has no preference
        description: Human readable explanation of the choice
    """
    choice_field: str
    options: Tuple[str, ...]
    recommended_option: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class SubscriptionRequirement:
    service: str
    display_name: str
    tier: str = ""
    required: bool = True


@dataclass(frozen=True)
class ResourceRef:
    """Reference to a resource in the dependency graph"""
    domain: str
    resource_type: str
    required: bool = True

    @property
    def key(self) -> str:
        return f"{self.domain}/{self.resource_type}"


@dataclass(frozen=True)
class CatalogueEntry:
    """One discoverable remote-API operation

    Args:
        name: Globally unique tool name
        domain: Coarse resource grouping (e.g. "virtual", "dns")
        resource: Resource the operation acts upon (e.g. "origin-pool")
        operation: CRUD operation
        method: HTTP method used by the operation
        path: Path template with {placeholder} tokens
        summary: One-line description used for search and documentation
        path_parameters: Parameters substituted into the path template
        query_parameters: Parameters appended to the query string
        request_body_ref: Schema reference of the request body, if any
        danger_level: Optional danger classification
        required_fields: Body fields the caller must provide
        one_of_groups: Mutually exclusive body field groups
        subscriptions: Add-on services the operation requires
        tier: Subscription tier/category tag of the resource
        example_json: Example request body shipped with the catalogue record, as JSON text
    """
    name: str
    domain: str
    resource: str
    operation: Operation
    method: HTTPMethod
    path: str
    summary: str = ""
    path_parameters: Tuple[APIParameter, ...] = ()
    query_parameters: Tuple[APIParameter, ...] = ()
    request_body_ref: Optional[str] = None
    danger_level: Optional[DangerLevel] = None
    required_fields: Tuple[str, ...] = ()
    one_of_groups: Tuple[OneOfGroup, ...] = ()
    subscriptions: Tuple[SubscriptionRequirement, ...] = ()
    tier: Optional[str] = None
    example_json: Optional[str] = None

    def tool_info(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "method": self.method.value,
            "path": self.path,
            "operation": self.operation.value,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["operation"] = self.operation.value
        data["method"] = self.method.value
        data["danger_level"] = self.danger_level.value if self.danger_level else None
        return data


@dataclass
class ResourceDependencies:
    """Adjacency record of one resource in the dependency graph"""
    domain: str
    resource_type: str
    requires: List[ResourceRef] = field(default_factory=list)
    required_by: List[ResourceRef] = field(default_factory=list)
    one_of_groups: List[OneOfGroup] = field(default_factory=list)
    subscriptions: List[SubscriptionRequirement] = field(default_factory=list)
    tier: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.domain}/{self.resource_type}"


@dataclass
class OneOfChoice:
    field: str
    options: List[str]
    recommended: Optional[str] = None
    description: str = ""


@dataclass
class WorkflowStep:
    step_number: int
    action: str
    domain: str
    resource: str
    tool_name: Optional[str]
    depends_on: List[str] = field(default_factory=list)
    optional: bool = False
    required_inputs: List[str] = field(default_factory=list)
    one_of_choices: List[OneOfChoice] = field(default_factory=list)
    alternatives: List[str] = field(default_factory=list)

    @property
    def key(self) -> str:
        return f"{self.domain}/{self.resource}"


@dataclass
class AlternativePath:
    """What choosing one oneOf option over the others implies for a step"""
    step_number: int
    resource: str
    choice_field: str
    chosen: str
    alternatives: List[str]
    description: str = ""


@dataclass
class CreationPlan:
    target_resource: str
    target_domain: str
    steps: List[WorkflowStep] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    alternatives: List[AlternativePath] = field(default_factory=list)
    subscriptions: List[str] = field(default_factory=list)
    existing_resources: List[str] = field(default_factory=list)
    complexity: str = "low"

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_steps"] = self.total_steps
        return data


@dataclass
class ResolveParams:
    resource: str
    domain: str
    existing_resources: List[str] = field(default_factory=list)
    include_optional: bool = False
    max_depth: int = 10
    expand_alternatives: bool = False


@dataclass
class ResolveResult:
    success: bool
    plan: Optional[CreationPlan] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if not self.success:
            return {"success": False, "error": self.error}
        return {"success": True, "plan": self.plan.to_dict()}


@dataclass
class ExecuteParams:
    """Execution request for a single catalogue operation

    Args:
        tool_name: Exact catalogue entry name
        path_params: Values for {placeholder} tokens in the path template
        query_params: Query string values; list values repeat the key
        body: Request body for POST/PUT/PATCH operations
    """
    tool_name: str
    path_params: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, Any] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


@dataclass
class QuotaInfo:
    limit: float
    current: float
    remaining: float
    percentage: int
    threshold: str

    @classmethod
    def unlimited(cls) -> "QuotaInfo":
        return cls(limit=float("inf"), current=0, remaining=float("inf"), percentage=0, threshold="green")


@dataclass
class QuotaCheckResult:
    allowed: bool
    quota_info: QuotaInfo
    reason: Optional[str] = None


@dataclass
class ExecutionResult:
    """Outcome of a live dispatch (kind == "execution")"""
    success: bool
    tool_info: Dict[str, str]
    data: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None
    quota_info: Optional[QuotaInfo] = None
    kind: str = "execution"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DocumentationResponse:
    """Preview produced when no credentials are configured (kind == "documentation")"""
    tool: Dict[str, str]
    curl_example: str
    auth_message: str
    kind: str = "documentation"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationIssue:
    path: str
    message: str
    expected: Optional[str] = None
    actual: Optional[str] = None


@dataclass
class ValidationResult:
    valid: bool
    errors: List[ValidationIssue] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    tool: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "HTTPMethod",
    "Operation",
    "DangerLevel",
    "APIParameter",
    "OneOfGroup",
    "SubscriptionRequirement",
    "ResourceRef",
    "CatalogueEntry",
    "ResourceDependencies",
    "OneOfChoice",
    "WorkflowStep",
    "AlternativePath",
    "CreationPlan",
    "ResolveParams",
    "ResolveResult",
    "ExecuteParams",
    "QuotaInfo",
    "QuotaCheckResult",
    "ExecutionResult",
    "DocumentationResponse",
    "ValidationIssue",
    "ValidationResult",
]
