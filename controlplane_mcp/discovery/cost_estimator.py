"""Advisory token and latency estimates for catalogue operations.

Estimates read the catalogue only; nothing here talks to the remote API.
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, Iterable, List, Optional

from .catalogue import Catalogue
from .models import CatalogueEntry, CreationPlan, Operation

DEFAULT_SCHEMA_TOKENS = 200
DEFAULT_REQUEST_TOKENS = 100
DEFAULT_RESPONSE_TOKENS = 300

LATENCY_MS = {
    "low": 300,
    "moderate": 1000,
    "high": 3000,
    "unknown": 500,
}

_LATENCY_BY_OPERATION = {
    Operation.GET: ("low", "Single resource read, typically fast"),
    Operation.LIST: ("low", "Collection read, fast for small namespaces"),
    Operation.CREATE: ("moderate", "Resource creation involves validation and provisioning"),
    Operation.UPDATE: ("moderate", "Resource replacement involves validation and reconfiguration"),
    Operation.DELETE: ("moderate", "Resource removal waits for dependent configuration cleanup"),
}

_RESPONSE_TOKENS = {
    Operation.GET: 400,
    Operation.LIST: 1000,
    Operation.CREATE: 400,
    Operation.UPDATE: 400,
    Operation.DELETE: 50,
}


@dataclass
class TokenEstimate:
    schema_tokens: int
    request_tokens: int
    response_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.schema_tokens + self.request_tokens + self.response_tokens

    def to_dict(self) -> dict:
        data = asdict(self)
        data["total_tokens"] = self.total_tokens
        return data


@dataclass
class LatencyEstimate:
    level: str
    estimated_ms: int
    description: str


@dataclass
class ToolCostEstimate:
    tool_name: str
    tokens: TokenEstimate
    latency: LatencyEstimate
    danger_level: str
    exists: bool

    def to_dict(self) -> dict:
        return {
            "tool_name": self.tool_name,
            "tokens": self.tokens.to_dict(),
            "latency": asdict(self.latency),
            "danger_level": self.danger_level,
            "exists": self.exists,
        }


@dataclass
class WorkflowStepCost:
    step_number: int
    tool_name: Optional[str]
    tokens: int
    latency_ms: int


@dataclass
class WorkflowCostEstimate:
    total_tokens: int = 0
    average_latency: str = "low"
    estimated_total_ms: int = 0
    step_count: int = 0
    steps: List[WorkflowStepCost] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _request_tokens(entry: CatalogueEntry) -> int:
    if entry.operation is Operation.CREATE:
        return 500 + 20 * len(entry.required_fields) + 40 * len(entry.one_of_groups)
    if entry.operation is Operation.UPDATE:
        return 250 + 10 * len(entry.required_fields)
    # Reads and deletes only carry parameters.
    return 20 + 5 * (len(entry.path_parameters) + len(entry.query_parameters))


def estimate_tool_tokens(catalogue: Catalogue, tool_name: str) -> TokenEstimate:
    entry = catalogue.get(tool_name)
    if entry is None:
        return TokenEstimate(DEFAULT_SCHEMA_TOKENS, DEFAULT_REQUEST_TOKENS, DEFAULT_RESPONSE_TOKENS)

    schema = 50 + len(entry.summary) // 4
    schema += 15 * len(entry.path_parameters) + 10 * len(entry.query_parameters)
    schema += 20 * len(entry.one_of_groups)
    return TokenEstimate(
        schema_tokens=schema,
        request_tokens=_request_tokens(entry),
        response_tokens=_RESPONSE_TOKENS[entry.operation],
    )


def estimate_tool_latency(catalogue: Catalogue, tool_name: str) -> LatencyEstimate:
    entry = catalogue.get(tool_name)
    if entry is None:
        return LatencyEstimate("unknown", LATENCY_MS["unknown"], "Latency not specified for this tool")
    level, description = _LATENCY_BY_OPERATION[entry.operation]
    return LatencyEstimate(level, LATENCY_MS[level], description)


def estimate_tool_cost(catalogue: Catalogue, tool_name: str) -> ToolCostEstimate:
    entry = catalogue.get(tool_name)
    return ToolCostEstimate(
        tool_name=tool_name,
        tokens=estimate_tool_tokens(catalogue, tool_name),
        latency=estimate_tool_latency(catalogue, tool_name),
        danger_level=entry.danger_level.value if entry and entry.danger_level else "low",
        exists=entry is not None,
    )


def estimate_multiple_tools_cost(catalogue: Catalogue, tool_names: Iterable[str]) -> List[ToolCostEstimate]:
    return [estimate_tool_cost(catalogue, name) for name in tool_names]


def _latency_level(average_ms: float) -> str:
    if average_ms <= LATENCY_MS["low"] + 200:
        return "low"
    if average_ms <= LATENCY_MS["moderate"] + 500:
        return "moderate"
    return "high"


def estimate_workflow_cost(catalogue: Catalogue, plan: CreationPlan) -> WorkflowCostEstimate:
    """Aggregate per-step estimates over a creation plan

    Steps without a tool, or whose tool is missing from the catalogue, are
    costed with the default estimates and reported as warnings.
    """
    estimate = WorkflowCostEstimate(step_count=len(plan.steps))
    for step in plan.steps:
        if step.tool_name is None:
            estimate.warnings.append(f"Step {step.step_number}: no tool found for {step.domain}/{step.resource}")
        elif step.tool_name not in catalogue:
            estimate.warnings.append(f"Step {step.step_number}: tool '{step.tool_name}' not found")

        cost = estimate_tool_cost(catalogue, step.tool_name or "")
        estimate.steps.append(WorkflowStepCost(
            step_number=step.step_number,
            tool_name=step.tool_name,
            tokens=cost.tokens.total_tokens,
            latency_ms=cost.latency.estimated_ms,
        ))
        estimate.total_tokens += cost.tokens.total_tokens
        estimate.estimated_total_ms += cost.latency.estimated_ms

    if estimate.steps:
        estimate.average_latency = _latency_level(estimate.estimated_total_ms / len(estimate.steps))
    return estimate


def format_cost_estimate(estimate: ToolCostEstimate) -> str:
    lines = [f"# Cost Estimate: {estimate.tool_name}", ""]
    if not estimate.exists:
        lines += ["**Warning**: Tool not found in catalogue; default estimates shown.", ""]
    lines += [
        "## Token Usage",
        f"- Schema/Description: {estimate.tokens.schema_tokens} tokens",
        f"- Request Body: {estimate.tokens.request_tokens} tokens",
        f"- Response: {estimate.tokens.response_tokens} tokens",
        f"- **Total per call**: {estimate.tokens.total_tokens} tokens",
        "",
        "## Latency",
        f"- Level: {estimate.latency.level}",
        f"- Estimated: {estimate.latency.estimated_ms}ms",
        f"- {estimate.latency.description}",
        "",
        "## Risk",
        f"- Danger Level: {estimate.danger_level}",
    ]
    return "\n".join(lines)


def format_workflow_cost_estimate(estimate: WorkflowCostEstimate) -> str:
    lines = [
        "# Workflow Cost Estimate",
        "",
        "## Summary",
        f"- **Total Steps**: {estimate.step_count}",
        f"- **Total Tokens**: {estimate.total_tokens}",
        f"- **Average Latency**: {estimate.average_latency}",
        f"- **Estimated Total Time**: {estimate.estimated_total_ms}ms",
    ]
    if estimate.steps:
        lines += ["", "## Step Breakdown", "| Step | Tool | Tokens | Latency |", "|------|------|--------|---------|"]
        for step in estimate.steps:
            lines.append(f"| {step.step_number} | {step.tool_name or '-'} | {step.tokens} | {step.latency_ms}ms |")
    if estimate.warnings:
        lines += ["", "## Warnings"]
        lines += [f"- {w}" for w in estimate.warnings]
    return "\n".join(lines)


__all__ = [
    "TokenEstimate",
    "LatencyEstimate",
    "ToolCostEstimate",
    "WorkflowStepCost",
    "WorkflowCostEstimate",
    "estimate_tool_tokens",
    "estimate_tool_latency",
    "estimate_tool_cost",
    "estimate_multiple_tools_cost",
    "estimate_workflow_cost",
    "format_cost_estimate",
    "format_workflow_cost_estimate",
]
