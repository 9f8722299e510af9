"""Turns "create resource X" into an ordered, multi-step creation plan."""

import logging
from typing import Dict, List, Optional

from .catalogue import Catalogue
from .dependencies import DependencyGraph, node_key_str
from .models import (
    AlternativePath,
    CreationPlan,
    OneOfChoice,
    OneOfGroup,
    ResolveParams,
    ResolveResult,
    SubscriptionRequirement,
    WorkflowStep,
)

DEFAULT_REQUIRED_INPUTS = ("metadata.name", "metadata.namespace")


def calculate_complexity(step_count: int, one_of_count: int) -> str:
    if step_count > 5 or one_of_count > 3:
        return "high"
    if step_count > 2:
        return "medium"
    return "low"


def format_subscription(requirement: SubscriptionRequirement) -> str:
    label = requirement.display_name
    if requirement.tier:
        label += f" ({requirement.tier})"
    return f"{label} - {'required' if requirement.required else 'optional'}"


def _is_existing(domain: str, resource: str, existing: List[str]) -> bool:
    return resource in existing or f"{domain}/{resource}" in existing


def _merge_one_of_groups(*sources) -> List[OneOfGroup]:
    merged: Dict[str, OneOfGroup] = {}
    for groups in sources:
        for group in groups:
            merged.setdefault(group.choice_field, group)
    return list(merged.values())


def resolve_dependencies(params: ResolveParams, graph: DependencyGraph, catalogue: Catalogue) -> ResolveResult:
    """Build a creation plan for ``params.resource`` and its prerequisites

    Steps are ordered so every prerequisite precedes the resources that need
    it. Resources the caller lists in ``existing_resources`` (either as
    "resource" or "domain/resource") are pruned. Cycles and depth truncation
    become plan warnings.

    Returns:
        ResolveResult with a plan, or an error when the resource is unknown to
        both the dependency graph and the catalogue
    """
    known_to_graph = graph.get_resource_dependencies(params.domain, params.resource) is not None
    if not known_to_graph and not catalogue.has_resource(params.domain, params.resource):
        return ResolveResult(
            success=False,
            error=f"Resource '{params.domain}/{params.resource}' not found in dependency graph or catalogue",
        )

    traversal = graph.traverse(
        params.domain,
        params.resource,
        include_optional=params.include_optional,
        max_depth=params.max_depth,
    )
    existing = list(params.existing_resources or [])
    plan = CreationPlan(target_resource=params.resource, target_domain=params.domain)
    plan.warnings.extend(traversal.warnings)
    plan.existing_resources = [
        node_key_str(key) for key in traversal.order if _is_existing(key[0], key[1], existing)
    ]

    planned = {key for key in traversal.order if not _is_existing(key[0], key[1], existing)}
    required_keys = set(traversal.order)
    if params.include_optional:
        required_keys = set(graph.traverse(params.domain, params.resource, max_depth=params.max_depth).order)
    one_of_count = 0
    for domain, resource in traversal.order:
        if (domain, resource) not in planned:
            continue

        entry = catalogue.find_create_entry(domain, resource)
        if entry is None:
            plan.warnings.append(f"No create tool found for {domain}/{resource}")

        depends_on = [
            ref.key
            for ref in graph.get_prerequisite_resources(domain, resource, params.include_optional)
            if (graph.resolve_key(ref.domain, ref.resource_type) or (ref.domain, ref.resource_type)) in planned
        ]
        groups = _merge_one_of_groups(
            graph.get_one_of_groups(domain, resource),
            entry.one_of_groups if entry else (),
        )
        step = WorkflowStep(
            step_number=len(plan.steps) + 1,
            action="create",
            domain=domain,
            resource=resource,
            tool_name=entry.name if entry else None,
            depends_on=depends_on,
            optional=(domain, resource) not in required_keys,
            required_inputs=list(entry.required_fields if entry and entry.required_fields else DEFAULT_REQUIRED_INPUTS),
            one_of_choices=[
                OneOfChoice(
                    field=g.choice_field,
                    options=list(g.options),
                    recommended=g.recommended_option,
                    description=g.description,
                )
                for g in groups
            ],
        )
        one_of_count += len(groups)

        if params.expand_alternatives:
            for group in groups:
                if not group.options:
                    continue
                chosen = group.recommended_option or group.options[0]
                others = [o for o in group.options if o != chosen]
                step.alternatives.extend(others)
                for option in others:
                    plan.alternatives.append(AlternativePath(
                        step_number=step.step_number,
                        resource=step.key,
                        choice_field=group.choice_field,
                        chosen=option,
                        alternatives=[o for o in group.options if o != option],
                        description=f"Alternative using {option} for {group.choice_field}",
                    ))

        requirements = list(graph.get_subscription_requirements(domain, resource))
        requirements += list(entry.subscriptions) if entry else []
        for requirement in requirements:
            label = format_subscription(requirement)
            if label not in plan.subscriptions:
                plan.subscriptions.append(label)

        plan.steps.append(step)

    plan.complexity = calculate_complexity(len(plan.steps), one_of_count)
    logging.info(
        f"[Resolver] Plan for {params.domain}/{params.resource}: {plan.total_steps} steps, "
        f"complexity {plan.complexity}, {len(plan.warnings)} warnings"
    )
    return ResolveResult(success=True, plan=plan)


def format_creation_plan(plan: CreationPlan) -> str:
    """Render a creation plan as markdown"""
    lines = [
        f"# Creation Plan for {plan.target_domain}/{plan.target_resource}",
        "",
        f"**Complexity**: {plan.complexity}",
        f"**Total Steps**: {plan.total_steps}",
        "",
    ]

    if plan.subscriptions:
        lines.append("## Required Subscriptions")
        lines.extend(f"- {s}" for s in plan.subscriptions)
        lines.append("")

    if plan.existing_resources:
        lines.append("## Existing Resources (Skipped)")
        lines.extend(f"- {r}" for r in plan.existing_resources)
        lines.append("")

    lines.append("## Steps")
    lines.append("")
    for step in plan.steps:
        lines.append(f"### Step {step.step_number}: {step.action} {step.domain}/{step.resource}")
        lines.append(f"**Tool**: `{step.tool_name}`" if step.tool_name else "**Tool**: none available")
        if step.depends_on:
            lines.append(f"**Depends On**: {', '.join(step.depends_on)}")
        if step.required_inputs:
            lines.append(f"**Required Inputs**: {', '.join(step.required_inputs)}")
        if step.one_of_choices:
            lines.append("**Mutually Exclusive Choices**:")
            for choice in step.one_of_choices:
                line = f"- `{choice.field}`: {', '.join(choice.options)}"
                if choice.recommended:
                    line += f" (recommended: {choice.recommended})"
                lines.append(line)
        lines.append("")

    if plan.warnings:
        lines.append("## Warnings")
        lines.extend(f"- ⚠️ {w}" for w in plan.warnings)
        lines.append("")

    if plan.alternatives:
        lines.append("## Alternative Paths")
        for alternative in plan.alternatives:
            lines.append(f"- **{alternative.choice_field}**: {alternative.chosen}")
            if alternative.description:
                lines.append(f"  {alternative.description}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def generate_compact_plan(params: ResolveParams, graph: DependencyGraph, catalogue: Catalogue) -> dict:
    """Machine-oriented plan: one ``{tool, resource, inputs, choices?}`` per step"""
    result = resolve_dependencies(params, graph, catalogue)
    if not result.success:
        return {"success": False, "error": result.error}

    steps = []
    for step in result.plan.steps:
        compact = {"tool": step.tool_name, "resource": step.key, "inputs": step.required_inputs}
        if step.one_of_choices:
            compact["choices"] = {c.field: c.options for c in step.one_of_choices}
        steps.append(compact)

    compact_plan = {"success": True, "steps": steps}
    if result.plan.subscriptions:
        compact_plan["subscriptions"] = result.plan.subscriptions
    if result.plan.warnings:
        compact_plan["warnings"] = result.plan.warnings
    return compact_plan


__all__ = [
    "DEFAULT_REQUIRED_INPUTS",
    "calculate_complexity",
    "format_subscription",
    "resolve_dependencies",
    "format_creation_plan",
    "generate_compact_plan",
]
