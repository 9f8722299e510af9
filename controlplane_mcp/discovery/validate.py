"""Pre-execution validation of tool parameters.

Checks path, query and body parameters against a catalogue entry before any
call is made. Problems that would make the call fail are errors; likely
mistakes that the remote API may still accept are warnings.
"""

from typing import Any, Dict, List, Optional

from .catalogue import Catalogue
from .models import CatalogueEntry, HTTPMethod, OneOfGroup, Operation, ValidationIssue, ValidationResult

_MISSING = object()


def get_nested_value(obj: Any, path: str) -> Any:
    """Follow a dotted path through nested dicts; missing keys yield a sentinel"""
    current = obj
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _is_missing(value: Any) -> bool:
    return value is _MISSING or value is None


def lookup_path_value(path_params: Dict[str, Any], name: str) -> Optional[Any]:
    """Value for a path placeholder; ``metadata.x`` also accepts a plain ``x``"""
    value = path_params.get(name)
    if value in (None, "") and name.startswith("metadata."):
        value = path_params.get(name[len("metadata."):])
    return None if value in (None, "") else value


def _validate_path_params(entry: CatalogueEntry, path_params: Dict[str, Any], errors: List[ValidationIssue]) -> None:
    for param in entry.path_parameters:
        if param.required and lookup_path_value(path_params, param.name) is None:
            errors.append(ValidationIssue(
                path=f"pathParams.{param.name}",
                message=f"Missing required path parameter: {param.name}",
                expected=param.description or "string value",
            ))

    known = [p.name for p in entry.path_parameters]
    for key in path_params:
        if key not in known and f"metadata.{key}" not in known:
            errors.append(ValidationIssue(
                path=f"pathParams.{key}",
                message=f"Unknown path parameter: {key}",
                expected=f"One of: {', '.join(known)}" if known else "No path parameters",
                actual=key,
            ))


def _validate_query_params(
    entry: CatalogueEntry,
    query_params: Dict[str, Any],
    errors: List[ValidationIssue],
    warnings: List[str],
) -> None:
    for param in entry.query_parameters:
        if param.required and not query_params.get(param.name):
            errors.append(ValidationIssue(
                path=f"queryParams.{param.name}",
                message=f"Missing required query parameter: {param.name}",
                expected=param.description or "string value",
            ))

    known = {p.name for p in entry.query_parameters}
    for key in query_params:
        if key not in known:
            warnings.append(f"Unknown query parameter: {key}")


def _validate_body(
    entry: CatalogueEntry,
    body: Optional[Dict[str, Any]],
    errors: List[ValidationIssue],
    warnings: List[str],
) -> None:
    if entry.method in (HTTPMethod.POST, HTTPMethod.PUT) and not body:
        if entry.operation in (Operation.CREATE, Operation.UPDATE):
            errors.append(ValidationIssue(
                path="body",
                message="Request body is required for this operation",
                expected="Object with required fields",
            ))

    if body and entry.operation is Operation.CREATE:
        metadata = body.get("metadata")
        if not isinstance(metadata, dict):
            warnings.append("Body should include a 'metadata' object")
        elif not metadata.get("name"):
            warnings.append("metadata.name is typically required")


def _validate_required_fields(
    entry: CatalogueEntry,
    body: Optional[Dict[str, Any]],
    errors: List[ValidationIssue],
) -> None:
    for field_path in entry.required_fields:
        if _is_missing(get_nested_value(body or {}, field_path)):
            errors.append(ValidationIssue(
                path=f"body.{field_path}",
                message=f"Missing required field: {field_path}",
                expected="User must provide value",
            ))


def _validate_one_of_groups(groups, body: Optional[Dict[str, Any]], warnings: List[str]) -> None:
    if not body:
        return
    for group in groups:
        selected = [o for o in group.options if get_nested_value(body, o) is not _MISSING]
        if len(selected) > 1:
            message = (
                f"Multiple mutually exclusive options selected for {group.choice_field}: "
                f"{', '.join(selected)}. Choose only one."
            )
            if group.recommended_option:
                message += f" Recommended: {group.recommended_option}"
            warnings.append(message)
        elif not selected and group.recommended_option:
            warnings.append(
                f"No option selected for {group.choice_field}. "
                f"Consider using the recommended option: {group.recommended_option}"
            )


def validate_tool_params(
    catalogue: Catalogue,
    tool_name: str,
    path_params: Optional[Dict[str, Any]] = None,
    query_params: Optional[Dict[str, Any]] = None,
    body: Optional[Dict[str, Any]] = None,
    extra_one_of_groups: Optional[List[OneOfGroup]] = None,
) -> ValidationResult:
    """Validate parameters for a tool before execution

    Args:
        catalogue: Operation catalogue
        tool_name: Exact catalogue entry name
        path_params: Values for path template placeholders
        query_params: Query string values
        body: Request body
        extra_one_of_groups: oneOf groups from the dependency graph to check in addition to the entry's own

    Returns:
        ValidationResult; ``valid`` is False when any error was recorded
    """
    path_params = path_params or {}
    query_params = query_params or {}
    entry = catalogue.get(tool_name)
    if entry is None:
        return ValidationResult(
            valid=False,
            errors=[ValidationIssue(
                path="toolName",
                message=f'Tool "{tool_name}" not found',
                expected="Valid tool name",
                actual=tool_name,
            )],
        )

    errors: List[ValidationIssue] = []
    warnings: List[str] = []

    _validate_path_params(entry, path_params, errors)
    _validate_query_params(entry, query_params, errors, warnings)
    if entry.request_body_ref or entry.method in (HTTPMethod.POST, HTTPMethod.PUT, HTTPMethod.PATCH):
        _validate_body(entry, body, errors, warnings)
    elif body:
        warnings.append(f"Tool {tool_name} does not accept a request body, but one was provided")
    if entry.required_fields:
        _validate_required_fields(entry, body, errors)

    groups = {g.choice_field: g for g in entry.one_of_groups}
    for group in extra_one_of_groups or []:
        groups.setdefault(group.choice_field, group)
    _validate_one_of_groups(groups.values(), body, warnings)

    return ValidationResult(valid=not errors, errors=errors, warnings=warnings, tool=entry.tool_info())


def format_validation_result(result: ValidationResult) -> str:
    lines = []
    if result.valid:
        lines.append("✅ Validation passed")
        if result.tool:
            lines.append(f"   Tool: {result.tool['name']}")
            lines.append(f"   Operation: {result.tool['method']} {result.tool['path']}")
    else:
        lines.append("❌ Validation failed")
        lines.append("")
        lines.append("Errors:")
        for error in result.errors:
            lines.append(f"  • {error.path}: {error.message}")
            if error.expected:
                lines.append(f"    Expected: {error.expected}")
            if error.actual:
                lines.append(f"    Actual: {error.actual}")

    if result.warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"  ⚠️ {w}" for w in result.warnings)

    return "\n".join(lines)


__all__ = [
    "get_nested_value",
    "lookup_path_value",
    "validate_tool_params",
    "format_validation_result",
]
