"""Structural limits on request bodies.

Checked before any network call so that oversized or deeply nested payloads
are rejected locally.
"""

from dataclasses import dataclass
from typing import Any, Optional

from .config import env_int


class BodyValidationError(ValueError):
    """Raised when a request body breaks a structural limit

    Args:
        message: Human readable description
        path: Location of the offending value (e.g. "root.spec.rules[3]")
        actual: Measured depth or length
        limit: Configured maximum
    """

    def __init__(self, message: str, path: str = "root", actual: Optional[int] = None, limit: Optional[int] = None):
        super().__init__(message)
        self.path = path
        self.actual = actual
        self.limit = limit


@dataclass(frozen=True)
class BodyLimits:
    max_depth: int = 10
    max_array_length: Optional[int] = None
    max_string_length: Optional[int] = None


def validate_object_depth(obj: Any, max_depth: int = 10, path: str = "root", depth: int = 0) -> None:
    if not isinstance(obj, (dict, list)):
        return
    if depth > max_depth:
        raise BodyValidationError(
            f"Object nesting exceeds maximum depth of {max_depth}", path=path, actual=depth, limit=max_depth
        )
    if isinstance(obj, list):
        for i, item in enumerate(obj):
            validate_object_depth(item, max_depth, f"{path}[{i}]", depth + 1)
        return
    for key, value in obj.items():
        validate_object_depth(value, max_depth, f"{path}.{key}", depth + 1)


def _validate_sizes(obj: Any, limits: BodyLimits, path: str = "root") -> None:
    if isinstance(obj, str):
        if limits.max_string_length is not None and len(obj) > limits.max_string_length:
            raise BodyValidationError(
                f"String length ({len(obj)}) exceeds maximum ({limits.max_string_length})",
                path=path,
                actual=len(obj),
                limit=limits.max_string_length,
            )
        return
    if isinstance(obj, list):
        if limits.max_array_length is not None and len(obj) > limits.max_array_length:
            raise BodyValidationError(
                f"Array length ({len(obj)}) exceeds maximum ({limits.max_array_length})",
                path=path,
                actual=len(obj),
                limit=limits.max_array_length,
            )
        for i, item in enumerate(obj):
            _validate_sizes(item, limits, f"{path}[{i}]")
        return
    if isinstance(obj, dict):
        for key, value in obj.items():
            _validate_sizes(value, limits, f"{path}.{key}")


def validate_request_body(body: Any, limits: Optional[BodyLimits] = None) -> None:
    """Check depth, array length and string length limits

    Raises:
        BodyValidationError: On the first limit that is exceeded
    """
    limits = limits or BodyLimits()
    validate_object_depth(body, limits.max_depth)
    if limits.max_array_length is not None or limits.max_string_length is not None:
        _validate_sizes(body, limits)


def get_object_depth(obj: Any, depth: int = 0, seen: Optional[set] = None) -> int:
    """Measure nesting depth; revisited containers are not descended into again"""
    if not isinstance(obj, (dict, list)):
        return depth
    seen = seen if seen is not None else set()
    if id(obj) in seen:
        return depth
    seen.add(id(obj))
    children = obj if isinstance(obj, list) else list(obj.values())
    if not children:
        return depth
    return max(get_object_depth(child, depth + 1, seen) for child in children)


def body_limits_from_env() -> BodyLimits:
    return BodyLimits(
        max_depth=env_int("MAX_DEPTH", BodyLimits.max_depth),
        max_array_length=env_int("MAX_ARRAY_LENGTH", None),
        max_string_length=env_int("MAX_STRING_LENGTH", None),
    )


__all__ = [
    "BodyValidationError",
    "BodyLimits",
    "validate_object_depth",
    "validate_request_body",
    "get_object_depth",
    "body_limits_from_env",
]
