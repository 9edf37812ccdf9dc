"""
Input-shape validation for tool arguments.

Tool input shapes are JSON Schema documents rooted at an object with
``properties``. Validation is delegated to ``jsonschema``; this module only
adds a deterministic ordering of violations, field-path rendering and default
filling.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence

from jsonschema import Draft202012Validator
from jsonschema.exceptions import SchemaError, ValidationError

from zkpret_mcp.errors import InvalidDefinitionError


@dataclass(frozen=True, slots=True)
class Violation:
    path: str
    message: str
    expected: str

    def describe(self) -> str:
        return f"{self.path}: {self.message} (expected {self.expected})"


def render_path(parts: Sequence[Any]) -> str:
    rendered = "$"
    for part in parts:
        if isinstance(part, int):
            rendered += f"[{part}]"
        else:
            rendered += f".{part}"
    return rendered


def check_input_shape(shape: Any) -> None:
    """Raise ``InvalidDefinitionError`` unless ``shape`` is an object-of-properties schema."""
    if not isinstance(shape, Mapping):
        raise InvalidDefinitionError("inputShape must be a mapping")
    if shape.get("type") != "object":
        raise InvalidDefinitionError("inputShape root must declare type 'object'")
    if not isinstance(shape.get("properties"), Mapping):
        raise InvalidDefinitionError("inputShape root must declare a 'properties' mapping")
    required = shape.get("required", [])
    if not isinstance(required, list) or any(name not in shape["properties"] for name in required):
        raise InvalidDefinitionError("inputShape 'required' must list declared properties")
    try:
        Draft202012Validator.check_schema(dict(shape))
    except SchemaError as exc:
        raise InvalidDefinitionError(f"inputShape is not a valid schema: {exc.message}") from exc


def _missing_property(error: ValidationError) -> Optional[str]:
    missing = [name for name in error.validator_value if name not in error.instance]
    for name in missing:
        if error.message == f"{name!r} is a required property":
            return name
    return missing[0] if missing else None


def _violation_from_error(error: ValidationError) -> Violation:
    parts = list(error.absolute_path)
    if error.validator == "required" and isinstance(error.instance, Mapping):
        name = _missing_property(error)
        if name is not None:
            return Violation(
                path=render_path(parts + [name]),
                message="required property is missing",
                expected="a value",
            )
    if error.validator == "additionalProperties" and isinstance(error.instance, Mapping):
        declared = error.schema.get("properties", {})
        extras = sorted(str(key) for key in error.instance if key not in declared)
        if extras:
            return Violation(
                path=render_path(parts + [extras[0]]),
                message="unexpected property",
                expected="no additional properties",
            )
    return Violation(
        path=render_path(parts),
        message=error.message,
        expected=f"{error.validator}={error.validator_value!r}",
    )


def _sort_key(error: ValidationError) -> tuple:
    return (
        [str(part) for part in error.absolute_path],
        str(error.validator),
        error.message,
    )


def validate_arguments(shape: Mapping[str, Any], arguments: Any) -> List[Violation]:
    """Return every violation of ``arguments`` against ``shape`` in a stable order."""
    if not isinstance(arguments, Mapping):
        return [Violation(path="$", message="arguments must be an object", expected="type='object'")]
    validator = Draft202012Validator(dict(shape))
    errors = sorted(validator.iter_errors(dict(arguments)), key=_sort_key)
    return [_violation_from_error(error) for error in errors]


def apply_defaults(shape: Mapping[str, Any], arguments: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of ``arguments`` with declared property defaults filled in for absent fields."""
    filled: Dict[str, Any] = copy.deepcopy(dict(arguments))
    for name, subschema in shape.get("properties", {}).items():
        if not isinstance(subschema, Mapping):
            continue
        if name not in filled:
            if "default" in subschema:
                filled[name] = copy.deepcopy(subschema["default"])
        elif isinstance(filled[name], Mapping) and isinstance(subschema.get("properties"), Mapping):
            filled[name] = apply_defaults(subschema, filled[name])
    return filled
