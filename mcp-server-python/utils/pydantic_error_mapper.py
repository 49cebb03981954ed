"""Convert Pydantic validation errors to the pipeline ToolError contract."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import ValidationError

from models.errors import ToolError, create_validation_error
from models.pipeline_state import ChangeKind, PipelineState

# Strict-mode type failures, keyed by pydantic error type.
_TYPE_MESSAGES: Dict[str, str] = {
    "int_type": "expected an integer",
    "int_parsing": "expected an integer",
    "float_type": "expected a number",
    "bool_type": "expected a boolean",
    "string_type": "expected a string",
    "dict_type": "expected an object",
    "enum": "expected a pipeline state",
}

_ENUM_FIELDS = {
    "target_state": PipelineState,
    "expected_current_state": PipelineState,
    "state": PipelineState,
    "initial_state": PipelineState,
    "state_after": PipelineState,
    "change_kind": ChangeKind,
}


def _loc_to_field(loc: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in loc if part != "__root__")


def _clean_pydantic_message(message: str) -> str:
    prefix = "Value error, "
    if message.startswith(prefix):
        return message[len(prefix) :]
    return message


def _describe(issue: Dict[str, Any], field: str) -> str:
    kind = issue.get("type", "")
    if kind in _TYPE_MESSAGES:
        detail = _TYPE_MESSAGES[kind]
        if field in _ENUM_FIELDS:
            detail = "expected one of " + ", ".join(member.value for member in _ENUM_FIELDS[field])
        return detail
    return _clean_pydantic_message(issue.get("msg", "Invalid input"))


def map_pydantic_validation_error(error: ValidationError) -> ToolError:
    """
    Map a Pydantic ValidationError to a VALIDATION_ERROR ToolError.

    Only the first issue is reported. Messages raised by request validators
    already start with "Invalid <field>" and pass through unchanged; missing
    fields become "Missing required parameter: '<field>'".
    """
    issues = error.errors()
    if not issues:
        return create_validation_error("Invalid input")

    first = issues[0]
    field = _loc_to_field(first.get("loc", ()))

    if first.get("type") == "missing" and field:
        return create_validation_error(f"Missing required parameter: '{field}'")

    message = _describe(first, field)
    if message.startswith("Invalid "):
        return create_validation_error(message)
    if field:
        return create_validation_error(f"Invalid {field}: {message}")
    return create_validation_error(message)
