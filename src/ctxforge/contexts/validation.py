"""Argument validation for context definitions.

Raw argument bags are validated against the definition's pydantic schema
before any key derivation or memory creation happens. Every violated field
is reported in a single ValidationError.
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ctxforge.contexts.errors import FieldError, ValidationError
from ctxforge.contexts.models import ContextDefinition


def _format_location(location: tuple[Any, ...]) -> str:
    return ".".join(str(part) for part in location) or "<root>"


def _field_errors(exc: PydanticValidationError) -> list[FieldError]:
    return [
        FieldError(
            field=_format_location(error["loc"]),
            message=error["msg"],
            error_type=error["type"],
        )
        for error in exc.errors()
    ]


def validate_arguments(
    definition: ContextDefinition[Any, Any], raw_args: Optional[Mapping[str, Any]]
) -> Any:
    """Validate and normalize a raw argument bag for a context definition.

    Args:
        definition: Definition whose schema the arguments must satisfy
        raw_args: Raw arguments supplied by the caller (None means no arguments)

    Returns:
        Validated arguments: an instance of the definition's schema, or None
        for definitions without a schema

    Raises:
        ValidationError: If any field is missing, mistyped or unknown
    """
    schema = definition.schema

    if schema is None:
        if raw_args:
            errors = [
                FieldError(
                    field=str(name),
                    message="Context takes no arguments",
                    error_type="extra_forbidden",
                )
                for name in raw_args
            ]
            raise ValidationError(definition.type_id, errors)
        return None

    if isinstance(raw_args, schema):
        return raw_args

    if raw_args is None:
        raw_args = {}
    elif isinstance(raw_args, BaseModel):
        raw_args = raw_args.model_dump()

    if not isinstance(raw_args, Mapping):
        error = FieldError(
            field="<root>",
            message=f"Arguments must be a mapping, got {type(raw_args).__name__}",
            error_type="mapping_type",
        )
        raise ValidationError(definition.type_id, [error])

    try:
        return schema.model_validate(dict(raw_args))
    except PydanticValidationError as exc:
        raise ValidationError(definition.type_id, _field_errors(exc)) from exc
