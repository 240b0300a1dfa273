"""Input validation for tool arguments."""

from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel

from .errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_validation_errors(exc: pydantic.ValidationError) -> str:
    """Flatten every pydantic error into a single "field: message" list."""
    parts = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err["loc"]) or "input"
        parts.append(f"{location}: {err['msg']}")
    return ", ".join(parts)


def validate_input(model_cls: type[ModelT], raw: Any) -> ModelT:
    """Validate untrusted tool arguments against an input model.

    Args:
        model_cls: Pydantic model declaring the operation's arguments
        raw: Arguments as received from the MCP host (``None`` means no arguments)

    Returns:
        A validated, defaulted model instance

    Raises:
        ValidationError: listing every violated field, not only the first one
    """
    if raw is None:
        raw = {}
    try:
        return model_cls.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Validation failed: {format_validation_errors(e)}") from e
