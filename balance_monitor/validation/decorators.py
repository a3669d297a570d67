"""
Balance Monitor - Validation Decorators

Applies Pydantic validation to MCP tool inputs and turns failures into
structured error responses.
"""

import functools
import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from ..errors import ErrorCode, make_error_response
from ..observability import get_observability

logger = logging.getLogger(__name__)


def _describe_errors(error: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": " -> ".join(str(loc) for loc in item["loc"]),
            "message": item["msg"],
            "type": item["type"],
        }
        for item in error.errors()
    ]


def validate_input(schema: type[BaseModel]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator to validate async tool inputs using a Pydantic schema.

    The wrapped coroutine receives the validated fields as keyword
    arguments (defaults filled in).

    Example:
        >>> @validate_input(GetSystemLogsInput)
        ... async def get_system_logs(limit: int = 50, log_type: str | None = None):
        ...     pass

    Error Response:
        {
            "success": False,
            "error_code": "INVALID_INPUT",
            "message": "Input validation failed",
            "details": {
                "validation_errors": [
                    {"field": "limit", "message": "...", "type": "less_than_equal"}
                ],
                "function": "get_system_logs"
            }
        }
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            obs = get_observability()

            try:
                validated = schema(**kwargs)
            except ValidationError as e:
                validation_errors = _describe_errors(e)
                logger.warning(
                    f"Input validation failed for {func.__name__}",
                    extra={"function": func.__name__, "validation_errors": validation_errors},
                )
                obs.increment(
                    "validation.failed",
                    tags={"function": func.__name__, "error_count": str(len(validation_errors))},
                )
                return make_error_response(
                    error_code=ErrorCode.INVALID_INPUT,
                    message="Input validation failed",
                    context={"validation_errors": validation_errors, "function": func.__name__},
                )

            return await func(*args, **validated.model_dump(exclude_unset=False))

        return wrapper

    return decorator
