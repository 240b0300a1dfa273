"""Projects ServiceResults onto the MCP text-content envelope."""

import inspect
import json
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

from .result import ServiceResult, to_api_response

McpResponse = dict[str, Any]
Operation = Callable[[Any], Awaitable[ServiceResult]]
AdaptedOperation = Callable[[Any], Awaitable[McpResponse]]


def to_mcp_response(result: ServiceResult) -> McpResponse:
    """``{"content": [{"type": "text", "text": ...}]}`` plus ``isError`` for failures."""
    text = json.dumps(to_api_response(result), indent=2, ensure_ascii=False)
    response: McpResponse = {"content": [{"type": "text", "text": text}]}
    if not result.success:
        response["isError"] = True
    return response


def adapt(operation: Operation) -> AdaptedOperation:
    """Wrap a service operation so it answers with the MCP envelope.

    Operations already turn their own failures into ``ServiceFailure``, so
    nothing is caught here.
    """

    @wraps(operation)
    async def adapted(args: Any = None) -> McpResponse:
        return to_mcp_response(await operation(args if args is not None else {}))

    return adapted


def adapt_service(service: Any) -> dict[str, AdaptedOperation]:
    """Adapt every public coroutine method of ``service``, keyed by method name."""
    return {
        name: adapt(method)
        for name, method in inspect.getmembers(service, inspect.iscoroutinefunction)
        if not name.startswith("_")
    }
