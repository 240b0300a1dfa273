"""ServiceResult - the success/error container every tool operation returns.

Domain services never raise to their callers. They return either a
``ServiceSuccess`` carrying a JSON-object payload or a ``ServiceFailure``
carrying an error description. ``to_api_response`` projects both onto the
statusCode-bearing shape clients depend on.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel

SUCCESS_STATUS_CODE = "10000"
ERROR_STATUS_CODE = "10001"


class ServiceSuccess(BaseModel):
    """Successful operation. ``data`` must be a mapping, never a list or None."""

    model_config = {"frozen": True}

    success: Literal[True] = True
    data: dict[str, Any]
    message: str


class ServiceFailure(BaseModel):
    """Failed operation with a machine-usable ``error`` and a readable ``message``."""

    model_config = {"frozen": True}

    success: Literal[False] = False
    error: str
    message: str


ServiceResult = Union[ServiceSuccess, ServiceFailure]


def service_success(data: Any, message: str) -> ServiceSuccess:
    """Build a success result; rejects non-mapping payloads at construction time."""
    return ServiceSuccess(data=data, message=message)


def service_error(error: str, message: str) -> ServiceFailure:
    """Build a failure result."""
    return ServiceFailure(error=error, message=message)


def to_api_response(result: ServiceResult) -> dict[str, Any]:
    """Project a ServiceResult onto the wire-adjacent ApiResponse shape."""
    if result.success:
        return {
            "statusCode": SUCCESS_STATUS_CODE,
            "message": result.message,
            "data": result.data,
        }
    return {
        "statusCode": ERROR_STATUS_CODE,
        "message": result.message,
        "error": result.error,
    }
