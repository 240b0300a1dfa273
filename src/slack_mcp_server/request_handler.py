"""Turns validated operations into ServiceResults; the only place exceptions are converted."""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

import pydantic
from pydantic import BaseModel
from slack_sdk.errors import SlackApiError

from .errors import SlackMCPError, UnknownError
from .result import ServiceFailure, ServiceResult, ServiceSuccess, service_error, service_success
from .validation import validate_input

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def slack_error_code(error: SlackApiError) -> str:
    response = error.response
    code = response.get("error") if response is not None else None
    return code or "unknown_error"


class RequestHandler:
    """Validate, run, classify.

    ``handle`` and ``handle_with_custom_format`` never raise: every failure
    becomes a ``ServiceFailure`` whose ``error`` is machine-usable (a Slack
    error code or our own message) and whose ``message`` names the category.
    """

    def _failure(self, exc: Exception, error_message: str) -> ServiceFailure:
        if isinstance(exc, SlackApiError):
            code = slack_error_code(exc)
            logger.warning(f"{error_message}: Slack API error {code}")
            return service_error(code, f"{error_message}: Slack API error (api_error)")
        if isinstance(exc, SlackMCPError):
            logger.warning(f"{error_message}: {exc.category}: {exc.message}")
            return service_error(exc.message, f"{error_message} ({exc.category})")
        if isinstance(exc, pydantic.ValidationError):
            # result models reject non-mapping payloads
            logger.error(f"{error_message}: invalid result payload: {exc}")
            return service_error(f"Invalid result: {exc}", f"{error_message} ({UnknownError.category})")
        logger.error(f"{error_message}: unexpected {type(exc).__name__}: {exc}", exc_info=True)
        return service_error(str(exc) or type(exc).__name__, f"{error_message} ({UnknownError.category})")

    async def handle(
        self,
        model_cls: type[ModelT],
        args: Any,
        operation: Callable[[ModelT], Awaitable[Mapping[str, Any]]],
        success_message: str = "Operation completed successfully",
        error_message: str = "Operation failed",
    ) -> ServiceResult:
        """Validate ``args`` and wrap the mapping returned by ``operation``."""
        try:
            validated = validate_input(model_cls, args)
            data = await operation(validated)
            return service_success(data, success_message)
        except Exception as e:
            return self._failure(e, error_message)

    async def handle_with_custom_format(
        self,
        model_cls: type[ModelT],
        args: Any,
        operation: Callable[[ModelT], Awaitable[ServiceResult | Mapping[str, Any]]],
        success_message: str = "Operation completed successfully",
        error_message: str = "Operation failed",
    ) -> ServiceResult:
        """Like ``handle``, but an operation may build its own ServiceResult."""
        try:
            validated = validate_input(model_cls, args)
            result = await operation(validated)
            if isinstance(result, (ServiceSuccess, ServiceFailure)):
                return result
            return service_success(result, success_message)
        except Exception as e:
            return self._failure(e, error_message)
