"""Dependencies and Slack call helper shared by the domain services."""

import logging
from dataclasses import dataclass
from typing import Any

from slack_sdk.errors import SlackApiError

from ..clients import Capability, SlackClientManager
from ..config import ServerConfig
from ..errors import ApiError
from ..rate_limit import RateLimitService
from ..request_handler import RequestHandler, slack_error_code
from ..users import UserService

logger = logging.getLogger(__name__)


@dataclass
class ServiceDependencies:
    client_manager: SlackClientManager
    rate_limiter: RateLimitService
    request_handler: RequestHandler
    user_service: UserService
    config: ServerConfig | None = None


def api_method_name(method_attr: str) -> str:
    """``chat_postMessage`` -> ``chat.postMessage``."""
    return method_attr.replace("_", ".", 1)


class BaseService:
    """Base for domain services.

    Public coroutine methods take raw ``args`` and return a ``ServiceResult``;
    ``_api`` is the single path to Slack so every call is rate limited.
    """

    def __init__(self, deps: ServiceDependencies):
        self.deps = deps
        self.client_manager = deps.client_manager
        self.rate_limiter = deps.rate_limiter
        self.request_handler = deps.request_handler
        self.user_service = deps.user_service

    async def _api(self, capability: Capability, method_attr: str, **params: Any) -> Any:
        """Call ``AsyncWebClient.<method_attr>(**params)`` under the rate limiter.

        ``None`` parameters are dropped so optional arguments never reach Slack.

        Raises:
            ApiError: when Slack answers ``ok: false`` without raising
        """
        client = self.client_manager.get_client_for_operation(capability)
        method = getattr(client, method_attr)
        name = api_method_name(method_attr)
        params = {k: v for k, v in params.items() if v is not None}

        logger.debug(f"Calling {name}")
        response = await self.rate_limiter.call(name, lambda: method(**params))
        if response.get("ok") is False:
            code = response.get("error", "unknown_error")
            raise ApiError(f"{name} failed: {code}", code=code)
        return response

    async def _read(self, method_attr: str, **params: Any) -> Any:
        return await self._api(Capability.READ, method_attr, **params)

    async def _write(self, method_attr: str, **params: Any) -> Any:
        return await self._api(Capability.WRITE, method_attr, **params)

    async def _search(self, method_attr: str, operation_name: str, alternative: str, **params: Any) -> Any:
        self.client_manager.check_search_api_availability(operation_name, alternative)
        return await self._api(Capability.SEARCH, method_attr, **params)


def failure_code(exc: Exception) -> str | None:
    """Slack error code carried by a failed call, if any."""
    if isinstance(exc, SlackApiError):
        return slack_error_code(exc)
    return getattr(exc, "code", None)
