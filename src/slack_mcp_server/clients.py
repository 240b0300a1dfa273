"""Slack client selection by operation capability."""

import logging
import ssl
from enum import Enum
from typing import Any

import certifi
from slack_sdk.web.async_client import AsyncWebClient

from .config import ServerConfig
from .errors import AuthorizationError

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    """What an operation needs from Slack; decides which token is used."""

    READ = "read"
    WRITE = "write"
    SEARCH = "search"


class SlackClientManager:
    """Holds the bot client and the optional user client.

    Writes always go through the bot token. Reads use the user token only when
    one is configured and preferred for reads. Search requires the user token
    because Slack rejects ``search.*`` calls made with bot tokens.
    """

    def __init__(
        self,
        bot_client: AsyncWebClient,
        user_client: AsyncWebClient | None = None,
        use_user_token_for_read: bool = False,
    ):
        self.bot_client = bot_client
        self.user_client = user_client
        self.use_user_token_for_read = use_user_token_for_read

        read_client = user_client if (user_client is not None and use_user_token_for_read) else bot_client
        self._clients: dict[Capability, AsyncWebClient] = {
            Capability.READ: read_client,
            Capability.WRITE: bot_client,
            Capability.SEARCH: user_client if user_client is not None else bot_client,
        }

    @classmethod
    def from_config(cls, config: ServerConfig) -> "SlackClientManager":
        """Create async clients for the configured tokens."""
        # certifi bundle fixes SSL verification on hosts without system CAs (macOS)
        ssl_context = ssl.create_default_context(cafile=certifi.where())

        bot_client = AsyncWebClient(token=config.bot_token, ssl=ssl_context)
        user_client = None
        if config.user_token:
            user_client = AsyncWebClient(token=config.user_token, ssl=ssl_context)
        elif config.use_user_token_for_read:
            logger.warning("use_user_token_for_read is set but no user token is configured, reads use the bot token")

        return cls(bot_client, user_client, config.use_user_token_for_read)

    @property
    def has_user_token(self) -> bool:
        return self.user_client is not None

    def get_client_for_operation(self, capability: Capability) -> AsyncWebClient:
        return self._clients[Capability(capability)]

    def check_search_api_availability(self, operation_name: str, alternative: str) -> None:
        """Raise AuthorizationError when search is requested without a user token."""
        if self.has_user_token:
            return
        raise AuthorizationError(
            f"{operation_name} requires a user token. Bot tokens cannot use search API. Please either:\n"
            "1. Set SLACK_MCP_USE_USER_TOKEN_FOR_READ=true and provide SLACK_MCP_USER_TOKEN (xoxp-*), or\n"
            f"2. {alternative}"
        )

    def capabilities(self) -> dict[str, Any]:
        """Report which token serves each capability."""
        return {
            "hasBotToken": True,
            "hasUserToken": self.has_user_token,
            "useUserTokenForRead": self.use_user_token_for_read,
            "readToken": "user" if self._clients[Capability.READ] is self.user_client else "bot",
            "searchAvailable": self.has_user_token,
        }
