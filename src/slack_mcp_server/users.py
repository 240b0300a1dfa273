"""User lookups with an in-memory cache, shared by every domain service."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from slack_sdk.errors import SlackApiError

from .clients import Capability, SlackClientManager
from .rate_limit import RateLimitService

logger = logging.getLogger(__name__)


@dataclass
class User:
    """Represents a Slack user."""

    id: str
    name: str
    real_name: str = ""
    display_name: str = ""
    is_bot: bool = False

    @property
    def best_name(self) -> str:
        return self.display_name or self.real_name or self.name or self.id


class UserService:
    """Resolves user ids to names, caching both the raw record and the mapping."""

    def __init__(self, client_manager: SlackClientManager, rate_limiter: RateLimitService):
        self.client_manager = client_manager
        self.rate_limiter = rate_limiter
        self._raw: dict[str, dict[str, Any]] = {}
        self._users: dict[str, User] = {}

    def _map_user(self, u: dict[str, Any]) -> User:
        profile = u.get("profile") or {}
        return User(
            id=u["id"],
            name=u.get("name", ""),
            real_name=u.get("real_name", profile.get("real_name", "")),
            display_name=profile.get("display_name", ""),
            is_bot=u.get("is_bot", False),
        )

    def remember(self, u: dict[str, Any]) -> User:
        """Cache a user record obtained elsewhere (e.g. users.list)."""
        user = self._map_user(u)
        self._raw[user.id] = u
        self._users[user.id] = user
        return user

    async def get_user_info(self, user_id: str) -> dict[str, Any]:
        """Return the raw users.info record, fetching once per id.

        Raises:
            SlackApiError: when Slack rejects the lookup (e.g. user_not_found)
        """
        if user_id in self._raw:
            return self._raw[user_id]
        client = self.client_manager.get_client_for_operation(Capability.READ)
        response = await self.rate_limiter.call("users.info", lambda: client.users_info(user=user_id))
        u = response.get("user") or {"id": user_id}
        self.remember(u)
        return u

    async def get_display_name(self, user_id: str) -> str:
        """Best human-readable name for a user; falls back to the id on lookup failure."""
        if not user_id:
            return ""
        if user_id in self._users:
            return self._users[user_id].best_name
        try:
            await self.get_user_info(user_id)
        except SlackApiError as e:
            logger.warning(f"Failed to resolve user {user_id}: {e.response.get('error', 'unknown_error')}")
            return user_id
        return self._users[user_id].best_name

    async def bulk_get_display_names(self, user_ids: list[str]) -> dict[str, str]:
        unique = [uid for uid in dict.fromkeys(user_ids) if uid]
        names = await asyncio.gather(*(self.get_display_name(uid) for uid in unique))
        return dict(zip(unique, names))

    def get_user(self, user_id: str) -> User | None:
        """Get a cached user by ID."""
        return self._users.get(user_id)
