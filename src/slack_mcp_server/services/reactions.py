"""Reaction tools: add, remove, inspect, aggregate and search by reaction."""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from ..errors import NotFoundError
from ..result import ServiceResult
from ..schemas import (
    AddReactionInput,
    FindMessagesByReactionsInput,
    GetReactionsInput,
    GetReactionStatisticsInput,
    RemoveReactionInput,
)
from ..text_utils import date_to_timestamp, days_ago_timestamp, ts_to_float
from .base import BaseService

logger = logging.getLogger(__name__)

STATS_MAX_CHANNELS = 10
STATS_PER_CHANNEL_LIMIT = 100
HISTORY_LIMIT = 1000


def reaction_names(message: dict[str, Any]) -> set[str]:
    return {r.get("name", "") for r in message.get("reactions", [])}


def total_reaction_count(message: dict[str, Any]) -> int:
    return sum(r.get("count", 0) for r in message.get("reactions", []))


def matches_reactions(message: dict[str, Any], wanted: set[str], match_type: str, min_count: int) -> bool:
    """``any`` needs one requested reaction, ``all`` needs every one; both need ``min_count`` in total."""
    names = reaction_names(message)
    if match_type == "all":
        found = wanted <= names
    else:
        found = bool(wanted & names)
    return found and total_reaction_count(message) >= min_count


class ReactionService(BaseService):
    """Reaction reads and writes."""

    async def add_reaction(self, args: Any) -> ServiceResult:
        async def op(input: AddReactionInput) -> dict[str, Any]:
            await self._write(
                "reactions_add", channel=input.channel, timestamp=input.message_ts, name=input.reaction_name
            )
            return {
                "success": True,
                "channel": input.channel,
                "message_ts": input.message_ts,
                "reaction_name": input.reaction_name,
                "message": f"Added :{input.reaction_name}: reaction",
            }

        return await self.request_handler.handle(
            AddReactionInput, args, op, success_message="Reaction added successfully",
            error_message="Failed to add reaction",
        )

    async def remove_reaction(self, args: Any) -> ServiceResult:
        async def op(input: RemoveReactionInput) -> dict[str, Any]:
            await self._write(
                "reactions_remove", channel=input.channel, timestamp=input.message_ts, name=input.reaction_name
            )
            return {
                "success": True,
                "channel": input.channel,
                "message_ts": input.message_ts,
                "reaction_name": input.reaction_name,
                "message": f"Removed :{input.reaction_name}: reaction",
            }

        return await self.request_handler.handle(
            RemoveReactionInput, args, op, success_message="Reaction removed successfully",
            error_message="Failed to remove reaction",
        )

    async def get_reactions(self, args: Any) -> ServiceResult:
        async def op(input: GetReactionsInput) -> dict[str, Any]:
            response = await self._read(
                "reactions_get", channel=input.channel, timestamp=input.message_ts, full=input.full
            )
            message = response.get("message")
            if not message:
                raise NotFoundError(f"Message {input.message_ts} not found in channel {input.channel}")

            reactions = []
            for r in message.get("reactions", []):
                entry: dict[str, Any] = {
                    "name": r.get("name", ""), "count": r.get("count", 0), "users": r.get("users", [])
                }
                if input.full:
                    names = await self.user_service.bulk_get_display_names(entry["users"])
                    entry["userDetails"] = [{"id": u, "name": names.get(u, u)} for u in entry["users"]]
                reactions.append(entry)

            return {
                "reactions": reactions,
                "message": {
                    "type": message.get("type", "message"),
                    "user": message.get("user", ""),
                    "text": message.get("text", ""),
                    "ts": message.get("ts", input.message_ts),
                },
                "channel": input.channel,
                "totalReactions": sum(r["count"] for r in reactions),
            }

        return await self.request_handler.handle(
            GetReactionsInput, args, op, success_message="Reactions retrieved successfully",
            error_message="Failed to get reactions",
        )

    async def get_reaction_statistics(self, args: Any) -> ServiceResult:
        async def op(input: GetReactionStatisticsInput) -> dict[str, Any]:
            oldest = days_ago_timestamp(input.days_back)
            messages: list[dict[str, Any]] = []
            if input.channel:
                response = await self._read(
                    "conversations_history", channel=input.channel, oldest=oldest, limit=HISTORY_LIMIT
                )
                messages.extend(response.get("messages", []))
            else:
                channels = await self._read("conversations_list", exclude_archived=True, limit=100)
                for channel in channels.get("channels", [])[:STATS_MAX_CHANNELS]:
                    if not channel.get("id"):
                        continue
                    response = await self._read(
                        "conversations_history", channel=channel["id"], oldest=oldest, limit=STATS_PER_CHANNEL_LIMIT
                    )
                    messages.extend(response.get("messages", []))

            by_reaction: Counter[str] = Counter()
            by_user: Counter[str] = Counter()
            by_day: Counter[str] = Counter()
            for message in messages:
                day = datetime.fromtimestamp(ts_to_float(message.get("ts")), tz=timezone.utc).date().isoformat()
                for r in message.get("reactions", []):
                    users = r.get("users", [])
                    if input.user:
                        count = users.count(input.user)
                    else:
                        count = r.get("count", 0)
                    if not count:
                        continue
                    by_reaction[r.get("name", "")] += count
                    by_day[day] += count
                    for u in users:
                        if not input.user or u == input.user:
                            by_user[u] += 1

            total = sum(by_reaction.values())
            result: dict[str, Any] = {
                "totalReactions": total,
                "topReactions": [
                    {"name": name, "count": count, "percentage": round(count / total * 100) if total else 0}
                    for name, count in by_reaction.most_common(input.top_count)
                ],
                "topUsers": [
                    {"userId": user, "reactionCount": count} for user, count in by_user.most_common(input.top_count)
                ],
                "period": f"{input.days_back} days",
                "messagesAnalyzed": len(messages),
            }
            if input.include_trends:
                today = datetime.now(timezone.utc).date()
                result["trends"] = [
                    {"date": d.isoformat(), "count": by_day.get(d.isoformat(), 0)}
                    for d in (today - timedelta(days=i) for i in range(input.days_back - 1, -1, -1))
                ]
            return result

        return await self.request_handler.handle(
            GetReactionStatisticsInput, args, op, success_message="Reaction statistics calculated",
            error_message="Failed to get reaction statistics",
        )

    async def find_messages_by_reactions(self, args: Any) -> ServiceResult:
        async def op(input: FindMessagesByReactionsInput) -> dict[str, Any]:
            wanted = set(input.reactions)

            if input.channel:
                response = await self._read(
                    "conversations_history",
                    channel=input.channel,
                    limit=HISTORY_LIMIT,
                    oldest=date_to_timestamp(input.after) if input.after else None,
                    latest=date_to_timestamp(input.before, end_of_day=True) if input.before else None,
                )
                candidates = response.get("messages", [])
                method = "channel_history"
            else:
                joiner = " OR " if input.match_type == "any" else " "
                query = joiner.join(f"has:{name}" for name in input.reactions)
                if input.after:
                    query += f" after:{input.after}"
                if input.before:
                    query += f" before:{input.before}"
                response = await self._search(
                    "search_messages",
                    "find_messages_by_reactions",
                    "Specify a channel to search its history instead",
                    query=query,
                    count=100,
                    sort="timestamp",
                    sort_dir="desc",
                )
                candidates = (response.get("messages") or {}).get("matches", [])
                method = "workspace_search"

            def keep(m: dict[str, Any]) -> bool:
                # search matches carry no reaction details; the has: query already selected them
                if method == "workspace_search" and "reactions" not in m:
                    return True
                return matches_reactions(m, wanted, input.match_type, input.min_reaction_count)

            found = [
                {
                    "channel": input.channel or (m.get("channel") or {}).get("id", ""),
                    "ts": m.get("ts", ""),
                    "user": m.get("user", ""),
                    "text": m.get("text", ""),
                    "reactions": [
                        {"name": r.get("name", ""), "count": r.get("count", 0)} for r in m.get("reactions", [])
                    ],
                    "totalReactions": total_reaction_count(m),
                    "permalink": m.get("permalink"),
                }
                for m in candidates
                if keep(m)
            ][: input.limit]

            return {
                "messages": found,
                "total": len(found),
                "searchedReactions": input.reactions,
                "matchType": input.match_type,
                "minReactionCount": input.min_reaction_count,
                "searchMethod": method,
            }

        return await self.request_handler.handle(
            FindMessagesByReactionsInput, args, op, success_message="Messages found by reactions",
            error_message="Failed to find messages by reactions",
        )
