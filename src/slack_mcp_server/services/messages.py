"""Messaging tools: posting, channel listing, history, users and search."""

import logging
from typing import Any

from slack_sdk.errors import SlackApiError

from ..errors import SlackMCPError
from ..pagination import PaginatedData, PaginationStrategy, execute_pagination, next_cursor
from ..result import ServiceResult
from ..schemas import (
    GetChannelHistoryInput,
    GetChannelInfoInput,
    GetUserInfoInput,
    ListChannelsInput,
    SearchMessagesInput,
    SendMessageInput,
)
from ..text_utils import process_text, resolve_time_range, timestamp_to_iso
from .base import BaseService

logger = logging.getLogger(__name__)


def format_channel(c: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": c.get("id", ""),
        "name": c.get("name", ""),
        "isPrivate": c.get("is_private", False),
        "isMember": c.get("is_member", False),
        "isArchived": c.get("is_archived", False),
        "memberCount": c.get("num_members", 0),
        "topic": (c.get("topic") or {}).get("value", ""),
        "purpose": (c.get("purpose") or {}).get("value", ""),
    }


def format_message(msg: dict[str, Any], display_name: str | None = None) -> dict[str, Any]:
    """Slack message to the compact shape returned by history-style tools."""
    formatted = {
        "type": msg.get("type", "message"),
        "user": msg.get("user", ""),
        "text": msg.get("text", ""),
        "ts": msg.get("ts", ""),
        "threadTs": msg.get("thread_ts"),
        "replyCount": msg.get("reply_count", 0),
        "reactions": [
            {"name": r.get("name", ""), "count": r.get("count", 0), "users": r.get("users", [])}
            for r in msg.get("reactions", [])
        ],
        "files": [
            {"id": f.get("id", ""), "name": f.get("name", ""), "mimetype": f.get("mimetype", "")}
            for f in msg.get("files", [])
        ],
    }
    if display_name is not None:
        formatted["userDisplayName"] = display_name
    if msg.get("subtype"):
        formatted["subtype"] = msg["subtype"]
    return formatted


def message_line(msg: dict[str, Any]) -> str:
    """One human-readable line per message."""
    try:
        when = timestamp_to_iso(msg.get("ts", ""))
    except ValueError:
        when = msg.get("ts", "")
    who = msg.get("userDisplayName") or msg.get("user") or "unknown"
    return f"[{when}] {who}: {process_text(msg.get('text', ''))}"


class MessageService(BaseService):
    """send_message, list_channels, get_channel_history, get_user_info, search_messages, get_channel_info."""

    async def send_message(self, args: Any) -> ServiceResult:
        async def op(input: SendMessageInput) -> dict[str, Any]:
            response = await self._write(
                "chat_postMessage", channel=input.channel, text=input.text, thread_ts=input.thread_ts
            )
            return {
                "success": True,
                "channel": response.get("channel", input.channel),
                "ts": response.get("ts", ""),
                "message": response.get("message", {}).get("text", input.text),
            }

        return await self.request_handler.handle(
            SendMessageInput, args, op, success_message="Message sent successfully",
            error_message="Failed to send message",
        )

    async def list_channels(self, args: Any) -> ServiceResult:
        async def op(input: ListChannelsInput) -> dict[str, Any]:
            async def fetch_page(cursor: str | None) -> Any:
                return await self._read(
                    "conversations_list",
                    types=input.types,
                    exclude_archived=input.exclude_archived,
                    limit=input.limit,
                    cursor=cursor,
                )

            async def format_response(data: PaginatedData) -> dict[str, Any]:
                channels = [format_channel(c) for c in data.items]
                if input.name_filter:
                    needle = input.name_filter.lower()
                    channels = [c for c in channels if needle in c["name"].lower()]
                return {
                    "channels": channels,
                    "total": len(channels),
                    "hasMore": data.has_more,
                    "responseMetadata": {"nextCursor": data.cursor},
                    "pageCount": data.page_count,
                    "filteredBy": {"types": input.types, "nameFilter": input.name_filter},
                }

            return await execute_pagination(
                input,
                PaginationStrategy(
                    fetch_page=fetch_page,
                    get_cursor=next_cursor,
                    get_items=lambda r: r.get("channels", []),
                    format_response=format_response,
                ),
            )

        return await self.request_handler.handle(
            ListChannelsInput, args, op, success_message="Channels retrieved successfully",
            error_message="Failed to list channels",
        )

    async def get_channel_history(self, args: Any) -> ServiceResult:
        async def op(input: GetChannelHistoryInput) -> dict[str, Any]:
            oldest, latest = resolve_time_range(input.after_date, input.before_date, input.oldest_ts, input.latest_ts)

            async def fetch_page(cursor: str | None) -> Any:
                return await self._read(
                    "conversations_history",
                    channel=input.channel,
                    limit=input.limit,
                    cursor=cursor,
                    oldest=oldest,
                    latest=latest,
                )

            async def format_response(data: PaginatedData) -> dict[str, Any]:
                names = await self.user_service.bulk_get_display_names([m.get("user", "") for m in data.items])
                messages = [format_message(m, names.get(m.get("user", ""), m.get("user", ""))) for m in data.items]
                return {
                    "messages": messages,
                    "hasMore": data.has_more,
                    "responseMetadata": {"nextCursor": data.cursor},
                    "pageCount": data.page_count,
                    "channel": input.channel,
                    "formattedMessages": [message_line(m) for m in messages],
                }

            return await execute_pagination(
                input,
                PaginationStrategy(
                    fetch_page=fetch_page,
                    get_cursor=next_cursor,
                    get_items=lambda r: r.get("messages", []),
                    format_response=format_response,
                ),
            )

        return await self.request_handler.handle(
            GetChannelHistoryInput, args, op, success_message="Channel history retrieved successfully",
            error_message="Failed to get channel history",
        )

    async def get_user_info(self, args: Any) -> ServiceResult:
        async def op(input: GetUserInfoInput) -> dict[str, Any]:
            u = await self.user_service.get_user_info(input.user)
            profile = u.get("profile") or {}
            return {
                "id": u.get("id", input.user),
                "name": u.get("name", ""),
                "realName": u.get("real_name", profile.get("real_name", "")),
                "displayName": profile.get("display_name", ""),
                "email": profile.get("email"),
                "title": profile.get("title", ""),
                "timezone": u.get("tz"),
                "isBot": u.get("is_bot", False),
                "isAdmin": u.get("is_admin", False),
                "isDeleted": u.get("deleted", False),
                "profile": {
                    "image24": profile.get("image_24"),
                    "image72": profile.get("image_72"),
                    "statusText": profile.get("status_text", ""),
                    "statusEmoji": profile.get("status_emoji", ""),
                },
            }

        return await self.request_handler.handle(
            GetUserInfoInput, args, op, success_message="User information retrieved successfully",
            error_message="Failed to get user information",
        )

    async def search_messages(self, args: Any) -> ServiceResult:
        async def op(input: SearchMessagesInput) -> dict[str, Any]:
            query = input.query
            if input.after:
                query += f" after:{input.after}"
            if input.before:
                query += f" before:{input.before}"

            response = await self._search(
                "search_messages",
                "search_messages",
                "Use get_channel_history to browse messages in a specific channel",
                query=query,
                sort=input.sort,
                sort_dir=input.sort_dir,
                count=input.count,
                page=input.page,
                highlight=input.highlight,
            )
            results = response.get("messages") or {}
            paging = results.get("paging") or {}
            matches = results.get("matches", [])
            return {
                "messages": [
                    {
                        "text": m.get("text", ""),
                        "user": m.get("user", ""),
                        "ts": m.get("ts", ""),
                        "channel": (m.get("channel") or {}).get("id", ""),
                        "permalink": m.get("permalink", ""),
                    }
                    for m in matches
                ],
                "total": results.get("total", len(matches)),
                "query": query,
                "hasMore": paging.get("page", 1) < paging.get("pages", 1),
            }

        return await self.request_handler.handle(
            SearchMessagesInput, args, op, success_message="Search completed successfully",
            error_message="Failed to search messages",
        )

    async def get_channel_info(self, args: Any) -> ServiceResult:
        async def op(input: GetChannelInfoInput) -> dict[str, Any]:
            response = await self._read("conversations_info", channel=input.channel)
            c = response.get("channel") or {}
            members: list[str] = []
            try:
                members_response = await self._read("conversations_members", channel=input.channel, limit=1000)
                members = members_response.get("members", [])
            except (SlackApiError, SlackMCPError) as e:
                # membership is optional detail; bot may not be a member
                logger.warning(f"Could not list members of {input.channel}: {e}")
            return {
                "id": c.get("id", input.channel),
                "name": c.get("name", ""),
                "isChannel": c.get("is_channel", False),
                "isGroup": c.get("is_group", False),
                "isPrivate": c.get("is_private", False),
                "isArchived": c.get("is_archived", False),
                "created": c.get("created", 0),
                "creator": c.get("creator", ""),
                "topic": (c.get("topic") or {}).get("value", ""),
                "purpose": (c.get("purpose") or {}).get("value", ""),
                "memberCount": c.get("num_members", len(members)),
                "members": members,
            }

        return await self.request_handler.handle(
            GetChannelInfoInput, args, op, success_message="Channel information retrieved successfully",
            error_message="Failed to get channel information",
        )
