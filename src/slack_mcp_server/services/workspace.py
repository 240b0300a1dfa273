"""Workspace tools: team info, member directory, activity report and server health."""

import logging
import math
import platform
import time
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any

import aiohttp
from slack_sdk.errors import SlackApiError

from .. import __version__
from ..errors import ApiError, SlackMCPError
from ..pagination import PaginatedData, PaginationStrategy, execute_pagination, next_cursor
from ..result import ServiceResult
from ..schemas import (
    GetServerHealthInput,
    GetWorkspaceActivityInput,
    GetWorkspaceInfoInput,
    ListTeamMembersInput,
)
from ..text_utils import days_ago_timestamp, resolve_time_range, timestamp_to_iso, ts_to_float
from .base import BaseService

logger = logging.getLogger(__name__)

_STARTED_AT = time.monotonic()

ACTIVITY_DEFAULT_DAYS = 7
ACTIVITY_CHANNELS = 20
ACTIVITY_CHANNELS_DETAILED = 50
ACTIVITY_HISTORY_LIMIT = 1000
RATE_LIMIT_WARNING_THRESHOLD = 10

# health thresholds, seconds
GOOD_RESPONSE = 1.0
FAIR_RESPONSE = 3.0

ICON_SIZES = (34, 44, 68, 88, 102, 132, 230)
PROFILE_IMAGE_SIZES = (24, 32, 48, 72, 192, 512)


def format_member(member: dict[str, Any], include_profile_details: bool = True) -> dict[str, Any]:
    profile = member.get("profile") or {}
    formatted: dict[str, Any] = {
        "id": member["id"],
        "name": member["name"],
        "realName": member.get("real_name"),
        "displayName": profile.get("display_name") or member.get("real_name") or member["name"],
        "isAdmin": member.get("is_admin", False),
        "isOwner": member.get("is_owner", False),
        "isBot": member.get("is_bot", False),
        "deleted": member.get("deleted", False),
    }
    if not include_profile_details:
        formatted["profile"] = {"image72": profile.get("image_72")}
        return formatted

    formatted.update(
        {
            "email": profile.get("email"),
            "title": profile.get("title"),
            "isPrimaryOwner": member.get("is_primary_owner", False),
            "isRestricted": member.get("is_restricted", False),
            "isUltraRestricted": member.get("is_ultra_restricted", False),
            "timezone": member.get("tz"),
            "timezoneLabel": member.get("tz_label"),
            "timezoneOffset": member.get("tz_offset"),
            "updated": member.get("updated"),
        }
    )
    images = {f"image{size}": profile.get(f"image_{size}") for size in PROFILE_IMAGE_SIZES}
    formatted["profile"] = {
        **images,
        "statusText": profile.get("status_text"),
        "statusEmoji": profile.get("status_emoji"),
        "statusExpiration": profile.get("status_expiration"),
        "phone": profile.get("phone"),
    }
    return formatted


def connectivity_status(elapsed: float) -> str:
    if elapsed < GOOD_RESPONSE:
        return "good"
    if elapsed < FAIR_RESPONSE:
        return "fair"
    return "slow"


def split_uptime(seconds: float) -> dict[str, int]:
    total = int(seconds)
    return {"days": total // 86400, "hours": (total % 86400) // 3600, "minutes": (total % 3600) // 60}


class WorkspaceService(BaseService):
    """get_workspace_info, list_team_members, get_workspace_activity, get_server_health."""

    async def get_workspace_info(self, args: Any) -> ServiceResult:
        async def op(input: GetWorkspaceInfoInput) -> dict[str, Any]:
            response = await self._read("team_info")
            team = response.get("team")
            if not team:
                raise ApiError("No team information available")
            if not (team.get("id") and team.get("name") and team.get("domain")):
                raise ApiError("Incomplete team information received")

            icon = team.get("icon") or {}
            return {
                "id": team["id"],
                "name": team["name"],
                "domain": team["domain"],
                "emailDomain": team.get("email_domain"),
                "icon": {f"image{size}": icon.get(f"image_{size}") for size in ICON_SIZES},
                "enterpriseId": team.get("enterprise_id"),
                "enterpriseName": team.get("enterprise_name"),
            }

        return await self.request_handler.handle(
            GetWorkspaceInfoInput, args, op, success_message="Workspace information retrieved successfully",
            error_message="Failed to retrieve workspace information",
        )

    async def list_team_members(self, args: Any) -> ServiceResult:
        async def op(input: ListTeamMembersInput) -> dict[str, Any]:
            async def fetch_page(cursor: str | None) -> Any:
                return await self._read("users_list", limit=input.limit, cursor=cursor, include_locale=True)

            async def format_response(data: PaginatedData) -> dict[str, Any]:
                members = []
                for m in data.items:
                    if not (m.get("id") and m.get("name")):
                        continue
                    # every listed user warms the display-name cache
                    self.user_service.remember(m)
                    if m.get("deleted") and not input.include_deleted:
                        continue
                    if m.get("is_bot") and not input.include_bots:
                        continue
                    members.append(format_member(m, input.include_profile_details))
                return {
                    "members": members,
                    "total": len(members),
                    "pageCount": data.page_count,
                    "hasMore": data.has_more,
                    "cursor": data.cursor,
                    "responseMetadata": {"nextCursor": data.cursor},
                }

            return await execute_pagination(
                input,
                PaginationStrategy(
                    fetch_page=fetch_page,
                    get_cursor=next_cursor,
                    get_items=lambda r: r.get("members", []),
                    format_response=format_response,
                ),
            )

        return await self.request_handler.handle(
            ListTeamMembersInput, args, op, success_message="Team members retrieved successfully",
            error_message="Failed to retrieve team members",
        )

    async def get_workspace_activity(self, args: Any) -> ServiceResult:
        async def op(input: GetWorkspaceActivityInput) -> dict[str, Any]:
            oldest, latest = resolve_time_range(input.after_date, input.before_date, input.oldest_ts, input.latest_ts)
            oldest = oldest or days_ago_timestamp(ACTIVITY_DEFAULT_DAYS)
            latest = latest or str(int(datetime.now(timezone.utc).timestamp()))
            period_seconds = max(ts_to_float(latest) - ts_to_float(oldest), 0.0)
            days = max(math.ceil(period_seconds / 86400), 1)

            channel_limit = ACTIVITY_CHANNELS_DETAILED if input.include_channel_details else ACTIVITY_CHANNELS

            async def fetch_page(cursor: str | None) -> Any:
                return await self._read(
                    "conversations_list", exclude_archived=True, limit=min(channel_limit, 200), cursor=cursor
                )

            async def format_response(data: PaginatedData) -> dict[str, Any]:
                channels = [c for c in data.items if c.get("id") and c.get("name")][:channel_limit]

                channel_stats: list[dict[str, Any]] = []
                user_messages: Counter[str] = Counter()
                user_channels: dict[str, set[str]] = defaultdict(set)
                daily: Counter[str] = Counter()
                hourly: Counter[int] = Counter()
                total_messages = 0

                for channel in channels:
                    try:
                        history = await self._read(
                            "conversations_history",
                            channel=channel["id"],
                            oldest=oldest,
                            latest=latest,
                            limit=ACTIVITY_HISTORY_LIMIT,
                        )
                    except (SlackApiError, SlackMCPError) as e:
                        logger.warning(f"Skipping channel {channel['id']} in activity report: {e}")
                        continue

                    messages = history.get("messages", [])
                    if not messages:
                        continue

                    users: set[str] = set()
                    threads = 0
                    for message in messages:
                        total_messages += 1
                        user = message.get("user")
                        if user:
                            users.add(user)
                            user_messages[user] += 1
                            user_channels[user].add(channel["id"])
                        if message.get("reply_count", 0) > 0:
                            threads += 1
                        if message.get("ts"):
                            when = datetime.fromtimestamp(ts_to_float(message["ts"]), tz=timezone.utc)
                            daily[when.date().isoformat()] += 1
                            hourly[when.hour] += 1

                    channel_stats.append(
                        {
                            "id": channel["id"],
                            "name": channel["name"],
                            "messages": len(messages),
                            "uniqueUsers": len(users),
                            "threads": threads,
                        }
                    )

                result: dict[str, Any] = {
                    "period": {
                        "start": timestamp_to_iso(oldest),
                        "end": timestamp_to_iso(latest),
                        "days": days,
                    },
                    "summary": {
                        "totalMessages": total_messages,
                        "totalChannels": len(channels),
                        "activeChannels": len(channel_stats),
                        "averageMessagesPerDay": round(total_messages / days),
                        "hasMoreChannels": data.has_more,
                    },
                    "channelActivity": [],
                    "userActivity": [],
                    "trends": {
                        "daily": [{"date": d, "messages": n} for d, n in sorted(daily.items())],
                        "hourly": [{"hour": h, "messages": n} for h, n in sorted(hourly.items())],
                    },
                }

                if input.include_channel_details:
                    channel_stats.sort(key=lambda c: c["messages"], reverse=True)
                    result["channelActivity"] = channel_stats[: input.top_count]

                if input.include_user_details:
                    top_users = user_messages.most_common(input.top_count)
                    names = await self.user_service.bulk_get_display_names([u for u, _ in top_users])
                    result["userActivity"] = [
                        {
                            "id": user,
                            "messages": count,
                            "uniqueChannels": len(user_channels[user]),
                            "displayName": names.get(user, user),
                        }
                        for user, count in top_users
                    ]
                return result

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
            GetWorkspaceActivityInput, args, op, success_message="Workspace activity report generated successfully",
            error_message="Failed to generate workspace activity report",
        )

    async def get_server_health(self, args: Any) -> ServiceResult:
        async def op(input: GetServerHealthInput) -> dict[str, Any]:
            status = "error"
            elapsed: float | None = None
            last_call: str | None = None
            started = time.monotonic()
            try:
                await self._read("auth_test")
                elapsed = time.monotonic() - started
                status = connectivity_status(elapsed)
                last_call = datetime.now(timezone.utc).isoformat()
            except (SlackApiError, SlackMCPError, aiohttp.ClientError) as e:
                logger.warning(f"Health check connectivity test failed: {e}")

            healthy = status in ("good", "fair")
            uptime = time.monotonic() - _STARTED_AT
            metrics = self.rate_limiter.get_metrics()

            connectivity: dict[str, Any] = {"status": status, "lastSuccessfulCall": last_call}
            if input.include_response_times:
                connectivity["responseTimeMs"] = round(elapsed * 1000) if elapsed is not None else None

            recommendations = []
            if not healthy:
                recommendations.append("Check network connectivity to Slack API")
            if metrics["rateLimitedRequests"] > RATE_LIMIT_WARNING_THRESHOLD:
                recommendations.append("Review rate limiting configuration")
            if not self.client_manager.has_user_token:
                recommendations.append("Configure SLACK_MCP_USER_TOKEN to enable search tools")

            health: dict[str, Any] = {
                "status": "healthy" if healthy else "unhealthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "uptime": round(uptime, 3),
                "formattedUptime": split_uptime(uptime),
                "connectivity": connectivity,
                "clientStatus": self.client_manager.capabilities(),
                "system": {
                    "serverVersion": __version__,
                    "pythonVersion": platform.python_version(),
                    "platform": platform.system().lower(),
                    "arch": platform.machine(),
                },
                "recommendations": recommendations,
            }
            if input.include_rate_limits:
                health["rateLimiting"] = {"enabled": self.rate_limiter.enable_retry, "metrics": metrics}
            return health

        return await self.request_handler.handle(
            GetServerHealthInput, args, op, success_message="Server health status retrieved successfully",
            error_message="Failed to retrieve server health status",
        )
