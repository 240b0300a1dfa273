"""Thread tools: discovery, replies, analysis, composite writes and export."""

import csv
import html
import io
import json
import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slack_sdk.errors import SlackApiError

from .. import analysis
from ..errors import ApiError, NotFoundError, RateLimitError, SlackMCPError, ValidationError
from ..pagination import PaginatedData, PaginationStrategy, execute_pagination, next_cursor
from ..result import ServiceResult, service_success
from ..schemas import (
    AnalyzeThreadInput,
    CreateThreadInput,
    ExportThreadInput,
    ExtractActionItemsInput,
    FindRelatedThreadsInput,
    FindThreadsInChannelInput,
    GetThreadMetricsInput,
    GetThreadRepliesInput,
    GetThreadsByParticipantsInput,
    IdentifyImportantThreadsInput,
    MarkThreadImportantInput,
    PostThreadReplyInput,
    SearchThreadsInput,
    SummarizeThreadInput,
)
from ..text_utils import (
    date_to_timestamp,
    days_ago_timestamp,
    format_timestamp,
    hours_ago_timestamp,
    resolve_time_range,
    timestamp_to_iso,
    truncate,
    ts_to_float,
)
from .base import BaseService, failure_code
from .messages import format_message

logger = logging.getLogger(__name__)

# ---------- Constants ----------

IMPORTANCE_REACTIONS = {
    "low": "information_source",
    "medium": "warning",
    "high": "exclamation",
    "critical": "rotating_light",
}
SUMMARY_KEY_POINTS = {"brief": 3, "detailed": 5, "comprehensive": 10}
REPLIES_PER_THREAD = 100
HISTORY_LIMIT = 1000
RELATED_LOOKBACK_DAYS = 30
RELATED_MAX_CANDIDATES = 50
METRICS_LOOKBACK_DAYS = 30
METRICS_MAX_THREADS = 100

EXPORT_CSV_FIELDS = ["ts", "time", "user", "userName", "text", "threadTs", "reactions"]


def step_failure(exc: Exception, message: str) -> SlackMCPError:
    """Error for a failed later step of a multi-call tool, keeping the category of the cause."""
    if isinstance(exc, RateLimitError):
        return RateLimitError(message, retry_after=exc.retry_after)
    if isinstance(exc, SlackMCPError) and not isinstance(exc, ApiError):
        return type(exc)(message)
    return ApiError(message, code=failure_code(exc))


def is_thread_parent(message: dict[str, Any]) -> bool:
    """A message that started a thread with at least one reply."""
    if message.get("reply_count", 0) <= 0:
        return False
    return message.get("thread_ts", message.get("ts")) == message.get("ts")


def parent_summary(message: dict[str, Any]) -> dict[str, Any]:
    return {"text": message.get("text", ""), "user": message.get("user", ""), "ts": message.get("ts", "")}


def thread_key(match: dict[str, Any]) -> tuple[str, str] | None:
    """(channel, thread_ts) of a search match that belongs to a thread."""
    thread_ts = match.get("thread_ts") or (match.get("ts") if match.get("reply_count", 0) > 0 else None)
    if not thread_ts:
        return None
    channel = match.get("channel") or {}
    return channel.get("id") or channel.get("name", ""), thread_ts


# ---------- Export rendering ----------


def _export_rows(messages: list[dict[str, Any]], input: ExportThreadInput) -> list[dict[str, Any]]:
    rows = []
    for m in messages:
        row = {
            "text": m.get("text", ""),
            "userName": m.get("userName", m.get("user", "")),
        }
        if input.include_metadata:
            row["ts"] = m.get("ts", "")
            row["time"] = format_timestamp(m.get("ts", "0"), input.date_format)
            row["user"] = m.get("user", "")
            row["threadTs"] = m.get("thread_ts", "")
        if input.include_reactions:
            row["reactions"] = [{"name": r.get("name", ""), "count": r.get("count", 0)} for r in m.get("reactions", [])]
        if input.include_user_profiles and m.get("userProfile"):
            row["userProfile"] = m["userProfile"]
        rows.append(row)
    return rows


def render_markdown(rows: list[dict[str, Any]], channel: str, thread_ts: str) -> str:
    lines = [f"# Thread {thread_ts}", "", f"Channel: {channel}", ""]
    for row in rows:
        header = f"**{row['userName']}**"
        if row.get("time"):
            header += f" ({row['time']})"
        lines.append(header)
        lines.append("")
        lines.append(row["text"])
        if row.get("reactions"):
            lines.append("")
            lines.append(" ".join(f":{r['name']}: {r['count']}" for r in row["reactions"]))
        lines.append("")
    return "\n".join(lines)


def render_html(rows: list[dict[str, Any]], channel: str, thread_ts: str) -> str:
    parts = [
        "<html><head><meta charset=\"utf-8\">",
        f"<title>Thread {html.escape(thread_ts)}</title></head><body>",
        f"<h1>Thread {html.escape(thread_ts)}</h1>",
        f"<p>Channel: {html.escape(channel)}</p>",
    ]
    for row in rows:
        parts.append("<div class=\"message\">")
        header = f"<strong>{html.escape(row['userName'])}</strong>"
        if row.get("time"):
            header += f" <span class=\"time\">{html.escape(row['time'])}</span>"
        parts.append(f"<p>{header}</p>")
        parts.append(f"<p>{html.escape(row['text'])}</p>")
        if row.get("reactions"):
            reactions = " ".join(f":{html.escape(r['name'])}: {r['count']}" for r in row["reactions"])
            parts.append(f"<p class=\"reactions\">{reactions}</p>")
        parts.append("</div>")
    parts.append("</body></html>")
    return "\n".join(parts)


def render_csv(rows: list[dict[str, Any]]) -> str:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_CSV_FIELDS, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        flat = dict(row)
        if "reactions" in flat:
            flat["reactions"] = "|".join(f"{r['name']}:{r['count']}" for r in flat["reactions"])
        writer.writerow(flat)
    return output.getvalue()


class ThreadService(BaseService):
    """Thread discovery, analysis and thread-scoped writes."""

    # ---------- Shared fetches ----------

    async def _thread_messages(self, channel: str, thread_ts: str, limit: int = HISTORY_LIMIT) -> list[dict[str, Any]]:
        response = await self._read("conversations_replies", channel=channel, ts=thread_ts, limit=limit)
        return response.get("messages", [])

    async def _require_thread(self, channel: str, thread_ts: str) -> list[dict[str, Any]]:
        messages = await self._thread_messages(channel, thread_ts)
        if not messages:
            raise NotFoundError(f"Thread {thread_ts} not found in channel {channel}")
        return messages

    async def _thread_parents(
        self, channel: str, oldest: str | None = None, latest: str | None = None
    ) -> list[dict[str, Any]]:
        response = await self._read(
            "conversations_history", channel=channel, limit=HISTORY_LIMIT, oldest=oldest, latest=latest
        )
        return [m for m in response.get("messages", []) if m.get("reply_count", 0) > 0]

    async def _participants(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        stats: dict[str, dict[str, Any]] = {}
        for m in messages:
            user = m.get("user")
            if not user:
                continue
            entry = stats.setdefault(
                user, {"userId": user, "messageCount": 0, "firstMessageTs": m.get("ts", ""), "lastMessageTs": ""}
            )
            entry["messageCount"] += 1
            entry["lastMessageTs"] = m.get("ts", "")
        names = await self.user_service.bulk_get_display_names(list(stats))
        for user, entry in stats.items():
            entry["displayName"] = names.get(user, user)
        return list(stats.values())

    # ---------- Discovery ----------

    async def find_threads_in_channel(self, args: Any) -> ServiceResult:
        async def op(input: FindThreadsInChannelInput) -> ServiceResult:
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
                threads = []
                for parent in (m for m in data.items if is_thread_parent(m)):
                    messages = await self._thread_messages(input.channel, parent["ts"], limit=REPLIES_PER_THREAD)
                    replies = [m for m in messages if m.get("ts") != parent["ts"]]
                    participants = list(dict.fromkeys(m["user"] for m in replies if m.get("user")))
                    thread = {
                        "threadTs": parent["ts"],
                        "parentMessage": parent_summary(parent),
                        "replyCount": parent.get("reply_count", len(replies)),
                        "lastReply": parent.get("latest_reply") or (replies[-1].get("ts") if replies else None),
                        "participants": participants,
                    }
                    if input.include_all_metadata:
                        thread["replies"] = [format_message(m) for m in replies]
                        thread["replyUsersCount"] = parent.get("reply_users_count", len(participants))
                    threads.append(thread)
                return {
                    "threads": threads,
                    "total": len(threads),
                    "hasMore": data.has_more,
                    "responseMetadata": {"nextCursor": data.cursor},
                    "pageCount": data.page_count,
                    "channel": input.channel,
                }

            data = await execute_pagination(
                input,
                PaginationStrategy(
                    fetch_page=fetch_page,
                    get_cursor=next_cursor,
                    get_items=lambda r: r.get("messages", []),
                    format_response=format_response,
                ),
            )
            return service_success(data, f"Found {data['total']} threads in channel")

        return await self.request_handler.handle_with_custom_format(
            FindThreadsInChannelInput, args, op, error_message="Failed to find threads in channel"
        )

    async def get_thread_replies(self, args: Any) -> ServiceResult:
        async def op(input: GetThreadRepliesInput) -> dict[str, Any]:
            oldest, latest = resolve_time_range(input.after_date, input.before_date, input.oldest_ts, input.latest_ts)

            async def fetch_page(cursor: str | None) -> Any:
                return await self._read(
                    "conversations_replies",
                    channel=input.channel,
                    ts=input.thread_ts,
                    limit=input.limit,
                    cursor=cursor,
                    oldest=oldest,
                    latest=latest,
                    inclusive=input.inclusive,
                )

            async def format_response(data: PaginatedData) -> dict[str, Any]:
                if not data.items:
                    raise NotFoundError(f"Thread {input.thread_ts} not found in channel {input.channel}")
                names = await self.user_service.bulk_get_display_names([m.get("user", "") for m in data.items])
                messages = [format_message(m, names.get(m.get("user", ""), m.get("user", ""))) for m in data.items]
                parent = next((m for m in messages if m["ts"] == input.thread_ts), None)
                return {
                    "messages": messages,
                    "parentMessage": parent,
                    "replies": [m for m in messages if m["ts"] != input.thread_ts],
                    "totalMessages": len(messages),
                    "hasMore": data.has_more,
                    "responseMetadata": {"nextCursor": data.cursor},
                    "pageCount": data.page_count,
                    "channel": input.channel,
                    "threadTs": input.thread_ts,
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
            GetThreadRepliesInput, args, op, success_message="Thread replies retrieved successfully",
            error_message="Failed to get thread replies",
        )

    async def search_threads(self, args: Any) -> ServiceResult:
        async def op(input: SearchThreadsInput) -> dict[str, Any]:
            query = input.query
            if input.channel:
                query += f" in:<#{input.channel}>"
            if input.user:
                query += f" from:<@{input.user}>"
            if input.after:
                query += f" after:{input.after}"
            if input.before:
                query += f" before:{input.before}"

            response = await self._search(
                "search_messages",
                "search_threads",
                "Use find_threads_in_channel to list threads of a specific channel",
                query=query,
                sort="timestamp" if input.sort == "timestamp" else "score",
                sort_dir=input.sort_dir,
                count=input.limit,
            )
            matches = (response.get("messages") or {}).get("matches", [])
            results = [
                {
                    "text": m.get("text", ""),
                    "user": m.get("user", ""),
                    "ts": m.get("ts", ""),
                    "threadTs": m.get("thread_ts") or m.get("ts", ""),
                    "replyCount": m.get("reply_count", 0),
                    "channel": (m.get("channel") or {}).get("id", ""),
                    "permalink": m.get("permalink", ""),
                }
                for m in matches
                if m.get("thread_ts") or m.get("reply_count", 0) > 0
            ]
            return {"results": results, "total": len(results), "query": query}

        return await self.request_handler.handle(
            SearchThreadsInput, args, op, success_message="Thread search completed successfully",
            error_message="Failed to search threads",
        )

    # ---------- Analysis ----------

    async def analyze_thread(self, args: Any) -> ServiceResult:
        async def op(input: AnalyzeThreadInput) -> dict[str, Any]:
            messages = await self._require_thread(input.channel, input.thread_ts)
            participants = await self._participants(messages)
            urgency = analysis.calculate_urgency(messages)

            result: dict[str, Any] = {
                "channel": input.channel,
                "threadTs": input.thread_ts,
                "messageCount": len(messages),
                "participants": participants,
                "urgencyScore": round(urgency["score"], 3),
                "urgencyLevel": urgency["level"],
                "urgentKeywords": urgency["urgentKeywords"],
                "importanceScore": round(analysis.calculate_importance(messages), 3),
                "durationMinutes": round(analysis.duration_minutes(messages), 2),
            }
            if input.include_timeline:
                result["timeline"] = analysis.build_timeline(messages)
            if input.extract_topics:
                result["keyTopics"] = analysis.extract_topics(messages)
            if input.include_sentiment_analysis:
                result["sentiment"] = analysis.analyze_sentiment(messages)
            if input.include_action_items:
                result["actionItems"] = analysis.extract_action_items(messages)
            result["summary"] = (
                f"Thread with {len(messages)} messages from {len(participants)} participants, "
                f"{urgency['level']} urgency"
            )
            return result

        return await self.request_handler.handle(
            AnalyzeThreadInput, args, op, success_message="Thread analysis completed successfully",
            error_message="Failed to analyze thread",
        )

    async def summarize_thread(self, args: Any) -> ServiceResult:
        async def op(input: SummarizeThreadInput) -> dict[str, Any]:
            messages = await self._require_thread(input.channel, input.thread_ts)
            participants = await self._participants(messages)
            urgency = analysis.calculate_urgency(messages)
            sentiment = analysis.analyze_sentiment(messages)
            topics = analysis.extract_topics(messages, max_topics=SUMMARY_KEY_POINTS[input.summary_length])
            minutes = analysis.duration_minutes(messages)

            parent = messages[0]
            names = ", ".join(p["displayName"] for p in participants[:5])
            summary = (
                f"Thread started by {participants[0]['displayName'] if participants else 'unknown'}: "
                f"\"{truncate(parent.get('text', ''), 120)}\". "
                f"{len(messages)} messages from {len(participants)} participants over {round(minutes)} minutes."
            )
            if input.summary_length != "brief":
                summary += f" Participants: {names}. Overall sentiment is {sentiment['sentiment']}."
            if topics:
                summary += f" Key topics: {', '.join(topics)}."

            result: dict[str, Any] = {
                "threadInfo": {
                    "channel": input.channel,
                    "threadTs": input.thread_ts,
                    "messageCount": len(messages),
                    "participantCount": len(participants),
                },
                "summary": summary,
                "keyPoints": topics,
                "participants": participants,
                "urgencyLevel": urgency["level"],
                "sentiment": sentiment["sentiment"],
                "duration": f"{round(minutes)} minutes",
                "language": input.language,
                "summaryLength": input.summary_length,
            }
            if input.summary_length == "comprehensive":
                result["highlights"] = [
                    {"user": m.get("user", ""), "ts": m.get("ts", ""), "text": truncate(m.get("text", ""), 200)}
                    for m in messages[1:6]
                ]
            if input.include_action_items:
                result["actionItems"] = analysis.extract_action_items(messages)
            if input.include_decisions:
                result["decisions"] = analysis.extract_decisions(messages)
            return result

        return await self.request_handler.handle(
            SummarizeThreadInput, args, op, success_message="Thread summary generated successfully",
            error_message="Failed to summarize thread",
        )

    async def extract_action_items(self, args: Any) -> ServiceResult:
        async def op(input: ExtractActionItemsInput) -> dict[str, Any]:
            messages = await self._require_thread(input.channel, input.thread_ts)
            items = analysis.filter_action_items(
                analysis.extract_action_items(messages), input.priority_threshold, input.include_completed
            )
            breakdown = analysis.priority_breakdown(items)
            if not input.assign_priorities:
                items = [{k: v for k, v in item.items() if k != "priority"} for item in items]
            return {
                "actionItems": items,
                "extractedAt": datetime.now(timezone.utc).isoformat(),
                "threadInfo": {"channel": input.channel, "threadTs": input.thread_ts, "messageCount": len(messages)},
                "totalActionItems": len(items),
                "priorityBreakdown": breakdown,
                "statusBreakdown": dict(Counter(item["status"] for item in items)),
            }

        return await self.request_handler.handle(
            ExtractActionItemsInput, args, op, success_message="Action items extracted successfully",
            error_message="Failed to extract action items",
        )

    async def identify_important_threads(self, args: Any) -> ServiceResult:
        async def op(input: IdentifyImportantThreadsInput) -> dict[str, Any]:
            parents = await self._thread_parents(input.channel, oldest=hours_ago_timestamp(input.time_range_hours))
            criteria = input.criteria or list(analysis.IMPORTANCE_WEIGHTS)

            important = []
            for parent in parents:
                messages = await self._thread_messages(input.channel, parent["ts"], limit=REPLIES_PER_THREAD)
                score = analysis.calculate_importance(messages, criteria)
                if score < input.importance_threshold:
                    continue
                factors = analysis.importance_factors(messages)
                important.append(
                    {
                        "channel": input.channel,
                        "threadTs": parent["ts"],
                        "parentMessage": parent_summary(parent),
                        "importanceScore": round(score, 3),
                        "analysis": {
                            "messageCount": len(messages),
                            "participantCount": len({m.get("user") for m in messages if m.get("user")}),
                            "urgencyLevel": analysis.calculate_urgency(messages)["level"],
                            "factors": {c: round(factors[c], 3) for c in criteria if c in factors},
                        },
                    }
                )

            important.sort(key=lambda t: t["importanceScore"], reverse=True)
            important = important[: input.limit]
            return {
                "importantThreads": important,
                "total": len(important),
                "criteria": criteria,
                "threshold": input.importance_threshold,
                "timeRangeHours": input.time_range_hours,
            }

        return await self.request_handler.handle(
            IdentifyImportantThreadsInput, args, op, success_message="Important threads identified successfully",
            error_message="Failed to identify important threads",
        )

    async def find_related_threads(self, args: Any) -> ServiceResult:
        async def op(input: FindRelatedThreadsInput) -> dict[str, Any]:
            reference = await self._require_thread(input.channel, input.thread_ts)
            parents = await self._thread_parents(input.channel, oldest=days_ago_timestamp(RELATED_LOOKBACK_DAYS))
            candidates = [p for p in parents if p.get("ts") != input.thread_ts][:RELATED_MAX_CANDIDATES]

            related = []
            for parent in candidates:
                messages = await self._thread_messages(input.channel, parent["ts"], limit=REPLIES_PER_THREAD)
                if not messages:
                    continue
                score, reasons = analysis.thread_similarity(reference, messages, input.relationship_types)
                if score >= input.similarity_threshold:
                    related.append(
                        {
                            "channel": input.channel,
                            "threadTs": parent["ts"],
                            "parentMessage": parent_summary(parent),
                            "similarityScore": round(score, 3),
                            "relationshipTypes": reasons,
                        }
                    )

            related.sort(key=lambda t: t["similarityScore"], reverse=True)
            related = related[: input.max_results]
            return {
                "relatedThreads": related,
                "total": len(related),
                "referenceThread": {
                    "channel": input.channel,
                    "threadTs": input.thread_ts,
                    "messageCount": len(reference),
                },
                "similarityThreshold": input.similarity_threshold,
                "includeCrossChannel": input.include_cross_channel,
            }

        return await self.request_handler.handle(
            FindRelatedThreadsInput, args, op, success_message="Related threads found successfully",
            error_message="Failed to find related threads",
        )

    async def get_thread_metrics(self, args: Any) -> ServiceResult:
        async def op(input: GetThreadMetricsInput) -> dict[str, Any]:
            try:
                tz = ZoneInfo(input.time_zone)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValidationError(f"Validation failed: time_zone: unknown time zone {input.time_zone!r}") from e

            oldest = date_to_timestamp(input.after) if input.after else days_ago_timestamp(METRICS_LOOKBACK_DAYS)
            latest = date_to_timestamp(input.before, end_of_day=True) if input.before else None

            parents: list[dict[str, Any]] = []
            if input.channel:
                parents = await self._thread_parents(input.channel, oldest=oldest, latest=latest)

            participant_counts: Counter[str] = Counter()
            hours: Counter[int] = Counter()
            total_replies = 0
            total_messages = 0
            analyzed = 0
            for parent in parents[:METRICS_MAX_THREADS]:
                messages = await self._thread_messages(input.channel, parent["ts"], limit=REPLIES_PER_THREAD)
                if input.user and input.user not in {m.get("user") for m in messages}:
                    continue
                analyzed += 1
                total_messages += len(messages)
                total_replies += max(len(messages) - 1, 0)
                participant_counts.update(m["user"] for m in messages if m.get("user"))
                hours[datetime.fromtimestamp(ts_to_float(parent["ts"]), tz=tz).hour] += 1

            result: dict[str, Any] = {
                "summary": {
                    "totalThreads": analyzed,
                    "averageReplies": round(total_replies / analyzed, 2) if analyzed else 0,
                    "totalMessages": total_messages,
                },
                "analysisConfig": {
                    "timeZone": input.time_zone,
                    "channel": input.channel,
                    "user": input.user,
                    "dateRange": {"after": input.after, "before": input.before},
                },
            }
            if input.include_participant_stats:
                result["topParticipants"] = [
                    {"user": user, "messageCount": count} for user, count in participant_counts.most_common(10)
                ]
            if input.include_activity_patterns:
                result["activityPatterns"] = [
                    {"hour": hour, "threadCount": hours[hour]} for hour in sorted(hours)
                ]
            return result

        return await self.request_handler.handle(
            GetThreadMetricsInput, args, op, success_message="Thread metrics calculated successfully",
            error_message="Failed to get thread metrics",
        )

    async def get_threads_by_participants(self, args: Any) -> ServiceResult:
        async def op(input: GetThreadsByParticipantsInput) -> dict[str, Any]:
            clauses = [f"from:<@{p}>" for p in input.participants]
            if input.require_all_participants:
                query = " ".join(clauses)
            else:
                query = f"({' OR '.join(clauses)})"
            if input.channel:
                query += f" in:<#{input.channel}>"
            if input.after:
                query += f" after:{input.after}"
            if input.before:
                query += f" before:{input.before}"

            response = await self._search(
                "search_messages",
                "get_threads_by_participants",
                "Use find_threads_in_channel and filter the participants instead",
                query=query,
                count=input.limit,
                sort="timestamp",
                sort_dir="desc",
            )
            matches = (response.get("messages") or {}).get("matches", [])

            threads: dict[tuple[str, str], dict[str, Any]] = {}
            for match in matches:
                key = thread_key(match)
                if key is None or key in threads:
                    continue
                channel, thread_ts = key
                messages = await self._thread_messages(channel, thread_ts, limit=REPLIES_PER_THREAD)
                users = {m.get("user") for m in messages if m.get("user")}
                wanted = set(input.participants)
                matched = wanted <= users if input.require_all_participants else bool(wanted & users)
                if not matched:
                    continue
                threads[key] = {
                    "channel": channel,
                    "threadTs": thread_ts,
                    "parentMessage": parent_summary(messages[0]) if messages else None,
                    "participants": sorted(users),
                    "messageCount": len(messages),
                    "matchingParticipants": [p for p in input.participants if p in users],
                }

            found = list(threads.values())[: input.limit]
            return {
                "threads": found,
                "total": len(found),
                "searchedParticipants": input.participants,
                "requireAllParticipants": input.require_all_participants,
            }

        return await self.request_handler.handle(
            GetThreadsByParticipantsInput, args, op, success_message="Threads retrieved successfully",
            error_message="Failed to get threads by participants",
        )

    # ---------- Writes ----------

    async def post_thread_reply(self, args: Any) -> ServiceResult:
        async def op(input: PostThreadReplyInput) -> dict[str, Any]:
            response = await self._write(
                "chat_postMessage",
                channel=input.channel,
                thread_ts=input.thread_ts,
                text=input.text,
                reply_broadcast=input.reply_broadcast or input.broadcast,
            )
            return {
                "success": True,
                "timestamp": response.get("ts", ""),
                "channel": response.get("channel", input.channel),
                "threadTs": input.thread_ts,
                "message": input.text,
            }

        return await self.request_handler.handle(
            PostThreadReplyInput, args, op, success_message="Thread reply posted successfully",
            error_message="Failed to post thread reply",
        )

    async def create_thread(self, args: Any) -> ServiceResult:
        async def op(input: CreateThreadInput) -> dict[str, Any]:
            parent = await self._write("chat_postMessage", channel=input.channel, text=input.text)
            parent_ts = parent.get("ts", "")
            result: dict[str, Any] = {
                "channel": parent.get("channel", input.channel),
                "threadTs": parent_ts,
                "parentMessage": {"ts": parent_ts, "text": input.text},
                "reply": None,
            }
            if not input.reply_text:
                return result

            try:
                reply = await self._write(
                    "chat_postMessage",
                    channel=input.channel,
                    thread_ts=parent_ts,
                    text=input.reply_text,
                    reply_broadcast=input.broadcast,
                )
            except (SlackApiError, SlackMCPError) as e:
                code = failure_code(e)
                raise step_failure(
                    e, f"Parent message posted (ts={parent_ts}) but reply step failed: {code or e}"
                ) from e
            result["reply"] = {"ts": reply.get("ts", ""), "text": input.reply_text}
            return result

        return await self.request_handler.handle(
            CreateThreadInput, args, op, success_message="Thread created successfully",
            error_message="Failed to create thread",
        )

    async def mark_thread_important(self, args: Any) -> ServiceResult:
        async def op(input: MarkThreadImportantInput) -> dict[str, Any]:
            reaction = IMPORTANCE_REACTIONS[input.importance_level]
            try:
                await self._write("reactions_add", channel=input.channel, timestamp=input.thread_ts, name=reaction)
            except (SlackApiError, ApiError) as e:
                if failure_code(e) != "already_reacted":
                    raise
                logger.info(f"Thread {input.thread_ts} already carries :{reaction}:")

            comment_posted = False
            if input.reason or input.notify_participants:
                text = f"Thread marked as {input.importance_level} importance"
                if input.reason:
                    text += f": {input.reason}"
                if input.notify_participants:
                    messages = await self._thread_messages(input.channel, input.thread_ts, limit=REPLIES_PER_THREAD)
                    users = list(dict.fromkeys(m["user"] for m in messages if m.get("user")))
                    if users:
                        text += "\ncc " + " ".join(f"<@{u}>" for u in users)
                try:
                    await self._write("chat_postMessage", channel=input.channel, thread_ts=input.thread_ts, text=text)
                except (SlackApiError, SlackMCPError) as e:
                    code = failure_code(e)
                    raise step_failure(
                        e, f"Reaction :{reaction}: added but annotation step failed: {code or e}"
                    ) from e
                comment_posted = True

            return {
                "channel": input.channel,
                "threadTs": input.thread_ts,
                "importanceLevel": input.importance_level,
                "reactionAdded": reaction,
                "commentPosted": comment_posted,
            }

        return await self.request_handler.handle(
            MarkThreadImportantInput, args, op, success_message="Thread marked as important",
            error_message="Failed to mark thread as important",
        )

    # ---------- Export ----------

    async def export_thread(self, args: Any) -> ServiceResult:
        async def op(input: ExportThreadInput) -> dict[str, Any]:
            messages = await self._require_thread(input.channel, input.thread_ts)
            names = await self.user_service.bulk_get_display_names([m.get("user", "") for m in messages])
            enriched = []
            for m in messages:
                m = dict(m)
                m["userName"] = names.get(m.get("user", ""), m.get("user") or m.get("username", "unknown"))
                if input.include_user_profiles and m.get("user"):
                    profile = (await self.user_service.get_user_info(m["user"])).get("profile") or {}
                    m["userProfile"] = {
                        "realName": profile.get("real_name", ""),
                        "displayName": profile.get("display_name", ""),
                        "title": profile.get("title", ""),
                    }
                enriched.append(m)

            rows = _export_rows(enriched, input)
            if input.format == "json":
                payload = {"channel": input.channel, "threadTs": input.thread_ts, "messages": rows}
                content = json.dumps(payload, indent=2, ensure_ascii=False)
            elif input.format == "html":
                content = render_html(rows, input.channel, input.thread_ts)
            elif input.format == "csv":
                content = render_csv(rows)
            else:
                content = render_markdown(rows, input.channel, input.thread_ts)

            return {
                "format": input.format,
                "content": content,
                "messageCount": len(messages),
                "channel": input.channel,
                "threadTs": input.thread_ts,
                "exportedAt": timestamp_to_iso(datetime.now(timezone.utc).timestamp()),
            }

        return await self.request_handler.handle(
            ExportThreadInput, args, op, success_message="Thread exported successfully",
            error_message="Failed to export thread",
        )
