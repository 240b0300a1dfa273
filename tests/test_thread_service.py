"""Tests for ThreadService."""

import csv
import io
import json
from typing import Any
from unittest.mock import AsyncMock

import pytest
from slack_sdk.errors import SlackApiError

from slack_mcp_server.errors import RateLimitError
from slack_mcp_server.services import ServiceDependencies, ThreadService

PARENT_TS = "1700000000.000100"


def thread(parent_ts: str, *replies: tuple[str, str], parent_user: str = "U1", parent_text: str = "kickoff"):
    """Parent message followed by (user, text) replies, one minute apart."""
    base = float(parent_ts)
    messages = [
        {"ts": parent_ts, "thread_ts": parent_ts, "user": parent_user, "text": parent_text, "reply_count": len(replies)}
    ]
    for i, (user, text) in enumerate(replies, start=1):
        messages.append({"ts": f"{base + 60 * i:.6f}", "thread_ts": parent_ts, "user": user, "text": text})
    return messages


def replies_by_ts(threads: dict[str, list[dict[str, Any]]]):
    """conversations_replies side effect answering from ``threads`` keyed by parent ts."""

    def answer(**kwargs: Any) -> dict[str, Any]:
        return {"ok": True, "messages": threads.get(kwargs["ts"], []), "response_metadata": {"next_cursor": ""}}

    return answer


@pytest.fixture
def service(deps: ServiceDependencies) -> ThreadService:
    return ThreadService(deps)


class TestFindThreadsInChannel:
    async def test_only_thread_parents(self, service: ThreadService, bot_client: AsyncMock) -> None:
        messages = thread(PARENT_TS, ("U2", "first"), ("U3", "second"))
        bot_client.conversations_history.return_value = {
            "ok": True,
            "messages": [
                messages[0],
                {"ts": "1700000500.000000", "user": "U1", "text": "no replies"},
                {**messages[1], "reply_count": 0},
            ],
            "response_metadata": {"next_cursor": ""},
        }
        bot_client.conversations_replies.side_effect = replies_by_ts({PARENT_TS: messages})

        result = await service.find_threads_in_channel({"channel": "C1", "include_all_metadata": True})
        assert result.message == "Found 1 threads in channel"
        found = result.data["threads"][0]
        assert found["threadTs"] == PARENT_TS
        assert found["participants"] == ["U2", "U3"]
        assert found["replyCount"] == 2
        assert len(found["replies"]) == 2


class TestGetThreadReplies:
    async def test_splits_parent_and_replies(self, service: ThreadService, bot_client: AsyncMock) -> None:
        bot_client.conversations_replies.side_effect = replies_by_ts(
            {PARENT_TS: thread(PARENT_TS, ("U2", "a"), ("U3", "b"))}
        )
        result = await service.get_thread_replies({"channel": "C1", "thread_ts": PARENT_TS})
        assert result.data["parentMessage"]["ts"] == PARENT_TS
        assert len(result.data["replies"]) == 2
        assert result.data["totalMessages"] == 3
        assert result.data["messages"][1]["userDisplayName"] == "name-U2"

    async def test_missing_thread(self, service: ThreadService, bot_client: AsyncMock) -> None:
        bot_client.conversations_replies.side_effect = replies_by_ts({})
        result = await service.get_thread_replies({"channel": "C1", "thread_ts": PARENT_TS})
        assert result.success is False
        assert result.message == "Failed to get thread replies (not_found_error)"


class TestSearchThreads:
    async def test_requires_user_token(self, service: ThreadService) -> None:
        result = await service.search_threads({"query": "outage"})
        assert result.error.startswith("search_threads requires a user token")

    async def test_keeps_threaded_matches(self, search_deps: ServiceDependencies, user_client: AsyncMock) -> None:
        user_client.search_messages.return_value = {
            "ok": True,
            "messages": {
                "matches": [
                    {"ts": "2.0", "thread_ts": "1.0", "text": "in thread", "channel": {"id": "C1"}},
                    {"ts": "3.0", "text": "loose message", "channel": {"id": "C1"}},
                ]
            },
        }
        result = await ThreadService(search_deps).search_threads({"query": "outage", "channel": "C1", "user": "U1"})
        assert result.data["query"] == "outage in:<#C1> from:<@U1>"
        assert [r["threadTs"] for r in result.data["results"]] == ["1.0"]


class TestAnalysis:
    @pytest.fixture
    def urgent_thread(self, bot_client: AsyncMock) -> None:
        bot_client.conversations_replies.side_effect = replies_by_ts(
            {
                PARENT_TS: thread(
                    PARENT_TS,
                    ("U2", "This is urgent, the checkout is broken"),
                    ("U3", "I need to fix the payment bug today"),
                    ("U1", "We decided to roll back the release"),
                    parent_text="Checkout outage",
                )
            }
        )

    async def test_analyze_thread(self, service: ThreadService, urgent_thread: None) -> None:
        result = await service.analyze_thread({"channel": "C1", "thread_ts": PARENT_TS})
        data = result.data
        assert data["messageCount"] == 4
        assert {p["userId"] for p in data["participants"]} == {"U1", "U2", "U3"}
        assert data["participants"][0]["displayName"] == "name-U1"
        assert data["urgencyLevel"] in ("medium", "high", "critical")
        assert data["durationMinutes"] == 3.0
        assert data["timeline"]["events"][0]["minutesSinceStart"] == 0.0
        assert data["actionItems"]
        assert "keyTopics" in data
        assert data["sentiment"]["sentiment"] == "negative"

    async def test_analyze_thread_sections_are_optional(self, service: ThreadService, urgent_thread: None) -> None:
        result = await service.analyze_thread(
            {
                "channel": "C1",
                "thread_ts": PARENT_TS,
                "include_timeline": False,
                "include_sentiment_analysis": False,
                "include_action_items": False,
                "extract_topics": False,
            }
        )
        for key in ("timeline", "sentiment", "actionItems", "keyTopics"):
            assert key not in result.data

    async def test_summary_lengths(self, service: ThreadService, urgent_thread: None) -> None:
        brief = await service.summarize_thread({"channel": "C1", "thread_ts": PARENT_TS, "summary_length": "brief"})
        full = await service.summarize_thread(
            {"channel": "C1", "thread_ts": PARENT_TS, "summary_length": "comprehensive"}
        )
        assert "Participants:" not in brief.data["summary"]
        assert "Participants:" in full.data["summary"]
        assert brief.data["summary"].startswith('Thread started by name-U1: "Checkout outage"')
        assert "highlights" in full.data
        assert "highlights" not in brief.data
        assert len(brief.data["keyPoints"]) <= 3
        assert full.data["decisions"][0]["participant"] == "U1"

    async def test_action_items_without_priorities(self, service: ThreadService, urgent_thread: None) -> None:
        result = await service.extract_action_items(
            {"channel": "C1", "thread_ts": PARENT_TS, "assign_priorities": False}
        )
        assert result.data["totalActionItems"] >= 1
        assert all("priority" not in item for item in result.data["actionItems"])
        assert set(result.data["priorityBreakdown"]) == {"high", "medium", "low"}

    async def test_missing_thread_is_not_found(self, service: ThreadService, bot_client: AsyncMock) -> None:
        bot_client.conversations_replies.side_effect = replies_by_ts({})
        result = await service.analyze_thread({"channel": "C1", "thread_ts": PARENT_TS})
        assert result.message == "Failed to analyze thread (not_found_error)"


class TestIdentifyImportantThreads:
    async def test_threshold_and_ordering(self, service: ThreadService, bot_client: AsyncMock) -> None:
        busy_ts, quiet_ts = "1700000000.000100", "1700001000.000100"
        busy = thread(busy_ts, *[("U2", "more detail")] * 19)
        quiet = thread(quiet_ts, ("U2", "ok"))
        bot_client.conversations_history.return_value = {"ok": True, "messages": [quiet[0], busy[0]]}
        bot_client.conversations_replies.side_effect = replies_by_ts({busy_ts: busy, quiet_ts: quiet})

        result = await service.identify_important_threads(
            {"channel": "C1", "criteria": ["message_count"], "importance_threshold": 0.9}
        )
        assert [t["threadTs"] for t in result.data["importantThreads"]] == [busy_ts]
        assert result.data["importantThreads"][0]["importanceScore"] == 1.0
        assert result.data["criteria"] == ["message_count"]

    async def test_unscorable_criteria_score_zero(self, service: ThreadService, bot_client: AsyncMock) -> None:
        busy = thread(PARENT_TS, *[("U2", "urgent")] * 25)
        bot_client.conversations_history.return_value = {"ok": True, "messages": [busy[0]]}
        bot_client.conversations_replies.side_effect = replies_by_ts({PARENT_TS: busy})
        result = await service.identify_important_threads(
            {"channel": "C1", "criteria": ["time_decay"], "importance_threshold": 0.1}
        )
        assert result.data["total"] == 0


class TestFindRelatedThreads:
    async def test_same_channel_candidates(self, service: ThreadService, bot_client: AsyncMock) -> None:
        other_ts, unrelated_ts = "1700000300.000100", "1690000000.000100"
        reference = thread(PARENT_TS, ("U2", "database migration failing"), parent_text="database migration plan")
        related = thread(other_ts, ("U2", "database migration rollback"), parent_text="migration database issue")
        unrelated = thread(unrelated_ts, ("U7", "lunch"), parent_user="U8", parent_text="pizza")
        bot_client.conversations_history.return_value = {
            "ok": True,
            "messages": [reference[0], related[0], unrelated[0]],
        }
        bot_client.conversations_replies.side_effect = replies_by_ts(
            {PARENT_TS: reference, other_ts: related, unrelated_ts: unrelated}
        )
        result = await service.find_related_threads(
            {"channel": "C1", "thread_ts": PARENT_TS, "similarity_threshold": 0.5}
        )
        assert [t["threadTs"] for t in result.data["relatedThreads"]] == [other_ts]
        assert "participant_overlap" in result.data["relatedThreads"][0]["relationshipTypes"]
        assert result.data["includeCrossChannel"] is False


class TestThreadMetrics:
    async def test_without_channel(self, service: ThreadService, bot_client: AsyncMock) -> None:
        result = await service.get_thread_metrics({})
        assert result.data["summary"]["totalThreads"] == 0
        assert result.data["topParticipants"] == []
        bot_client.conversations_history.assert_not_awaited()

    async def test_channel_metrics(self, service: ThreadService, bot_client: AsyncMock) -> None:
        messages = thread(PARENT_TS, ("U2", "a"), ("U2", "b"))
        bot_client.conversations_history.return_value = {"ok": True, "messages": [messages[0]]}
        bot_client.conversations_replies.side_effect = replies_by_ts({PARENT_TS: messages})
        result = await service.get_thread_metrics({"channel": "C1", "time_zone": "UTC"})
        assert result.data["summary"] == {"totalThreads": 1, "averageReplies": 2.0, "totalMessages": 3}
        assert result.data["topParticipants"][0] == {"user": "U2", "messageCount": 2}
        # 1700000000 is 22:13 UTC
        assert result.data["activityPatterns"] == [{"hour": 22, "threadCount": 1}]

    async def test_unknown_time_zone(self, service: ThreadService) -> None:
        result = await service.get_thread_metrics({"channel": "C1", "time_zone": "Mars/Olympus"})
        assert result.message == "Failed to get thread metrics (validation_error)"


class TestThreadsByParticipants:
    async def test_requires_user_token(self, service: ThreadService) -> None:
        result = await service.get_threads_by_participants({"participants": ["U1"]})
        assert result.message == "Failed to get threads by participants (authorization_error)"

    async def test_require_all(
        self, search_deps: ServiceDependencies, bot_client: AsyncMock, user_client: AsyncMock
    ) -> None:
        both_ts, one_ts = "1.000000", "2.000000"
        user_client.search_messages.return_value = {
            "ok": True,
            "messages": {
                "matches": [
                    {"ts": "1.5", "thread_ts": both_ts, "channel": {"id": "C1"}},
                    {"ts": "2.5", "thread_ts": one_ts, "channel": {"id": "C1"}},
                    {"ts": "1.7", "thread_ts": both_ts, "channel": {"id": "C1"}},
                ]
            },
        }
        bot_client.conversations_replies.side_effect = replies_by_ts(
            {both_ts: thread(both_ts, ("U2", "hi")), one_ts: thread(one_ts, ("U3", "hi"))}
        )
        result = await ThreadService(search_deps).get_threads_by_participants(
            {"participants": ["U1", "U2"], "require_all_participants": True}
        )
        assert user_client.search_messages.await_args.kwargs["query"] == "from:<@U1> from:<@U2>"
        assert [t["threadTs"] for t in result.data["threads"]] == [both_ts]
        assert result.data["threads"][0]["matchingParticipants"] == ["U1", "U2"]


class TestWrites:
    async def test_post_thread_reply_broadcast(self, service: ThreadService, bot_client: AsyncMock) -> None:
        bot_client.chat_postMessage.return_value = {"ok": True, "ts": "5.0", "channel": "C1"}
        result = await service.post_thread_reply(
            {"channel": "C1", "thread_ts": PARENT_TS, "text": "done", "broadcast": True}
        )
        assert result.data["timestamp"] == "5.0"
        assert bot_client.chat_postMessage.await_args.kwargs["reply_broadcast"] is True

    async def test_create_thread_with_reply(self, service: ThreadService, bot_client: AsyncMock) -> None:
        bot_client.chat_postMessage.side_effect = [
            {"ok": True, "ts": "200.0", "channel": "C1"},
            {"ok": True, "ts": "201.0", "channel": "C1"},
        ]
        result = await service.create_thread({"channel": "C1", "text": "topic", "reply_text": "details"})
        assert result.data["threadTs"] == "200.0"
        assert result.data["reply"] == {"ts": "201.0", "text": "details"}
        assert bot_client.chat_postMessage.await_args_list[1].kwargs["thread_ts"] == "200.0"

    async def test_create_thread_reply_failure_names_step(
        self, service: ThreadService, bot_client: AsyncMock
    ) -> None:
        bot_client.chat_postMessage.side_effect = [
            {"ok": True, "ts": "200.0", "channel": "C1"},
            SlackApiError("nope", {"ok": False, "error": "msg_too_long"}),
        ]
        result = await service.create_thread({"channel": "C1", "text": "topic", "reply_text": "details"})
        assert result.success is False
        assert "200.0" in result.error
        assert "msg_too_long" in result.error
        assert result.message == "Failed to create thread (api_error)"

    async def test_create_thread_reply_failure_keeps_category(
        self, service: ThreadService, bot_client: AsyncMock
    ) -> None:
        bot_client.chat_postMessage.side_effect = [
            {"ok": True, "ts": "200.0", "channel": "C1"},
            RateLimitError("Rate limited on chat.postMessage", retry_after=30),
        ]
        result = await service.create_thread({"channel": "C1", "text": "topic", "reply_text": "details"})
        assert result.message == "Failed to create thread (rate_limit_error)"
        assert "reply step failed" in result.error
        assert "200.0" in result.error

    async def test_mark_important_tolerates_existing_reaction(
        self, service: ThreadService, bot_client: AsyncMock
    ) -> None:
        bot_client.reactions_add.side_effect = SlackApiError("nope", {"ok": False, "error": "already_reacted"})
        bot_client.chat_postMessage.return_value = {"ok": True, "ts": "9.0"}
        result = await service.mark_thread_important(
            {"channel": "C1", "thread_ts": PARENT_TS, "importance_level": "critical", "reason": "outage"}
        )
        assert result.success is True
        assert result.data["reactionAdded"] == "rotating_light"
        assert result.data["commentPosted"] is True
        text = bot_client.chat_postMessage.await_args.kwargs["text"]
        assert text == "Thread marked as critical importance: outage"

    async def test_mark_important_ok_false_already_reacted(
        self, service: ThreadService, bot_client: AsyncMock
    ) -> None:
        bot_client.reactions_add.return_value = {"ok": False, "error": "already_reacted"}
        result = await service.mark_thread_important({"channel": "C1", "thread_ts": PARENT_TS})
        assert result.success is True
        assert result.data["commentPosted"] is False
        bot_client.chat_postMessage.assert_not_awaited()

    async def test_mark_important_notifies_participants(
        self, service: ThreadService, bot_client: AsyncMock
    ) -> None:
        bot_client.reactions_add.return_value = {"ok": True}
        bot_client.chat_postMessage.return_value = {"ok": True, "ts": "9.0"}
        bot_client.conversations_replies.side_effect = replies_by_ts(
            {PARENT_TS: thread(PARENT_TS, ("U2", "a"), ("U1", "b"))}
        )
        await service.mark_thread_important({"channel": "C1", "thread_ts": PARENT_TS, "notify_participants": True})
        text = bot_client.chat_postMessage.await_args.kwargs["text"]
        assert text.endswith("cc <@U1> <@U2>")

    async def test_mark_important_other_reaction_error(
        self, service: ThreadService, bot_client: AsyncMock
    ) -> None:
        bot_client.reactions_add.side_effect = SlackApiError("nope", {"ok": False, "error": "message_not_found"})
        result = await service.mark_thread_important({"channel": "C1", "thread_ts": PARENT_TS})
        assert result.error == "message_not_found"


class TestExportThread:
    @pytest.fixture
    def exported(self, bot_client: AsyncMock) -> None:
        messages = thread(PARENT_TS, ("U2", "<b>bold</b> claim"))
        messages[0]["reactions"] = [{"name": "eyes", "count": 2}]
        bot_client.conversations_replies.side_effect = replies_by_ts({PARENT_TS: messages})

    async def test_markdown(self, service: ThreadService, exported: None) -> None:
        result = await service.export_thread({"channel": "C1", "thread_ts": PARENT_TS})
        content = result.data["content"]
        assert content.startswith(f"# Thread {PARENT_TS}")
        assert "**name-U1**" in content
        assert ":eyes: 2" in content
        assert result.data["messageCount"] == 2

    async def test_html_is_escaped(self, service: ThreadService, exported: None) -> None:
        result = await service.export_thread({"channel": "C1", "thread_ts": PARENT_TS, "format": "html"})
        assert "&lt;b&gt;bold&lt;/b&gt;" in result.data["content"]

    async def test_csv(self, service: ThreadService, exported: None) -> None:
        result = await service.export_thread({"channel": "C1", "thread_ts": PARENT_TS, "format": "csv"})
        rows = list(csv.DictReader(io.StringIO(result.data["content"])))
        assert rows[0]["userName"] == "name-U1"
        assert rows[0]["reactions"] == "eyes:2"
        assert rows[1]["text"] == "<b>bold</b> claim"

    async def test_json_without_metadata(self, service: ThreadService, exported: None) -> None:
        result = await service.export_thread(
            {"channel": "C1", "thread_ts": PARENT_TS, "format": "json", "include_metadata": False}
        )
        payload = json.loads(result.data["content"])
        assert "ts" not in payload["messages"][0]
        assert payload["messages"][0]["reactions"] == [{"name": "eyes", "count": 2}]

    async def test_unix_dates_and_profiles(self, service: ThreadService, exported: None) -> None:
        result = await service.export_thread(
            {
                "channel": "C1",
                "thread_ts": PARENT_TS,
                "format": "json",
                "date_format": "unix",
                "include_user_profiles": True,
            }
        )
        first = json.loads(result.data["content"])["messages"][0]
        assert first["time"] == "1700000000"
        assert first["userProfile"]["displayName"] == "name-U1"
