"""Tests for RequestHandler failure classification."""

from typing import Any

from slack_sdk.errors import SlackApiError

from slack_mcp_server.errors import AuthorizationError, NotFoundError
from slack_mcp_server.request_handler import RequestHandler, slack_error_code
from slack_mcp_server.result import service_error, service_success
from slack_mcp_server.schemas import SendMessageInput

VALID = {"channel": "C1", "text": "hi"}


class TestHandle:
    async def test_success_wraps_mapping(self) -> None:
        async def op(input: SendMessageInput) -> dict[str, Any]:
            return {"channel": input.channel}

        result = await RequestHandler().handle(SendMessageInput, VALID, op, success_message="Sent")
        assert result.success is True
        assert result.data == {"channel": "C1"}
        assert result.message == "Sent"

    async def test_validation_failure_never_runs_operation(self) -> None:
        calls = []

        async def op(input: SendMessageInput) -> dict[str, Any]:
            calls.append(input)
            return {}

        result = await RequestHandler().handle(SendMessageInput, {"channel": "C1"}, op, error_message="Failed")
        assert result.success is False
        assert result.error.startswith("Validation failed")
        assert result.message == "Failed (validation_error)"
        assert calls == []

    async def test_slack_api_error_keeps_code(self) -> None:
        async def op(input: SendMessageInput) -> dict[str, Any]:
            raise SlackApiError("boom", {"ok": False, "error": "channel_not_found"})

        result = await RequestHandler().handle(SendMessageInput, VALID, op, error_message="Failed to send message")
        assert result.error == "channel_not_found"
        assert result.message == "Failed to send message: Slack API error (api_error)"

    async def test_domain_error_keeps_category(self) -> None:
        async def op(input: SendMessageInput) -> dict[str, Any]:
            raise AuthorizationError("needs a user token")

        result = await RequestHandler().handle(SendMessageInput, VALID, op, error_message="Failed")
        assert result.error == "needs a user token"
        assert result.message == "Failed (authorization_error)"

    async def test_not_found_category(self) -> None:
        async def op(input: SendMessageInput) -> dict[str, Any]:
            raise NotFoundError("missing")

        result = await RequestHandler().handle(SendMessageInput, VALID, op, error_message="Failed")
        assert result.message == "Failed (not_found_error)"

    async def test_non_mapping_payload_is_unknown_error(self) -> None:
        async def op(input: SendMessageInput) -> Any:
            return ["not", "a", "mapping"]

        result = await RequestHandler().handle(SendMessageInput, VALID, op, error_message="Failed")
        assert result.success is False
        assert result.error.startswith("Invalid result")
        assert result.message == "Failed (unknown_error)"

    async def test_unexpected_exception_is_unknown_error(self) -> None:
        async def op(input: SendMessageInput) -> dict[str, Any]:
            raise RuntimeError("kaboom")

        result = await RequestHandler().handle(SendMessageInput, VALID, op, error_message="Failed")
        assert result.error == "kaboom"
        assert result.message == "Failed (unknown_error)"


class TestHandleWithCustomFormat:
    async def test_operation_result_passes_through(self) -> None:
        async def op(input: SendMessageInput) -> Any:
            return service_success({"n": 3}, "Found 3 things")

        result = await RequestHandler().handle_with_custom_format(SendMessageInput, VALID, op)
        assert result.message == "Found 3 things"
        assert result.data == {"n": 3}

    async def test_operation_failure_passes_through(self) -> None:
        async def op(input: SendMessageInput) -> Any:
            return service_error("custom", "Custom failure")

        result = await RequestHandler().handle_with_custom_format(SendMessageInput, VALID, op)
        assert result.success is False
        assert result.error == "custom"

    async def test_mapping_is_wrapped(self) -> None:
        async def op(input: SendMessageInput) -> Any:
            return {"n": 1}

        result = await RequestHandler().handle_with_custom_format(SendMessageInput, VALID, op, success_message="ok")
        assert result.message == "ok"


def test_slack_error_code_defaults_to_unknown() -> None:
    assert slack_error_code(SlackApiError("boom", {"ok": False})) == "unknown_error"
