"""Tests for ServerConfig."""

import pydantic
import pytest

from slack_mcp_server.config import DOMAINS, ServerConfig


class TestFromEnv:
    def test_reads_prefixed_variables(self) -> None:
        config = ServerConfig.from_env(
            {
                "SLACK_MCP_BOT_TOKEN": "xoxb-1",
                "SLACK_MCP_USER_TOKEN": "xoxp-1",
                "SLACK_MCP_USE_USER_TOKEN_FOR_READ": "true",
                "SLACK_MCP_RATE_LIMIT_RETRIES": "5",
                "SLACK_MCP_MAX_REQUEST_CONCURRENCY": "7",
                "SLACK_MCP_REJECT_RATE_LIMITED_CALLS": "1",
                "SLACK_MCP_ENABLE_RATE_LIMIT_RETRY": "false",
                "SLACK_MCP_ENABLED_DOMAINS": "threads, Reactions",
            }
        )
        assert config.bot_token == "xoxb-1"
        assert config.has_user_token is True
        assert config.use_user_token_for_read is True
        assert config.rate_limit_retries == 5
        assert config.max_request_concurrency == 7
        assert config.reject_rate_limited_calls is True
        assert config.enable_rate_limit_retry is False
        assert config.enabled_domains == ("threads", "reactions")

    def test_defaults(self) -> None:
        config = ServerConfig.from_env({"SLACK_MCP_BOT_TOKEN": "xoxb-1"})
        assert config.user_token is None
        assert config.rate_limit_retries == 3
        assert config.max_request_concurrency == 3
        assert config.enable_rate_limit_retry is True
        assert config.enabled_domains == DOMAINS

    def test_overrides_win_and_none_is_ignored(self) -> None:
        config = ServerConfig.from_env(
            {"SLACK_MCP_BOT_TOKEN": "xoxb-env", "SLACK_MCP_RATE_LIMIT_RETRIES": "5"},
            bot_token="xoxb-flag",
            rate_limit_retries=None,
        )
        assert config.bot_token == "xoxb-flag"
        assert config.rate_limit_retries == 5

    def test_missing_bot_token(self) -> None:
        with pytest.raises(pydantic.ValidationError):
            ServerConfig.from_env({})

    def test_blank_user_token_is_absent(self) -> None:
        config = ServerConfig.from_env({"SLACK_MCP_BOT_TOKEN": "xoxb-1", "SLACK_MCP_USER_TOKEN": "  "})
        assert config.user_token is None
        assert config.has_user_token is False

    def test_empty_domain_list_means_all(self) -> None:
        config = ServerConfig.from_env({"SLACK_MCP_BOT_TOKEN": "xoxb-1", "SLACK_MCP_ENABLED_DOMAINS": " , "})
        assert config.enabled_domains == DOMAINS


class TestBounds:
    def test_unknown_domain(self) -> None:
        with pytest.raises(pydantic.ValidationError) as exc_info:
            ServerConfig(bot_token="xoxb-1", enabled_domains="threads,calendar")
        assert "calendar" in str(exc_info.value)

    @pytest.mark.parametrize("retries", [-1, 11])
    def test_retries_out_of_range(self, retries: int) -> None:
        with pytest.raises(pydantic.ValidationError):
            ServerConfig(bot_token="xoxb-1", rate_limit_retries=retries)

    @pytest.mark.parametrize("concurrency", [0, 21])
    def test_concurrency_out_of_range(self, concurrency: int) -> None:
        with pytest.raises(pydantic.ValidationError):
            ServerConfig(bot_token="xoxb-1", max_request_concurrency=concurrency)
