"""Server configuration assembled from CLI flags and SLACK_MCP_* environment variables."""

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DOMAINS = ("messages", "threads", "files", "reactions", "workspace")

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off", "")


class ServerConfig(BaseModel):
    """Validated settings shared by every service."""

    model_config = ConfigDict(frozen=True)

    bot_token: str = Field(min_length=1)
    user_token: str | None = None
    use_user_token_for_read: bool = False
    rate_limit_retries: int = Field(default=3, ge=0, le=10)
    max_request_concurrency: int = Field(default=3, ge=1, le=20)
    reject_rate_limited_calls: bool = False
    enable_rate_limit_retry: bool = True
    enabled_domains: tuple[str, ...] = DOMAINS
    log_level: str = "info"

    @field_validator(
        "use_user_token_for_read", "reject_rate_limited_calls", "enable_rate_limit_retry", mode="before"
    )
    @classmethod
    def _parse_bool(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
        return value

    @field_validator("user_token", mode="before")
    @classmethod
    def _blank_token_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("enabled_domains", mode="before")
    @classmethod
    def _parse_domains(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = [item.strip().lower() for item in value.split(",") if item.strip()]
            if not value:
                return DOMAINS
        return value

    @field_validator("enabled_domains")
    @classmethod
    def _check_domains(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        unknown = [d for d in value if d not in DOMAINS]
        if unknown:
            raise ValueError(f"Unknown domain(s): {', '.join(unknown)}. Valid domains: {', '.join(DOMAINS)}")
        return value

    @property
    def has_user_token(self) -> bool:
        return bool(self.user_token)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> "ServerConfig":
        """Build a config from the environment; non-None overrides (CLI flags) win.

        Args:
            environ: Mapping to read from, defaults to ``os.environ``
            **overrides: Explicit field values, typically parsed CLI arguments

        Raises:
            pydantic.ValidationError: when a value is missing or out of range
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        env_names = {
            "bot_token": "SLACK_MCP_BOT_TOKEN",
            "user_token": "SLACK_MCP_USER_TOKEN",
            "use_user_token_for_read": "SLACK_MCP_USE_USER_TOKEN_FOR_READ",
            "rate_limit_retries": "SLACK_MCP_RATE_LIMIT_RETRIES",
            "max_request_concurrency": "SLACK_MCP_MAX_REQUEST_CONCURRENCY",
            "reject_rate_limited_calls": "SLACK_MCP_REJECT_RATE_LIMITED_CALLS",
            "enable_rate_limit_retry": "SLACK_MCP_ENABLE_RATE_LIMIT_RETRY",
            "enabled_domains": "SLACK_MCP_ENABLED_DOMAINS",
            "log_level": "SLACK_MCP_LOG_LEVEL",
        }
        for field_name, env_name in env_names.items():
            if env_name in env:
                values[field_name] = env[env_name]
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
