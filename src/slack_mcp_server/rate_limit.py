"""Concurrency cap and 429 retry policy around Slack Web API calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

from slack_sdk.errors import SlackApiError

from .errors import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_BACKOFF_SECONDS = 30.0

# Method prefix -> Slack rate limit tier
TIER_PREFIXES = (
    ("chat.", "tier1"),
    ("files.", "tier1"),
    ("conversations.", "tier2"),
    ("users.", "tier2"),
    ("search.", "tier3"),
    ("admin.", "tier4"),
)


def tier_for_method(method: str) -> str:
    """Map an API method name such as ``chat.postMessage`` to its tier."""
    for prefix, tier in TIER_PREFIXES:
        if method.startswith(prefix):
            return tier
    return "other"


def is_rate_limited(error: SlackApiError) -> bool:
    response = error.response
    status = getattr(response, "status_code", None)
    if status == 429:
        return True
    code = response.get("error") if response is not None else None
    return code == "ratelimited"


def retry_after_seconds(error: SlackApiError) -> float | None:
    """Read Retry-After from the error response, if present and numeric."""
    headers = getattr(error.response, "headers", None) or {}
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class RateLimitMetrics:
    total_requests: int = 0
    rate_limited_requests: int = 0
    retry_attempts: int = 0
    last_rate_limit_time: datetime | None = None
    rate_limits_by_tier: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequests": self.total_requests,
            "rateLimitedRequests": self.rate_limited_requests,
            "retryAttempts": self.retry_attempts,
            "lastRateLimitTime": self.last_rate_limit_time.isoformat() if self.last_rate_limit_time else None,
            "rateLimitsByTier": dict(self.rate_limits_by_tier),
        }


class RateLimitService:
    """Runs Slack calls under a semaphore and retries throttled ones.

    One instance is shared by every service of a registry so the concurrency
    cap and the counters cover the whole process.
    """

    def __init__(
        self,
        max_concurrency: int = 3,
        retries: int = 3,
        reject_rate_limited_calls: bool = False,
        enable_retry: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_concurrency = max_concurrency
        self.retries = retries
        self.reject_rate_limited_calls = reject_rate_limited_calls
        self.enable_retry = enable_retry
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._metrics = RateLimitMetrics()

    async def call(self, method: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Await ``factory()`` with the concurrency cap and retry policy applied.

        Args:
            method: Slack API method name, used for tiering and logs
            factory: Zero-argument callable producing a fresh awaitable per attempt

        Raises:
            RateLimitError: when the call stays throttled or rejection is configured
            SlackApiError: any non-rate-limit Slack failure, unchanged
        """
        tier = tier_for_method(method)
        attempt = 0
        while True:
            async with self._semaphore:
                self._metrics.total_requests += 1
                try:
                    return await factory()
                except SlackApiError as e:
                    if not is_rate_limited(e):
                        raise
                    retry_after = retry_after_seconds(e)
                    self._record_rate_limit(tier)

            if self.reject_rate_limited_calls or not self.enable_retry:
                logger.warning(f"Rate limited on {method} ({tier}), rejecting call")
                raise RateLimitError(f"Rate limited on {method}", retry_after=retry_after)
            if attempt >= self.retries:
                logger.warning(f"Rate limited on {method} ({tier}), giving up after {attempt} retries")
                raise RateLimitError(f"Rate limited on {method} after {attempt} retries", retry_after=retry_after)

            delay = retry_after if retry_after is not None else min(2.0**attempt, MAX_BACKOFF_SECONDS)
            attempt += 1
            self._metrics.retry_attempts += 1
            logger.warning(f"Rate limited on {method} ({tier}), retry {attempt}/{self.retries} in {delay:.1f}s")
            await self._sleep(delay)

    def _record_rate_limit(self, tier: str) -> None:
        self._metrics.rate_limited_requests += 1
        self._metrics.rate_limits_by_tier[tier] = self._metrics.rate_limits_by_tier.get(tier, 0) + 1
        self._metrics.last_rate_limit_time = datetime.now(timezone.utc)

    def get_metrics(self) -> dict[str, Any]:
        """Snapshot of the counters; mutating it does not affect the service."""
        return self._metrics.to_dict()
