"""Fixed-window request limiter for outbound Freshdesk calls."""

import math
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from freshdesk_mcp.errors import RateLimitError


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset_at: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_at": datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat(),
        }


class RateLimiter:
    """Counts requests in a fixed time window and fails fast once it is full.

    The window resets wholesale when the clock passes ``reset_at``. Server
    rate-limit headers can resynchronize the local count at any time.
    """

    def __init__(
        self,
        limit: int = 50,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if limit < 1:
            raise ValueError("Rate limit must be at least 1 request per window")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._count = 0
        self._reset_at = clock() + window_seconds

    def _roll_window(self, now: float) -> None:
        if now >= self._reset_at:
            self._count = 0
            self._reset_at = now + self.window_seconds

    def check_limit(self) -> None:
        """Admit one request or raise ``RateLimitError`` if the window is full."""
        with self._lock:
            now = self._clock()
            self._roll_window(now)
            if self._count >= self.limit:
                wait = math.ceil(self._reset_at - now)
                raise RateLimitError(
                    f"Rate limit exceeded. Please wait {wait} seconds before retrying.",
                    wait,
                )
            self._count += 1

    def get_info(self) -> RateLimitInfo:
        with self._lock:
            self._roll_window(self._clock())
            return RateLimitInfo(
                limit=self.limit,
                remaining=max(0, self.limit - self._count),
                reset_at=self._reset_at,
            )

    def update_from_headers(self, headers: Mapping[str, str]) -> None:
        """Resynchronize the local count from Freshdesk rate-limit headers.

        Both ``x-ratelimit-total`` and ``x-ratelimit-remaining`` must be present
        and numeric; anything else leaves the window untouched.
        """
        total = headers.get("x-ratelimit-total")
        remaining = headers.get("x-ratelimit-remaining")
        if total is None or remaining is None:
            return
        try:
            int(total)
            remaining_count = int(remaining)
        except (TypeError, ValueError):
            return
        if remaining_count < 0:
            return
        with self._lock:
            self._count = self.limit - remaining_count

    def reset(self) -> None:
        with self._lock:
            self._count = 0
            self._reset_at = self._clock() + self.window_seconds

    def get_wait_time(self) -> float:
        """Seconds until a request would be admitted again (0 when under limit)."""
        with self._lock:
            if self._count < self.limit:
                return 0.0
            return max(0.0, self._reset_at - self._clock())
