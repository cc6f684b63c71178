"""
In-memory fixed-window rate limiting and vendor usage tracking.

State lives in the process; a multi-worker deployment gets one window per
worker.
"""

import math
import time
from collections import deque
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional


class RateLimitError(Exception):
    """Raised when a caller exceeds its request window (429)."""

    def __init__(self, message: str, result: "RateLimitResult"):
        super().__init__(message)
        self.result = result


@dataclass
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        h = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at)),
        }
        if self.retry_after is not None:
            h["Retry-After"] = str(self.retry_after)
        return h


class InMemoryRateLimiter:
    def __init__(self, window_seconds: float, max_requests: int, clock: Callable[[], float] = time.time):
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self._clock = clock
        self._store: Dict[str, List[float]] = {}  # key -> [count, reset_at]

    def _cleanup(self, now: float) -> None:
        expired = [k for k, (_, reset_at) in self._store.items() if now >= reset_at]
        for k in expired:
            del self._store[k]

    def check(self, key: str = "global") -> RateLimitResult:
        """Count one request against key and report whether it is allowed."""
        now = self._clock()
        self._cleanup(now)

        entry = self._store.get(key)
        if entry is None:
            entry = [0, now + self.window_seconds]
            self._store[key] = entry

        allowed = entry[0] < self.max_requests
        if allowed:
            entry[0] += 1

        return RateLimitResult(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - entry[0]),
            reset_at=entry[1],
            retry_after=None if allowed else max(1, math.ceil(entry[1] - now)),
        )

    def enforce(self, key: str = "global") -> RateLimitResult:
        result = self.check(key)
        if not result.allowed:
            raise RateLimitError("Rate limit exceeded", result)
        return result

    def reset(self, key: str) -> None:
        self._store.pop(key, None)

    def reset_all(self) -> None:
        self._store.clear()


@dataclass
class UsageEntry:
    timestamp: float
    success: bool
    rate_limited: bool = False
    response_time: Optional[float] = None
    credits_used: float = 0
    error: Optional[str] = None


class UsageTracker:
    """Bounded history of vendor API calls with aggregate stats."""

    def __init__(self, max_entries: int = 10000, clock: Callable[[], float] = time.time):
        self._entries: deque = deque(maxlen=max_entries)
        self._clock = clock

    def record_request(
        self,
        success: bool,
        rate_limited: bool = False,
        response_time: Optional[float] = None,
        credits_used: float = 0,
        error: Optional[str] = None,
    ) -> None:
        self._entries.append(UsageEntry(
            timestamp=self._clock(),
            success=success,
            rate_limited=rate_limited,
            response_time=response_time,
            credits_used=credits_used or 0,
            error=error,
        ))

    def get_stats(self, since: Optional[float] = None) -> dict:
        entries = [e for e in self._entries if since is None or e.timestamp >= since]
        times = [e.response_time for e in entries if e.response_time is not None]
        last = entries[-1].timestamp if entries else None
        return {
            "totalRequests": len(entries),
            "successfulRequests": sum(1 for e in entries if e.success),
            "failedRequests": sum(1 for e in entries if not e.success),
            "rateLimitHits": sum(1 for e in entries if e.rate_limited),
            "creditsUsed": sum(e.credits_used for e in entries),
            "lastRequestTime": datetime.fromtimestamp(last, timezone.utc).isoformat() if last is not None else None,
            "averageResponseTime": sum(times) / len(times) if times else None,
        }

    def get_recent_entries(self, limit: int = 100) -> List[dict]:
        return [asdict(e) for e in list(self._entries)[-limit:]]

    def clear(self) -> None:
        self._entries.clear()
