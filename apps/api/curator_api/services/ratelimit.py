"""
Sliding-window request tracking per key.

Best-effort and in-memory: counts are lost on restart. One instance is owned by
the application and handed to every provider so all requests share the same
windows regardless of which collection run triggered them.
"""

from __future__ import annotations

import datetime as dt
import threading
import time
from dataclasses import dataclass
from typing import Callable

from ..logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_RETENTION_SECONDS = 60 * 60


@dataclass(frozen=True)
class RateLimitConfig:
    max_requests: int = 10
    window_seconds: float = 60.0


class RateLimiter:
    def __init__(
        self,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._requests: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._retention = retention_seconds
        self._clock = clock

    def track(self, key: str) -> None:
        now = self._clock()
        with self._lock:
            window = [ts for ts in self._requests.get(key, []) if now - ts < self._retention]
            # Keep the list ordered even if the clock steps backwards.
            if window and now < window[-1]:
                now = window[-1]
            window.append(now)
            self._requests[key] = window
            count = len(window)
        logger.debug(f"Tracked request for {key}", extra={"extra_fields": {"key": key, "count": count}})

    def _recent(self, key: str, window_seconds: float, now: float) -> list[float]:
        with self._lock:
            entries = list(self._requests.get(key, ()))
        return [ts for ts in entries if now - ts <= window_seconds]

    def is_limited(self, key: str, config: RateLimitConfig = RateLimitConfig()) -> bool:
        recent = self._recent(key, config.window_seconds, self._clock())
        if len(recent) >= config.max_requests:
            logger.warning(
                f"Rate limit exceeded for {key}",
                extra={
                    "extra_fields": {
                        "key": key,
                        "current": len(recent),
                        "max": config.max_requests,
                        "window_seconds": config.window_seconds,
                    }
                },
            )
            return True
        return False

    def next_available_at(self, key: str, config: RateLimitConfig = RateLimitConfig()) -> dt.datetime | None:
        recent = self._recent(key, config.window_seconds, self._clock())
        if len(recent) < config.max_requests:
            return None
        return dt.datetime.fromtimestamp(min(recent) + config.window_seconds, dt.UTC)

    def count(self, key: str, config: RateLimitConfig = RateLimitConfig()) -> int:
        return len(self._recent(key, config.window_seconds, self._clock()))

    def cleanup(self) -> int:
        """Drop keys with no activity inside the retention horizon; returns how many were removed."""
        now = self._clock()
        removed = 0
        with self._lock:
            for key in list(self._requests):
                valid = [ts for ts in self._requests[key] if now - ts < self._retention]
                if valid:
                    self._requests[key] = valid
                else:
                    del self._requests[key]
                    removed += 1
        if removed:
            logger.info(f"Cleaned up {removed} rate limit entries", extra={"extra_fields": {"removed": removed}})
        return removed

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._requests)

    def snapshot(self, configs: dict[str, RateLimitConfig]) -> dict[str, dict[str, int | float | bool]]:
        out: dict[str, dict[str, int | float | bool]] = {}
        for key, config in configs.items():
            current = self.count(key, config)
            out[key] = {
                "current": current,
                "max_requests": config.max_requests,
                "window_seconds": config.window_seconds,
                "limited": current >= config.max_requests,
            }
        return out
