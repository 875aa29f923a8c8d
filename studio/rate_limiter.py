"""
Fixed one-minute window rate limiting.

Requests are counted per (source key, minute) window. The shared Gemini key
uses the ``global`` source key; BYOK users are counted under their own key so
their traffic never touches the shared pool. Counters live in an injected
window store (database-backed in production, in-memory for tests).
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

SHARED_SOURCE_KEY = "global"
WINDOW = timedelta(minutes=1)


def user_source_key(user_id: str) -> str:
    return f"user:{user_id}"


def window_start(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


@dataclass
class IncrementResult:
    current_count: int
    remaining: int
    limit_exceeded: bool = False


@dataclass
class RateLimitStatus:
    current_count: int
    limit: int
    remaining: int
    reset_time: datetime

    @property
    def limit_exceeded(self):
        return self.current_count >= self.limit


@dataclass
class RateLimitStats:
    current_minute_count: int
    last_hour_total: int
    peak_requests_in_minute: int


class RateLimiter:
    def __init__(self, store, limit, clock=timezone.now):
        self.store = store
        self.limit = limit
        self.clock = clock

    def _current_window(self):
        return window_start(self.clock())

    def can_process(self, source_key=SHARED_SOURCE_KEY) -> bool:
        return self.store.count(source_key, self._current_window()) < self.limit

    def increment(self, source_key=SHARED_SOURCE_KEY) -> IncrementResult:
        now = self.clock()
        count = self.store.increment(source_key, window_start(now), now)
        result = IncrementResult(
            current_count=count,
            remaining=max(0, self.limit - count),
            limit_exceeded=count > self.limit,
        )
        logger.debug(f"Rate window {source_key}: {count}/{self.limit}")
        return result

    def get_status(self, source_key=SHARED_SOURCE_KEY) -> RateLimitStatus:
        current = self._current_window()
        count = self.store.count(source_key, current)
        return RateLimitStatus(
            current_count=count,
            limit=self.limit,
            remaining=max(0, self.limit - count),
            reset_time=current + WINDOW,
        )

    def get_stats(self, source_key=SHARED_SOURCE_KEY) -> RateLimitStats:
        current = self._current_window()
        windows = self.store.windows_since(source_key, current - timedelta(hours=1))
        counts = [count for _, count in windows]
        return RateLimitStats(
            current_minute_count=next((c for start, c in windows if start == current), 0),
            last_hour_total=sum(counts),
            peak_requests_in_minute=max(counts, default=0),
        )

    def cleanup(self, max_age_hours=None, source_key=None) -> int:
        """Delete windows older than ``max_age_hours``; returns how many went."""
        if max_age_hours is None:
            max_age_hours = settings.RATE_WINDOW_RETENTION_HOURS
        cutoff = window_start(self.clock() - timedelta(hours=max_age_hours))
        deleted = self.store.delete_before(cutoff, source_key=source_key)
        if deleted:
            logger.info(f"🧹 Removed {deleted} rate windows older than {max_age_hours}h")
        return deleted


def shared_rate_limiter(clock=timezone.now) -> RateLimiter:
    from .db_rate_limiter import DBRateWindowStore
    return RateLimiter(DBRateWindowStore(), settings.RATE_LIMIT_PER_MINUTE, clock=clock)


def user_rate_limiter(clock=timezone.now) -> RateLimiter:
    from .db_rate_limiter import DBRateWindowStore
    return RateLimiter(DBRateWindowStore(), settings.USER_RATE_LIMIT_PER_MINUTE, clock=clock)
