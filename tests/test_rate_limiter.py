import threading
from datetime import datetime, timedelta, timezone as dt_timezone

import pytest
from django.db import connection

from studio.db_rate_limiter import DBRateWindowStore
from studio.local_rate_limiter import InMemoryRateWindowStore
from studio.models import RateWindow
from studio.rate_limiter import SHARED_SOURCE_KEY, RateLimiter, user_source_key, window_start


@pytest.fixture(params=["memory", "db"])
def limiter(request, clock):
    if request.param == "db":
        request.getfixturevalue("db")
        store = DBRateWindowStore()
    else:
        store = InMemoryRateWindowStore()
    return RateLimiter(store, limit=10, clock=clock)


def test_window_start_truncates_to_the_minute():
    moment = datetime(2025, 3, 4, 10, 17, 42, 123456, tzinfo=dt_timezone.utc)
    assert window_start(moment) == datetime(2025, 3, 4, 10, 17, tzinfo=dt_timezone.utc)


def test_ten_requests_per_window_then_denied(limiter):
    for n in range(1, 11):
        assert limiter.can_process(SHARED_SOURCE_KEY)
        result = limiter.increment(SHARED_SOURCE_KEY)
        assert result.current_count == n
        assert result.remaining == 10 - n

    assert not limiter.can_process(SHARED_SOURCE_KEY)
    assert limiter.get_status(SHARED_SOURCE_KEY).limit_exceeded


def test_new_minute_resets_the_count(limiter, clock):
    for _ in range(10):
        limiter.increment(SHARED_SOURCE_KEY)
    assert not limiter.can_process(SHARED_SOURCE_KEY)

    clock.advance(seconds=60)

    assert limiter.can_process(SHARED_SOURCE_KEY)
    assert limiter.get_status(SHARED_SOURCE_KEY).current_count == 0


def test_sources_are_counted_independently(limiter):
    for _ in range(10):
        limiter.increment(user_source_key("alice"))

    assert not limiter.can_process(user_source_key("alice"))
    assert limiter.can_process(user_source_key("bob"))
    assert limiter.can_process(SHARED_SOURCE_KEY)


def test_increment_past_the_limit_is_flagged(limiter):
    for _ in range(10):
        limiter.increment(SHARED_SOURCE_KEY)
    result = limiter.increment(SHARED_SOURCE_KEY)
    assert result.current_count == 11
    assert result.remaining == 0
    assert result.limit_exceeded


def test_status_reports_reset_at_next_minute(limiter, clock):
    limiter.increment(SHARED_SOURCE_KEY)
    limiter.increment(SHARED_SOURCE_KEY)

    current = limiter.get_status(SHARED_SOURCE_KEY)

    assert current.current_count == 2
    assert current.limit == 10
    assert current.remaining == 8
    assert current.reset_time == datetime(2025, 1, 1, 12, 1, tzinfo=dt_timezone.utc)
    assert not current.limit_exceeded


def test_cleanup_only_removes_windows_older_than_cutoff(limiter, clock):
    limiter.increment(SHARED_SOURCE_KEY)
    clock.advance(hours=3)
    limiter.increment(SHARED_SOURCE_KEY)

    assert limiter.cleanup(max_age_hours=2) == 1
    assert limiter.get_status(SHARED_SOURCE_KEY).current_count == 1


def test_cleanup_can_target_one_source(limiter, clock):
    limiter.increment(user_source_key("alice"))
    limiter.increment(user_source_key("bob"))
    clock.advance(hours=3)

    assert limiter.cleanup(max_age_hours=2, source_key=user_source_key("alice")) == 1
    assert limiter.cleanup(max_age_hours=2) == 1


def test_stats_cover_the_last_hour(limiter, clock):
    for _ in range(3):
        limiter.increment(SHARED_SOURCE_KEY)
    clock.advance(minutes=1)
    for _ in range(5):
        limiter.increment(SHARED_SOURCE_KEY)
    clock.advance(minutes=1)
    limiter.increment(SHARED_SOURCE_KEY)

    stats = limiter.get_stats(SHARED_SOURCE_KEY)

    assert stats.current_minute_count == 1
    assert stats.last_hour_total == 9
    assert stats.peak_requests_in_minute == 5


@pytest.mark.django_db
def test_db_store_keeps_one_row_per_source_and_minute(clock):
    limiter = RateLimiter(DBRateWindowStore(), limit=10, clock=clock)
    for _ in range(4):
        limiter.increment(SHARED_SOURCE_KEY)
    limiter.increment(user_source_key("alice"))

    rows = RateWindow.objects.filter(source_key=SHARED_SOURCE_KEY)
    assert rows.count() == 1
    assert rows.get().request_count == 4
    assert rows.get().window_start == window_start(clock())
    assert RateWindow.objects.count() == 2


def test_in_memory_increments_are_not_lost_under_threads(clock):
    limiter = RateLimiter(InMemoryRateWindowStore(), limit=1000, clock=clock)

    def hammer():
        for _ in range(50):
            limiter.increment(SHARED_SOURCE_KEY)

    threads = [threading.Thread(target=hammer) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert limiter.get_status(SHARED_SOURCE_KEY).current_count == 400


@pytest.mark.django_db(transaction=True)
def test_db_increments_are_not_lost_under_threads(clock):
    if not connection.features.has_select_for_update:
        pytest.skip("needs row locks; SQLite rejects concurrent writers")
    limiter = RateLimiter(DBRateWindowStore(), limit=1000, clock=clock)
    limiter.increment(SHARED_SOURCE_KEY)
    failures = []

    def hammer():
        try:
            for _ in range(20):
                limiter.increment(SHARED_SOURCE_KEY)
        except Exception as e:
            failures.append(e)
        finally:
            connection.close()

    threads = [threading.Thread(target=hammer) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert failures == []
    assert limiter.get_status(SHARED_SOURCE_KEY).current_count == 121
    assert RateWindow.objects.filter(source_key=SHARED_SOURCE_KEY).count() == 1

def test_separate_stores_never_share_counters(clock):
    first = RateLimiter(InMemoryRateWindowStore(), limit=10, clock=clock)
    second = RateLimiter(InMemoryRateWindowStore(), limit=10, clock=clock)
    for _ in range(10):
        first.increment(SHARED_SOURCE_KEY)

    assert not first.can_process(SHARED_SOURCE_KEY)
    assert second.can_process(SHARED_SOURCE_KEY)
    assert second.get_status(SHARED_SOURCE_KEY).reset_time - clock() <= timedelta(minutes=1)
