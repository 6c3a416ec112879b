from __future__ import annotations

import threading

import pytest

from utils.rate_limiter import RateLimiter

WINDOW = 900.0


def test_allows_up_to_max_then_denies() -> None:
    limiter = RateLimiter(max_requests=5, window_seconds=WINDOW)
    results = [limiter.allow("10.0.0.1", now=100.0 + i) for i in range(6)]
    assert results == [True] * 5 + [False]


def test_denial_leaves_entry_unchanged() -> None:
    limiter = RateLimiter(max_requests=2, window_seconds=WINDOW)
    limiter.allow("c", now=0.0)
    limiter.allow("c", now=1.0)
    before = limiter.snapshot("c")
    assert limiter.allow("c", now=2.0) is False
    assert limiter.allow("c", now=3.0) is False
    assert limiter.snapshot("c") == before
    assert before.count == 2
    assert before.window_reset_at == WINDOW


def test_window_expiry_opens_a_fresh_window() -> None:
    limiter = RateLimiter(max_requests=3, window_seconds=WINDOW)
    for i in range(3):
        assert limiter.allow("c", now=float(i))
    assert limiter.allow("c", now=10.0) is False

    later = WINDOW + 1.0
    assert limiter.allow("c", now=later) is True
    assert limiter.snapshot("c").count == 1
    assert limiter.snapshot("c").window_reset_at == later + WINDOW
    assert limiter.allow("c", now=later + 1) is True
    assert limiter.allow("c", now=later + 2) is True
    assert limiter.allow("c", now=later + 3) is False


def test_window_only_resets_strictly_after_reset_time() -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=10)
    assert limiter.allow("c", now=0.0)
    assert limiter.allow("c", now=10.0) is False
    assert limiter.allow("c", now=10.5) is True


def test_clients_are_tracked_independently() -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=WINDOW)
    assert limiter.allow("a", now=0.0)
    assert limiter.allow("a", now=1.0) is False
    assert limiter.allow("b", now=1.0) is True


def test_retry_after_reports_remaining_window() -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=WINDOW)
    assert limiter.retry_after("c", now=0.0) == 0
    limiter.allow("c", now=0.0)
    assert limiter.retry_after("c", now=0.0) == 900
    assert limiter.retry_after("c", now=899.5) == 1
    assert limiter.retry_after("c", now=1000.0) == 0


def test_uses_injected_clock_when_now_is_omitted(manual_clock) -> None:
    limiter = RateLimiter(max_requests=2, window_seconds=60, clock=manual_clock)
    assert limiter.allow("c")
    assert limiter.allow("c")
    assert limiter.allow("c") is False
    manual_clock.advance(61)
    assert limiter.allow("c")


def test_reset_clears_state() -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=WINDOW)
    limiter.allow("c", now=0.0)
    limiter.reset()
    assert len(limiter) == 0
    assert limiter.allow("c", now=1.0)


def test_expired_entries_are_pruned(manual_clock) -> None:
    limiter = RateLimiter(max_requests=1, window_seconds=10, clock=manual_clock, prune_interval=100)
    limiter.allow("old")
    manual_clock.advance(500)
    limiter.allow("new")
    assert limiter.snapshot("old") is None
    assert len(limiter) == 1


@pytest.mark.parametrize("max_requests, window", [(0, 10), (5, 0), (5, -1)])
def test_rejects_invalid_configuration(max_requests: int, window: float) -> None:
    with pytest.raises(ValueError):
        RateLimiter(max_requests=max_requests, window_seconds=window)


def test_concurrent_checks_do_not_lose_increments() -> None:
    limiter = RateLimiter(max_requests=25, window_seconds=WINDOW)
    results: list[bool] = []
    results_lock = threading.Lock()
    start = threading.Barrier(20)

    def worker() -> None:
        start.wait()
        for _ in range(5):
            allowed = limiter.allow("shared", now=1.0)
            with results_lock:
                results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(20)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 25
    assert results.count(False) == 75
    assert limiter.snapshot("shared").count == 25
