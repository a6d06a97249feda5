"""Tests for the in-process sliding-window rate limiter."""

import threading

import pytest

from src.core.rate_limiter import SlidingWindowRateLimiter

pytestmark = [pytest.mark.fast]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def test_eleventh_request_in_window_is_rejected():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=10, window_seconds=900, clock=clock)
    for _ in range(10):
        assert limiter.hit("1.2.3.4").allowed
        clock.advance(1)
    decision = limiter.hit("1.2.3.4")
    assert not decision.allowed
    assert decision.retry_after == 890


def test_clients_are_counted_separately():
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())
    assert limiter.hit("a").allowed
    assert limiter.hit("a").allowed
    assert not limiter.hit("a").allowed
    assert limiter.hit("b").allowed
    assert not limiter.hit("b").allowed


def test_hits_expire_after_window():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=60, clock=clock)
    limiter.hit("a")
    clock.advance(30)
    limiter.hit("a")
    assert not limiter.hit("a").allowed
    clock.advance(30)  # first hit is exactly window_seconds old
    assert limiter.hit("a").allowed
    assert not limiter.hit("a").allowed


def test_rejected_hits_are_not_recorded():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("a")
    for _ in range(5):
        clock.advance(10)
        assert not limiter.hit("a").allowed
    clock.advance(10)
    assert limiter.hit("a").allowed


def test_retry_after_is_at_least_one_second():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=clock)
    limiter.hit("a")
    clock.advance(59.9)
    decision = limiter.hit("a")
    assert not decision.allowed
    assert decision.retry_after == 1


def test_reset_forgets_all_clients():
    limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.hit("a")
    assert not limiter.hit("a").allowed
    limiter.reset()
    assert limiter.hit("a").allowed


def test_idle_clients_are_dropped_after_window():
    """A client that stops sending does not keep an entry in the limiter."""
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=60, clock=clock)
    for client_id in ["10.0.0.1", "10.0.0.2", "10.0.0.3"]:
        limiter.hit(client_id)
    assert set(limiter._hits) == {"10.0.0.1", "10.0.0.2", "10.0.0.3"}

    clock.advance(30)
    limiter.hit("10.0.0.2")
    clock.advance(30)
    limiter.hit("10.0.0.4")
    # 10.0.0.2 still has a hit inside the window.
    assert set(limiter._hits) == {"10.0.0.2", "10.0.0.4"}

    clock.advance(60)
    limiter.hit("10.0.0.4")
    assert set(limiter._hits) == {"10.0.0.4"}
    assert len(limiter._hits["10.0.0.4"]) == 1


@pytest.mark.parametrize("max_requests,window", [(0, 60), (5, 0), (5, -1)])
def test_invalid_configuration_raises(max_requests, window):
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(max_requests=max_requests, window_seconds=window)


def test_concurrent_hits_never_exceed_quota():
    """Parallel hits from one client: exactly max_requests are allowed."""
    limiter = SlidingWindowRateLimiter(max_requests=10, window_seconds=900)
    allowed: list[bool] = []
    lock = threading.Lock()

    def _worker():
        for _ in range(5):
            ok = limiter.hit("shared").allowed
            with lock:
                allowed.append(ok)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert allowed.count(True) == 10
    assert len(allowed) == 40
