"""
Sliding-window rate limiter with an injected clock.
"""

import pytest

from careerme.core.rate_limit import RateLimiter

WINDOW_MS = 60 * 60 * 1000


class FakeClock:

    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(clock=clock)


def test_allows_up_to_limit_then_rejects(limiter):
    results = [limiter.consume("anon:a", 10, WINDOW_MS) for _ in range(10)]

    assert all(not result.limited for result in results)
    assert [result.remaining for result in results] == list(range(9, -1, -1))

    rejected = limiter.consume("anon:a", 10, WINDOW_MS)
    assert rejected.limited
    assert rejected.remaining == 0
    assert rejected.retry_after_ms == WINDOW_MS


def test_rejected_attempts_are_not_recorded(limiter):
    for _ in range(12):
        limiter.consume("anon:a", 10, WINDOW_MS)
    assert limiter.bucket_size("anon:a") == 10


def test_window_slides(limiter, clock):
    limiter.consume("anon:a", 2, WINDOW_MS)
    clock.advance(1000)
    limiter.consume("anon:a", 2, WINDOW_MS)

    clock.advance(WINDOW_MS - 1000 - 1)
    limited = limiter.consume("anon:a", 2, WINDOW_MS)
    assert limited.limited
    assert limited.retry_after_ms == 1

    clock.advance(1)
    assert not limiter.consume("anon:a", 2, WINDOW_MS).limited
    assert limiter.bucket_size("anon:a") == 2


def test_full_window_elapsed_resets(limiter, clock):
    for _ in range(10):
        limiter.consume("anon:a", 10, WINDOW_MS)

    clock.advance(WINDOW_MS + 1)

    result = limiter.consume("anon:a", 10, WINDOW_MS)
    assert not result.limited
    assert result.remaining == 9


def test_keys_are_independent(limiter):
    limiter.consume("anon:a", 1, WINDOW_MS)
    assert limiter.consume("anon:a", 1, WINDOW_MS).limited
    assert not limiter.consume("ip:10.0.0.1", 1, WINDOW_MS).limited


def test_reset_and_clear(limiter):
    limiter.consume("anon:a", 1, WINDOW_MS)
    limiter.consume("anon:b", 1, WINDOW_MS)

    limiter.reset("anon:a")
    assert limiter.bucket_size("anon:a") == 0
    assert limiter.bucket_size("anon:b") == 1

    limiter.clear()
    assert limiter.bucket_size("anon:b") == 0
