"""
Tests for per-session admission control.

Fully offline: the limiter takes an injected clock, so no test sleeps.
"""
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from quickworksheet.services.errors import AdmissionError
from quickworksheet.services.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _make_limiter(clock=None, **kwargs) -> RateLimiter:
    return RateLimiter(clock=clock or FakeClock(), **kwargs)


# ─────────────────────────────────────────────────────────────────────────────
# Call ceiling
# ─────────────────────────────────────────────────────────────────────────────

class TestCallCeiling:
    def test_five_calls_admitted_when_cooldown_respected(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        for _ in range(5):
            assert limiter.try_admit().allowed
            clock.advance(10)
        assert limiter.call_count == 5

    def test_sixth_call_rejected(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        for _ in range(5):
            limiter.try_admit()
            clock.advance(60)
        admission = limiter.try_admit()
        assert not admission.allowed
        assert "maximum number of generations" in admission.reason
        assert limiter.call_count == 5

    def test_admit_raises_on_ceiling(self):
        limiter = _make_limiter(max_calls=0)
        with pytest.raises(AdmissionError):
            limiter.admit()

    def test_remaining_calls_counts_down(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        assert limiter.remaining_calls == 5
        limiter.try_admit()
        clock.advance(11)
        limiter.try_admit()
        assert limiter.remaining_calls == 3


# ─────────────────────────────────────────────────────────────────────────────
# Cooldown
# ─────────────────────────────────────────────────────────────────────────────

class TestCooldown:
    def test_second_call_inside_window_rejected_with_positive_wait(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        assert limiter.try_admit().allowed
        clock.advance(3)
        admission = limiter.try_admit()
        assert not admission.allowed
        assert admission.retry_after == pytest.approx(7)
        assert admission.retry_after > 0
        assert "Please wait 7 seconds" in admission.reason

    def test_call_admitted_once_window_elapsed(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        limiter.try_admit()
        clock.advance(10)
        assert limiter.try_admit().allowed

    def test_rejected_attempt_is_not_recorded(self):
        clock = FakeClock()
        limiter = _make_limiter(clock)
        limiter.try_admit()
        first_call_at = limiter.last_call_at
        clock.advance(2)
        limiter.try_admit()
        assert limiter.call_count == 1
        assert limiter.last_call_at == first_call_at

    def test_admit_error_carries_retry_after(self):
        clock = FakeClock()
        limiter = _make_limiter(clock, cooldown_seconds=30)
        limiter.admit()
        clock.advance(12.5)
        with pytest.raises(AdmissionError) as exc:
            limiter.admit()
        assert exc.value.retry_after == pytest.approx(17.5)

    def test_check_does_not_record(self):
        limiter = _make_limiter()
        assert limiter.check().allowed
        assert limiter.check().allowed
        assert limiter.call_count == 0
        assert limiter.last_call_at is None


class TestIndependentSessions:
    def test_limiters_do_not_share_state(self):
        clock = FakeClock()
        a = _make_limiter(clock)
        b = _make_limiter(clock)
        a.try_admit()
        assert b.try_admit().allowed
        assert a.call_count == 1 and b.call_count == 1
