"""Tests for the ConflictArbiter."""

import threading
from datetime import datetime, timedelta, UTC

import pytest

from home_rules.actions import ArbitrationDecision, ConflictArbiter

T0 = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


@pytest.fixture
def arbiter():
    return ConflictArbiter(conflict_cooldown_seconds=10, repeat_cooldown_seconds=2)


class TestDecisions:
    """Tests for acquire()."""

    def test_first_intent_allowed(self, arbiter):
        """Test an empty class allows anything."""
        decision, reservation = arbiter.acquire("climate", "on", "climate_a", T0)

        assert decision == ArbitrationDecision.ALLOW
        assert reservation.previous is None
        assert arbiter.last_intent("climate").intent == "on"

    def test_conflict_window(self, arbiter):
        """Test a different intent is blocked until the cooldown passes."""
        arbiter.acquire("climate", "on", "climate_a", T0)

        assert arbiter.acquire("climate", "off", "climate_b", at(9.9))[0] == ArbitrationDecision.CONFLICT
        assert arbiter.acquire("climate", "off", "climate_b", at(10))[0] == ArbitrationDecision.ALLOW
        assert arbiter.last_intent("climate").action_key == "climate_b"

    def test_repeat_window(self, arbiter):
        """Test the same intent is rate limited briefly."""
        arbiter.acquire("climate", "on 21", "climate_a", T0)

        decision, reservation = arbiter.acquire("climate", "on 21", "climate_b", at(1))
        assert decision == ArbitrationDecision.RATE_LIMITED
        assert reservation is None
        assert arbiter.acquire("climate", "on 21", "climate_b", at(2))[0] == ArbitrationDecision.ALLOW

    def test_blocked_attempt_not_recorded(self, arbiter):
        """Test a suppressed intent does not restart the window."""
        arbiter.acquire("climate", "on", "climate_a", T0)
        arbiter.acquire("climate", "off", "climate_a", at(5))

        record = arbiter.last_intent("climate")
        assert record.intent == "on"
        assert record.timestamp == T0

    def test_classes_independent(self, arbiter):
        """Test records are kept per actuator class."""
        arbiter.acquire("climate", "on", "climate_a", T0)

        assert arbiter.acquire("light", "off", "light_a", at(1))[0] == ArbitrationDecision.ALLOW

    def test_clear(self, arbiter):
        arbiter.acquire("climate", "on", "climate_a", T0)
        arbiter.clear()
        assert arbiter.last_intent("climate") is None


class TestRelease:
    """Tests for rolling back a failed dispatch."""

    def test_release_restores_previous(self, arbiter):
        """Test release puts the earlier record back."""
        arbiter.acquire("climate", "on", "climate_a", T0)
        _, reservation = arbiter.acquire("climate", "off", "climate_a", at(20))

        arbiter.release(reservation)

        assert arbiter.last_intent("climate").intent == "on"

    def test_release_first_record(self, arbiter):
        """Test releasing the only record empties the class."""
        _, reservation = arbiter.acquire("climate", "on", "climate_a", T0)
        arbiter.release(reservation)
        assert arbiter.last_intent("climate") is None

    def test_release_superseded_is_ignored(self, arbiter):
        """Test a newer record is not rolled back."""
        _, stale = arbiter.acquire("climate", "on", "climate_a", T0)
        arbiter.acquire("climate", "off", "climate_b", at(30))

        arbiter.release(stale)

        assert arbiter.last_intent("climate").intent == "off"


class TestConcurrency:
    """Tests for atomic check-and-record."""

    def test_one_winner(self, arbiter):
        """Test racing conflicting intents admit exactly one."""
        threads = 8
        barrier = threading.Barrier(threads)
        decisions = []
        lock = threading.Lock()

        def worker(index):
            barrier.wait()
            decision, _ = arbiter.acquire("climate", f"on {18 + index}", f"climate_{index}", T0)
            with lock:
                decisions.append(decision)

        workers = [threading.Thread(target=worker, args=(i,)) for i in range(threads)]
        for t in workers:
            t.start()
        for t in workers:
            t.join(timeout=5)

        assert decisions.count(ArbitrationDecision.ALLOW) == 1
        assert decisions.count(ArbitrationDecision.CONFLICT) == threads - 1
