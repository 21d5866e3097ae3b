"""Unit tests for the eligibility rules and the replacement resolver.

These run on snapshots and a stub store, without Flask or a database.
Run with: pytest tests/test_eligibility.py -v
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from services.eligibility import (
    CANCELLED,
    COMPLETED,
    ERROR,
    FULL,
    MISSING_DATE,
    PAST_DATE,
    EligibilityEvaluator,
    ReplacementResolver,
    evaluate_eligibility,
)
from services.entities import EventSnapshot

NOW = datetime(2025, 10, 1, 12, 0, 0)


def snapshot(event_id="e1", status="active", scheduled_at=NOW + timedelta(days=3), capacity=5):
    return EventSnapshot(
        id=event_id,
        title=f"Event {event_id}",
        status=status,
        publish=True,
        scheduled_at=scheduled_at,
        capacity=capacity,
        price=Decimal("100"),
    )


class CountingStore:
    """Stub store answering count queries from a dict."""

    def __init__(self, counts=None, broken=()):
        self.counts = counts or {}
        self.broken = set(broken)

    def count_active_registrations(self, event_id):
        if event_id in self.broken:
            raise RuntimeError("read failed")
        return self.counts.get(event_id, 0)


class TestEvaluateEligibility:
    """Tests for evaluate_eligibility."""

    @pytest.mark.parametrize("status", [COMPLETED, CANCELLED])
    def test_closed_status_wins_over_capacity(self, status):
        """Completed and cancelled events are rejected with their own reason, even with seats free."""
        result = evaluate_eligibility(snapshot(status=status, capacity=100), 0, NOW)
        assert not result.eligible
        assert result.reason == status

    def test_missing_date(self):
        """An event without a resolvable schedule reports missingDate."""
        result = evaluate_eligibility(snapshot(scheduled_at=None), 0, NOW)
        assert result.reason == MISSING_DATE

    def test_past_date_with_capacity_left(self):
        """A past event is rejected even when capacity remains."""
        result = evaluate_eligibility(snapshot(scheduled_at=NOW - timedelta(minutes=1)), 0, NOW)
        assert not result.eligible
        assert result.reason == PAST_DATE

    def test_event_starting_now_is_past(self):
        """The schedule must be strictly in the future."""
        result = evaluate_eligibility(snapshot(scheduled_at=NOW), 0, NOW)
        assert result.reason == PAST_DATE

    def test_full_at_capacity(self):
        """C active registrations on a C-seat event means full."""
        result = evaluate_eligibility(snapshot(capacity=5), 5, NOW)
        assert not result.eligible
        assert result.reason == FULL

    def test_eligible_one_below_capacity(self):
        """C-1 active registrations leaves one seat."""
        result = evaluate_eligibility(snapshot(capacity=5), 4, NOW)
        assert result.eligible
        assert result.reason is None

    def test_zero_capacity_is_full(self):
        """An event with no capacity configured never accepts registrations."""
        result = evaluate_eligibility(snapshot(capacity=0), 0, NOW)
        assert result.reason == FULL


class TestEligibilityEvaluator:
    """Tests for EligibilityEvaluator."""

    def test_uses_store_count(self):
        evaluator = EligibilityEvaluator(CountingStore({"e1": 5}), clock=lambda: NOW)
        assert evaluator.check(snapshot(capacity=5)).reason == FULL

    def test_store_error_reported_as_error(self, caplog):
        """A failing read is absorbed into the error reason and logged."""
        evaluator = EligibilityEvaluator(CountingStore(broken={"e1"}), clock=lambda: NOW)

        result = evaluator.check(snapshot())

        assert not result.eligible
        assert result.reason == ERROR
        assert "Eligibility check failed for event e1" in caplog.text


class TestReplacementResolver:
    """Tests for ReplacementResolver."""

    def test_first_eligible_in_pool_order(self):
        """Pool [R1 ineligible, R2 eligible, R3 eligible] resolves to R2."""
        pool = [
            snapshot("r1", status=CANCELLED),
            snapshot("r2"),
            snapshot("r3"),
        ]
        resolver = ReplacementResolver(EligibilityEvaluator(CountingStore(), clock=lambda: NOW))

        assert resolver.resolve(pool).id == "r2"

    def test_exhausted_pool_returns_none(self):
        pool = [snapshot("r1", capacity=1), snapshot("r2", scheduled_at=None)]
        store = CountingStore({"r1": 1})
        resolver = ReplacementResolver(EligibilityEvaluator(store, clock=lambda: NOW))

        assert resolver.resolve(pool) is None

    def test_excluded_candidates_are_skipped(self):
        pool = [snapshot("r1"), snapshot("r2")]
        resolver = ReplacementResolver(EligibilityEvaluator(CountingStore(), clock=lambda: NOW))

        assert resolver.resolve(pool, exclude={"r1"}).id == "r2"

    def test_broken_candidate_does_not_stop_search(self):
        pool = [snapshot("r1"), snapshot("r2")]
        store = CountingStore(broken={"r1"})
        resolver = ReplacementResolver(EligibilityEvaluator(store, clock=lambda: NOW))

        assert resolver.resolve(pool).id == "r2"
