"""
Tests for entitlement window math and the time-based model helpers.

Verifies:
- Fresh and stacked windows
- Grace period arithmetic
- Due expiry-warning threshold selection
- is_active / is_in_grace_period / days_until_expiry boundaries
"""

import pytest
from datetime import datetime, timedelta, timezone as dt_timezone

from subscriptions.entitlement import (
    compute_window,
    compute_reactivation_window,
    due_warning_threshold,
)
from subscriptions.models import Subscription


NOW = datetime(2026, 3, 15, 10, 0, tzinfo=dt_timezone.utc)


class TestComputeWindow:

    def test_fresh_window_starts_now(self):
        window = compute_window(30, NOW, 7)

        assert window.start_date == NOW
        assert window.end_date == NOW + timedelta(days=30)
        assert window.grace_period_end_date == NOW + timedelta(days=37)

    def test_stacks_onto_future_end_date(self):
        current_end = NOW + timedelta(days=10)

        window = compute_window(90, NOW, 7, stack_onto=current_end)

        assert window.start_date == current_end
        assert window.end_date == current_end + timedelta(days=90)
        assert window.grace_period_end_date == current_end + timedelta(days=97)

    def test_past_end_date_is_not_stacked(self):
        """A window in its grace period has ended; the new one starts now."""
        window = compute_window(30, NOW, 7, stack_onto=NOW - timedelta(days=2))

        assert window.start_date == NOW

    def test_zero_grace_period(self):
        window = compute_window(30, NOW, 0)
        assert window.grace_period_end_date == window.end_date

    def test_rejects_zero_duration(self):
        with pytest.raises(ValueError):
            compute_window(0, NOW, 7)

    def test_rejects_negative_grace(self):
        with pytest.raises(ValueError):
            compute_window(30, NOW, -1)

    def test_reactivation_ignores_previous_window(self):
        window = compute_reactivation_window(30, NOW, 7)

        assert window.start_date == NOW
        assert window.end_date == NOW + timedelta(days=30)


class TestDueWarningThreshold:

    THRESHOLDS = [7, 3, 1]

    @pytest.mark.parametrize("remaining,expected", [
        (timedelta(days=10), None),
        (timedelta(days=7), 7),
        (timedelta(days=6, hours=12), 7),
        (timedelta(days=3), 3),
        (timedelta(days=2), 3),
        (timedelta(hours=12), 1),
    ])
    def test_threshold_for_remaining_time(self, remaining, expected):
        assert due_warning_threshold(NOW + remaining, NOW, self.THRESHOLDS) == expected

    def test_nothing_due_after_end(self):
        assert due_warning_threshold(NOW - timedelta(hours=1), NOW, self.THRESHOLDS) is None

    def test_threshold_order_does_not_matter(self):
        assert due_warning_threshold(NOW + timedelta(days=2), NOW, [1, 7, 3]) == 3


class TestSubscriptionTimeHelpers:
    """Model helpers on unsaved instances (no database needed)."""

    def _approved(self, end_date, grace_days=7):
        return Subscription(
            status='approved',
            start_date=end_date - timedelta(days=30),
            end_date=end_date,
            grace_period_end_date=end_date + timedelta(days=grace_days),
        )

    def test_active_until_end_date_inclusive(self):
        sub = self._approved(NOW)

        assert sub.is_active(NOW)
        assert not sub.is_in_grace_period(NOW)

    def test_grace_period_after_end(self):
        sub = self._approved(NOW - timedelta(days=1))

        assert not sub.is_active(NOW)
        assert sub.is_in_grace_period(NOW)
        assert sub.has_access(NOW)

    def test_no_access_after_grace(self):
        sub = self._approved(NOW - timedelta(days=8))

        assert not sub.has_access(NOW)

    def test_non_approved_never_active(self):
        sub = self._approved(NOW + timedelta(days=5))
        sub.status = 'cancelled'

        assert not sub.is_active(NOW)
        assert not sub.has_access(NOW)

    def test_days_until_expiry_rounds_up(self):
        assert self._approved(NOW + timedelta(hours=1)).days_until_expiry(NOW) == 1
        assert self._approved(NOW + timedelta(days=3)).days_until_expiry(NOW) == 3
        assert self._approved(NOW + timedelta(days=3, minutes=1)).days_until_expiry(NOW) == 4

    def test_days_until_expiry_undated(self):
        assert Subscription(status='pending').days_until_expiry(NOW) is None
