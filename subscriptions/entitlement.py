# subscriptions/entitlement.py
"""
Entitlement window calculation.

Pure functions: no database access, no clock reads. Callers pass `now`.
"""

from datetime import timedelta
from typing import NamedTuple, Optional


class EntitlementWindow(NamedTuple):
    start_date: object
    end_date: object
    grace_period_end_date: object


def compute_window(duration_days, now, grace_period_days, stack_onto=None):
    """
    Compute the entitlement window for an approval.

    Args:
        duration_days: Plan length in days
        now: Approval time
        grace_period_days: Days of access kept after end_date
        stack_onto: end_date of the user's currently active window, if any.
            When given (and still in the future) the new window starts there.

    Returns:
        EntitlementWindow(start_date, end_date, grace_period_end_date)
    """
    if duration_days < 1:
        raise ValueError("duration_days must be at least 1")
    if grace_period_days < 0:
        raise ValueError("grace_period_days cannot be negative")

    start = now
    if stack_onto is not None and stack_onto >= now:
        start = stack_onto

    end = start + timedelta(days=duration_days)
    grace_end = end + timedelta(days=grace_period_days)
    return EntitlementWindow(start, end, grace_end)


def compute_reactivation_window(duration_days, now, grace_period_days):
    """Reactivation always starts a fresh window at `now`."""
    return compute_window(duration_days, now, grace_period_days, stack_onto=None)


def due_warning_threshold(end_date, now, thresholds) -> Optional[int]:
    """
    Return the warning threshold (in days) currently due for a window ending
    at end_date, or None if no warning is due.

    The due threshold is the smallest threshold t with (end_date - now) <= t
    days. Thresholds are claimed independently, so a sweep that missed the
    7-day window still sends the 3-day and 1-day warnings.
    """
    remaining = end_date - now
    if remaining <= timedelta(0):
        return None
    due = None
    for days in sorted(thresholds, reverse=True):
        if remaining <= timedelta(days=days):
            due = days
    return due
