"""
Pytest configuration and shared fixtures for subscription tests.

Provides:
- Users (member, second member, reviewer, superadmin)
- Authenticated clients
- Plans (monthly, quarterly, inactive)
- Subscription factory for any status/window
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from django.contrib.auth.models import User
from django.test import Client
from django.utils import timezone

from subscriptions.models import SubscriptionPlan, Subscription
from subscriptions.notifications import get_notifier


# ============================================================================
# NOTIFIER
# ============================================================================

@pytest.fixture(autouse=True)
def database_notifier(settings):
    """Every test writes notifications to the outbox table."""
    settings.SUBSCRIPTION_NOTIFIER = 'subscriptions.notifications.DatabaseNotifier'
    get_notifier.cache_clear()
    yield
    get_notifier.cache_clear()


@pytest.fixture
def now():
    return timezone.now()


# ============================================================================
# USER FIXTURES
# ============================================================================

@pytest.fixture
def member(db):
    """A regular member (profile created by signal)."""
    return User.objects.create_user(
        username="member",
        email="member@example.com",
        password="testpass123"
    )


@pytest.fixture
def other_member(db):
    return User.objects.create_user(
        username="other_member",
        email="other@example.com",
        password="testpass123"
    )


@pytest.fixture
def reviewer(db):
    """Admin-role user who reviews payments."""
    user = User.objects.create_user(
        username="reviewer",
        email="reviewer@example.com",
        password="testpass123"
    )
    user.account_profile.role = 'admin'
    user.account_profile.save()
    return user


@pytest.fixture
def superadmin(db):
    user = User.objects.create_user(
        username="superadmin",
        email="superadmin@example.com",
        password="testpass123"
    )
    user.account_profile.role = 'superadmin'
    user.account_profile.save()
    return user


@pytest.fixture
def member_client(member):
    client = Client()
    client.force_login(member)
    return client


@pytest.fixture
def reviewer_client(reviewer):
    client = Client()
    client.force_login(reviewer)
    return client


@pytest.fixture
def superadmin_client(superadmin):
    client = Client()
    client.force_login(superadmin)
    return client


# ============================================================================
# PLAN FIXTURES
# ============================================================================

@pytest.fixture
def monthly_plan(db):
    return SubscriptionPlan.objects.create(
        name="1 Month",
        duration_days=30,
        price=Decimal('499.00'),
        display_order=1,
        features=["View contact details"]
    )


@pytest.fixture
def quarterly_plan(db):
    return SubscriptionPlan.objects.create(
        name="3 Months",
        duration_days=90,
        price=Decimal('1299.00'),
        display_order=2
    )


@pytest.fixture
def inactive_plan(db):
    return SubscriptionPlan.objects.create(
        name="Festival Offer",
        duration_days=15,
        price=Decimal('199.00'),
        display_order=9,
        is_active=False
    )


# ============================================================================
# SUBSCRIPTION FIXTURES
# ============================================================================

@pytest.fixture
def make_subscription(monthly_plan, now):
    """
    Factory: make_subscription(user, status='approved', end_date=..., ...)

    Dated statuses get a window ending at end_date (default: 20 days from
    now) with a 7 day grace period; pending/rejected stay undated.
    """
    def _make(user, status='approved', plan=None, end_date=None, payment_method='upi', **extra):
        plan = plan or monthly_plan
        fields = dict(
            user=user,
            plan=plan,
            plan_name=plan.name,
            plan_duration_days=plan.duration_days,
            amount=plan.price,
            currency=plan.currency,
            payment_method=payment_method,
            upi_amount=plan.price if payment_method == 'upi' else Decimal('0.00'),
            cash_amount=plan.price if payment_method == 'cash' else Decimal('0.00'),
            status=status,
        )
        if status in ('approved', 'cancelled', 'expired'):
            end_date = end_date or now + timedelta(days=20)
            fields.update(
                start_date=end_date - timedelta(days=plan.duration_days),
                end_date=end_date,
                grace_period_end_date=end_date + timedelta(days=7),
            )
        fields.update(extra)
        return Subscription.objects.create(**fields)
    return _make


@pytest.fixture
def pending_subscription(make_subscription, member):
    return make_subscription(member, status='pending')


@pytest.fixture
def active_subscription(make_subscription, member):
    return make_subscription(member, status='approved')
