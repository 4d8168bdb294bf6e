"""
Tests for the time-driven sweeps and their Celery/management entry points.

Verifies:
- Expiration after the grace period, exactly once
- Staged expiry warnings, one per threshold per window
- Auto-renewal requests (idempotent, skips inactive plans)
- Invoice repair sweep
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from django.core.management import call_command

from accounts.models import UserProfile
from subscriptions.models import Subscription, SubscriptionPlan, ExpiryReminder, NotificationRequest
from subscriptions.services import ExpiryService, SubscriptionService
from subscriptions import tasks


# ============================================================================
# EXPIRATION
# ============================================================================

@pytest.mark.django_db
class TestExpireLapsed:

    def test_expires_after_grace(self, member, make_subscription, now):
        lapsed = make_subscription(member, end_date=now - timedelta(days=10))

        result = ExpiryService.expire_lapsed(now=now)

        assert result['data']['expired'] == 1
        lapsed.refresh_from_db()
        assert lapsed.status == 'expired'
        profile = UserProfile.objects.get(user=member)
        assert profile.subscription_status == 'expired'
        assert profile.subscription_expiry_date == lapsed.end_date

    def test_second_run_is_noop(self, member, make_subscription, now):
        make_subscription(member, end_date=now - timedelta(days=10))

        ExpiryService.expire_lapsed(now=now)
        result = ExpiryService.expire_lapsed(now=now)

        assert result['data']['expired'] == 0
        assert NotificationRequest.objects.filter(kind='subscription_expired').count() == 1

    def test_grace_period_not_expired(self, member, make_subscription, now):
        in_grace = make_subscription(member, end_date=now - timedelta(days=3))

        ExpiryService.expire_lapsed(now=now)

        in_grace.refresh_from_db()
        assert in_grace.status == 'approved'

    def test_other_active_subscription_keeps_access(self, member, make_subscription, now):
        make_subscription(member, end_date=now - timedelta(days=10))
        current = make_subscription(member, end_date=now + timedelta(days=15))

        ExpiryService.expire_lapsed(now=now)

        profile = UserProfile.objects.get(user=member)
        assert profile.subscription_status == 'active'
        assert profile.subscription_expiry_date == current.end_date

    def test_cancelled_not_touched(self, member, make_subscription, now):
        cancelled = make_subscription(member, status='cancelled', end_date=now - timedelta(days=30))

        ExpiryService.expire_lapsed(now=now)

        cancelled.refresh_from_db()
        assert cancelled.status == 'cancelled'


# ============================================================================
# WARNINGS
# ============================================================================

@pytest.mark.django_db
class TestExpiryWarnings:

    def test_staged_warnings(self, member, make_subscription, now):
        sub = make_subscription(member, end_date=now + timedelta(days=6))

        assert ExpiryService.send_expiry_warnings(now=now)['data']['sent'] == 1
        assert ExpiryService.send_expiry_warnings(now=now)['data']['sent'] == 0
        assert ExpiryService.send_expiry_warnings(now=now + timedelta(days=4))['data']['sent'] == 1
        assert ExpiryService.send_expiry_warnings(now=now + timedelta(days=5, hours=12))['data']['sent'] == 1

        thresholds = sorted(ExpiryReminder.objects.filter(subscription=sub).values_list('threshold_days', flat=True))
        assert thresholds == [1, 3, 7]
        assert NotificationRequest.objects.filter(kind='subscription_expiring').count() == 3
        sub.refresh_from_db()
        assert sub.expiry_warning_sent is True

    def test_not_due_yet(self, member, make_subscription, now):
        make_subscription(member, end_date=now + timedelta(days=10))

        assert ExpiryService.send_expiry_warnings(now=now)['data']['sent'] == 0

    def test_late_run_sends_currently_due_threshold(self, member, make_subscription, now):
        sub = make_subscription(member, end_date=now + timedelta(days=2))

        ExpiryService.send_expiry_warnings(now=now)

        assert list(ExpiryReminder.objects.filter(subscription=sub).values_list('threshold_days', flat=True)) == [3]

    def test_disabled(self, settings, member, make_subscription, now):
        settings.SUBSCRIPTION_EXPIRY_WARNING_DAYS = []
        make_subscription(member, end_date=now + timedelta(days=2))

        assert ExpiryService.send_expiry_warnings(now=now)['data']['sent'] == 0


# ============================================================================
# AUTO-RENEWAL
# ============================================================================

@pytest.mark.django_db
class TestAutoRenewals:

    def test_spawns_pending_renewal_once(self, member, make_subscription, now):
        source = make_subscription(member, end_date=now + timedelta(hours=12), auto_renew=True)

        first = ExpiryService.process_auto_renewals(now=now)
        second = ExpiryService.process_auto_renewals(now=now)

        assert first['data']['created'] == 1
        assert second['data']['created'] == 0
        renewal = Subscription.objects.get(renewal_of=source)
        assert renewal.status == 'pending'
        assert renewal.previous_subscription == source
        assert renewal.amount == source.plan.price
        assert renewal.start_date is None

    def test_renewal_keeps_amount_split_after_price_change(self, member, monthly_plan, make_subscription, now):
        source = make_subscription(member, end_date=now + timedelta(hours=12), auto_renew=True)
        SubscriptionPlan.objects.filter(pk=monthly_plan.pk).update(price='549.00')

        ExpiryService.process_auto_renewals(now=now)

        renewal = Subscription.objects.get(renewal_of=source)
        assert renewal.amount == source.amount
        assert abs(renewal.upi_amount + renewal.cash_amount - renewal.amount) <= 1

    def test_mixed_renewal_keeps_split(self, member, make_subscription, now):
        source = make_subscription(
            member, end_date=now + timedelta(hours=12), auto_renew=True,
            payment_method='mixed', upi_amount=Decimal('300.00'), cash_amount=Decimal('199.00'),
        )

        ExpiryService.process_auto_renewals(now=now)

        renewal = Subscription.objects.get(renewal_of=source)
        assert renewal.payment_method == 'mixed'
        assert (renewal.upi_amount, renewal.cash_amount) == (Decimal('300.00'), Decimal('199.00'))

    def test_without_auto_renew(self, member, make_subscription, now):
        make_subscription(member, end_date=now + timedelta(hours=12))

        assert ExpiryService.process_auto_renewals(now=now)['data']['created'] == 0

    def test_outside_window(self, member, make_subscription, now):
        make_subscription(member, end_date=now + timedelta(days=3), auto_renew=True)

        assert ExpiryService.process_auto_renewals(now=now)['data']['created'] == 0

    def test_inactive_plan_skipped(self, member, inactive_plan, make_subscription, now):
        make_subscription(member, plan=inactive_plan, end_date=now + timedelta(hours=12), auto_renew=True)

        result = ExpiryService.process_auto_renewals(now=now)

        assert result['data']['created'] == 0
        assert result['data']['skipped'] == 1

    def test_existing_pending_request_skipped(self, member, make_subscription, now):
        make_subscription(member, end_date=now + timedelta(hours=12), auto_renew=True)
        make_subscription(member, status='pending')

        result = ExpiryService.process_auto_renewals(now=now)

        assert result['data']['created'] == 0
        assert Subscription.objects.filter(user=member, status='pending').count() == 1


# ============================================================================
# INVOICE REPAIR / ENTRY POINTS
# ============================================================================

@pytest.mark.django_db
class TestInvoiceRepairSweep:

    def test_repairs_missing_invoices(self, member, other_member, make_subscription, now):
        make_subscription(member)
        make_subscription(other_member)

        result = ExpiryService.repair_missing_invoices(now=now)

        assert result['data']['repaired'] == 2
        assert not Subscription.objects.missing_invoice().exists()


@pytest.mark.django_db
class TestEntryPoints:

    def test_daily_checks(self, member, make_subscription, now):
        make_subscription(member, end_date=now - timedelta(days=10))

        result = ExpiryService.run_daily_checks(now=now)

        assert result['data']['expiration']['expired'] == 1
        assert 'sent' in result['data']['warnings']

    def test_expire_task(self, member, make_subscription, now):
        make_subscription(member, end_date=now - timedelta(days=10))

        data = tasks.expire_lapsed_subscriptions()

        assert data['expired'] == 1

    def test_repair_task(self, member, make_subscription):
        make_subscription(member)

        assert tasks.repair_missing_invoices()['repaired'] == 1

    def test_management_command(self, member, make_subscription, now):
        make_subscription(member, end_date=now - timedelta(days=10))
        out = StringIO()

        call_command('run_subscription_checks', '--only', 'expire', stdout=out)

        assert 'Subscription checks complete.' in out.getvalue()
        assert Subscription.objects.filter(status='expired').count() == 1

    def test_seed_plans_is_idempotent(self, db):
        call_command('seed_subscription_plans', stdout=StringIO())
        call_command('seed_subscription_plans', stdout=StringIO())

        assert SubscriptionPlan.objects.count() == 4
        assert SubscriptionPlan.objects.get(name='1 Year').duration_days == 365


@pytest.mark.django_db
def test_refresh_derives_pending_over_expired(member, make_subscription, now):
    make_subscription(member, status='expired', end_date=now - timedelta(days=60))
    make_subscription(member, status='pending')

    assert SubscriptionService.refresh_user_entitlement(member, fallback_status=None, now=now) == 'pending'
