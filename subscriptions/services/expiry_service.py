# subscriptions/services/expiry_service.py
"""
Time-driven subscription upkeep: expiry warnings, expiration of lapsed
subscriptions, auto-renewal requests and invoice repair.

Every sweep is safe to run twice (or concurrently with itself):
- warnings are claimed through ExpiryReminder's unique constraint,
- expiration is a compare-and-set from 'approved',
- an auto-renewal request is tied to its source by a one-to-one field.
A failure on one record is logged and the sweep moves on.
"""

import logging
from datetime import timedelta
from django.conf import settings
from django.db import transaction, IntegrityError
from django.utils import timezone

from subscriptions.entitlement import due_warning_threshold
from subscriptions.notifications import notify
from subscriptions.services.base import BaseService
from subscriptions.services.invoice_service import InvoiceService
from subscriptions.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


class ExpiryService(BaseService):
    """
    Usage:
        result = ExpiryService.send_expiry_warnings()
        result = ExpiryService.expire_lapsed()
        result = ExpiryService.process_auto_renewals()
    """

    # =========================================================================
    # WARNINGS
    # =========================================================================

    @classmethod
    def send_expiry_warnings(cls, now=None) -> dict:
        """Send the due 7/3/1-day warning for each approved subscription."""
        from subscriptions.models import Subscription

        now = now or timezone.now()
        thresholds = settings.SUBSCRIPTION_EXPIRY_WARNING_DAYS
        if not thresholds:
            return cls._success("Expiry warnings disabled.", data={"sent": 0, "failed": 0})

        candidates = Subscription.objects.ending_between(
            now, now + timedelta(days=max(thresholds))
        ).select_related('user')

        sent = failed = 0
        for subscription in candidates:
            try:
                if cls._warn(subscription, thresholds, now):
                    sent += 1
            except Exception:
                failed += 1
                logger.exception(f"Expiry warning failed for subscription {subscription.id}")

        logger.info(f"Expiry warnings: {sent} sent, {failed} failed")
        return cls._success(f"{sent} expiry warning(s) sent.", data={"sent": sent, "failed": failed})

    @classmethod
    def _warn(cls, subscription, thresholds, now) -> bool:
        from subscriptions.models import ExpiryReminder, Subscription

        threshold = due_warning_threshold(subscription.end_date, now, thresholds)
        if threshold is None:
            return False

        with transaction.atomic():
            _, created = ExpiryReminder.objects.get_or_create(
                subscription=subscription,
                window_end=subscription.end_date,
                threshold_days=threshold,
                defaults={'sent_at': now}
            )
            if not created:
                return False
            Subscription.objects.filter(
                pk=subscription.pk,
                expiry_warning_sent=False
            ).update(expiry_warning_sent=True, expiry_warning_sent_at=now)

        days_left = subscription.days_until_expiry(now)
        notify(
            subscription.user,
            'subscription_expiring',
            'Subscription expiring soon',
            f"Your {subscription.plan_name} subscription expires in {days_left} day(s). "
            f"Renew to keep your access.",
            subscription=subscription,
            data={"threshold_days": threshold, "days_left": days_left},
        )
        return True

    # =========================================================================
    # EXPIRATION
    # =========================================================================

    @classmethod
    def expire_lapsed(cls, now=None) -> dict:
        """approved -> expired for every subscription past its grace period."""
        from subscriptions.models import Subscription

        now = now or timezone.now()
        expired = skipped = failed = 0

        for subscription in Subscription.objects.lapsed(now).select_related('user'):
            try:
                with transaction.atomic():
                    won = Subscription.objects.transition(
                        subscription.pk, 'approved',
                        status='expired',
                        updated_at=now,
                    )
                    if won:
                        SubscriptionService.refresh_user_entitlement(
                            subscription.user, fallback_status='expired', now=now
                        )
            except Exception:
                failed += 1
                logger.exception(f"Expiration failed for subscription {subscription.id}")
                continue

            if not won:
                skipped += 1
                continue

            expired += 1
            cls._audit_log(subscription.user, "subscription_expired", {
                "subscription_id": str(subscription.id),
                "grace_period_end_date": subscription.grace_period_end_date.isoformat(),
            })
            notify(
                subscription.user,
                'subscription_expired',
                'Subscription expired',
                f"Your {subscription.plan_name} subscription has expired. Subscribe again to restore access.",
                subscription=subscription,
            )

        logger.info(f"Expiration sweep: {expired} expired, {skipped} already moved, {failed} failed")
        return cls._success(
            f"{expired} subscription(s) expired.",
            data={"expired": expired, "skipped": skipped, "failed": failed}
        )

    # =========================================================================
    # AUTO-RENEWAL
    # =========================================================================

    @classmethod
    def process_auto_renewals(cls, now=None) -> dict:
        """
        Spawn a pending renewal request for auto-renew subscriptions ending
        within SUBSCRIPTION_AUTO_RENEW_WINDOW_HOURS. The request still needs
        reviewer approval.
        """
        from subscriptions.models import Subscription

        now = now or timezone.now()
        window = timedelta(hours=settings.SUBSCRIPTION_AUTO_RENEW_WINDOW_HOURS)

        candidates = Subscription.objects.ending_between(
            now, now + window
        ).filter(
            auto_renew=True,
            renewal__isnull=True,
        ).select_related('user', 'plan')

        created = skipped = failed = 0
        for subscription in candidates:
            try:
                renewal = cls._spawn_renewal(subscription, now)
            except Exception:
                failed += 1
                logger.exception(f"Auto-renewal failed for subscription {subscription.id}")
                continue

            if renewal is None:
                skipped += 1
                continue

            created += 1
            cls._audit_log(subscription.user, "renewal_requested", {
                "subscription_id": str(subscription.id),
                "renewal_id": str(renewal.id),
            })
            notify(
                subscription.user,
                'subscription_renewal_requested',
                'Renewal requested',
                f"A renewal request for your {subscription.plan_name} subscription was created "
                f"and is awaiting payment verification.",
                subscription=renewal,
            )

        logger.info(f"Auto-renewal sweep: {created} created, {skipped} skipped, {failed} failed")
        return cls._success(
            f"{created} renewal request(s) created.",
            data={"created": created, "skipped": skipped, "failed": failed}
        )

    @classmethod
    def _spawn_renewal(cls, subscription, now):
        """
        Returns the new pending Subscription, or None if one can't be created.

        Amounts come from the expiring subscription's snapshot so the
        per-method split still adds up to the total after a price change.
        """
        from subscriptions.models import Subscription

        plan = subscription.plan
        if plan is not None and not plan.is_active:
            logger.info(f"Skipping renewal of {subscription.id}: plan {plan.id} is inactive")
            return None

        try:
            with transaction.atomic():
                renewal = Subscription.objects.create(
                    user=subscription.user,
                    plan=plan,
                    plan_name=subscription.plan_name,
                    plan_duration_days=subscription.plan_duration_days,
                    amount=subscription.amount,
                    currency=subscription.currency,
                    payment_method=subscription.payment_method,
                    upi_amount=subscription.upi_amount,
                    cash_amount=subscription.cash_amount,
                    status='pending',
                    auto_renew=True,
                    renewal_of=subscription,
                    previous_subscription=subscription,
                    previous_plan_amount=subscription.amount,
                    previous_plan_end_date=subscription.end_date,
                )
        except IntegrityError:
            # Already renewed, or the user has another pending request
            return None
        return renewal

    # =========================================================================
    # INVOICE REPAIR
    # =========================================================================

    @classmethod
    def repair_missing_invoices(cls, now=None) -> dict:
        """Issue invoices for approved subscriptions that have none."""
        from subscriptions.models import Subscription

        now = now or timezone.now()
        repaired = failed = 0

        for subscription in Subscription.objects.missing_invoice().select_related('user'):
            result = InvoiceService.repair_missing_invoice(subscription, now=now)
            if result['ok']:
                repaired += 1
            elif result['code'] != 'STATUS_CONFLICT':
                failed += 1
                logger.error(f"Invoice repair failed for subscription {subscription.id}: {result['reason']}")

        logger.info(f"Invoice repair: {repaired} repaired, {failed} failed")
        return cls._success(
            f"{repaired} invoice(s) repaired.",
            data={"repaired": repaired, "failed": failed}
        )

    # =========================================================================
    # COMBINED
    # =========================================================================

    @classmethod
    def run_daily_checks(cls, now=None) -> dict:
        now = now or timezone.now()
        warnings = cls.send_expiry_warnings(now=now)
        expiration = cls.expire_lapsed(now=now)
        return cls._success(
            "Daily subscription checks complete.",
            data={"warnings": warnings['data'], "expiration": expiration['data']}
        )
