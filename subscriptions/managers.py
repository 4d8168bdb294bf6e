# subscriptions/managers.py
"""
Custom QuerySet managers for plans and subscriptions.

These are the only place that knows how "active", "lapsed" or "pending"
translate into filters, and the only place that performs status writes
(compare-and-set transitions).
"""

from django.db import models
from django.utils import timezone


class PlanQuerySet(models.QuerySet):
    """Plan catalog queries"""

    def active(self):
        return self.filter(is_active=True)

    def ordered(self):
        return self.order_by('display_order', 'name')


class PlanManager(models.Manager):
    def get_queryset(self):
        return PlanQuerySet(self.model, using=self._db)

    def active(self):
        """Shortcut: SubscriptionPlan.objects.active()"""
        return self.get_queryset().active().ordered()


class SubscriptionQuerySet(models.QuerySet):
    """Subscription-specific queryset with status/time filtering"""

    def for_user(self, user):
        return self.filter(user=user)

    def pending(self):
        return self.filter(status='pending')

    def approved(self):
        return self.filter(status='approved')

    def active(self, now=None):
        """Approved and end_date not yet passed."""
        now = now or timezone.now()
        return self.filter(status='approved', end_date__gte=now)

    def with_access(self, now=None):
        """Approved and still inside the grace period."""
        now = now or timezone.now()
        return self.filter(status='approved', grace_period_end_date__gte=now)

    def lapsed(self, now=None):
        """Approved but past the grace period (due for expiration)."""
        now = now or timezone.now()
        return self.filter(status='approved', grace_period_end_date__lt=now)

    def ending_between(self, start, end):
        return self.filter(status='approved', end_date__gte=start, end_date__lte=end)

    def missing_invoice(self):
        return self.filter(status='approved', invoice__isnull=True)

    def latest_active_for(self, user, now=None, exclude_id=None):
        """
        The user's active subscription with the furthest end_date.

        Used as the "most recent" subscription when stacking approvals. Ordering
        by end_date rather than approval time means a new window always starts
        after every window already granted (see "Stacking target" in DESIGN.md).
        """
        qs = self.for_user(user).active(now)
        if exclude_id is not None:
            qs = qs.exclude(pk=exclude_id)
        return qs.order_by('-end_date').first()


class SubscriptionManager(models.Manager):
    def get_queryset(self):
        return SubscriptionQuerySet(self.model, using=self._db)

    def for_user(self, user):
        return self.get_queryset().for_user(user)

    def pending(self):
        return self.get_queryset().pending()

    def approved(self):
        return self.get_queryset().approved()

    def active(self, now=None):
        return self.get_queryset().active(now)

    def lapsed(self, now=None):
        return self.get_queryset().lapsed(now)

    def ending_between(self, start, end):
        return self.get_queryset().ending_between(start, end)

    def missing_invoice(self):
        return self.get_queryset().missing_invoice()

    def latest_active_for(self, user, now=None, exclude_id=None):
        return self.get_queryset().latest_active_for(user, now=now, exclude_id=exclude_id)

    def transition(self, pk, from_statuses, **fields):
        """
        Compare-and-set status write.

        Updates the row only if its status is still one of from_statuses.
        Returns True when this caller won the transition, False when the
        record had already moved (or does not exist).
        """
        if isinstance(from_statuses, str):
            from_statuses = [from_statuses]
        fields.setdefault('updated_at', timezone.now())
        updated = self.get_queryset().filter(
            pk=pk,
            status__in=from_statuses
        ).update(**fields)
        return updated == 1
