# subscriptions/models.py
"""
Paid membership plans, manually reviewed subscriptions and invoicing.

Models:
- SubscriptionPlan: Available membership tiers (duration, price)
- Subscription: A user's request for / grant of a time-boxed entitlement
- Invoice: Issued for every approval (and reactivation)
- InvoiceSequence: Per-month invoice counter
- ExpiryReminder: Which expiry warnings were sent for which window
- NotificationRequest: Outbox of notifications for the delivery layer
"""

import uuid
from datetime import timedelta
from decimal import Decimal
from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.contrib.auth.models import User
from django.utils import timezone
from django.core.validators import MinValueValidator

from subscriptions.managers import PlanManager, SubscriptionManager


# ==============================================================================
# PLAN CATALOG
# ==============================================================================

class SubscriptionPlan(models.Model):
    """
    Membership tiers users can subscribe to.
    Examples: 1 Month (30 days), 3 Months (90 days), 1 Year (365 days)

    Subscriptions copy name/duration/price at creation, so editing a plan
    never changes existing records.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    duration_days = models.PositiveIntegerField(
        validators=[MinValueValidator(1)],
        help_text="Length of the entitlement window in days"
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    currency = models.CharField(max_length=3, default='INR')

    # Display
    features = models.JSONField(
        default=list,
        blank=True,
        help_text="List of feature strings for display"
    )
    display_order = models.PositiveIntegerField(default=0)

    # Status
    is_active = models.BooleanField(default=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = PlanManager()

    class Meta:
        ordering = ['display_order', 'name']
        constraints = [
            models.CheckConstraint(
                condition=Q(price__gte=0),
                name='plan_price_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.duration_days} days)"

    def has_active_subscriptions(self, now=None):
        return Subscription.objects.filter(plan=self).active(now).exists()

    def is_referenced(self):
        return Subscription.objects.filter(plan=self).exists()

    def to_dict(self):
        return {
            'id': str(self.id),
            'name': self.name,
            'description': self.description,
            'duration_days': self.duration_days,
            'price': str(self.price),
            'currency': self.currency,
            'features': self.features,
            'display_order': self.display_order,
            'is_active': self.is_active,
        }


# ==============================================================================
# SUBSCRIPTIONS
# ==============================================================================

class Subscription(models.Model):
    """
    A user's subscription request and, once approved, their entitlement.

    Status only moves along:
        pending  -> approved | rejected
        approved -> cancelled | expired
        cancelled | expired -> approved   (reactivation)
    All status writes go through Subscription.objects.transition().
    """
    STATUS_CHOICES = (
        ('pending', 'Pending'),
        ('approved', 'Approved'),
        ('rejected', 'Rejected'),
        ('cancelled', 'Cancelled'),
        ('expired', 'Expired'),
    )

    PAYMENT_METHOD_CHOICES = (
        ('upi', 'UPI'),
        ('cash', 'Cash'),
        ('mixed', 'UPI + Cash'),
    )

    # Identifiers
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='subscriptions'
    )
    plan = models.ForeignKey(
        SubscriptionPlan,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subscriptions'
    )

    # Plan snapshot (taken at request time)
    plan_name = models.CharField(max_length=100)
    plan_duration_days = models.PositiveIntegerField()
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='INR')

    # Payment
    payment_method = models.CharField(max_length=10, choices=PAYMENT_METHOD_CHOICES)
    upi_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    cash_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    upi_transaction_id = models.CharField(max_length=100, blank=True)
    payment_proof = models.FileField(
        upload_to='subscriptions/proofs/%Y/%m/',
        blank=True,
        null=True
    )
    cash_received_date = models.DateTimeField(null=True, blank=True)
    cash_received_by = models.CharField(max_length=150, blank=True)

    # Status
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='pending',
        db_index=True
    )

    # Entitlement window (null until approved)
    start_date = models.DateTimeField(null=True, blank=True)
    end_date = models.DateTimeField(null=True, blank=True, db_index=True)
    grace_period_days = models.PositiveIntegerField(
        null=True,
        blank=True,
        help_text="Override of SUBSCRIPTION_GRACE_PERIOD_DAYS for this subscription"
    )
    grace_period_end_date = models.DateTimeField(null=True, blank=True)

    # Review
    reviewed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reviewed_subscriptions'
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    # Latest invoice (set once per approval event)
    invoice = models.ForeignKey(
        'Invoice',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )

    # Refund overlay
    refund_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    refund_reason = models.TextField(blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refunded_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='refunded_subscriptions'
    )

    # Renewal / upgrade linkage
    auto_renew = models.BooleanField(default=False)
    renewal_of = models.OneToOneField(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='renewal',
        help_text="The expiring subscription this auto-renewal request was spawned from"
    )
    previous_subscription = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='upgrades'
    )
    previous_plan_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    previous_plan_end_date = models.DateTimeField(null=True, blank=True)

    # Set once the first expiry warning for the current window went out
    expiry_warning_sent = models.BooleanField(default=False)
    expiry_warning_sent_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SubscriptionManager()

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'status'], name='subscription_user_status_idx'),
            models.Index(fields=['status', 'end_date'], name='subscription_status_end_idx'),
            models.Index(fields=['status', 'grace_period_end_date'], name='subscription_status_grace_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['user'],
                condition=Q(status='pending'),
                name='one_pending_subscription_per_user'
            ),
            models.CheckConstraint(
                condition=Q(end_date__isnull=True) | Q(start_date__isnull=True) | Q(end_date__gte=F('start_date')),
                name='subscription_end_after_start'
            ),
            models.CheckConstraint(
                condition=(
                    Q(grace_period_end_date__isnull=True) | Q(end_date__isnull=True)
                    | Q(grace_period_end_date__gte=F('end_date'))
                ),
                name='subscription_grace_after_end'
            ),
            models.CheckConstraint(
                condition=(
                    Q(status__in=['pending', 'rejected'], start_date__isnull=True, end_date__isnull=True)
                    | Q(status__in=['approved', 'cancelled', 'expired'],
                        start_date__isnull=False, end_date__isnull=False)
                ),
                name='subscription_dates_match_status'
            ),
        ]

    def __str__(self):
        return f"{self.user.username} - {self.plan_name} ({self.status})"

    def get_grace_period_days(self):
        if self.grace_period_days is not None:
            return self.grace_period_days
        return settings.SUBSCRIPTION_GRACE_PERIOD_DAYS

    def is_active(self, now=None):
        """Approved and the entitlement window has not ended"""
        if self.status != 'approved' or not self.end_date:
            return False
        now = now or timezone.now()
        return self.end_date >= now

    def is_in_grace_period(self, now=None):
        if self.status != 'approved' or not self.end_date or not self.grace_period_end_date:
            return False
        now = now or timezone.now()
        return self.end_date < now <= self.grace_period_end_date

    def has_access(self, now=None):
        """Active, or lapsed but still inside the grace period"""
        return self.is_active(now) or self.is_in_grace_period(now)

    def days_until_expiry(self, now=None):
        """Whole days until end_date (negative once lapsed)"""
        if not self.end_date:
            return None
        now = now or timezone.now()
        remaining = self.end_date - now
        # ceil, so 1 hour left still reads as 1 day
        days = remaining.days
        if remaining - timedelta(days=days) > timedelta(0):
            days += 1
        return days

    def can_refund(self):
        return self.status in ('approved', 'cancelled')

    def to_dict(self, now=None):
        return {
            'id': str(self.id),
            'user_id': self.user_id,
            'plan_id': str(self.plan_id) if self.plan_id else None,
            'plan_name': self.plan_name,
            'plan_duration_days': self.plan_duration_days,
            'amount': str(self.amount),
            'currency': self.currency,
            'payment_method': self.payment_method,
            'upi_amount': str(self.upi_amount),
            'cash_amount': str(self.cash_amount),
            'upi_transaction_id': self.upi_transaction_id,
            'payment_proof': self.payment_proof.url if self.payment_proof else None,
            'cash_received_date': self.cash_received_date.isoformat() if self.cash_received_date else None,
            'cash_received_by': self.cash_received_by,
            'status': self.status,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'grace_period_end_date': (
                self.grace_period_end_date.isoformat() if self.grace_period_end_date else None
            ),
            'reviewed_by': self.reviewed_by_id,
            'reviewed_at': self.reviewed_at.isoformat() if self.reviewed_at else None,
            'rejection_reason': self.rejection_reason,
            'invoice_id': str(self.invoice_id) if self.invoice_id else None,
            'refund_amount': str(self.refund_amount) if self.refund_amount is not None else None,
            'refund_reason': self.refund_reason,
            'refunded_at': self.refunded_at.isoformat() if self.refunded_at else None,
            'auto_renew': self.auto_renew,
            'previous_subscription_id': (
                str(self.previous_subscription_id) if self.previous_subscription_id else None
            ),
            'is_active': self.is_active(now),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


# ==============================================================================
# INVOICES
# ==============================================================================

class Invoice(models.Model):
    """
    Invoice issued for an approved subscription.
    Number format: INV-<YYYYMM>-<5 digits>, allocated by InvoiceService.
    """
    STATUS_CHOICES = (
        ('paid', 'Paid'),
    )

    # Identifiers
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice_number = models.CharField(
        max_length=50,
        unique=True,
        db_index=True
    )

    user = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='subscription_invoices'
    )
    subscription = models.ForeignKey(
        Subscription,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invoices'
    )

    # Snapshot of what was sold
    plan_name = models.CharField(max_length=100)
    plan_duration_days = models.PositiveIntegerField()
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default='INR')
    payment_method = models.CharField(max_length=10)
    upi_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    cash_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))

    # Validity window (copied from subscription)
    start_date = models.DateTimeField()
    end_date = models.DateTimeField()

    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='paid')
    issued_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='issued_invoices'
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-invoice_number']
        indexes = [
            models.Index(fields=['user', 'created_at'], name='invoice_user_created_idx'),
        ]

    def __str__(self):
        return f"Invoice {self.invoice_number}"

    def to_dict(self):
        return {
            'id': str(self.id),
            'invoice_number': self.invoice_number,
            'user_id': self.user_id,
            'subscription_id': str(self.subscription_id) if self.subscription_id else None,
            'plan_name': self.plan_name,
            'plan_duration_days': self.plan_duration_days,
            'amount': str(self.amount),
            'currency': self.currency,
            'payment_method': self.payment_method,
            'upi_amount': str(self.upi_amount),
            'cash_amount': str(self.cash_amount),
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'status': self.status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class InvoiceSequence(models.Model):
    """
    Per-month invoice counter. One row per YYYYMM period; last_value is the
    highest sequence number handed out for that month.
    """
    period = models.CharField(max_length=6, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-period']

    def __str__(self):
        return f"{self.period}: {self.last_value}"


# ==============================================================================
# EXPIRY REMINDERS
# ==============================================================================

class ExpiryReminder(models.Model):
    """
    One row per (subscription, window end, threshold) warning sent.
    The unique constraint is what makes warning emission idempotent.
    """
    subscription = models.ForeignKey(
        Subscription,
        on_delete=models.CASCADE,
        related_name='expiry_reminders'
    )
    window_end = models.DateTimeField()
    threshold_days = models.PositiveSmallIntegerField()
    sent_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-sent_at']
        constraints = [
            models.UniqueConstraint(
                fields=['subscription', 'window_end', 'threshold_days'],
                name='one_reminder_per_threshold'
            ),
        ]

    def __str__(self):
        return f"{self.subscription_id} - {self.threshold_days}d"


# ==============================================================================
# NOTIFICATION OUTBOX
# ==============================================================================

class NotificationRequest(models.Model):
    """
    Notification requests emitted by the subscription workflow.
    Delivery (push/email) reads from this table; nothing here sends anything.
    """
    KIND_CHOICES = (
        ('subscription_approved', 'Subscription Approved'),
        ('subscription_rejected', 'Subscription Rejected'),
        ('subscription_cancelled', 'Subscription Cancelled'),
        ('subscription_reactivated', 'Subscription Reactivated'),
        ('subscription_refunded', 'Subscription Refunded'),
        ('subscription_expiring', 'Subscription Expiring'),
        ('subscription_expired', 'Subscription Expired'),
        ('subscription_renewal_requested', 'Renewal Requested'),
    )

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='notification_requests'
    )
    kind = models.CharField(max_length=50, choices=KIND_CHOICES, db_index=True)
    title = models.CharField(max_length=200)
    message = models.TextField()
    subscription = models.ForeignKey(
        Subscription,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='notifications'
    )
    data = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
        ]

    def __str__(self):
        return f"{self.kind} -> {self.user_id}"
