# subscriptions/services/subscription_service.py
"""
Subscription requests and read models: intake, upgrade, current status,
history, invoices, payment proof, auto-renew, reviewer listings and stats.
"""

import csv
import io
import logging
from datetime import timedelta
from decimal import Decimal
from typing import Optional
from django.conf import settings
from django.core.paginator import Paginator
from django.db import transaction, IntegrityError
from django.db.models import Count, Sum
from django.utils import timezone

from subscriptions.services.base import BaseService

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ('upi', 'cash', 'mixed')
EXPIRING_SOON_DAYS = 7


class SubscriptionService(BaseService):
    """
    Subscription requests and queries.

    Usage:
        result = SubscriptionService.create_request(user, plan_id, 'upi', upi_amount=499)
        result = SubscriptionService.get_current(user)
        result = SubscriptionService.get_history(user)
    """

    # =========================================================================
    # INTAKE
    # =========================================================================

    @classmethod
    def create_request(
        cls,
        user,
        plan_id,
        payment_method: str,
        upi_amount=None,
        cash_amount=None,
        upi_transaction_id: str = '',
        now=None
    ) -> dict:
        """
        Submit a new subscription request (status pending).

        Returns:
            {ok, reason, code, data: {subscription}}
        """
        return cls._create(
            user, plan_id, payment_method, upi_amount, cash_amount,
            upi_transaction_id, now=now or timezone.now()
        )

    @classmethod
    def create_upgrade_request(
        cls,
        user,
        plan_id,
        payment_method: str,
        upi_amount=None,
        cash_amount=None,
        upi_transaction_id: str = '',
        now=None
    ) -> dict:
        """
        Submit an upgrade request. Requires a currently active subscription;
        on approval the new window is stacked after it.
        """
        from subscriptions.models import Subscription

        now = now or timezone.now()
        current = Subscription.objects.latest_active_for(user, now)
        if not current:
            return cls._fail("No active subscription found to upgrade.", code="NO_ACTIVE_SUBSCRIPTION")

        result = cls._create(
            user, plan_id, payment_method, upi_amount, cash_amount,
            upi_transaction_id, now=now, previous=current
        )
        if result['ok']:
            result['data']['current_subscription'] = current.to_dict(now)
        return result

    @classmethod
    def _create(cls, user, plan_id, payment_method, upi_amount, cash_amount,
                upi_transaction_id, now, previous=None) -> dict:
        from subscriptions.models import Subscription
        from subscriptions.services.plan_service import PlanService

        plan = PlanService.get_plan(plan_id) if plan_id else None
        if not plan:
            return cls._fail("Subscription plan not found.", code="INVALID_PLAN")
        if not plan.is_active:
            return cls._fail("This plan is no longer available.", code="PLAN_INACTIVE")

        upi, cash, error = cls._validate_payment(plan.price, payment_method, upi_amount, cash_amount)
        if error:
            return error

        if Subscription.objects.for_user(user).pending().exists():
            return cls._fail(
                "You already have a pending subscription request. Please wait for approval.",
                code="ALREADY_PENDING"
            )

        fields = dict(
            user=user,
            plan=plan,
            plan_name=plan.name,
            plan_duration_days=plan.duration_days,
            amount=plan.price,
            currency=plan.currency,
            payment_method=payment_method,
            upi_amount=upi,
            cash_amount=cash,
            upi_transaction_id=(upi_transaction_id or '').strip() if payment_method != 'cash' else '',
            status='pending',
        )
        if previous is not None:
            fields.update(
                previous_subscription=previous,
                previous_plan_amount=previous.amount,
                previous_plan_end_date=previous.end_date,
            )

        try:
            with transaction.atomic():
                subscription = Subscription.objects.create(**fields)
        except IntegrityError:
            # A concurrent request from the same user won the insert
            return cls._fail(
                "You already have a pending subscription request. Please wait for approval.",
                code="ALREADY_PENDING"
            )

        cls.refresh_user_entitlement(user, fallback_status='pending', now=now)

        cls._audit_log(user, "upgrade_requested" if previous else "subscription_requested", {
            "subscription_id": str(subscription.id),
            "plan": plan.name,
            "payment_method": payment_method,
            "amount": str(plan.price),
        })

        message = (
            "Upgrade request created. Waiting for admin approval."
            if previous else
            "Subscription request created. Waiting for admin approval."
        )
        return cls._success(message, data={"subscription": subscription.to_dict(now)})

    @classmethod
    def _validate_payment(cls, price, payment_method, upi_amount, cash_amount):
        """Returns (upi, cash, None) or (None, None, fail_result)."""
        if payment_method not in PAYMENT_METHODS:
            return None, None, cls._fail("Invalid payment method.", code="INVALID_PAYMENT_METHOD")

        zero = Decimal('0.00')
        upi = cls._to_decimal(upi_amount, default=zero)
        cash = cls._to_decimal(cash_amount, default=zero)
        if upi is None or cash is None or upi < 0 or cash < 0:
            return None, None, cls._fail("Amounts must be valid non-negative numbers.", code="INVALID_AMOUNT")

        if payment_method == 'upi':
            if upi <= 0:
                return None, None, cls._fail("UPI amount is required.", code="INVALID_AMOUNT")
            cash = zero
        elif payment_method == 'cash':
            if cash <= 0:
                return None, None, cls._fail("Cash amount is required.", code="INVALID_AMOUNT")
            upi = zero
        elif upi <= 0 or cash <= 0:
            return None, None, cls._fail(
                "Both UPI and cash amounts are required for mixed payment.",
                code="INVALID_AMOUNT"
            )

        total = upi + cash
        tolerance = Decimal(str(settings.SUBSCRIPTION_AMOUNT_TOLERANCE))
        if abs(total - price) > tolerance:
            return None, None, cls._fail(
                f"Total amount ({total}) does not match plan price ({price}).",
                code="AMOUNT_MISMATCH",
                data={"total": str(total), "price": str(price)}
            )

        return upi, cash, None

    # =========================================================================
    # CACHED ENTITLEMENT
    # =========================================================================

    @classmethod
    def refresh_user_entitlement(cls, user, fallback_status: Optional[str] = 'none', now=None):
        """
        Recompute the cached summary on the user's profile.

        A user holding any approved subscription still inside its grace
        period is 'active' (expiry = furthest end_date). Otherwise the
        caller's fallback_status applies; None derives it from what the
        user has left (pending request, expired subscription, nothing).
        """
        from accounts.models import UserProfile
        from subscriptions.models import Subscription

        now = now or timezone.now()
        qs = Subscription.objects.for_user(user)
        current = qs.with_access(now).order_by('-end_date').first()

        if fallback_status is None:
            if qs.pending().exists():
                fallback_status = 'pending'
            elif qs.filter(status='expired').exists():
                fallback_status = 'expired'
            else:
                fallback_status = 'none'

        if current:
            status, expiry, subscription = 'active', current.end_date, current
        elif fallback_status == 'pending':
            status, expiry, subscription = 'pending', None, qs.pending().first()
        elif fallback_status == 'expired':
            subscription = qs.filter(status='expired').order_by('-end_date').first()
            status, expiry = 'expired', subscription.end_date if subscription else None
        else:
            status, expiry, subscription = 'none', None, None

        UserProfile.objects.update_or_create(
            user=user,
            defaults={
                'subscription_status': status,
                'subscription_expiry_date': expiry,
                'current_subscription': subscription,
                'subscription_updated_at': now,
            }
        )
        return status

    # =========================================================================
    # USER QUERIES
    # =========================================================================

    @classmethod
    def get_current(cls, user, now=None) -> dict:
        """
        Latest subscription plus computed entitlement flags.

        The flags come from the subscription that currently grants access,
        which may be older than the latest request (e.g. a pending upgrade).
        """
        from subscriptions.models import Subscription

        now = now or timezone.now()
        qs = Subscription.objects.for_user(user)
        latest = qs.order_by('-created_at').first()
        entitled = qs.with_access(now).order_by('-end_date').first()

        is_active = bool(entitled and entitled.is_active(now))
        in_grace = bool(entitled and entitled.is_in_grace_period(now))
        days_left = entitled.days_until_expiry(now) if is_active else None

        return cls._success(
            "Current subscription.",
            data={
                "subscription": latest.to_dict(now) if latest else None,
                "active_subscription": entitled.to_dict(now) if entitled else None,
                "has_active_subscription": is_active or in_grace,
                "is_in_grace_period": in_grace,
                "days_until_expiry": days_left,
                "is_expiring_soon": days_left is not None and days_left <= EXPIRING_SOON_DAYS,
            }
        )

    @classmethod
    def get_history(cls, user) -> dict:
        from subscriptions.models import Subscription

        subscriptions = Subscription.objects.for_user(user).order_by('-created_at')
        items = [s.to_dict() for s in subscriptions]
        return cls._success(f"{len(items)} subscription(s).", data={"subscriptions": items})

    @classmethod
    def get_user_subscription(cls, user, subscription_id):
        """The user's own subscription, or None."""
        from subscriptions.models import Subscription
        from django.core.exceptions import ValidationError

        try:
            return Subscription.objects.get(pk=subscription_id, user=user)
        except (Subscription.DoesNotExist, ValidationError, ValueError):
            return None

    @classmethod
    def get_invoice(cls, user, subscription_id) -> dict:
        subscription = cls.get_user_subscription(user, subscription_id)
        if not subscription:
            return cls._fail("Subscription not found.", code="NOT_FOUND")
        if not subscription.invoice_id:
            return cls._fail("Invoice not found for this subscription.", code="INVOICE_NOT_FOUND")

        return cls._success(
            "Invoice.",
            data={
                "invoice": subscription.invoice.to_dict(),
                "subscription": subscription.to_dict(),
            }
        )

    @classmethod
    def upload_payment_proof(cls, user, subscription_id, uploaded_file) -> dict:
        """Attach a payment screenshot; stored through default storage."""
        if not uploaded_file:
            return cls._fail("Please upload a payment screenshot.", code="NO_FILE")
        if not subscription_id:
            return cls._fail("Subscription ID is required.", code="INVALID_REQUEST")

        subscription = cls.get_user_subscription(user, subscription_id)
        if not subscription:
            return cls._fail("Subscription not found.", code="NOT_FOUND")

        subscription.payment_proof.save(uploaded_file.name, uploaded_file, save=False)
        subscription.save(update_fields=['payment_proof', 'updated_at'])

        cls._audit_log(user, "payment_proof_uploaded", {
            "subscription_id": str(subscription.id),
            "file": subscription.payment_proof.name,
        })
        return cls._success(
            "Payment proof uploaded successfully.",
            data={"subscription": subscription.to_dict()}
        )

    @classmethod
    def set_auto_renew(cls, user, enabled: bool, now=None) -> dict:
        """Toggle auto-renewal on the user's current active subscription."""
        from subscriptions.models import Subscription

        now = now or timezone.now()
        subscription = Subscription.objects.latest_active_for(user, now)
        if not subscription:
            return cls._fail("No active subscription found.", code="NO_ACTIVE_SUBSCRIPTION")

        subscription.auto_renew = bool(enabled)
        subscription.save(update_fields=['auto_renew', 'updated_at'])

        cls._audit_log(user, "auto_renew_toggled", {
            "subscription_id": str(subscription.id),
            "auto_renew": subscription.auto_renew,
        })
        return cls._success(
            f"Auto-renewal {'enabled' if subscription.auto_renew else 'disabled'}.",
            data={"subscription": subscription.to_dict(now)}
        )

    @classmethod
    def export_history_csv(cls, user) -> str:
        """Payment history (approved, expired, cancelled) as CSV text."""
        from subscriptions.models import Subscription

        subscriptions = Subscription.objects.for_user(user).filter(
            status__in=['approved', 'expired', 'cancelled']
        ).select_related('reviewed_by', 'invoice').order_by('-created_at')

        def fmt(value):
            return timezone.localtime(value).strftime('%Y-%m-%d') if value else 'N/A'

        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow([
            'Date', 'Plan Name', 'Duration (Days)', 'Amount', 'Payment Method',
            'UPI Amount', 'Cash Amount', 'Status', 'Start Date', 'End Date',
            'Invoice Number', 'Approved By', 'Approved At',
        ])
        for sub in subscriptions:
            writer.writerow([
                fmt(sub.created_at),
                sub.plan_name,
                sub.plan_duration_days,
                sub.amount,
                sub.payment_method,
                sub.upi_amount,
                sub.cash_amount,
                sub.status,
                fmt(sub.start_date),
                fmt(sub.end_date),
                sub.invoice.invoice_number if sub.invoice else 'N/A',
                sub.reviewed_by.email if sub.reviewed_by and sub.reviewed_by.email else 'N/A',
                fmt(sub.reviewed_at),
            ])
        return output.getvalue()

    # =========================================================================
    # REVIEWER QUERIES
    # =========================================================================

    @classmethod
    def list_subscriptions(
        cls,
        status: Optional[str] = None,
        payment_method: Optional[str] = None,
        page=1,
        per_page: int = 20
    ) -> dict:
        from subscriptions.models import Subscription

        qs = Subscription.objects.select_related('user', 'invoice').order_by('-created_at')
        if status:
            qs = qs.filter(status=status)
        if payment_method:
            qs = qs.filter(payment_method=payment_method)

        paginator = Paginator(qs, per_page)
        page_obj = paginator.get_page(page)

        return cls._success(
            f"{paginator.count} subscription(s).",
            data={
                "subscriptions": [cls._reviewer_dict(s) for s in page_obj],
                "total": paginator.count,
                "page": page_obj.number,
                "pages": paginator.num_pages,
            }
        )

    @classmethod
    def list_pending(cls) -> dict:
        from subscriptions.models import Subscription

        qs = Subscription.objects.pending().select_related('user').order_by('created_at')
        items = [cls._reviewer_dict(s) for s in qs]
        return cls._success(f"{len(items)} pending subscription(s).", data={"subscriptions": items})

    @classmethod
    def get_detail(cls, subscription_id) -> dict:
        from subscriptions.models import Subscription
        from django.core.exceptions import ValidationError

        try:
            subscription = Subscription.objects.select_related('user', 'invoice').get(pk=subscription_id)
        except (Subscription.DoesNotExist, ValidationError, ValueError):
            return cls._fail("Subscription not found.", code="NOT_FOUND")

        data = {"subscription": cls._reviewer_dict(subscription)}
        data["invoices"] = [inv.to_dict() for inv in subscription.invoices.order_by('created_at')]
        return cls._success("Subscription.", data=data)

    @classmethod
    def get_stats(cls, now=None) -> dict:
        from subscriptions.models import Subscription

        now = now or timezone.now()
        month_start = timezone.localtime(now).replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        approved = Subscription.objects.approved()

        total_revenue = approved.aggregate(total=Sum('amount'))['total'] or Decimal('0')
        monthly_revenue = approved.filter(
            reviewed_at__gte=month_start
        ).aggregate(total=Sum('amount'))['total'] or Decimal('0')

        plan_distribution = list(
            approved.values('plan_name').annotate(count=Count('id')).order_by('-count', 'plan_name')
        )

        stats = {
            "total_subscriptions": Subscription.objects.count(),
            "active_subscriptions": Subscription.objects.active(now).count(),
            "pending_subscriptions": Subscription.objects.pending().count(),
            "in_grace_subscriptions": approved.filter(
                end_date__lt=now, grace_period_end_date__gte=now
            ).count(),
            "expired_subscriptions": Subscription.objects.filter(status='expired').count(),
            "total_revenue": str(total_revenue),
            "monthly_revenue": str(monthly_revenue),
            "plan_distribution": plan_distribution,
            "expiring_subscriptions": approved.filter(
                end_date__gte=now, end_date__lte=now + timedelta(days=EXPIRING_SOON_DAYS)
            ).count(),
        }
        return cls._success("Subscription statistics.", data={"stats": stats})

    @classmethod
    def _reviewer_dict(cls, subscription) -> dict:
        data = subscription.to_dict()
        user = subscription.user
        data['user'] = {
            'id': user.id,
            'username': user.username,
            'email': user.email,
            'name': user.get_full_name(),
        }
        data['invoice_number'] = subscription.invoice.invoice_number if subscription.invoice else None
        return data
