# subscriptions/services/approval_service.py
"""
Reviewer decisions: approve, reject, cancel, reactivate, refund, and their
bulk variants.

Every status change is a compare-and-set through
Subscription.objects.transition(); a decision that finds the record already
moved by someone else fails with STATUS_CONFLICT instead of overwriting.
Notifications are emitted after the database work has committed.
"""

import logging
import uuid
from decimal import Decimal
from typing import Optional
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction, DatabaseError
from django.utils import timezone

from subscriptions.entitlement import compute_window, compute_reactivation_window
from subscriptions.exceptions import InvoiceAllocationError
from subscriptions.notifications import notify
from subscriptions.services.base import BaseService
from subscriptions.services.invoice_service import InvoiceService
from subscriptions.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = 'Payment verification failed'


class ApprovalService(BaseService):
    """
    Usage:
        result = ApprovalService.approve(reviewer, subscription_id)
        result = ApprovalService.reject(reviewer, subscription_id, reason="Screenshot unreadable")
        result = ApprovalService.bulk_approve(reviewer, [id1, id2])
    """

    # =========================================================================
    # APPROVE
    # =========================================================================

    @classmethod
    def approve(
        cls,
        reviewer,
        subscription_id,
        cash_received_date=None,
        cash_received_by: str = '',
        now=None
    ) -> dict:
        """
        pending -> approved.

        Window, status, reviewer fields, invoice and the user's cached
        entitlement are written in one transaction; if the invoice cannot be
        issued nothing is kept and INVOICE_ERROR is returned so the reviewer
        can retry. Approving an approved subscription that never got its
        invoice only issues the invoice.
        """
        from subscriptions.models import Subscription

        now = now or timezone.now()
        subscription = cls._get(subscription_id)
        if not subscription:
            return cls._fail("Subscription not found.", code="NOT_FOUND")

        if subscription.status == 'approved' and not subscription.invoice_id:
            return InvoiceService.repair_missing_invoice(subscription, issued_by=reviewer, now=now)
        if subscription.status != 'pending':
            return cls._conflict(subscription)

        try:
            with transaction.atomic():
                stacked_on = Subscription.objects.latest_active_for(
                    subscription.user, now, exclude_id=subscription.pk
                )
                window = compute_window(
                    subscription.plan_duration_days,
                    now,
                    subscription.get_grace_period_days(),
                    stack_onto=stacked_on.end_date if stacked_on else None,
                )

                fields = dict(
                    status='approved',
                    start_date=window.start_date,
                    end_date=window.end_date,
                    grace_period_end_date=window.grace_period_end_date,
                    reviewed_by=reviewer,
                    reviewed_at=now,
                    rejection_reason='',
                    invoice=None,
                    expiry_warning_sent=False,
                    expiry_warning_sent_at=None,
                    updated_at=now,
                )
                if subscription.payment_method in ('cash', 'mixed'):
                    fields['cash_received_date'] = cash_received_date or now
                    fields['cash_received_by'] = cash_received_by or reviewer.get_username()

                if not Subscription.objects.transition(subscription.pk, 'pending', **fields):
                    subscription.refresh_from_db()
                    return cls._conflict(subscription)

                subscription.refresh_from_db()
                invoice = InvoiceService.issue_invoice(subscription, issued_by=reviewer, now=now)
                SubscriptionService.refresh_user_entitlement(subscription.user, now=now)
        except InvoiceAllocationError as e:
            logger.error(f"Approval of {subscription_id} rolled back, invoice failed: {e}")
            return cls._fail(
                "Invoice could not be generated, the approval was not applied. Please retry.",
                code="INVOICE_ERROR",
                data={"error": str(e)} if settings.DEBUG else None
            )
        except DatabaseError as e:
            return cls._store_error("approve", subscription_id, e)

        cls._audit_log(subscription.user, "subscription_approved", {
            "subscription_id": str(subscription.id),
            "reviewer": reviewer.id,
            "stacked_on": str(stacked_on.id) if stacked_on else None,
            "start_date": subscription.start_date.isoformat(),
            "end_date": subscription.end_date.isoformat(),
            "invoice_number": invoice.invoice_number,
        })
        notify(
            subscription.user,
            'subscription_approved',
            'Subscription approved',
            f"Your {subscription.plan_name} subscription is active until "
            f"{timezone.localtime(subscription.end_date):%d %b %Y}. Invoice {invoice.invoice_number}.",
            subscription=subscription,
            data={"invoice_number": invoice.invoice_number},
        )
        return cls._success(
            "Subscription approved successfully.",
            data={
                "subscription": subscription.to_dict(now),
                "invoice": invoice.to_dict(),
            }
        )

    # =========================================================================
    # REJECT / CANCEL
    # =========================================================================

    @classmethod
    def reject(cls, reviewer, subscription_id, reason: Optional[str] = None, now=None) -> dict:
        """pending -> rejected. Terminal; the user must submit a new request."""
        from subscriptions.models import Subscription

        now = now or timezone.now()
        subscription = cls._get(subscription_id)
        if not subscription:
            return cls._fail("Subscription not found.", code="NOT_FOUND")

        reason = (reason or '').strip() or DEFAULT_REJECTION_REASON

        try:
            with transaction.atomic():
                won = Subscription.objects.transition(
                    subscription.pk, 'pending',
                    status='rejected',
                    rejection_reason=reason,
                    reviewed_by=reviewer,
                    reviewed_at=now,
                    updated_at=now,
                )
                if not won:
                    subscription.refresh_from_db()
                    return cls._conflict(subscription)
                subscription.refresh_from_db()
                SubscriptionService.refresh_user_entitlement(subscription.user, fallback_status='none', now=now)
        except DatabaseError as e:
            return cls._store_error("reject", subscription_id, e)

        cls._audit_log(subscription.user, "subscription_rejected", {
            "subscription_id": str(subscription.id),
            "reviewer": reviewer.id,
            "reason": reason,
        })
        notify(
            subscription.user,
            'subscription_rejected',
            'Subscription request rejected',
            f"Your {subscription.plan_name} subscription request was rejected: {reason}",
            subscription=subscription,
        )
        return cls._success("Subscription rejected.", data={"subscription": subscription.to_dict(now)})

    @classmethod
    def cancel(cls, reviewer, subscription_id, now=None) -> dict:
        """approved -> cancelled. Dates and the issued invoice are kept."""
        from subscriptions.models import Subscription

        now = now or timezone.now()
        subscription = cls._get(subscription_id)
        if not subscription:
            return cls._fail("Subscription not found.", code="NOT_FOUND")

        try:
            with transaction.atomic():
                won = Subscription.objects.transition(
                    subscription.pk, 'approved',
                    status='cancelled',
                    auto_renew=False,
                    updated_at=now,
                )
                if not won:
                    subscription.refresh_from_db()
                    return cls._fail(
                        f"Cannot cancel subscription with status: {subscription.status}.",
                        code="STATUS_CONFLICT",
                        data={"status": subscription.status}
                    )
                subscription.refresh_from_db()
                SubscriptionService.refresh_user_entitlement(subscription.user, fallback_status='none', now=now)
        except DatabaseError as e:
            return cls._store_error("cancel", subscription_id, e)

        cls._audit_log(subscription.user, "subscription_cancelled", {
            "subscription_id": str(subscription.id),
            "reviewer": reviewer.id,
        })
        notify(
            subscription.user,
            'subscription_cancelled',
            'Subscription cancelled',
            f"Your {subscription.plan_name} subscription has been cancelled.",
            subscription=subscription,
        )
        return cls._success("Subscription cancelled successfully.", data={"subscription": subscription.to_dict(now)})

    # =========================================================================
    # REACTIVATE
    # =========================================================================

    @classmethod
    def reactivate(cls, reviewer, subscription_id, now=None) -> dict:
        """
        {cancelled, expired} -> approved with a fresh window starting now.
        A new invoice is issued on a best-effort basis: if that fails the
        reactivation stands and the invoice is left for the repair sweep.
        """
        from subscriptions.models import Subscription

        now = now or timezone.now()
        subscription = cls._get(subscription_id)
        if not subscription:
            return cls._fail("Subscription not found.", code="NOT_FOUND")

        window = compute_reactivation_window(
            subscription.plan_duration_days, now, subscription.get_grace_period_days()
        )

        try:
            with transaction.atomic():
                won = Subscription.objects.transition(
                    subscription.pk, ['cancelled', 'expired'],
                    status='approved',
                    start_date=window.start_date,
                    end_date=window.end_date,
                    grace_period_end_date=window.grace_period_end_date,
                    reviewed_by=reviewer,
                    reviewed_at=now,
                    invoice=None,
                    expiry_warning_sent=False,
                    expiry_warning_sent_at=None,
                    updated_at=now,
                )
                if not won:
                    subscription.refresh_from_db()
                    return cls._fail(
                        f"Cannot reactivate subscription with status: {subscription.status}.",
                        code="STATUS_CONFLICT",
                        data={"status": subscription.status}
                    )
                subscription.refresh_from_db()
                SubscriptionService.refresh_user_entitlement(subscription.user, now=now)
        except DatabaseError as e:
            return cls._store_error("reactivate", subscription_id, e)

        invoice = None
        try:
            invoice = InvoiceService.issue_invoice(subscription, issued_by=reviewer, now=now)
        except InvoiceAllocationError as e:
            logger.warning(f"Reactivated {subscription.id} without invoice: {e}")

        cls._audit_log(subscription.user, "subscription_reactivated", {
            "subscription_id": str(subscription.id),
            "reviewer": reviewer.id,
            "end_date": subscription.end_date.isoformat(),
            "invoice_number": invoice.invoice_number if invoice else None,
        })
        notify(
            subscription.user,
            'subscription_reactivated',
            'Subscription reactivated',
            f"Your {subscription.plan_name} subscription is active again until "
            f"{timezone.localtime(subscription.end_date):%d %b %Y}.",
            subscription=subscription,
        )
        return cls._success(
            "Subscription reactivated successfully.",
            data={
                "subscription": subscription.to_dict(now),
                "invoice": invoice.to_dict() if invoice else None,
                "invoice_pending": invoice is None,
            }
        )

    # =========================================================================
    # REFUND
    # =========================================================================

    @classmethod
    def refund(cls, reviewer, subscription_id, amount, reason: str = '', now=None) -> dict:
        """
        Record a refund on an approved or cancelled subscription.
        Refunds accumulate; their total may not exceed the subscription
        amount. Status and dates are not touched.
        """
        from subscriptions.models import Subscription

        now = now or timezone.now()
        refund_amount = cls._to_decimal(amount)
        if refund_amount is None or refund_amount <= 0:
            return cls._fail("Refund amount must be a positive number.", code="INVALID_AMOUNT")

        subscription = cls._get(subscription_id)
        if not subscription:
            return cls._fail("Subscription not found.", code="NOT_FOUND")

        try:
            with transaction.atomic():
                locked = Subscription.objects.select_for_update().get(pk=subscription.pk)
                if not locked.can_refund():
                    return cls._fail(
                        f"Cannot refund subscription with status: {locked.status}.",
                        code="STATUS_CONFLICT",
                        data={"status": locked.status}
                    )

                total_refund = (locked.refund_amount or Decimal('0')) + refund_amount
                if total_refund > locked.amount:
                    return cls._fail(
                        f"Refund amount cannot exceed the subscription amount ({locked.amount}).",
                        code="REFUND_EXCEEDS_AMOUNT",
                        data={"amount": str(locked.amount), "already_refunded": str(locked.refund_amount or 0)}
                    )

                updated = Subscription.objects.filter(
                    pk=locked.pk,
                    status__in=['approved', 'cancelled']
                ).update(
                    refund_amount=total_refund,
                    refund_reason=(reason or '').strip(),
                    refunded_at=now,
                    refunded_by=reviewer,
                    updated_at=now,
                )
                if not updated:
                    locked.refresh_from_db()
                    return cls._conflict(locked)
                subscription.refresh_from_db()
        except DatabaseError as e:
            return cls._store_error("refund", subscription_id, e)

        cls._audit_log(subscription.user, "subscription_refunded", {
            "subscription_id": str(subscription.id),
            "reviewer": reviewer.id,
            "amount": str(refund_amount),
            "total_refunded": str(subscription.refund_amount),
        })
        notify(
            subscription.user,
            'subscription_refunded',
            'Refund processed',
            f"A refund of {refund_amount} {subscription.currency} was recorded for your "
            f"{subscription.plan_name} subscription.",
            subscription=subscription,
        )
        return cls._success("Refund recorded.", data={"subscription": subscription.to_dict(now)})

    # =========================================================================
    # BULK OPERATIONS
    # =========================================================================

    @classmethod
    def bulk_approve(cls, reviewer, subscription_ids, now=None) -> dict:
        """Approve every still-pending subscription in the id set, one at a time."""
        return cls._bulk(
            reviewer, subscription_ids,
            lambda pk: cls.approve(reviewer, pk, now=now),
            action="approved",
        )

    @classmethod
    def bulk_reject(cls, reviewer, subscription_ids, reason: Optional[str] = None, now=None) -> dict:
        return cls._bulk(
            reviewer, subscription_ids,
            lambda pk: cls.reject(reviewer, pk, reason=reason, now=now),
            action="rejected",
        )

    @classmethod
    def _bulk(cls, reviewer, subscription_ids, apply, action: str) -> dict:
        from subscriptions.models import Subscription

        ids = cls._clean_ids(subscription_ids)
        if not ids:
            return cls._fail("No subscription ids provided.", code="INVALID_REQUEST")

        pending_ids = list(
            Subscription.objects.pending().filter(pk__in=ids).values_list('pk', flat=True)
        )

        succeeded = 0
        failed = []
        for pk in pending_ids:
            result = apply(pk)
            if result['ok']:
                succeeded += 1
            else:
                failed.append({"id": str(pk), "code": result['code'], "reason": result['reason']})

        cls._audit_log(reviewer, f"bulk_{action}", {
            "requested": len(ids),
            "pending": len(pending_ids),
            "succeeded": succeeded,
            "failed": len(failed),
        })
        return cls._success(
            f"{succeeded} subscription(s) {action}.",
            data={
                "count": succeeded,
                "skipped": len(ids) - len(pending_ids),
                "failed": failed,
            }
        )

    @classmethod
    def bulk_delete(cls, actor, subscription_ids, now=None) -> dict:
        """
        Physically delete subscriptions by id. Administrative and
        destructive; not part of the normal lifecycle.
        """
        from django.contrib.auth.models import User
        from subscriptions.models import Subscription

        ids = cls._clean_ids(subscription_ids)
        if not ids:
            return cls._fail("No subscription ids provided.", code="INVALID_REQUEST")

        try:
            with transaction.atomic():
                qs = Subscription.objects.filter(pk__in=ids)
                user_ids = set(qs.values_list('user_id', flat=True))
                deleted = qs.count()
                qs.delete()
                for user in User.objects.filter(pk__in=user_ids):
                    SubscriptionService.refresh_user_entitlement(user, fallback_status=None, now=now)
        except DatabaseError as e:
            return cls._store_error("bulk_delete", ids, e)

        cls._audit_log(actor, "bulk_deleted", {"requested": len(ids), "deleted": deleted})
        return cls._success(f"{deleted} subscription(s) deleted.", data={"count": deleted})

    # =========================================================================
    # HELPERS
    # =========================================================================

    @classmethod
    def _get(cls, subscription_id):
        from subscriptions.models import Subscription

        try:
            return Subscription.objects.select_related('user').get(pk=subscription_id)
        except (Subscription.DoesNotExist, ValidationError, ValueError):
            return None

    @classmethod
    def _clean_ids(cls, subscription_ids):
        ids = []
        for value in subscription_ids or []:
            try:
                ids.append(uuid.UUID(str(value)))
            except ValueError:
                logger.debug(f"Ignoring malformed subscription id: {value}")
        return ids

    @classmethod
    def _conflict(cls, subscription) -> dict:
        return cls._fail(
            f"Subscription is already {subscription.status}.",
            code="STATUS_CONFLICT",
            data={"status": subscription.status}
        )

    @classmethod
    def _store_error(cls, action, subscription_id, error) -> dict:
        logger.error(f"Store error during {action} of {subscription_id}: {error}")
        return cls._fail(
            "The subscription store is unavailable. Please retry.",
            code="STORE_ERROR",
            data={"error": str(error)} if settings.DEBUG else None
        )
