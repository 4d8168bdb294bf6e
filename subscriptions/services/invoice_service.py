# subscriptions/services/invoice_service.py
"""
Invoice numbering and issuance.

Numbers look like INV-<YYYYMM>-<5 digits>. The sequence for a month lives in
an InvoiceSequence row that is incremented atomically; the row is seeded from
the highest number already issued that month the first time it is used.

If inserting the numbered invoice still collides (numbers issued outside the
counter, restored backups), the next counter value is tried, up to
INVOICE_NUMBER_MAX_ATTEMPTS. After that a timestamp + random suffix number
with the same INV-<YYYYMM>- prefix is used. Callers must accept gaps in the
sequence; duplicates never happen because invoice_number is unique.
"""

import logging
import random
import string
from django.conf import settings
from django.db import transaction, IntegrityError, DatabaseError
from django.db.models import F
from django.db.models.functions import Length
from django.utils import timezone

from subscriptions.exceptions import InvoiceAllocationError
from subscriptions.services.base import BaseService

logger = logging.getLogger(__name__)

SEQUENCE_DIGITS = 5
FALLBACK_ATTEMPTS = 3


class InvoiceService(BaseService):
    """
    Usage:
        invoice = InvoiceService.issue_invoice(subscription, issued_by=reviewer)
        result = InvoiceService.repair_missing_invoice(subscription_id)
    """

    audit_tag = 'INVOICE_AUDIT'

    # =========================================================================
    # NUMBERING
    # =========================================================================

    @classmethod
    def period_for(cls, now=None) -> str:
        """Month partition in the site's local time zone."""
        now = now or timezone.now()
        return timezone.localtime(now).strftime('%Y%m')

    @classmethod
    def format_number(cls, period: str, sequence: int) -> str:
        return f"INV-{period}-{sequence:0{SEQUENCE_DIGITS}d}"

    @classmethod
    def highest_issued_sequence(cls, period: str) -> int:
        """Scan issued invoices for the highest sequential number in a period."""
        from subscriptions.models import Invoice

        prefix = f"INV-{period}-"
        last_invoice = Invoice.objects.filter(
            invoice_number__startswith=prefix
        ).annotate(
            number_length=Length('invoice_number')
        ).filter(
            number_length=len(prefix) + SEQUENCE_DIGITS
        ).order_by('-invoice_number').first()

        if not last_invoice:
            return 0
        try:
            return int(last_invoice.invoice_number.split('-')[-1])
        except ValueError:
            return 0

    @classmethod
    def next_sequence(cls, period: str) -> int:
        """Atomically take the next counter value for a period."""
        from subscriptions.models import InvoiceSequence

        with transaction.atomic():
            sequence, created = InvoiceSequence.objects.select_for_update().get_or_create(
                period=period,
                defaults={'last_value': cls.highest_issued_sequence(period)}
            )
            InvoiceSequence.objects.filter(pk=sequence.pk).update(last_value=F('last_value') + 1)
            sequence.refresh_from_db(fields=['last_value'])
            return sequence.last_value

    @classmethod
    def fallback_number(cls, period: str, now=None) -> str:
        """Non-sequential number, unique by timestamp and random suffix."""
        now = now or timezone.now()
        stamp = now.strftime('%d%H%M%S%f')
        random_str = ''.join(random.choices(string.ascii_uppercase + string.digits, k=6))
        return f"INV-{period}-{stamp}{random_str}"

    # =========================================================================
    # ISSUANCE
    # =========================================================================

    @classmethod
    def issue_invoice(cls, subscription, issued_by=None, now=None):
        """
        Create an invoice for an approved subscription and link it.

        The subscription is linked only if it has no invoice yet. Raises
        InvoiceAllocationError on any failure; everything done here is
        rolled back with it.
        """
        from subscriptions.models import Subscription

        if not subscription.start_date or not subscription.end_date:
            raise InvoiceAllocationError(f"Subscription {subscription.id} has no entitlement window")

        now = now or timezone.now()
        period = cls.period_for(now)

        try:
            with transaction.atomic():
                invoice = cls._create_numbered_invoice(subscription, issued_by, period, now)

                linked = Subscription.objects.filter(
                    pk=subscription.pk,
                    invoice__isnull=True
                ).update(invoice=invoice, updated_at=now)
                if not linked:
                    raise InvoiceAllocationError(
                        f"Subscription {subscription.id} already has an invoice"
                    )
        except DatabaseError as e:
            logger.error(f"Invoice issuance failed for subscription {subscription.id}: {e}")
            raise InvoiceAllocationError(str(e)) from e

        subscription.invoice = invoice
        cls._audit_log(subscription.user, "invoice_issued", {
            "invoice_number": invoice.invoice_number,
            "subscription_id": str(subscription.id),
            "amount": str(invoice.amount),
        })
        return invoice

    @classmethod
    def _create_numbered_invoice(cls, subscription, issued_by, period, now):
        max_attempts = settings.INVOICE_NUMBER_MAX_ATTEMPTS

        for attempt in range(1, max_attempts + 1):
            number = cls.format_number(period, cls.next_sequence(period))
            try:
                with transaction.atomic():
                    return cls._create_invoice(subscription, issued_by, number)
            except IntegrityError:
                logger.warning(f"Invoice number {number} already taken (attempt {attempt}/{max_attempts})")

        for _ in range(FALLBACK_ATTEMPTS):
            number = cls.fallback_number(period, now)
            try:
                with transaction.atomic():
                    invoice = cls._create_invoice(subscription, issued_by, number)
                logger.warning(f"Sequential invoice numbering exhausted; issued fallback {number}")
                return invoice
            except IntegrityError:
                logger.warning(f"Fallback invoice number {number} already taken")

        raise InvoiceAllocationError(f"Could not allocate an invoice number for period {period}")

    @classmethod
    def _create_invoice(cls, subscription, issued_by, number):
        from subscriptions.models import Invoice

        return Invoice.objects.create(
            invoice_number=number,
            user_id=subscription.user_id,
            subscription=subscription,
            plan_name=subscription.plan_name,
            plan_duration_days=subscription.plan_duration_days,
            amount=subscription.amount,
            currency=subscription.currency,
            payment_method=subscription.payment_method,
            upi_amount=subscription.upi_amount,
            cash_amount=subscription.cash_amount,
            start_date=subscription.start_date,
            end_date=subscription.end_date,
            status='paid',
            issued_by=issued_by,
        )

    # =========================================================================
    # REPAIR
    # =========================================================================

    @classmethod
    def repair_missing_invoice(cls, subscription, issued_by=None, now=None) -> dict:
        """
        Issue the invoice for an approved subscription that has none.
        Only the invoice step runs; status and dates are left alone.
        """
        if subscription.status != 'approved':
            return cls._fail(
                f"Subscription is {subscription.status}, not approved.",
                code="STATUS_CONFLICT"
            )
        if subscription.invoice_id:
            return cls._fail("Subscription already has an invoice.", code="STATUS_CONFLICT")

        try:
            invoice = cls.issue_invoice(subscription, issued_by=issued_by, now=now)
        except InvoiceAllocationError as e:
            subscription.refresh_from_db(fields=['invoice'])
            if subscription.invoice_id:
                return cls._fail("Subscription already has an invoice.", code="STATUS_CONFLICT")
            return cls._fail(
                "Invoice could not be generated. Please retry.",
                code="INVOICE_ERROR",
                data={"error": str(e)} if settings.DEBUG else None
            )

        cls._audit_log(subscription.user, "invoice_repaired", {
            "subscription_id": str(subscription.id),
            "invoice_number": invoice.invoice_number,
        })
        return cls._success(
            "Invoice generated.",
            data={
                "subscription": subscription.to_dict(),
                "invoice": invoice.to_dict(),
            }
        )
