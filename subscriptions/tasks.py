# subscriptions/tasks.py
"""
Celery tasks for periodic subscription upkeep.

Scheduled by the beat schedule in matrimony_site/celery.py. Each task is
idempotent; running one twice (overlapping deploys, manual trigger) only
repeats the no-op checks.
"""

import logging
from celery import shared_task

from subscriptions.services import ExpiryService

logger = logging.getLogger(__name__)


@shared_task
def run_daily_subscription_checks():
    """Expiry warnings followed by expiration of lapsed subscriptions."""
    result = ExpiryService.run_daily_checks()
    logger.info(f"Daily subscription checks: {result['data']}")
    return result['data']


@shared_task
def expire_lapsed_subscriptions():
    """Frequent expiration sweep, bounds how long a lapsed entitlement stays active."""
    return ExpiryService.expire_lapsed()['data']


@shared_task
def process_auto_renewals():
    return ExpiryService.process_auto_renewals()['data']


@shared_task(bind=True, max_retries=3)
def repair_missing_invoices(self):
    """Issue invoices for approved subscriptions that are missing one."""
    result = ExpiryService.repair_missing_invoices()
    if result['data'].get('failed'):
        logger.warning(f"Invoice repair left {result['data']['failed']} subscription(s) without invoice")
    return result['data']
