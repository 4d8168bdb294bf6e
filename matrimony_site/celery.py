# matrimony_site/celery.py
"""
Celery configuration for background subscription checks
(expiry warnings, expiration sweeps, auto-renewals, invoice repair).
"""

import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'matrimony_site.settings')

app = Celery('matrimony_site')

# Load configuration from Django settings with 'CELERY' namespace
app.config_from_object('django.conf:settings', namespace='CELERY')

# Auto-discover tasks from all registered Django apps
app.autodiscover_tasks()

_sweep_hours = int(os.getenv('SUBSCRIPTION_EXPIRY_SWEEP_HOURS', '4'))

app.conf.beat_schedule = {
    # Warnings + expiration, once a day at midnight
    'subscription-daily-checks': {
        'task': 'subscriptions.tasks.run_daily_subscription_checks',
        'schedule': crontab(hour=0, minute=0),
    },
    # Auto-renewal requests, once a day
    'subscription-auto-renewals': {
        'task': 'subscriptions.tasks.process_auto_renewals',
        'schedule': crontab(hour=1, minute=0),
    },
    # Extra expiration sweep to bound how long a lapsed entitlement stays active
    'subscription-expiry-sweep': {
        'task': 'subscriptions.tasks.expire_lapsed_subscriptions',
        'schedule': crontab(minute=15, hour=f'*/{_sweep_hours}'),
    },
    # Approved-without-invoice repair
    'subscription-invoice-repair': {
        'task': 'subscriptions.tasks.repair_missing_invoices',
        'schedule': crontab(hour=2, minute=0),
    },
}
