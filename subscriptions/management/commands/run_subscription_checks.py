"""
Management command to run the subscription sweeps synchronously.
Run: python manage.py run_subscription_checks [--only warnings|expire|renewals|invoices]

For deployments that schedule with cron instead of Celery beat.
"""
from django.core.management.base import BaseCommand
from subscriptions.services import ExpiryService


class Command(BaseCommand):
    help = 'Send expiry warnings, expire lapsed subscriptions, spawn auto-renewals, repair invoices'

    STEPS = {
        'warnings': ExpiryService.send_expiry_warnings,
        'expire': ExpiryService.expire_lapsed,
        'renewals': ExpiryService.process_auto_renewals,
        'invoices': ExpiryService.repair_missing_invoices,
    }

    def add_arguments(self, parser):
        parser.add_argument(
            '--only',
            choices=sorted(self.STEPS),
            action='append',
            help='Run only the given step (repeatable)'
        )

    def handle(self, *args, **options):
        steps = options.get('only') or list(self.STEPS)

        for step in steps:
            result = self.STEPS[step]()
            self.stdout.write(f"{step}: {result['reason']} {result['data']}")

        self.stdout.write(self.style.SUCCESS('Subscription checks complete.'))
