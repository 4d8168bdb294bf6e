"""
Management command to seed subscription plans.
Run: python manage.py seed_subscription_plans
"""
from decimal import Decimal
from django.core.management.base import BaseCommand
from subscriptions.models import SubscriptionPlan


class Command(BaseCommand):
    help = 'Seed the standard 1/3/6/12 month subscription plans'

    def handle(self, *args, **options):
        plans_data = [
            {
                'name': '1 Month',
                'duration_days': 30,
                'price': Decimal('499.00'),
                'display_order': 1,
                'features': ['View contact details', 'Unlimited interests', 'Chat with matches'],
            },
            {
                'name': '3 Months',
                'duration_days': 90,
                'price': Decimal('1299.00'),
                'display_order': 2,
                'features': ['View contact details', 'Unlimited interests', 'Chat with matches',
                             'Profile highlight'],
            },
            {
                'name': '6 Months',
                'duration_days': 180,
                'price': Decimal('2299.00'),
                'display_order': 3,
                'features': ['View contact details', 'Unlimited interests', 'Chat with matches',
                             'Profile highlight', 'Priority support'],
            },
            {
                'name': '1 Year',
                'duration_days': 365,
                'price': Decimal('3999.00'),
                'display_order': 4,
                'features': ['View contact details', 'Unlimited interests', 'Chat with matches',
                             'Profile highlight', 'Priority support', 'Featured profile'],
            },
        ]

        for plan_data in plans_data:
            name = plan_data.pop('name')
            plan, created = SubscriptionPlan.objects.update_or_create(
                name=name,
                defaults=plan_data
            )
            self.stdout.write(f"{'Created' if created else 'Updated'}: {plan}")

        self.stdout.write(self.style.SUCCESS(f'Successfully seeded {len(plans_data)} subscription plans!'))
