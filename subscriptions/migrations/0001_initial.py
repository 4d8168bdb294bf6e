import uuid
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='SubscriptionPlan',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(blank=True)),
                ('duration_days', models.PositiveIntegerField(
                    help_text='Length of the entitlement window in days',
                    validators=[django.core.validators.MinValueValidator(1)],
                )),
                ('price', models.DecimalField(
                    decimal_places=2,
                    max_digits=10,
                    validators=[django.core.validators.MinValueValidator(Decimal('0.00'))],
                )),
                ('currency', models.CharField(default='INR', max_length=3)),
                ('features', models.JSONField(blank=True, default=list, help_text='List of feature strings for display')),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['display_order', 'name'],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('price__gte', 0)), name='plan_price_non_negative'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InvoiceSequence',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('period', models.CharField(max_length=6, unique=True)),
                ('last_value', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-period'],
            },
        ),
        migrations.CreateModel(
            name='Subscription',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('plan_name', models.CharField(max_length=100)),
                ('plan_duration_days', models.PositiveIntegerField()),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('currency', models.CharField(default='INR', max_length=3)),
                ('payment_method', models.CharField(
                    choices=[('upi', 'UPI'), ('cash', 'Cash'), ('mixed', 'UPI + Cash')],
                    max_length=10,
                )),
                ('upi_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('cash_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('upi_transaction_id', models.CharField(blank=True, max_length=100)),
                ('payment_proof', models.FileField(blank=True, null=True, upload_to='subscriptions/proofs/%Y/%m/')),
                ('cash_received_date', models.DateTimeField(blank=True, null=True)),
                ('cash_received_by', models.CharField(blank=True, max_length=150)),
                ('status', models.CharField(
                    choices=[
                        ('pending', 'Pending'),
                        ('approved', 'Approved'),
                        ('rejected', 'Rejected'),
                        ('cancelled', 'Cancelled'),
                        ('expired', 'Expired'),
                    ],
                    db_index=True,
                    default='pending',
                    max_length=20,
                )),
                ('start_date', models.DateTimeField(blank=True, null=True)),
                ('end_date', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('grace_period_days', models.PositiveIntegerField(
                    blank=True,
                    help_text='Override of SUBSCRIPTION_GRACE_PERIOD_DAYS for this subscription',
                    null=True,
                )),
                ('grace_period_end_date', models.DateTimeField(blank=True, null=True)),
                ('reviewed_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('refund_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('refund_reason', models.TextField(blank=True)),
                ('refunded_at', models.DateTimeField(blank=True, null=True)),
                ('auto_renew', models.BooleanField(default=False)),
                ('previous_plan_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('previous_plan_end_date', models.DateTimeField(blank=True, null=True)),
                ('expiry_warning_sent', models.BooleanField(default=False)),
                ('expiry_warning_sent_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('plan', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='subscriptions',
                    to='subscriptions.subscriptionplan',
                )),
                ('previous_subscription', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='upgrades',
                    to='subscriptions.subscription',
                )),
                ('renewal_of', models.OneToOneField(
                    blank=True,
                    help_text='The expiring subscription this auto-renewal request was spawned from',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='renewal',
                    to='subscriptions.subscription',
                )),
                ('refunded_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='refunded_subscriptions',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('reviewed_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='reviewed_subscriptions',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='subscriptions',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'status'], name='subscription_user_status_idx'),
                    models.Index(fields=['status', 'end_date'], name='subscription_status_end_idx'),
                    models.Index(fields=['status', 'grace_period_end_date'], name='subscription_status_grace_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(
                        condition=models.Q(('status', 'pending')),
                        fields=('user',),
                        name='one_pending_subscription_per_user',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ('end_date__isnull', True),
                            ('start_date__isnull', True),
                            ('end_date__gte', models.F('start_date')),
                            _connector='OR',
                        ),
                        name='subscription_end_after_start',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            ('grace_period_end_date__isnull', True),
                            ('end_date__isnull', True),
                            ('grace_period_end_date__gte', models.F('end_date')),
                            _connector='OR',
                        ),
                        name='subscription_grace_after_end',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ('status__in', ['pending', 'rejected']),
                                ('start_date__isnull', True),
                                ('end_date__isnull', True),
                            ),
                            models.Q(
                                ('status__in', ['approved', 'cancelled', 'expired']),
                                ('start_date__isnull', False),
                                ('end_date__isnull', False),
                            ),
                            _connector='OR',
                        ),
                        name='subscription_dates_match_status',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Invoice',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('invoice_number', models.CharField(db_index=True, max_length=50, unique=True)),
                ('plan_name', models.CharField(max_length=100)),
                ('plan_duration_days', models.PositiveIntegerField()),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('currency', models.CharField(default='INR', max_length=3)),
                ('payment_method', models.CharField(max_length=10)),
                ('upi_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('cash_amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=10)),
                ('start_date', models.DateTimeField()),
                ('end_date', models.DateTimeField()),
                ('status', models.CharField(choices=[('paid', 'Paid')], default='paid', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('issued_by', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='issued_invoices',
                    to=settings.AUTH_USER_MODEL,
                )),
                ('subscription', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='invoices',
                    to='subscriptions.subscription',
                )),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='subscription_invoices',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'ordering': ['-created_at', '-invoice_number'],
                'indexes': [
                    models.Index(fields=['user', 'created_at'], name='invoice_user_created_idx'),
                ],
            },
        ),
        migrations.AddField(
            model_name='subscription',
            name='invoice',
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name='+',
                to='subscriptions.invoice',
            ),
        ),
        migrations.CreateModel(
            name='ExpiryReminder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('window_end', models.DateTimeField()),
                ('threshold_days', models.PositiveSmallIntegerField()),
                ('sent_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('subscription', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='expiry_reminders',
                    to='subscriptions.subscription',
                )),
            ],
            options={
                'ordering': ['-sent_at'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('subscription', 'window_end', 'threshold_days'),
                        name='one_reminder_per_threshold',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='NotificationRequest',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(
                    choices=[
                        ('subscription_approved', 'Subscription Approved'),
                        ('subscription_rejected', 'Subscription Rejected'),
                        ('subscription_cancelled', 'Subscription Cancelled'),
                        ('subscription_reactivated', 'Subscription Reactivated'),
                        ('subscription_refunded', 'Subscription Refunded'),
                        ('subscription_expiring', 'Subscription Expiring'),
                        ('subscription_expired', 'Subscription Expired'),
                        ('subscription_renewal_requested', 'Renewal Requested'),
                    ],
                    db_index=True,
                    max_length=50,
                )),
                ('title', models.CharField(max_length=200)),
                ('message', models.TextField()),
                ('data', models.JSONField(blank=True, default=dict)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('subscription', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='notifications',
                    to='subscriptions.subscription',
                )),
                ('user', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='notification_requests',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['user', 'is_read'], name='notification_user_read_idx'),
                ],
            },
        ),
    ]
