import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('subscriptions', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='UserProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('phone', models.CharField(
                    blank=True,
                    max_length=20,
                    null=True,
                    unique=True,
                    validators=[django.core.validators.RegexValidator(
                        message='Phone number must be 10-15 digits with optional + prefix',
                        regex='^\\+?[1-9]\\d{9,14}$',
                    )],
                )),
                ('role', models.CharField(
                    choices=[
                        ('superadmin', 'Super Admin'),
                        ('admin', 'Admin'),
                        ('vendor', 'Vendor'),
                        ('user', 'User'),
                    ],
                    default='user',
                    max_length=20,
                )),
                ('is_active', models.BooleanField(default=True)),
                ('subscription_status', models.CharField(
                    choices=[
                        ('active', 'Active'),
                        ('expired', 'Expired'),
                        ('pending', 'Pending'),
                        ('none', 'None'),
                    ],
                    db_index=True,
                    default='none',
                    max_length=20,
                )),
                ('subscription_expiry_date', models.DateTimeField(blank=True, null=True)),
                ('subscription_updated_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('current_subscription', models.ForeignKey(
                    blank=True,
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+',
                    to='subscriptions.subscription',
                )),
                ('user', models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='account_profile',
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                'verbose_name': 'User Profile',
                'verbose_name_plural': 'User Profiles',
                'indexes': [
                    models.Index(fields=['role'], name='profile_role_idx'),
                ],
            },
        ),
    ]
