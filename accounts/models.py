# accounts/models.py
"""
User profiles with role and the cached entitlement summary.

Models:
- UserProfile: Extended user profile with phone, role, subscription summary
"""

from django.db import models
from django.contrib.auth.models import User
from django.utils import timezone
from django.core.validators import RegexValidator


# ==============================================================================
# VALIDATORS
# ==============================================================================

phone_validator = RegexValidator(
    regex=r'^\+?[1-9]\d{9,14}$',
    message="Phone number must be 10-15 digits with optional + prefix"
)


# ==============================================================================
# USER PROFILE
# ==============================================================================

class UserProfile(models.Model):
    """
    Extended user profile.
    
    Holds the role used for reviewer checks and a denormalized copy of the
    user's subscription state so other parts of the platform (search, chat,
    interests) can gate features without querying subscriptions.
    """
    ROLE_CHOICES = (
        ('superadmin', 'Super Admin'),
        ('admin', 'Admin'),
        ('vendor', 'Vendor'),
        ('user', 'User'),
    )
    
    SUBSCRIPTION_STATUS_CHOICES = (
        ('active', 'Active'),
        ('expired', 'Expired'),
        ('pending', 'Pending'),
        ('none', 'None'),
    )
    
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='account_profile'
    )
    
    # Contact info
    phone = models.CharField(
        max_length=20,
        unique=True,
        null=True,
        blank=True,
        validators=[phone_validator]
    )
    
    # Role & status
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default='user')
    is_active = models.BooleanField(default=True)
    
    # Cached entitlement summary (written only by subscriptions services)
    subscription_status = models.CharField(
        max_length=20,
        choices=SUBSCRIPTION_STATUS_CHOICES,
        default='none',
        db_index=True
    )
    subscription_expiry_date = models.DateTimeField(null=True, blank=True)
    current_subscription = models.ForeignKey(
        'subscriptions.Subscription',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+'
    )
    subscription_updated_at = models.DateTimeField(null=True, blank=True)
    
    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    
    class Meta:
        verbose_name = 'User Profile'
        verbose_name_plural = 'User Profiles'
        indexes = [
            models.Index(fields=['role'], name='profile_role_idx'),
        ]
    
    def __str__(self):
        return f"{self.user.get_full_name() or self.user.username} ({self.role})"
    
    def is_superadmin(self):
        return self.role == 'superadmin'
    
    def is_admin(self):
        return self.role in ('superadmin', 'admin')
    
    def has_active_subscription(self):
        """Fast-path entitlement check from the cached summary."""
        if self.subscription_status != 'active':
            return False
        if self.subscription_expiry_date is None:
            return False
        return self.subscription_expiry_date >= timezone.now()
