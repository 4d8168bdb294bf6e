# accounts/signals.py
"""
Signal handlers for automatic profile creation.
"""

import logging
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.contrib.auth.models import User

from accounts.models import UserProfile

logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    """
    Create UserProfile when new User is created.
    """
    if not created:
        return
    
    try:
        UserProfile.objects.get_or_create(user=instance)
        logger.info(f"Created UserProfile for user {instance.username}")
    except Exception as e:
        logger.error(f"Error creating UserProfile for user {instance.username}: {e}")
