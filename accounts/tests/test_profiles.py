"""
Tests for user profiles.

Verifies:
- Profile auto-created on signup
- Role helpers
- Cached entitlement fast path
"""

import pytest
from datetime import timedelta
from django.contrib.auth.models import User
from django.utils import timezone

from accounts.models import UserProfile


@pytest.fixture
def user(db):
    return User.objects.create_user(username="asha", email="asha@example.com", password="testpass123")


@pytest.mark.django_db
class TestUserProfile:

    def test_profile_created_by_signal(self, user):
        profile = UserProfile.objects.get(user=user)

        assert profile.role == 'user'
        assert profile.subscription_status == 'none'
        assert profile.current_subscription is None

    def test_saving_user_does_not_duplicate_profile(self, user):
        user.first_name = "Asha"
        user.save()

        assert UserProfile.objects.filter(user=user).count() == 1

    def test_roles(self, user):
        profile = user.account_profile
        assert not profile.is_admin()

        profile.role = 'admin'
        assert profile.is_admin() and not profile.is_superadmin()

        profile.role = 'superadmin'
        assert profile.is_admin() and profile.is_superadmin()

    def test_cached_active_until_expiry(self, user):
        profile = user.account_profile
        profile.subscription_status = 'active'
        profile.subscription_expiry_date = timezone.now() + timedelta(days=1)
        assert profile.has_active_subscription()

        profile.subscription_expiry_date = timezone.now() - timedelta(minutes=1)
        assert not profile.has_active_subscription()

    def test_non_active_status(self, user):
        profile = user.account_profile
        profile.subscription_status = 'pending'
        profile.subscription_expiry_date = timezone.now() + timedelta(days=1)

        assert not profile.has_active_subscription()
