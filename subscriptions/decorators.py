# subscriptions/decorators.py
"""
View decorators for the subscription JSON API.

All failures are JSON:
    {"ok": false, "code": "AUTH_REQUIRED" | "FORBIDDEN" | "SUBSCRIPTION_REQUIRED", "reason": "..."}

Usage:
    @ajax_login_required
    def my_subscription(request):
        ...

    @reviewer_required
    def approve(request, subscription_id):
        ...

    @subscription_required
    def view_contact_details(request, profile_id):
        ...
"""

from functools import wraps
from django.http import JsonResponse


def _auth_required():
    return JsonResponse({
        'ok': False,
        'code': 'AUTH_REQUIRED',
        'reason': 'Authentication required.',
    }, status=401)


def _forbidden(reason):
    return JsonResponse({
        'ok': False,
        'code': 'FORBIDDEN',
        'reason': reason,
    }, status=403)


def is_reviewer(user):
    """Admins and superadmins review payments."""
    if not user.is_authenticated:
        return False
    if user.is_staff or user.is_superuser:
        return True
    profile = getattr(user, 'account_profile', None)
    return profile is not None and profile.is_admin()


def is_superadmin(user):
    if not user.is_authenticated:
        return False
    if user.is_superuser:
        return True
    profile = getattr(user, 'account_profile', None)
    return profile is not None and profile.is_superadmin()


def ajax_login_required(view_func):
    """Returns 401 JSON instead of redirecting to the login page."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _auth_required()
        return view_func(request, *args, **kwargs)
    return wrapper


def reviewer_required(view_func):
    """Admin or superadmin (or Django staff)."""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _auth_required()
        if not is_reviewer(request.user):
            return _forbidden('Admin access required.')
        return view_func(request, *args, **kwargs)
    return wrapper


def superadmin_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return _auth_required()
        if not is_superadmin(request.user):
            return _forbidden('Superadmin access required.')
        return view_func(request, *args, **kwargs)
    return wrapper


def subscription_required(view_func):
    """
    Gate a view on an active entitlement.

    Uses the cached summary on the profile; falls back to querying
    subscriptions when the cache says no (it may lag behind an approval).
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        from subscriptions.models import Subscription

        if not request.user.is_authenticated:
            return _auth_required()

        profile = getattr(request.user, 'account_profile', None)
        if profile is not None and profile.has_active_subscription():
            return view_func(request, *args, **kwargs)

        if Subscription.objects.for_user(request.user).with_access().exists():
            return view_func(request, *args, **kwargs)

        return JsonResponse({
            'ok': False,
            'code': 'SUBSCRIPTION_REQUIRED',
            'reason': 'Active subscription required. Please subscribe to continue.',
        }, status=403)
    return wrapper
