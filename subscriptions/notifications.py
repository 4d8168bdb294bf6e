# subscriptions/notifications.py
"""
Notification emission for the subscription workflow.

The workflow only *requests* notifications; delivery (push, email) belongs
to whatever consumes them. The concrete notifier is configured with
SUBSCRIPTION_NOTIFIER and resolved once.

Usage:
    from subscriptions.notifications import notify
    notify(user, 'subscription_approved', 'Subscription approved', '...', subscription=sub)
"""

import logging
from functools import lru_cache
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class Notifier:
    """Interface: receive a fire-and-forget notification request."""

    def send(self, user, kind, title, message, subscription=None, data=None):
        raise NotImplementedError


class DatabaseNotifier(Notifier):
    """Writes requests to the NotificationRequest outbox table."""

    def send(self, user, kind, title, message, subscription=None, data=None):
        from subscriptions.models import NotificationRequest

        return NotificationRequest.objects.create(
            user=user,
            kind=kind,
            title=title,
            message=message,
            subscription=subscription,
            data=data or {},
        )


class LoggingNotifier(Notifier):
    """Only logs. Useful where no outbox consumer is deployed."""

    def send(self, user, kind, title, message, subscription=None, data=None):
        logger.info(f"[NOTIFY] {kind} | user={user.id} | {title}")


@lru_cache(maxsize=1)
def get_notifier():
    notifier_class = import_string(settings.SUBSCRIPTION_NOTIFIER)
    return notifier_class()


def notify(user, kind, title, message, subscription=None, data=None):
    """
    Emit a notification request. Never raises: a failed notification must
    not undo a committed state change.

    Returns True if the notifier accepted the request.
    """
    try:
        get_notifier().send(user, kind, title, message, subscription=subscription, data=data)
        return True
    except Exception as e:
        logger.warning(f"Notification {kind} for user {user.id} failed: {e}")
        return False
