# matrimony_site/error_views.py
"""
JSON error handlers, used when DEBUG=False.
"""

import logging
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def bad_request(request, exception=None):
    return JsonResponse({
        'ok': False,
        'code': 'INVALID_REQUEST',
        'reason': 'Bad request. Please check your input and try again.',
    }, status=400)


def permission_denied(request, exception=None):
    logger.warning(
        f"403 Forbidden: {request.path} - User: {request.user} - IP: {request.META.get('REMOTE_ADDR')}"
    )
    return JsonResponse({
        'ok': False,
        'code': 'FORBIDDEN',
        'reason': 'You do not have permission to access this resource.',
    }, status=403)


def page_not_found(request, exception=None):
    return JsonResponse({
        'ok': False,
        'code': 'NOT_FOUND',
        'reason': 'The requested resource was not found.',
    }, status=404)


def server_error(request):
    """
    Uncaught exceptions end up here. No exception detail is returned.
    """
    logger.error(
        f"500 Server Error: {request.path} - User: {request.user} - IP: {request.META.get('REMOTE_ADDR')}"
    )
    return JsonResponse({
        'ok': False,
        'code': 'SERVER_ERROR',
        'reason': 'An unexpected error occurred. Please try again later.',
    }, status=500)
