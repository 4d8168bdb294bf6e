# subscriptions/views.py
"""
JSON API for subscriptions: plan listing, requests, current status, history,
invoices and payment proofs for users; review actions, listings, stats and
plan management for reviewers.

Request bodies may be JSON or form-encoded. Responses always carry
{"ok", "reason", "code", ...data}; failure codes map onto HTTP statuses
through STATUS_BY_CODE.
"""

import json
import logging
from datetime import datetime
from django.http import JsonResponse, HttpResponse
from django.utils import timezone
from django.utils.dateparse import parse_datetime, parse_date
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from subscriptions.decorators import ajax_login_required, reviewer_required, superadmin_required
from subscriptions.services import (
    ApprovalService,
    PlanService,
    SubscriptionService,
)
from subscriptions.services.base import as_bool

logger = logging.getLogger(__name__)


STATUS_BY_CODE = {
    # validation
    'INVALID_PLAN': 400,
    'PLAN_INACTIVE': 400,
    'INVALID_PAYMENT_METHOD': 400,
    'INVALID_AMOUNT': 400,
    'AMOUNT_MISMATCH': 400,
    'NO_ACTIVE_SUBSCRIPTION': 400,
    'REFUND_EXCEEDS_AMOUNT': 400,
    'INVALID_REQUEST': 400,
    'NO_FILE': 400,
    # not found
    'NOT_FOUND': 404,
    'PLAN_NOT_FOUND': 404,
    'INVOICE_NOT_FOUND': 404,
    # conflict
    'ALREADY_PENDING': 409,
    'STATUS_CONFLICT': 409,
    'PLAN_IN_USE': 409,
    # approval rolled back because the invoice failed
    'INVOICE_ERROR': 500,
    # store unavailable
    'STORE_ERROR': 503,
}


# ==============================================================================
# HELPERS
# ==============================================================================

class InvalidPayload(Exception):
    pass


def _payload(request):
    """Request body as a dict (JSON or form data)."""
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (ValueError, UnicodeDecodeError):
            raise InvalidPayload('Invalid JSON')
        if not isinstance(data, dict):
            raise InvalidPayload('Expected a JSON object')
        return data
    return request.POST.dict()


def _respond(result, success_status=200):
    body = {
        'ok': result['ok'],
        'reason': result['reason'],
        'code': result.get('code', 'OK'),
    }
    body.update(result.get('data') or {})
    if result['ok']:
        return JsonResponse(body, status=success_status)
    return JsonResponse(body, status=STATUS_BY_CODE.get(result.get('code'), 400))


def _invalid(reason):
    return JsonResponse({'ok': False, 'code': 'INVALID_REQUEST', 'reason': reason}, status=400)


def _as_id_list(value):
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value.strip():
        return [v.strip() for v in value.split(',') if v.strip()]
    return []


def _parse_when(value):
    """ISO datetime or date string -> aware datetime, None if empty/invalid."""
    if not value:
        return None
    parsed = parse_datetime(str(value))
    if parsed is None:
        day = parse_date(str(value))
        if day is None:
            return None
        parsed = datetime(day.year, day.month, day.day)
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


# ==============================================================================
# USER ENDPOINTS
# ==============================================================================

@require_GET
@ajax_login_required
def plans_view(request):
    """Active plans sorted by display order."""
    return _respond(PlanService.list_active())


@require_POST
@ajax_login_required
def subscribe_view(request):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    result = SubscriptionService.create_request(
        request.user,
        plan_id=data.get('plan_id'),
        payment_method=data.get('payment_method'),
        upi_amount=data.get('upi_amount'),
        cash_amount=data.get('cash_amount'),
        upi_transaction_id=data.get('upi_transaction_id', ''),
    )
    return _respond(result, success_status=201)


@require_POST
@ajax_login_required
def upgrade_view(request):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    result = SubscriptionService.create_upgrade_request(
        request.user,
        plan_id=data.get('plan_id'),
        payment_method=data.get('payment_method'),
        upi_amount=data.get('upi_amount'),
        cash_amount=data.get('cash_amount'),
        upi_transaction_id=data.get('upi_transaction_id', ''),
    )
    return _respond(result, success_status=201)


@require_GET
@ajax_login_required
def current_subscription_view(request):
    return _respond(SubscriptionService.get_current(request.user))


@require_GET
@ajax_login_required
def history_view(request):
    return _respond(SubscriptionService.get_history(request.user))


@require_GET
@ajax_login_required
def export_history_view(request):
    """Payment history as a CSV download."""
    content = SubscriptionService.export_history_csv(request.user)
    response = HttpResponse(content, content_type='text/csv')
    response['Content-Disposition'] = (
        f'attachment; filename="payment-history-{timezone.localdate().isoformat()}.csv"'
    )
    return response


@require_GET
@ajax_login_required
def invoice_view(request, subscription_id):
    return _respond(SubscriptionService.get_invoice(request.user, subscription_id))


@require_POST
@ajax_login_required
def upload_proof_view(request):
    """Multipart: subscription_id + payment_proof file."""
    result = SubscriptionService.upload_payment_proof(
        request.user,
        request.POST.get('subscription_id'),
        request.FILES.get('payment_proof'),
    )
    return _respond(result)


@require_POST
@ajax_login_required
def auto_renew_view(request):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    if 'auto_renew' not in data:
        return _invalid('auto_renew is required')
    return _respond(SubscriptionService.set_auto_renew(request.user, as_bool(data['auto_renew'])))


# ==============================================================================
# REVIEWER ENDPOINTS
# ==============================================================================

@require_GET
@reviewer_required
def admin_list_view(request):
    try:
        per_page = min(max(int(request.GET.get('per_page', 20)), 1), 100)
    except ValueError:
        per_page = 20

    result = SubscriptionService.list_subscriptions(
        status=request.GET.get('status') or None,
        payment_method=request.GET.get('payment_method') or None,
        page=request.GET.get('page', 1),
        per_page=per_page,
    )
    return _respond(result)


@require_GET
@reviewer_required
def admin_pending_view(request):
    return _respond(SubscriptionService.list_pending())


@require_GET
@reviewer_required
def admin_stats_view(request):
    return _respond(SubscriptionService.get_stats())


@require_GET
@reviewer_required
def admin_detail_view(request, subscription_id):
    return _respond(SubscriptionService.get_detail(subscription_id))


@require_POST
@reviewer_required
def admin_approve_view(request, subscription_id):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    result = ApprovalService.approve(
        request.user,
        subscription_id,
        cash_received_date=_parse_when(data.get('cash_received_date')),
        cash_received_by=data.get('cash_received_by', ''),
    )
    return _respond(result)


@require_POST
@reviewer_required
def admin_reject_view(request, subscription_id):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    return _respond(ApprovalService.reject(request.user, subscription_id, reason=data.get('reason')))


@require_POST
@reviewer_required
def admin_cancel_view(request, subscription_id):
    return _respond(ApprovalService.cancel(request.user, subscription_id))


@require_POST
@reviewer_required
def admin_reactivate_view(request, subscription_id):
    return _respond(ApprovalService.reactivate(request.user, subscription_id))


@require_POST
@reviewer_required
def admin_refund_view(request, subscription_id):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    result = ApprovalService.refund(
        request.user,
        subscription_id,
        amount=data.get('amount'),
        reason=data.get('reason', ''),
    )
    return _respond(result)


@require_POST
@reviewer_required
def admin_bulk_approve_view(request):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    return _respond(ApprovalService.bulk_approve(request.user, _as_id_list(data.get('ids'))))


@require_POST
@reviewer_required
def admin_bulk_reject_view(request):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    result = ApprovalService.bulk_reject(
        request.user,
        _as_id_list(data.get('ids')),
        reason=data.get('reason'),
    )
    return _respond(result)


@require_POST
@superadmin_required
def admin_bulk_delete_view(request):
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))

    return _respond(ApprovalService.bulk_delete(request.user, _as_id_list(data.get('ids'))))


# ==============================================================================
# PLAN MANAGEMENT
# ==============================================================================

@require_http_methods(["GET", "POST"])
@reviewer_required
def admin_plans_view(request):
    """GET: all plans (inactive included). POST: create a plan."""
    if request.method == 'GET':
        return _respond(PlanService.list_all())

    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))
    return _respond(PlanService.create_plan(request.user, data), success_status=201)


@require_http_methods(["PUT", "PATCH", "DELETE"])
@reviewer_required
def admin_plan_detail_view(request, plan_id):
    if request.method == 'DELETE':
        return _respond(PlanService.delete_plan(request.user, plan_id))

    if request.content_type != 'application/json':
        return _invalid('Plan updates must be sent as JSON')
    try:
        data = _payload(request)
    except InvalidPayload as e:
        return _invalid(str(e))
    return _respond(PlanService.update_plan(request.user, plan_id, data))
