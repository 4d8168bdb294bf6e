"""
Tests for the subscriptions JSON API.

Verifies:
- Auth (401) and role (403) enforcement
- Result codes map to HTTP statuses
- Request/approve round trip over HTTP
- Plan management and CSV export
"""

import json
import pytest
from django.urls import reverse

from subscriptions.models import Subscription, SubscriptionPlan


def post_json(client, url, data=None):
    return client.post(url, data=json.dumps(data or {}), content_type='application/json')


@pytest.mark.django_db
class TestAuthentication:

    def test_anonymous_gets_401(self, client, monthly_plan):
        response = client.get(reverse('subscription_plans'))

        assert response.status_code == 401
        assert response.json()['code'] == 'AUTH_REQUIRED'

    def test_member_cannot_review(self, member_client, pending_subscription):
        url = reverse('admin_subscription_approve', args=[pending_subscription.id])

        response = post_json(member_client, url)

        assert response.status_code == 403
        assert response.json()['code'] == 'FORBIDDEN'
        assert Subscription.objects.get(pk=pending_subscription.id).status == 'pending'

    def test_admin_cannot_bulk_delete(self, reviewer_client, pending_subscription):
        response = post_json(reviewer_client, reverse('admin_subscription_bulk_delete'),
                             {'ids': [str(pending_subscription.id)]})

        assert response.status_code == 403
        assert Subscription.objects.filter(pk=pending_subscription.id).exists()

    def test_superadmin_can_bulk_delete(self, superadmin_client, pending_subscription):
        response = post_json(superadmin_client, reverse('admin_subscription_bulk_delete'),
                             {'ids': [str(pending_subscription.id)]})

        assert response.status_code == 200
        assert response.json()['count'] == 1

    def test_health_check(self, client):
        response = client.get('/health/')
        assert response.json()['status'] == 'healthy'


@pytest.mark.django_db
class TestMemberEndpoints:

    def test_plans_lists_only_active(self, member_client, monthly_plan, inactive_plan):
        response = member_client.get(reverse('subscription_plans'))

        assert response.status_code == 200
        names = [p['name'] for p in response.json()['plans']]
        assert names == ["1 Month"]

    def test_subscribe_created(self, member_client, monthly_plan):
        response = post_json(member_client, reverse('subscription_subscribe'), {
            'plan_id': str(monthly_plan.id),
            'payment_method': 'upi',
            'upi_amount': '499',
            'upi_transaction_id': 'UTR42',
        })

        assert response.status_code == 201
        body = response.json()
        assert body['ok'] is True
        assert body['subscription']['status'] == 'pending'

    def test_subscribe_accepts_form_data(self, member_client, monthly_plan):
        response = member_client.post(reverse('subscription_subscribe'), {
            'plan_id': str(monthly_plan.id),
            'payment_method': 'cash',
            'cash_amount': '499',
        })

        assert response.status_code == 201

    def test_duplicate_pending_is_409(self, member_client, monthly_plan, pending_subscription):
        response = post_json(member_client, reverse('subscription_subscribe'), {
            'plan_id': str(monthly_plan.id),
            'payment_method': 'upi',
            'upi_amount': '499',
        })

        assert response.status_code == 409
        assert response.json()['code'] == 'ALREADY_PENDING'

    def test_amount_mismatch_is_400(self, member_client, monthly_plan):
        response = post_json(member_client, reverse('subscription_subscribe'), {
            'plan_id': str(monthly_plan.id),
            'payment_method': 'upi',
            'upi_amount': '100',
        })

        assert response.status_code == 400
        assert response.json()['code'] == 'AMOUNT_MISMATCH'

    def test_malformed_json_is_400(self, member_client):
        response = member_client.post(reverse('subscription_subscribe'), data='{not json',
                                      content_type='application/json')

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_REQUEST'

    def test_current(self, member_client, active_subscription):
        response = member_client.get(reverse('subscription_current'))

        body = response.json()
        assert body['has_active_subscription'] is True
        assert body['subscription']['id'] == str(active_subscription.id)

    def test_invoice_not_yet_issued(self, member_client, pending_subscription):
        response = member_client.get(reverse('subscription_invoice', args=[pending_subscription.id]))

        assert response.status_code == 404
        assert response.json()['code'] == 'INVOICE_NOT_FOUND'

    def test_invoice_of_other_user(self, client, other_member, pending_subscription):
        client.force_login(other_member)

        response = client.get(reverse('subscription_invoice', args=[pending_subscription.id]))

        assert response.status_code == 404
        assert response.json()['code'] == 'NOT_FOUND'

    def test_upload_requires_file(self, member_client, pending_subscription):
        response = member_client.post(reverse('subscription_upload_proof'), {
            'subscription_id': str(pending_subscription.id),
        })

        assert response.status_code == 400
        assert response.json()['code'] == 'NO_FILE'

    def test_auto_renew_requires_flag(self, member_client, active_subscription):
        response = post_json(member_client, reverse('subscription_auto_renew'), {})
        assert response.status_code == 400

        response = post_json(member_client, reverse('subscription_auto_renew'), {'auto_renew': True})
        assert response.status_code == 200
        assert response.json()['subscription']['auto_renew'] is True

    def test_export_csv(self, member_client, active_subscription):
        response = member_client.get(reverse('subscription_history_export'))

        assert response.status_code == 200
        assert response['Content-Type'].startswith('text/csv')
        assert 'attachment;' in response['Content-Disposition']
        assert b'1 Month' in response.content

    def test_get_only_endpoints_reject_post(self, member_client):
        response = member_client.post(reverse('subscription_current'))
        assert response.status_code == 405


@pytest.mark.django_db
class TestReviewerEndpoints:

    def test_approve_then_conflict(self, reviewer_client, pending_subscription):
        url = reverse('admin_subscription_approve', args=[pending_subscription.id])

        first = post_json(reviewer_client, url)
        second = post_json(reviewer_client, url)

        assert first.status_code == 200
        assert first.json()['invoice']['invoice_number'].startswith('INV-')
        assert second.status_code == 409
        assert second.json()['code'] == 'STATUS_CONFLICT'

    def test_member_sees_invoice_after_approval(self, reviewer_client, member_client, pending_subscription):
        post_json(reviewer_client, reverse('admin_subscription_approve', args=[pending_subscription.id]))

        response = member_client.get(reverse('subscription_invoice', args=[pending_subscription.id]))

        assert response.status_code == 200
        assert response.json()['invoice']['amount'] == '499.00'

    def test_reject_with_reason(self, reviewer_client, pending_subscription):
        url = reverse('admin_subscription_reject', args=[pending_subscription.id])

        response = post_json(reviewer_client, url, {'reason': 'Wrong UTR'})

        assert response.status_code == 200
        assert response.json()['subscription']['rejection_reason'] == 'Wrong UTR'

    def test_refund_exceeding_is_400(self, reviewer_client, active_subscription):
        url = reverse('admin_subscription_refund', args=[active_subscription.id])

        response = post_json(reviewer_client, url, {'amount': '1000'})

        assert response.status_code == 400
        assert response.json()['code'] == 'REFUND_EXCEEDS_AMOUNT'

    def test_unknown_subscription_is_404(self, reviewer_client, monthly_plan):
        url = reverse('admin_subscription_detail', args=[monthly_plan.id])

        response = reviewer_client.get(url)

        assert response.status_code == 404

    def test_list_filters_by_status(self, reviewer_client, pending_subscription, other_member, make_subscription):
        make_subscription(other_member)

        response = reviewer_client.get(reverse('admin_subscription_list'), {'status': 'pending'})

        body = response.json()
        assert body['total'] == 1
        assert body['subscriptions'][0]['user']['username'] == 'member'

    def test_pending_queue(self, reviewer_client, pending_subscription):
        response = reviewer_client.get(reverse('admin_subscription_pending'))
        assert len(response.json()['subscriptions']) == 1

    def test_stats(self, reviewer_client, active_subscription, pending_subscription):
        response = reviewer_client.get(reverse('admin_subscription_stats'))

        stats = response.json()['stats']
        assert stats['active_subscriptions'] == 1
        assert stats['pending_subscriptions'] == 1
        assert stats['total_revenue'] == '499.00'

    def test_bulk_approve(self, reviewer_client, pending_subscription):
        response = post_json(reviewer_client, reverse('admin_subscription_bulk_approve'),
                             {'ids': [str(pending_subscription.id)]})

        assert response.status_code == 200
        assert response.json()['count'] == 1


@pytest.mark.django_db
class TestPlanManagement:

    def test_create_plan(self, reviewer_client):
        response = post_json(reviewer_client, reverse('admin_plan_list'), {
            'name': '2 Months', 'duration_days': 60, 'price': '899',
        })

        assert response.status_code == 201
        plan = SubscriptionPlan.objects.get(name='2 Months')
        assert plan.currency == 'INR'

    def test_create_inactive_plan_from_form(self, reviewer_client):
        response = reviewer_client.post(reverse('admin_plan_list'), {
            'name': 'Draft', 'duration_days': '60', 'price': '899', 'is_active': 'false',
        })

        assert response.status_code == 201
        assert SubscriptionPlan.objects.get(name='Draft').is_active is False

    def test_rename_plan_in_use(self, reviewer_client, monthly_plan, active_subscription):
        url = reverse('admin_plan_detail', args=[monthly_plan.id])

        response = reviewer_client.put(url, data=json.dumps({'name': 'Weekly', 'duration_days': 7}),
                                       content_type='application/json')

        assert response.status_code == 409
        assert response.json()['code'] == 'PLAN_IN_USE'

    def test_create_plan_missing_fields(self, reviewer_client):
        response = post_json(reviewer_client, reverse('admin_plan_list'), {'name': 'Broken'})

        assert response.status_code == 400
        assert response.json()['code'] == 'INVALID_REQUEST'

    def test_list_includes_inactive(self, reviewer_client, monthly_plan, inactive_plan):
        response = reviewer_client.get(reverse('admin_plan_list'))
        assert len(response.json()['plans']) == 2

    def test_update_plan(self, reviewer_client, monthly_plan):
        url = reverse('admin_plan_detail', args=[monthly_plan.id])

        response = reviewer_client.put(url, data=json.dumps({'price': '549', 'is_active': False}),
                                       content_type='application/json')

        assert response.status_code == 200
        monthly_plan.refresh_from_db()
        assert str(monthly_plan.price) == '549.00'
        assert monthly_plan.is_active is False

    def test_delete_plan_in_use(self, reviewer_client, monthly_plan, active_subscription):
        response = reviewer_client.delete(reverse('admin_plan_detail', args=[monthly_plan.id]))

        assert response.status_code == 409
        assert response.json()['code'] == 'PLAN_IN_USE'

    def test_delete_unused_plan(self, reviewer_client, quarterly_plan):
        response = reviewer_client.delete(reverse('admin_plan_detail', args=[quarterly_plan.id]))

        assert response.status_code == 200
        assert not SubscriptionPlan.objects.filter(pk=quarterly_plan.pk).exists()
