# subscriptions/urls.py
"""
URL patterns for subscriptions app (mounted at /api/subscriptions/).
"""

from django.urls import path
from subscriptions import views

urlpatterns = [
    # Plans
    path('plans/', views.plans_view, name='subscription_plans'),

    # User subscription management
    path('subscribe/', views.subscribe_view, name='subscription_subscribe'),
    path('upgrade/', views.upgrade_view, name='subscription_upgrade'),
    path('current/', views.current_subscription_view, name='subscription_current'),
    path('history/', views.history_view, name='subscription_history'),
    path('history/export/', views.export_history_view, name='subscription_history_export'),
    path('upload-proof/', views.upload_proof_view, name='subscription_upload_proof'),
    path('auto-renew/', views.auto_renew_view, name='subscription_auto_renew'),
    path('<uuid:subscription_id>/invoice/', views.invoice_view, name='subscription_invoice'),

    # Reviewer: subscriptions
    path('admin/', views.admin_list_view, name='admin_subscription_list'),
    path('admin/pending/', views.admin_pending_view, name='admin_subscription_pending'),
    path('admin/stats/', views.admin_stats_view, name='admin_subscription_stats'),
    path('admin/bulk-approve/', views.admin_bulk_approve_view, name='admin_subscription_bulk_approve'),
    path('admin/bulk-reject/', views.admin_bulk_reject_view, name='admin_subscription_bulk_reject'),
    path('admin/bulk-delete/', views.admin_bulk_delete_view, name='admin_subscription_bulk_delete'),
    path('admin/<uuid:subscription_id>/', views.admin_detail_view, name='admin_subscription_detail'),
    path('admin/<uuid:subscription_id>/approve/', views.admin_approve_view, name='admin_subscription_approve'),
    path('admin/<uuid:subscription_id>/reject/', views.admin_reject_view, name='admin_subscription_reject'),
    path('admin/<uuid:subscription_id>/cancel/', views.admin_cancel_view, name='admin_subscription_cancel'),
    path('admin/<uuid:subscription_id>/reactivate/', views.admin_reactivate_view,
         name='admin_subscription_reactivate'),
    path('admin/<uuid:subscription_id>/refund/', views.admin_refund_view, name='admin_subscription_refund'),

    # Reviewer: plans
    path('admin/plans/', views.admin_plans_view, name='admin_plan_list'),
    path('admin/plans/<uuid:plan_id>/', views.admin_plan_detail_view, name='admin_plan_detail'),
]
