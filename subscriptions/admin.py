# subscriptions/admin.py
"""
Admin configuration for subscriptions app.

Status fields are read-only here; review decisions go through the admin
actions, which use ApprovalService like the JSON API does.
"""

from django.contrib import admin, messages
from django.utils.html import format_html
from subscriptions.models import (
    SubscriptionPlan, Subscription, Invoice, InvoiceSequence,
    ExpiryReminder, NotificationRequest
)
from subscriptions.services import ApprovalService, PlanService


# ==============================================================================
# PLAN ADMIN
# ==============================================================================

@admin.register(SubscriptionPlan)
class SubscriptionPlanAdmin(admin.ModelAdmin):
    list_display = ('name', 'duration_days', 'price_display', 'is_active', 'display_order')
    list_filter = ('is_active',)
    search_fields = ('name', 'description')
    list_editable = ('display_order', 'is_active')

    fieldsets = (
        ('Basic Info', {
            'fields': ('name', 'description', 'features')
        }),
        ('Pricing', {
            'fields': ('duration_days', 'price', 'currency')
        }),
        ('Display', {
            'fields': ('display_order', 'is_active')
        }),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and obj.is_referenced():
            return PlanService.LOCKED_WHEN_REFERENCED
        return ()

    def price_display(self, obj):
        return f"₹{obj.price:,.2f}"
    price_display.short_description = 'Price'
    price_display.admin_order_field = 'price'


# ==============================================================================
# SUBSCRIPTION ADMIN
# ==============================================================================

class InvoiceInline(admin.TabularInline):
    model = Invoice
    fk_name = 'subscription'
    extra = 0
    can_delete = False
    fields = ('invoice_number', 'amount', 'start_date', 'end_date', 'created_at')
    readonly_fields = fields


@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('user', 'plan_name', 'amount_display', 'payment_method', 'status_badge',
                    'start_date', 'end_date', 'invoice', 'created_at')
    list_filter = ('status', 'payment_method', 'auto_renew', 'created_at')
    search_fields = ('user__username', 'user__email', 'plan_name', 'upi_transaction_id',
                     'invoice__invoice_number')
    date_hierarchy = 'created_at'
    raw_id_fields = ('user', 'plan', 'reviewed_by', 'refunded_by', 'previous_subscription', 'renewal_of')
    readonly_fields = ('id', 'status', 'start_date', 'end_date', 'grace_period_end_date',
                       'reviewed_by', 'reviewed_at', 'invoice', 'refund_amount', 'refunded_at',
                       'refunded_by', 'expiry_warning_sent', 'expiry_warning_sent_at',
                       'created_at', 'updated_at')
    inlines = [InvoiceInline]
    actions = ['approve_selected', 'reject_selected']

    fieldsets = (
        ('Request', {
            'fields': ('id', 'user', 'plan', 'plan_name', 'plan_duration_days', 'amount', 'currency')
        }),
        ('Payment', {
            'fields': ('payment_method', 'upi_amount', 'cash_amount', 'upi_transaction_id',
                       'payment_proof', 'cash_received_date', 'cash_received_by')
        }),
        ('Status', {
            'fields': ('status', 'start_date', 'end_date', 'grace_period_days', 'grace_period_end_date',
                       'reviewed_by', 'reviewed_at', 'rejection_reason', 'invoice')
        }),
        ('Renewal', {
            'fields': ('auto_renew', 'renewal_of', 'previous_subscription', 'previous_plan_amount',
                       'previous_plan_end_date', 'expiry_warning_sent', 'expiry_warning_sent_at'),
            'classes': ('collapse',)
        }),
        ('Refund', {
            'fields': ('refund_amount', 'refund_reason', 'refunded_at', 'refunded_by'),
            'classes': ('collapse',)
        }),
    )

    STATUS_COLORS = {
        'pending': '#F59E0B',
        'approved': '#10B981',
        'rejected': '#EF4444',
        'cancelled': '#6B7280',
        'expired': '#9CA3AF',
    }

    def amount_display(self, obj):
        return f"₹{obj.amount:,.2f}"
    amount_display.short_description = 'Amount'
    amount_display.admin_order_field = 'amount'

    def status_badge(self, obj):
        return format_html(
            '<span style="color: {};">{}</span>',
            self.STATUS_COLORS.get(obj.status, '#000'),
            obj.get_status_display()
        )
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    @admin.action(description='Approve selected pending subscriptions')
    def approve_selected(self, request, queryset):
        result = ApprovalService.bulk_approve(request.user, list(queryset.values_list('pk', flat=True)))
        self._report(request, result)

    @admin.action(description='Reject selected pending subscriptions')
    def reject_selected(self, request, queryset):
        result = ApprovalService.bulk_reject(request.user, list(queryset.values_list('pk', flat=True)))
        self._report(request, result)

    def _report(self, request, result):
        level = messages.SUCCESS if result['ok'] and not result['data'].get('failed') else messages.WARNING
        self.message_user(request, result['reason'], level=level)
        for failure in result['data'].get('failed', []):
            self.message_user(request, f"{failure['id']}: {failure['reason']}", level=messages.ERROR)


# ==============================================================================
# INVOICE ADMIN
# ==============================================================================

@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ('invoice_number', 'user', 'amount_display', 'payment_method', 'status', 'created_at')
    list_filter = ('status', 'payment_method', 'created_at')
    search_fields = ('invoice_number', 'user__username', 'user__email')
    date_hierarchy = 'created_at'
    readonly_fields = [f.name for f in Invoice._meta.fields]

    def amount_display(self, obj):
        return f"₹{obj.amount:,.2f}"
    amount_display.short_description = 'Amount'

    def has_add_permission(self, request):
        return False


@admin.register(InvoiceSequence)
class InvoiceSequenceAdmin(admin.ModelAdmin):
    list_display = ('period', 'last_value', 'updated_at')
    readonly_fields = ('period', 'updated_at')


# ==============================================================================
# REMINDERS & NOTIFICATIONS
# ==============================================================================

@admin.register(ExpiryReminder)
class ExpiryReminderAdmin(admin.ModelAdmin):
    list_display = ('subscription', 'threshold_days', 'window_end', 'sent_at')
    list_filter = ('threshold_days',)
    raw_id_fields = ('subscription',)


@admin.register(NotificationRequest)
class NotificationRequestAdmin(admin.ModelAdmin):
    list_display = ('user', 'kind', 'title', 'is_read', 'created_at')
    list_filter = ('kind', 'is_read', 'created_at')
    search_fields = ('user__username', 'title', 'message')
    raw_id_fields = ('user', 'subscription')
