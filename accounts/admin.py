# accounts/admin.py
"""
Admin configuration for accounts app.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import User

from accounts.models import UserProfile


# ==============================================================================
# INLINE ADMINS
# ==============================================================================

class UserProfileInline(admin.StackedInline):
    model = UserProfile
    can_delete = False
    verbose_name_plural = 'Profile'
    fk_name = 'user'
    readonly_fields = ('subscription_status', 'subscription_expiry_date',
                       'current_subscription', 'subscription_updated_at')

    fieldsets = (
        ('Contact', {
            'fields': ('phone',)
        }),
        ('Role & Status', {
            'fields': ('role', 'is_active')
        }),
        ('Subscription (cached)', {
            'fields': ('subscription_status', 'subscription_expiry_date',
                       'current_subscription', 'subscription_updated_at'),
        }),
    )


# ==============================================================================
# EXTEND USER ADMIN
# ==============================================================================

class CustomUserAdmin(BaseUserAdmin):
    inlines = (UserProfileInline,)
    list_display = ('username', 'email', 'first_name', 'last_name', 'get_role',
                    'get_subscription_status', 'is_staff', 'is_active')
    list_filter = BaseUserAdmin.list_filter + ('account_profile__role',
                                               'account_profile__subscription_status')

    def get_role(self, obj):
        if hasattr(obj, 'account_profile'):
            return obj.account_profile.role
        return '-'
    get_role.short_description = 'Role'
    get_role.admin_order_field = 'account_profile__role'

    def get_subscription_status(self, obj):
        if hasattr(obj, 'account_profile'):
            return obj.account_profile.subscription_status
        return '-'
    get_subscription_status.short_description = 'Subscription'


# Re-register User with custom admin
admin.site.unregister(User)
admin.site.register(User, CustomUserAdmin)


# ==============================================================================
# USER PROFILE ADMIN
# ==============================================================================

@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'phone', 'role', 'subscription_status',
                    'subscription_expiry_date', 'is_active')
    list_filter = ('role', 'subscription_status', 'is_active')
    search_fields = ('user__username', 'user__email', 'phone')
    readonly_fields = ('created_at', 'updated_at', 'subscription_status',
                       'subscription_expiry_date', 'current_subscription',
                       'subscription_updated_at')
