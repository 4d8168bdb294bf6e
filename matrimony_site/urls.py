from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from django.http import JsonResponse


# Health check endpoint for load balancers and container orchestration
def health_check(request):
    return JsonResponse({'status': 'healthy', 'app': 'matrimony'})


urlpatterns = [
    path('health/', health_check, name='health_check'),
    path('admin/', admin.site.urls),

    # -------------------------
    # Subscriptions, plans, invoices (user + reviewer API)
    # -------------------------
    path('api/subscriptions/', include('subscriptions.urls')),
]

handler400 = 'matrimony_site.error_views.bad_request'
handler403 = 'matrimony_site.error_views.permission_denied'
handler404 = 'matrimony_site.error_views.page_not_found'
handler500 = 'matrimony_site.error_views.server_error'

# Uploaded payment proofs when using local storage
if settings.DEBUG and settings.MEDIA_URL:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
