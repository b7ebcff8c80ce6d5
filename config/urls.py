from django.contrib import admin
from django.urls import path, include
from django.conf import settings

# ADMIN_URL may be configured with or without slashes
admin_url = settings.ADMIN_URL.strip("/") + "/"

urlpatterns = [
    path(admin_url, admin.site.urls),

    # Stock ledger APIs
    path('api/v1/inventory/', include('apps.inventory.urls')),
    path('api/v1/adjustments/', include('apps.adjustments.urls')),
    path('api/v1/movements/', include('apps.movements.urls')),
    path('api/v1/transfers/', include('apps.transfers.urls')),
    path('api/v1/utils/', include('apps.utils.urls')),
]
