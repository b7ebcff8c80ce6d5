from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import StockMovementViewSet

router = SimpleRouter()
router.register(r'', StockMovementViewSet, basename='stock-movement')

urlpatterns = [
    path('', include(router.urls)),
]
