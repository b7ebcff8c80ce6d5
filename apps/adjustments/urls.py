from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import StockAdjustmentViewSet

router = SimpleRouter()
router.register(r'', StockAdjustmentViewSet, basename='stock-adjustment')

urlpatterns = [
    path('', include(router.urls)),
]
