from django.urls import path, include
from rest_framework.routers import SimpleRouter
from .views import StockTransferViewSet

router = SimpleRouter()
router.register(r'', StockTransferViewSet, basename='stock-transfer')

urlpatterns = [
    path('', include(router.urls)),
]
