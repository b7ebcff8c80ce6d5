from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import InventoryStockViewSet

router = DefaultRouter()
router.register(r'stocks', InventoryStockViewSet, basename='inventory-stock')

urlpatterns = [
    path('', include(router.urls)),
]
