from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from apps.utils.permissions import IsStaffOrReadOnly

from .models import InventoryStock
from .serializers import (
    InventoryStockSerializer,
    InventoryCreateSerializer,
    InventoryUpdateSerializer,
    QuantitySerializer,
    LedgerEntrySerializer,
)
from .services import InventoryService


class InventoryStockViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Read access for any authenticated user; writes for staff only.
    Every write is routed through InventoryService.
    """
    queryset = InventoryStock.objects.select_related('product', 'warehouse').order_by('warehouse__code', 'product__sku_code')
    serializer_class = InventoryStockSerializer
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if warehouse_id := params.get('warehouse_id'):
            qs = qs.filter(warehouse_id=warehouse_id)
        if product_id := params.get('product_id'):
            qs = qs.filter(product_id=product_id)
        if sku := params.get('sku_code'):
            qs = qs.filter(product__sku_code=sku)
        return qs

    def create(self, request):
        serializer = InventoryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stock = InventoryService.create_inventory(actor=request.user, **serializer.validated_data)
        return Response(InventoryStockSerializer(stock).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = InventoryUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stock = InventoryService.update_inventory(pk, actor=request.user, **serializer.validated_data)
        return Response(InventoryStockSerializer(stock).data)

    def destroy(self, request, pk=None):
        InventoryService.delete_inventory(pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=['post'])
    def reserve(self, request, pk=None):
        serializer = QuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stock = InventoryService.reserve(
            pk,
            serializer.validated_data['quantity'],
            reference=serializer.validated_data['reference'],
            actor=request.user,
        )
        return Response(InventoryStockSerializer(stock).data)

    @action(detail=True, methods=['post'])
    def release(self, request, pk=None):
        serializer = QuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        stock = InventoryService.release(
            pk,
            serializer.validated_data['quantity'],
            reference=serializer.validated_data['reference'],
            actor=request.user,
        )
        return Response(InventoryStockSerializer(stock).data)

    @action(detail=True, methods=['get'])
    def ledger(self, request, pk=None):
        stock = self.get_object()
        entries = InventoryService.ledger_history(stock.id)
        page = self.paginate_queryset(entries)
        serializer = LedgerEntrySerializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=['get'], url_path='low-stock')
    def low_stock(self, request):
        stocks = InventoryService.low_stock(request.query_params.get('warehouse_id'))
        page = self.paginate_queryset(stocks)
        serializer = self.get_serializer(page, many=True)
        return self.get_paginated_response(serializer.data)

    @action(detail=False, methods=['get'])
    def lookup(self, request):
        product_id = request.query_params.get('product_id')
        warehouse_id = request.query_params.get('warehouse_id')
        if not product_id or not warehouse_id:
            return Response({"error": "product_id and warehouse_id are required"}, status=400)
        stock = InventoryService.get_inventory(product_id, warehouse_id)
        return Response(self.get_serializer(stock).data)

    @action(detail=False, methods=['get'])
    def analytics(self, request):
        return Response(InventoryService.inventory_analytics(request.query_params.get('warehouse_id')))
