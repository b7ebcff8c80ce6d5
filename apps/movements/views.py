from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from apps.utils.permissions import IsStaff

from .models import StockMovement
from .serializers import (
    StockMovementSerializer,
    MovementCreateSerializer,
    MovementRejectSerializer,
)
from .services import MovementService


class StockMovementViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Any authenticated user may request a movement; approval and rejection need staff.
    """
    queryset = StockMovement.objects.select_related('product', 'warehouse', 'created_by', 'approved_by')
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated]

    def get_permissions(self):
        if self.action in ('approve', 'reject'):
            return [IsAuthenticated(), IsStaff()]
        return super().get_permissions()

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if status_filter := params.get('status'):
            qs = qs.filter(status=status_filter)
        if movement_type := params.get('movement_type'):
            qs = qs.filter(movement_type=movement_type)
        if product_id := params.get('product_id'):
            qs = qs.filter(product_id=product_id)
        if warehouse_id := params.get('warehouse_id'):
            qs = qs.filter(warehouse_id=warehouse_id)
        return qs

    def create(self, request):
        serializer = MovementCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        movement = MovementService.create_movement(actor=request.user, **serializer.validated_data)
        return Response(StockMovementSerializer(movement).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        movement = MovementService.approve_movement(pk, request.user)
        return Response(StockMovementSerializer(movement).data)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        serializer = MovementRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        movement = MovementService.reject_movement(pk, serializer.validated_data['reason'], request.user)
        return Response(StockMovementSerializer(movement).data)

    @action(detail=False, methods=['get'])
    def analytics(self, request):
        return Response(MovementService.movement_analytics())
