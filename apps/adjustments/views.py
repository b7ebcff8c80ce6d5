from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from apps.utils.permissions import IsStaffOrReadOnly

from .models import StockAdjustment
from .serializers import StockAdjustmentSerializer, AdjustmentCreateSerializer
from .services import AdjustmentService


class StockAdjustmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Manual stock corrections. Adjustments are immutable once created.
    """
    queryset = StockAdjustment.objects.select_related(
        'inventory__product', 'inventory__warehouse', 'adjusted_by'
    )
    serializer_class = StockAdjustmentSerializer
    permission_classes = [IsAuthenticated, IsStaffOrReadOnly]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if inventory_id := params.get('inventory_id'):
            qs = qs.filter(inventory_id=inventory_id)
        if adjustment_type := params.get('adjustment_type'):
            qs = qs.filter(adjustment_type=adjustment_type)
        if reason := params.get('reason'):
            qs = qs.filter(reason=reason)
        return qs

    def create(self, request):
        serializer = AdjustmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        adjustment = AdjustmentService.create_adjustment(actor=request.user, **serializer.validated_data)
        return Response(StockAdjustmentSerializer(adjustment).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def reasons(self, request):
        return Response(AdjustmentService.adjustment_reasons())

    @action(detail=False, methods=['get'])
    def summary(self, request):
        data = AdjustmentService.adjustment_summary()
        data["recent_adjustments"] = StockAdjustmentSerializer(
            AdjustmentService.recent_adjustments(5), many=True
        ).data
        return Response(data)
