from rest_framework import viewsets, mixins, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from apps.utils.permissions import IsStaff

from .models import StockTransfer
from .serializers import (
    StockTransferSerializer,
    StockTransferDetailSerializer,
    TransferCreateSerializer,
    TransferUpdateSerializer,
    CancelSerializer,
    BulkIdsSerializer,
    BulkCancelSerializer,
)
from .services import TransferService


class StockTransferViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Any authenticated user may initiate and ship a transfer.
    Approval, completion and cancellation need staff.
    """
    queryset = StockTransfer.objects.select_related(
        'product', 'from_warehouse', 'to_warehouse', 'initiated_by', 'approved_by'
    )
    serializer_class = StockTransferSerializer
    permission_classes = [IsAuthenticated]

    STAFF_ACTIONS = ('approve', 'complete', 'cancel', 'bulk_approve', 'bulk_cancel')

    def get_permissions(self):
        if self.action in self.STAFF_ACTIONS:
            return [IsAuthenticated(), IsStaff()]
        return super().get_permissions()

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return StockTransferDetailSerializer
        return super().get_serializer_class()

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if transfer_status := params.get('status'):
            qs = qs.filter(transfer_status=transfer_status)
        if product_id := params.get('product_id'):
            qs = qs.filter(product_id=product_id)
        if from_id := params.get('from_warehouse_id'):
            qs = qs.filter(from_warehouse_id=from_id)
        if to_id := params.get('to_warehouse_id'):
            qs = qs.filter(to_warehouse_id=to_id)
        if self.action == 'retrieve':
            qs = qs.prefetch_related('events__actor')
        return qs

    def _respond(self, transfer, code=status.HTTP_200_OK):
        return Response(StockTransferSerializer(transfer).data, status=code)

    def create(self, request):
        serializer = TransferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transfer = TransferService.initiate_transfer(actor=request.user, **serializer.validated_data)
        return self._respond(transfer, status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        serializer = TransferUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        transfer = TransferService.update_transfer(pk, actor=request.user, **serializer.validated_data)
        return self._respond(transfer)

    @action(detail=True, methods=['post'])
    def approve(self, request, pk=None):
        return self._respond(TransferService.approve_transfer(pk, request.user))

    @action(detail=True, methods=['post'])
    def ship(self, request, pk=None):
        return self._respond(TransferService.mark_in_transit(pk, request.user))

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        return self._respond(TransferService.complete_transfer(pk, request.user))

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(
            TransferService.cancel_transfer(pk, serializer.validated_data['reason'], request.user)
        )

    @action(detail=False, methods=['post'], url_path='bulk-approve')
    def bulk_approve(self, request):
        serializer = BulkIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(
            TransferService.bulk_approve_transfers(serializer.validated_data['transfer_ids'], request.user)
        )

    @action(detail=False, methods=['post'], url_path='bulk-cancel')
    def bulk_cancel(self, request):
        serializer = BulkCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return Response(
            TransferService.bulk_cancel_transfers(
                serializer.validated_data['transfer_ids'],
                serializer.validated_data['reason'],
                request.user,
            )
        )

    @action(detail=False, methods=['get'])
    def pending(self, request):
        page = self.paginate_queryset(TransferService.pending_approvals())
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @action(detail=False, methods=['get'])
    def overdue(self, request):
        days = request.query_params.get('days')
        transfers = TransferService.overdue_transfers(int(days) if days and days.isdigit() else None)
        page = self.paginate_queryset(transfers)
        return self.get_paginated_response(self.get_serializer(page, many=True).data)

    @action(detail=False, methods=['get'])
    def analytics(self, request):
        return Response(TransferService.transfer_analytics(request.query_params.get('warehouse_id')))
