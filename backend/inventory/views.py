from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.masters.models import FinishedProduct
from .models import RawMaterialRoll, FinishedProductStock, StockMovement
from .filters import RollFilter, StockMovementFilter
from .serializers import (
    RawMaterialRollSerializer, FinishedProductStockSerializer, StockMovementSerializer,
    RollReserveRequestSerializer, StockAdjustRequestSerializer,
)
from . import services


# Roll views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def roll_list(request):
    """List rolls in FIFO order (raw_material, status, purchase_bill, search, available)"""
    queryset = RawMaterialRoll.objects.select_related('raw_material', 'purchase_bill')
    filterset = RollFilter(request.query_params, queryset=queryset)
    serializer = RawMaterialRollSerializer(filterset.qs, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def roll_detail(request, pk):
    roll = get_object_or_404(RawMaterialRoll.objects.select_related('raw_material', 'purchase_bill'), pk=pk)
    data = RawMaterialRollSerializer(roll).data
    data['movements'] = StockMovementSerializer(roll.movements.all(), many=True).data
    return Response(data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def roll_reserve(request, pk):
    """Reserve a roll (skipped by FIFO) or release it back to stock"""
    serializer = RollReserveRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    roll = services.reserve_roll(pk, serializer.validated_data['reserved'], request=request)
    return Response(RawMaterialRollSerializer(roll).data)


# Stock views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def raw_stock(request):
    """Remaining kg per raw material"""
    return Response(services.raw_stock_summary(request.query_params.get('raw_material')))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def finished_stock(request):
    """Finished-goods balances; ?low_stock=true keeps products at or below reorder level"""
    # Products never stocked still show up at zero
    missing = FinishedProduct.objects.filter(stock__isnull=True).values_list('id', flat=True)
    FinishedProductStock.objects.bulk_create(
        [FinishedProductStock(product_id=pid) for pid in missing], ignore_conflicts=True
    )
    queryset = FinishedProductStock.objects.select_related('product').order_by('product__name')
    search = request.query_params.get('search')
    if search:
        queryset = queryset.filter(product__name__icontains=search)
    stocks = list(queryset)
    if request.query_params.get('low_stock') == 'true':
        stocks = [s for s in stocks if s.is_low_stock]
    serializer = FinishedProductStockSerializer(stocks, many=True)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def movement_list(request):
    """Stock ledger history, newest first"""
    queryset = StockMovement.objects.select_related(
        'raw_material', 'finished_product', 'roll', 'created_by'
    ).order_by('-created_at', '-id')
    filterset = StockMovementFilter(request.query_params, queryset=queryset)
    serializer = StockMovementSerializer(filterset.qs[:500], many=True)
    return Response(serializer.data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def stock_adjust(request):
    """Manual +/- correction with a mandatory reason"""
    serializer = StockAdjustRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    balance = services.adjust_stock(
        data['item_type'], data['item_id'], data['quantity'], data['reason'], request=request
    )
    return Response({
        'item_type': data['item_type'],
        'item_id': data['item_id'],
        'adjusted_by': str(data['quantity']),
        'new_balance': str(balance),
    }, status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def inventory_summary(request):
    return Response(services.inventory_summary())
