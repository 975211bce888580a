from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Q
from django.shortcuts import get_object_or_404
from .models import BaleBatch, BaleItem
from .serializers import (
    BaleBatchSerializer, BaleItemSerializer, BaleBatchCreateSerializer, BaleItemUpdateSerializer,
)
from . import services


def _batch_queryset():
    return BaleBatch.objects.prefetch_related('items__finished_product')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def bale_batch_list_create(request):
    """List bale batches (active by default) or create one from finished-goods stock"""
    if request.method == 'GET':
        queryset = _batch_queryset()
        batch_status = request.query_params.get('status', 'active')
        if batch_status != 'all':
            queryset = queryset.filter(status=batch_status)
        search = request.query_params.get('search', None)
        if search:
            queryset = queryset.filter(Q(code__icontains=search) | Q(items__code__icontains=search)).distinct()
        serializer = BaleBatchSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = BaleBatchCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    batch, usage = services.create_bale_batch(
        serializer.validated_data['items'],
        remarks=serializer.validated_data.get('remarks', ''),
        request=request,
    )
    return Response({
        'batch': BaleBatchSerializer(_batch_queryset().get(pk=batch.pk)).data,
        'stock_usage': [{**u, 'quantity_used': str(u['quantity_used']), 'remaining_stock': str(u['remaining_stock'])}
                        for u in usage],
    }, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def bale_batch_detail(request, pk):
    """Retrieve a batch, or delete it crediting Available bales back to stock"""
    if request.method == 'GET':
        batch = get_object_or_404(_batch_queryset(), pk=pk)
        return Response(BaleBatchSerializer(batch).data)

    result = services.delete_bale_batch(pk, request=request)
    return Response(result.as_dict())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bale_item_list(request):
    """List bales; filter by status, product, batch or code"""
    queryset = BaleItem.objects.select_related('batch', 'finished_product')
    item_status = request.query_params.get('status', None)
    product = request.query_params.get('product', None)
    batch = request.query_params.get('batch', None)
    search = request.query_params.get('search', None)
    if item_status:
        queryset = queryset.filter(status=item_status)
    else:
        queryset = queryset.exclude(status='deleted')
    if product:
        queryset = queryset.filter(finished_product_id=product)
    if batch:
        queryset = queryset.filter(batch_id=batch)
    if search:
        queryset = queryset.filter(code__icontains=search)
    serializer = BaleItemSerializer(queryset, many=True)
    return Response(serializer.data)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def bale_item_detail(request, pk):
    """Retrieve, edit (piece count / net weight) or delete one bale"""
    if request.method == 'GET':
        item = get_object_or_404(BaleItem.objects.select_related('batch', 'finished_product'), pk=pk)
        return Response(BaleItemSerializer(item).data)

    if request.method == 'PATCH':
        serializer = BaleItemUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        item = services.update_bale_item(
            pk,
            piece_count=serializer.validated_data.get('piece_count'),
            net_weight=serializer.validated_data.get('net_weight'),
            request=request,
        )
        item = BaleItem.objects.select_related('batch', 'finished_product').get(pk=item.pk)
        return Response(BaleItemSerializer(item).data)

    result = services.delete_bale_item(pk, request=request)
    return Response(result.as_dict())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def bale_stock(request):
    """Available bales per product next to loose finished-goods stock"""
    rows = services.bale_stock_summary()
    return Response([
        {**r, 'bale_weight': str(r['bale_weight']), 'loose_stock': str(r['loose_stock'])} for r in rows
    ])
