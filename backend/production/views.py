from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from .models import ProductionBatch
from .serializers import (
    ProductionBatchSerializer, AllocateProductionRequestSerializer, CompleteProductionRequestSerializer,
    QuickCompleteRequestSerializer, ReturnToProductionRequestSerializer,
)
from . import services


def _batch_queryset():
    return ProductionBatch.objects.select_related('machine').prefetch_related(
        'inputs__raw_material', 'inputs__roll', 'outputs__finished_product'
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def batch_list_create(request):
    """List batches (status, machine, loss_exceeded) or allocate a new batch"""
    if request.method == 'GET':
        queryset = _batch_queryset()
        batch_status = request.query_params.get('status', None)
        machine = request.query_params.get('machine', None)
        if batch_status:
            queryset = queryset.filter(status__in=batch_status.split(','))
        if machine:
            queryset = queryset.filter(machine_id=machine)
        if request.query_params.get('loss_exceeded') == 'true':
            queryset = queryset.filter(loss_exceeded=True)
        serializer = ProductionBatchSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = AllocateProductionRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    batch = services.allocate_production(
        machine_id=data['machine_id'],
        allocation_date=data.get('allocation_date'),
        inputs=data['inputs'],
        output_product_ids=data['output_product_ids'],
        remarks=data.get('remarks', ''),
        request=request,
    )
    return Response(ProductionBatchSerializer(_batch_queryset().get(pk=batch.pk)).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def batch_detail(request, pk):
    """Retrieve a batch, or delete an unproduced one (rolls are restored)"""
    if request.method == 'GET':
        batch = get_object_or_404(_batch_queryset(), pk=pk)
        return Response(ProductionBatchSerializer(batch).data)

    result = services.delete_production_batch(pk, request=request)
    return Response(result.as_dict())


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def batch_complete(request, pk):
    """Record outputs; returns loss percentage and an efficiency warning if any"""
    serializer = CompleteProductionRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    batch, warning = services.complete_production(
        pk, data['outputs'], completion_date=data.get('completion_date'), request=request
    )
    return Response({
        'batch': ProductionBatchSerializer(_batch_queryset().get(pk=batch.pk)).data,
        'loss_percentage': str(batch.loss_percentage),
        'warning': warning.as_dict() if warning else None,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def quick_complete(request):
    """Complete production on a machine from output weight and loss %"""
    serializer = QuickCompleteRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    result = services.quick_complete(
        machine_id=data['machine_id'],
        product_id=data['product_id'],
        output_weight=data['output_weight'],
        weight_loss_percent=data['weight_loss_percent'],
        completion_date=data.get('completion_date'),
        request=request,
    )
    return Response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def return_to_production(request):
    """Return finished goods to production; reports the batches it reopened"""
    serializer = ReturnToProductionRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    result = services.return_to_production(data['product_id'], data['quantity'], data['reason'], request=request)
    return Response(result.as_dict())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def production_stats(request):
    return Response(services.production_stats())
