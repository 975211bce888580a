from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models.deletion import ProtectedError
from django.shortcuts import get_object_or_404
from backend.core.utils import create_audit_log
from .models import RawMaterial, FinishedProduct, Machine
from .filters import RawMaterialFilter, FinishedProductFilter, MachineFilter
from .serializers import RawMaterialSerializer, FinishedProductSerializer, MachineSerializer


def _list_create(request, model, serializer_class, filter_class):
    if request.method == 'GET':
        filterset = filter_class(request.query_params, queryset=model.objects.all())
        serializer = serializer_class(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = serializer_class(data=request.data)
    if serializer.is_valid():
        instance = serializer.save()
        create_audit_log(
            request=request,
            action='create',
            model_name=model.__name__,
            object_id=str(instance.id),
            object_name=instance.name,
            object_reference=instance.code,
            changes=serializer.data,
        )
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


def _detail(request, instance, serializer_class):
    if request.method == 'GET':
        return Response(serializer_class(instance).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = serializer_class(instance, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name=type(instance).__name__,
                object_id=str(instance.id),
                object_name=instance.name,
                object_reference=instance.code,
                changes=request.data,
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            instance.delete()
        except ProtectedError:
            return Response(
                {'error': 'ValidationError', 'message': f'{instance.code} is referenced by stock or production records and cannot be deleted'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return Response(status=status.HTTP_204_NO_CONTENT)


# RawMaterial views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def raw_material_list_create(request):
    """List raw materials (search, active, color) or create one"""
    return _list_create(request, RawMaterial, RawMaterialSerializer, RawMaterialFilter)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def raw_material_detail(request, pk):
    material = get_object_or_404(RawMaterial, pk=pk)
    return _detail(request, material, RawMaterialSerializer)


# FinishedProduct views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def finished_product_list_create(request):
    """List finished products (search, active, gsm) or create one"""
    return _list_create(request, FinishedProduct, FinishedProductSerializer, FinishedProductFilter)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def finished_product_detail(request, pk):
    product = get_object_or_404(FinishedProduct, pk=pk)
    return _detail(request, product, FinishedProductSerializer)


# Machine views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def machine_list_create(request):
    """List machines (search, status, machine_type) or create one"""
    return _list_create(request, Machine, MachineSerializer, MachineFilter)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def machine_detail(request, pk):
    machine = get_object_or_404(Machine, pk=pk)
    return _detail(request, machine, MachineSerializer)
