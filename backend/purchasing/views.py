from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.inventory.serializers import RawMaterialRollSerializer
from .models import PurchaseBill, SupplierPayment
from .serializers import (
    PurchaseBillSerializer, PurchaseBillCreateSerializer, BillRollUpdateSerializer,
    SupplierPaymentSerializer, SupplierPaymentCreateSerializer, PaymentReversalSerializer,
)
from . import services


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def purchase_bill_list_create(request):
    """List purchase bills (supplier, status) or create a new bill"""
    if request.method == 'GET':
        queryset = PurchaseBill.objects.select_related('supplier').prefetch_related('items__raw_material')
        supplier = request.query_params.get('supplier', None)
        bill_status = request.query_params.get('status', None)
        if supplier:
            queryset = queryset.filter(supplier_id=supplier)
        if bill_status:
            queryset = queryset.filter(status=bill_status)
        serializer = PurchaseBillSerializer(queryset, many=True)
        return Response(serializer.data)

    serializer = PurchaseBillCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    bill = services.create_purchase_bill(
        supplier=data['supplier'],
        bill_date=data['bill_date'],
        items=data['items'],
        bill_number=data.get('bill_number', ''),
        notes=data.get('notes', ''),
        confirm=data.get('confirm', False),
        request=request,
    )
    return Response(PurchaseBillSerializer(bill).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def purchase_bill_detail(request, pk):
    """Retrieve a bill or delete a draft bill"""
    if request.method == 'GET':
        bill = get_object_or_404(PurchaseBill.objects.select_related('supplier'), pk=pk)
        return Response(PurchaseBillSerializer(bill).data)

    services.delete_purchase_bill(pk, request=request)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def purchase_bill_confirm(request, pk):
    """Confirm a draft bill, receiving its rolls into stock"""
    rolls = services.confirm_purchase_bill(pk, request=request)
    bill = PurchaseBill.objects.get(pk=pk)
    data = PurchaseBillSerializer(bill).data
    data['rolls'] = RawMaterialRollSerializer(rolls, many=True).data
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def purchase_bill_rolls(request, pk):
    bill = get_object_or_404(PurchaseBill, pk=pk)
    rolls = bill.rolls.select_related('raw_material').order_by('created_at', 'id')
    return Response(RawMaterialRollSerializer(rolls, many=True).data)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def purchase_bill_roll_detail(request, pk, roll_id):
    """Correct a roll's weight or details, or delete an untouched roll"""
    if request.method == 'DELETE':
        result = services.delete_bill_roll(pk, roll_id, request=request)
        return Response({k: str(v) for k, v in result.items()})

    serializer = BillRollUpdateSerializer(data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    roll = services.update_bill_roll(pk, roll_id, request=request, **serializer.validated_data)
    return Response(RawMaterialRollSerializer(roll).data)


# Supplier payment views
def _payment_queryset():
    return SupplierPayment.objects.select_related('supplier').prefetch_related('allocations__bill')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def supplier_payment_list_create(request):
    """List payments (supplier, status) or record one with its bill allocations"""
    if request.method == 'GET':
        queryset = _payment_queryset()
        supplier = request.query_params.get('supplier', None)
        payment_status = request.query_params.get('status', None)
        if supplier:
            queryset = queryset.filter(supplier_id=supplier)
        if payment_status:
            queryset = queryset.filter(status=payment_status)
        return Response(SupplierPaymentSerializer(queryset, many=True).data)

    serializer = SupplierPaymentCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    payment = services.create_supplier_payment(
        data['supplier_id'],
        data['amount'],
        allocations=data.get('allocations', []),
        mode=data.get('mode', 'bank'),
        payment_date=data.get('payment_date'),
        reference=data.get('reference', ''),
        remarks=data.get('remarks', ''),
        request=request,
    )
    return Response(SupplierPaymentSerializer(_payment_queryset().get(pk=payment.pk)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def supplier_payment_detail(request, pk):
    payment = get_object_or_404(_payment_queryset(), pk=pk)
    return Response(SupplierPaymentSerializer(payment).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def supplier_payment_reverse(request, pk):
    """Reverse a supplier payment; a reason is mandatory"""
    serializer = PaymentReversalSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.reverse_supplier_payment(pk, serializer.validated_data['reason'], request=request)
    return Response(result.as_dict())
