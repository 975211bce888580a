from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from backend.bales.models import BaleItem
from backend.bales.serializers import BaleItemSerializer
from .models import SalesInvoice, Receipt, ProductSample
from .filters import SalesInvoiceFilter, ReceiptFilter, ProductSampleFilter
from .serializers import (
    SalesInvoiceSerializer, ReceiptSerializer, InvoiceCreateSerializer,
    ReceiptCreateSerializer, ReasonRequestSerializer,
    ProductSampleSerializer, SampleRequestSerializer,
)
from . import services


def _invoice_queryset():
    return SalesInvoice.objects.select_related('customer').prefetch_related(
        'items__finished_product', 'items__bale_item'
    )


def _receipt_queryset():
    return Receipt.objects.select_related('customer').prefetch_related('allocations__invoice')


# Invoice views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_list_create(request):
    """List invoices (status, payment_status, customer, dates, search) or create one"""
    if request.method == 'GET':
        filterset = SalesInvoiceFilter(request.query_params, queryset=_invoice_queryset())
        serializer = SalesInvoiceSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = InvoiceCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    invoice = services.create_invoice(
        data['customer_id'],
        data.get('invoice_date'),
        data['lines'],
        notes=data.get('notes', ''),
        confirm=data.get('confirm', False),
        request=request,
    )
    return Response(SalesInvoiceSerializer(_invoice_queryset().get(pk=invoice.pk)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    """Retrieve an invoice, or delete a draft"""
    if request.method == 'GET':
        invoice = get_object_or_404(_invoice_queryset(), pk=pk)
        return Response(SalesInvoiceSerializer(invoice).data)

    services.delete_draft_invoice(pk, request=request)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_confirm(request, pk):
    invoice = services.confirm_invoice(pk, request=request)
    return Response(SalesInvoiceSerializer(_invoice_queryset().get(pk=invoice.pk)).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def invoice_cancel(request, pk):
    """Cancel a confirmed invoice with no receipts; stock and bales are restored"""
    serializer = ReasonRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.cancel_invoice(pk, serializer.validated_data['reason'], request=request)
    return Response(result.as_dict())


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def available_bales(request):
    """Bales that can still be put on an invoice"""
    queryset = BaleItem.objects.select_related('batch', 'finished_product').filter(status='available')
    product = request.query_params.get('product', None)
    if product:
        queryset = queryset.filter(finished_product_id=product)
    return Response(BaleItemSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_outstanding(request, customer_id):
    """Open invoices of one customer, oldest first"""
    invoices = services.outstanding_invoices(customer_id).select_related('customer')
    return Response(SalesInvoiceSerializer(invoices, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sales_summary(request):
    return Response(services.sales_summary())


# Receipt views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def receipt_list_create(request):
    """List receipts or record one with its invoice allocations"""
    if request.method == 'GET':
        filterset = ReceiptFilter(request.query_params, queryset=_receipt_queryset())
        serializer = ReceiptSerializer(filterset.qs, many=True)
        return Response(serializer.data)

    serializer = ReceiptCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    receipt = services.create_receipt(
        data['customer_id'],
        data['amount'],
        allocations=data.get('allocations', []),
        mode=data.get('mode', 'cash'),
        receipt_date=data.get('receipt_date'),
        reference=data.get('reference', ''),
        remarks=data.get('remarks', ''),
        request=request,
    )
    return Response(ReceiptSerializer(_receipt_queryset().get(pk=receipt.pk)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def receipt_detail(request, pk):
    receipt = get_object_or_404(_receipt_queryset(), pk=pk)
    return Response(ReceiptSerializer(receipt).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def receipt_reverse(request, pk):
    """Reverse a receipt; a reason is mandatory"""
    serializer = ReasonRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    result = services.reverse_receipt(pk, serializer.validated_data['reason'], request=request)
    return Response(result.as_dict())


# Sample views
def _sample_queryset():
    return ProductSample.objects.select_related('customer', 'finished_product')


def _sample_kwargs(data):
    return {
        'customer_id': data.get('customer_id'),
        'sample_date': data.get('sample_date'),
        'purpose': data.get('purpose', ''),
        'notes': data.get('notes', ''),
        'batch_code': data.get('batch_code', ''),
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def sample_list_create(request):
    """List samples or issue one out of finished stock"""
    if request.method == 'GET':
        filterset = ProductSampleFilter(request.query_params, queryset=_sample_queryset())
        return Response(ProductSampleSerializer(filterset.qs, many=True).data)

    serializer = SampleRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    sample = services.create_sample(data['finished_product_id'], data['quantity'], request=request,
                                    **_sample_kwargs(data))
    return Response(ProductSampleSerializer(_sample_queryset().get(pk=sample.pk)).data,
                    status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def sample_detail(request, pk):
    """Retrieve, edit or delete a sample; edits and deletes move stock back"""
    if request.method == 'GET':
        sample = get_object_or_404(_sample_queryset(), pk=pk)
        return Response(ProductSampleSerializer(sample).data)

    if request.method == 'DELETE':
        result = services.delete_sample(pk, request=request)
        return Response(result.as_dict())

    serializer = SampleRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    sample = services.update_sample(pk, data['finished_product_id'], data['quantity'], request=request,
                                    **_sample_kwargs(data))
    return Response(ProductSampleSerializer(_sample_queryset().get(pk=sample.pk)).data)
