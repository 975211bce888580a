from rest_framework import serializers
from .models import SalesInvoice, InvoiceItem, Receipt, ReceiptAllocation, ProductSample


class InvoiceItemSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='finished_product.code', read_only=True)
    product_name = serializers.CharField(source='finished_product.name', read_only=True)
    bale_code = serializers.CharField(source='bale_item.code', read_only=True, default=None)

    class Meta:
        model = InvoiceItem
        fields = ['id', 'finished_product', 'product_code', 'product_name', 'bale_item', 'bale_code',
                  'quantity', 'rate', 'gst_percent', 'amount', 'tax_amount', 'line_total']
        read_only_fields = fields


class SalesInvoiceSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    balance_due = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)
    items = InvoiceItemSerializer(many=True, read_only=True)

    class Meta:
        model = SalesInvoice
        fields = ['id', 'invoice_number', 'customer', 'customer_name', 'invoice_date', 'status',
                  'subtotal', 'tax_amount', 'grand_total', 'amount_paid', 'balance_due', 'payment_status',
                  'notes', 'cancellation_reason', 'confirmed_at', 'cancelled_at', 'items',
                  'created_at', 'updated_at']
        read_only_fields = fields


class ReceiptAllocationSerializer(serializers.ModelSerializer):
    invoice_number = serializers.CharField(source='invoice.invoice_number', read_only=True)

    class Meta:
        model = ReceiptAllocation
        fields = ['id', 'invoice', 'invoice_number', 'amount']
        read_only_fields = fields


class ReceiptSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    allocations = ReceiptAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = Receipt
        fields = ['id', 'code', 'customer', 'customer_name', 'receipt_date', 'amount', 'mode', 'reference',
                  'remarks', 'advance_balance', 'status', 'reversal_reason', 'reversed_at', 'allocations',
                  'created_at', 'updated_at']
        read_only_fields = fields


class InvoiceLineRequestSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    bale_item_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    rate = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    gst_percent = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs.get('bale_item_id'):
            if not attrs.get('product_id'):
                raise serializers.ValidationError("Each line needs a product_id or a bale_item_id")
            if attrs.get('quantity') is None or attrs['quantity'] <= 0:
                raise serializers.ValidationError("Quantity must be greater than 0")
        return attrs


class InvoiceCreateSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField(min_value=1)
    invoice_date = serializers.DateField(required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    confirm = serializers.BooleanField(required=False, default=False)
    lines = InvoiceLineRequestSerializer(many=True, allow_empty=False)


class ReasonRequestSerializer(serializers.Serializer):
    reason = serializers.CharField()


class AllocationRequestSerializer(serializers.Serializer):
    invoice_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0")
        return value


class ReceiptCreateSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    mode = serializers.ChoiceField(choices=Receipt.MODE_CHOICES, default='cash')
    receipt_date = serializers.DateField(required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    remarks = serializers.CharField(required=False, allow_blank=True, default='')
    allocations = AllocationRequestSerializer(many=True, required=False, default=list)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0")
        return value


class ProductSampleSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    product_code = serializers.CharField(source='finished_product.code', read_only=True)
    product_name = serializers.CharField(source='finished_product.name', read_only=True)

    class Meta:
        model = ProductSample
        fields = ['id', 'code', 'customer', 'customer_name', 'finished_product', 'product_code', 'product_name',
                  'quantity', 'sample_date', 'purpose', 'notes', 'batch_code', 'created_at', 'updated_at']
        read_only_fields = fields


class SampleRequestSerializer(serializers.Serializer):
    finished_product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2)
    customer_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    sample_date = serializers.DateField(required=False)
    purpose = serializers.CharField(max_length=255, required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    batch_code = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than 0")
        return value
