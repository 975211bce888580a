from rest_framework import serializers
from backend.masters.models import RawMaterial
from backend.parties.models import Supplier
from .models import PurchaseBill, PurchaseBillItem, SupplierPayment, BillPaymentAllocation


class PurchaseBillItemSerializer(serializers.ModelSerializer):
    raw_material_code = serializers.CharField(source='raw_material.code', read_only=True)
    raw_material_name = serializers.CharField(source='raw_material.name', read_only=True)
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = PurchaseBillItem
        fields = ['id', 'raw_material', 'raw_material_code', 'raw_material_name', 'quantity', 'rate',
                  'roll_details', 'line_total']

    def get_line_total(self, obj):
        return str(obj.get_line_total())


class PurchaseBillSerializer(serializers.ModelSerializer):
    items = PurchaseBillItemSerializer(many=True, read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    roll_count = serializers.SerializerMethodField()
    subtotal = serializers.SerializerMethodField()
    tax_total = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()
    roll_weight = serializers.SerializerMethodField()
    balance_due = serializers.DecimalField(max_digits=14, decimal_places=2, read_only=True)

    class Meta:
        model = PurchaseBill
        fields = ['id', 'code', 'supplier', 'supplier_name', 'bill_number', 'bill_date', 'status', 'notes',
                  'confirmed_at', 'created_at', 'updated_at', 'items', 'roll_count', 'subtotal', 'tax_total', 'total',
                  'grand_total', 'amount_paid', 'balance_due', 'payment_status', 'roll_weight']
        read_only_fields = ['grand_total', 'amount_paid', 'payment_status']

    def get_roll_count(self, obj):
        return obj.rolls.count()

    def get_subtotal(self, obj):
        return str(obj.get_subtotal())

    def get_tax_total(self, obj):
        return str(obj.get_tax_total())

    def get_total(self, obj):
        return str(obj.get_total())

    def get_roll_weight(self, obj):
        return str(obj.get_roll_weight())


class RollEntrySerializer(serializers.Serializer):
    gross_weight = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    pipe_weight = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, default=0)
    gsm = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    width = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    shade = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')

    def validate(self, attrs):
        if attrs['gross_weight'] - attrs.get('pipe_weight', 0) <= 0:
            raise serializers.ValidationError("Net weight (gross minus pipe) must be greater than 0")
        return attrs


class PurchaseBillItemInputSerializer(serializers.Serializer):
    raw_material = serializers.PrimaryKeyRelatedField(queryset=RawMaterial.objects.all())
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    rate = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0, min_value=0)
    rolls = RollEntrySerializer(many=True, required=False, default=list)

    def validate(self, attrs):
        if not attrs.get('rolls') and not attrs.get('quantity'):
            raise serializers.ValidationError("Give either a quantity or roll entries")
        return attrs


class PurchaseBillCreateSerializer(serializers.Serializer):
    supplier = serializers.PrimaryKeyRelatedField(queryset=Supplier.objects.all())
    bill_number = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    bill_date = serializers.DateField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    confirm = serializers.BooleanField(required=False, default=False)
    items = PurchaseBillItemInputSerializer(many=True, allow_empty=False)


class BillRollUpdateSerializer(serializers.Serializer):
    net_weight = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    gsm = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    width = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    shade = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate_net_weight(self, value):
        if value <= 0:
            raise serializers.ValidationError("Net weight must be greater than 0")
        return value


class BillPaymentAllocationSerializer(serializers.ModelSerializer):
    bill_code = serializers.CharField(source='bill.code', read_only=True)

    class Meta:
        model = BillPaymentAllocation
        fields = ['id', 'bill', 'bill_code', 'amount']
        read_only_fields = fields


class SupplierPaymentSerializer(serializers.ModelSerializer):
    supplier_name = serializers.CharField(source='supplier.name', read_only=True)
    allocations = BillPaymentAllocationSerializer(many=True, read_only=True)

    class Meta:
        model = SupplierPayment
        fields = ['id', 'code', 'supplier', 'supplier_name', 'payment_date', 'amount', 'mode', 'reference',
                  'remarks', 'advance_balance', 'status', 'reversal_reason', 'reversed_at', 'allocations',
                  'created_at', 'updated_at']
        read_only_fields = fields


class BillAllocationRequestSerializer(serializers.Serializer):
    bill_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0")
        return value


class SupplierPaymentCreateSerializer(serializers.Serializer):
    supplier_id = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    mode = serializers.ChoiceField(choices=SupplierPayment.MODE_CHOICES, default='bank')
    payment_date = serializers.DateField(required=False)
    reference = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')
    remarks = serializers.CharField(required=False, allow_blank=True, default='')
    allocations = BillAllocationRequestSerializer(many=True, required=False, default=list)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than 0")
        return value


class PaymentReversalSerializer(serializers.Serializer):
    reason = serializers.CharField()
