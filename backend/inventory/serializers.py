from rest_framework import serializers
from .models import RawMaterialRoll, FinishedProductStock, StockMovement


class RawMaterialRollSerializer(serializers.ModelSerializer):
    raw_material_code = serializers.CharField(source='raw_material.code', read_only=True)
    raw_material_name = serializers.CharField(source='raw_material.name', read_only=True)
    purchase_bill_code = serializers.CharField(source='purchase_bill.code', read_only=True, default=None)
    remaining_quantity = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = RawMaterialRoll
        fields = ['id', 'roll_code', 'raw_material', 'raw_material_code', 'raw_material_name',
                  'purchase_bill', 'purchase_bill_code', 'total_quantity', 'consumed_quantity',
                  'remaining_quantity', 'status', 'is_reserved', 'gross_weight', 'pipe_weight', 'gsm', 'width',
                  'shade', 'created_at', 'updated_at']
        read_only_fields = fields


class FinishedProductStockSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='product.code', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    reorder_level = serializers.DecimalField(source='product.reorder_level', max_digits=12, decimal_places=2, read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = FinishedProductStock
        fields = ['id', 'product', 'product_code', 'product_name', 'stock_quantity',
                  'reorder_level', 'is_low_stock', 'updated_at']
        read_only_fields = fields


class StockMovementSerializer(serializers.ModelSerializer):
    raw_material_code = serializers.CharField(source='raw_material.code', read_only=True, default=None)
    finished_product_code = serializers.CharField(source='finished_product.code', read_only=True, default=None)
    roll_code = serializers.CharField(source='roll.roll_code', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = ['id', 'movement_date', 'movement_type', 'item_type', 'raw_material', 'raw_material_code',
                  'finished_product', 'finished_product_code', 'roll', 'roll_code',
                  'quantity_in', 'quantity_out', 'balance_after', 'reference_type', 'reference_id',
                  'reference_code', 'reason', 'created_by_username', 'created_at']
        read_only_fields = fields


class RollReserveRequestSerializer(serializers.Serializer):
    reserved = serializers.BooleanField()


class StockAdjustRequestSerializer(serializers.Serializer):
    item_type = serializers.ChoiceField(choices=['raw', 'finished'])
    item_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, help_text='Signed quantity in kg')
    reason = serializers.CharField(max_length=500)

    def validate_quantity(self, value):
        if value == 0:
            raise serializers.ValidationError("Adjustment quantity cannot be zero")
        return value
