from rest_framework import serializers
from .models import ProductionBatch, ProductionBatchInput, ProductionBatchOutput


class ProductionBatchInputSerializer(serializers.ModelSerializer):
    raw_material_code = serializers.CharField(source='raw_material.code', read_only=True)
    raw_material_name = serializers.CharField(source='raw_material.name', read_only=True)
    roll_code = serializers.CharField(source='roll.roll_code', read_only=True)

    class Meta:
        model = ProductionBatchInput
        fields = ['id', 'raw_material', 'raw_material_code', 'raw_material_name', 'roll', 'roll_code', 'quantity']


class ProductionBatchOutputSerializer(serializers.ModelSerializer):
    product_code = serializers.CharField(source='finished_product.code', read_only=True)
    product_name = serializers.CharField(source='finished_product.name', read_only=True)

    class Meta:
        model = ProductionBatchOutput
        fields = ['id', 'finished_product', 'product_code', 'product_name', 'quantity']


class ProductionBatchSerializer(serializers.ModelSerializer):
    machine_code = serializers.CharField(source='machine.code', read_only=True)
    machine_name = serializers.CharField(source='machine.name', read_only=True)
    inputs = ProductionBatchInputSerializer(many=True, read_only=True)
    outputs = ProductionBatchOutputSerializer(many=True, read_only=True)
    remaining_capacity = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = ProductionBatch
        fields = ['id', 'code', 'machine', 'machine_code', 'machine_name', 'status', 'allocation_date',
                  'completion_date', 'total_input_quantity', 'consumed_quantity', 'remaining_capacity',
                  'output_quantity', 'loss_quantity', 'loss_percentage', 'loss_exceeded', 'remarks',
                  'inputs', 'outputs', 'created_at', 'updated_at']
        read_only_fields = fields


class BatchInputRequestSerializer(serializers.Serializer):
    raw_material_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2)
    roll_id = serializers.IntegerField(min_value=1, required=False, allow_null=True)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than 0")
        return value


class AllocateProductionRequestSerializer(serializers.Serializer):
    machine_id = serializers.IntegerField(min_value=1)
    allocation_date = serializers.DateField(required=False)
    inputs = BatchInputRequestSerializer(many=True, allow_empty=False)
    output_product_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class OutputLineRequestSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class CompleteProductionRequestSerializer(serializers.Serializer):
    outputs = OutputLineRequestSerializer(many=True, allow_empty=False)
    completion_date = serializers.DateField(required=False)


class QuickCompleteRequestSerializer(serializers.Serializer):
    machine_id = serializers.IntegerField(min_value=1)
    product_id = serializers.IntegerField(min_value=1)
    output_weight = serializers.DecimalField(max_digits=12, decimal_places=2)
    weight_loss_percent = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0)
    completion_date = serializers.DateField(required=False)

    def validate(self, attrs):
        if attrs['output_weight'] <= 0:
            raise serializers.ValidationError({'output_weight': "Output weight must be greater than 0"})
        if attrs['weight_loss_percent'] >= 100:
            raise serializers.ValidationError({'weight_loss_percent': "Weight loss percent must be below 100"})
        return attrs


class ReturnToProductionRequestSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    quantity = serializers.DecimalField(max_digits=12, decimal_places=2)
    reason = serializers.CharField(max_length=500)

    def validate_quantity(self, value):
        if value <= 0:
            raise serializers.ValidationError("Quantity must be greater than 0")
        return value
