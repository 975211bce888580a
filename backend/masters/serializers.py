from rest_framework import serializers
from decimal import Decimal
from .models import RawMaterial, FinishedProduct, Machine


class RawMaterialSerializer(serializers.ModelSerializer):
    class Meta:
        model = RawMaterial
        fields = ['id', 'code', 'name', 'color', 'size', 'unit', 'hsn_code', 'gst_percent',
                  'reorder_level', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_gst_percent(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("GST percent must be between 0 and 100")
        return value


class FinishedProductSerializer(serializers.ModelSerializer):
    class Meta:
        model = FinishedProduct
        fields = ['id', 'code', 'name', 'length', 'width', 'gsm', 'hsn_code', 'gst_percent',
                  'rate_per_kg', 'reorder_level', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_gst_percent(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("GST percent must be between 0 and 100")
        return value

    def validate_rate_per_kg(self, value):
        if value < Decimal('0'):
            raise serializers.ValidationError("Rate cannot be negative")
        return value


class MachineSerializer(serializers.ModelSerializer):
    class Meta:
        model = Machine
        fields = ['id', 'code', 'name', 'machine_type', 'capacity', 'status', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
