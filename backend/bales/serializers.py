from rest_framework import serializers
from .models import BaleBatch, BaleItem


class BaleItemSerializer(serializers.ModelSerializer):
    batch_code = serializers.CharField(source='batch.code', read_only=True)
    product_code = serializers.CharField(source='finished_product.code', read_only=True)
    product_name = serializers.CharField(source='finished_product.name', read_only=True)

    class Meta:
        model = BaleItem
        fields = ['id', 'code', 'batch', 'batch_code', 'finished_product', 'product_code', 'product_name',
                  'gsm', 'size', 'shade', 'gross_weight', 'weight_loss_grams', 'net_weight', 'piece_count',
                  'status', 'created_at', 'updated_at']
        read_only_fields = fields


class BaleBatchSerializer(serializers.ModelSerializer):
    items = BaleItemSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = BaleBatch
        fields = ['id', 'code', 'status', 'total_weight', 'remarks', 'item_count', 'items',
                  'created_at', 'updated_at', 'deleted_at']
        read_only_fields = fields

    def get_item_count(self, obj):
        return len([i for i in obj.items.all() if i.status != 'deleted'])


class BaleLineRequestSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    gross_weight = serializers.DecimalField(max_digits=12, decimal_places=2)
    weight_loss_grams = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    piece_count = serializers.IntegerField(min_value=0, required=False, default=0)
    gsm = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)
    size = serializers.CharField(required=False, allow_blank=True, default='')
    shade = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_gross_weight(self, value):
        if value <= 0:
            raise serializers.ValidationError("Gross weight must be greater than 0")
        return value

    def validate_weight_loss_grams(self, value):
        if value < 0:
            raise serializers.ValidationError("Weight loss cannot be negative")
        return value


class BaleBatchCreateSerializer(serializers.Serializer):
    items = BaleLineRequestSerializer(many=True, allow_empty=False)
    remarks = serializers.CharField(required=False, allow_blank=True, default='')


class BaleItemUpdateSerializer(serializers.Serializer):
    piece_count = serializers.IntegerField(min_value=0, required=False)
    net_weight = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)

    def validate_net_weight(self, value):
        if value <= 0:
            raise serializers.ValidationError("Net weight must be greater than 0")
        return value

    def validate(self, attrs):
        if 'piece_count' not in attrs and 'net_weight' not in attrs:
            raise serializers.ValidationError("Provide piece_count or net_weight")
        return attrs
