from rest_framework import serializers
from .models import Customer, Supplier


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'code', 'name', 'gst_number', 'phone', 'email', 'address',
                  'outstanding_balance', 'is_active', 'created_at', 'updated_at']
        # Balance moves only through invoices and receipts
        read_only_fields = ['outstanding_balance', 'created_at', 'updated_at']


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = ['id', 'code', 'name', 'gst_number', 'phone', 'email', 'address',
                  'contact_person', 'outstanding_balance', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['outstanding_balance', 'created_at', 'updated_at']
