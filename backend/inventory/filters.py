import django_filters
from .models import RawMaterialRoll, StockMovement


class RollFilter(django_filters.FilterSet):
    raw_material = django_filters.NumberFilter(field_name='raw_material_id')
    purchase_bill = django_filters.NumberFilter(field_name='purchase_bill_id')
    search = django_filters.CharFilter(field_name='roll_code', lookup_expr='icontains')
    available = django_filters.BooleanFilter(method='filter_available', label='Has remaining quantity')

    class Meta:
        model = RawMaterialRoll
        fields = ['raw_material', 'purchase_bill', 'status', 'shade', 'search', 'available']

    def filter_available(self, queryset, name, value):
        if value:
            return queryset.exclude(status='consumed')
        return queryset.filter(status='consumed')


class StockMovementFilter(django_filters.FilterSet):
    raw_material = django_filters.NumberFilter(field_name='raw_material_id')
    finished_product = django_filters.NumberFilter(field_name='finished_product_id')
    roll = django_filters.NumberFilter(field_name='roll_id')
    date_from = django_filters.DateFilter(field_name='movement_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='movement_date', lookup_expr='lte')

    class Meta:
        model = StockMovement
        fields = ['item_type', 'movement_type', 'reference_type', 'reference_code',
                  'raw_material', 'finished_product', 'roll', 'date_from', 'date_to']
