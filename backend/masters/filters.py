import django_filters
from django.db.models import Q
from .models import RawMaterial, FinishedProduct, Machine


class SearchFilterMixin:
    """Case-insensitive search across code and name"""

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(code__icontains=value) | Q(name__icontains=value))


class RawMaterialFilter(SearchFilterMixin, django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    active = django_filters.BooleanFilter(field_name='is_active')

    class Meta:
        model = RawMaterial
        fields = ['search', 'active', 'color']


class FinishedProductFilter(SearchFilterMixin, django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    active = django_filters.BooleanFilter(field_name='is_active')
    gsm = django_filters.NumberFilter(field_name='gsm')

    class Meta:
        model = FinishedProduct
        fields = ['search', 'active', 'gsm']


class MachineFilter(SearchFilterMixin, django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Machine
        fields = ['search', 'status', 'machine_type']
