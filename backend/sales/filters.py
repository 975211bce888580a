import django_filters
from django.db.models import Q
from .models import SalesInvoice, Receipt, ProductSample


class SalesInvoiceFilter(django_filters.FilterSet):
    customer = django_filters.NumberFilter(field_name='customer_id')
    date_from = django_filters.DateFilter(field_name='invoice_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='invoice_date', lookup_expr='lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = SalesInvoice
        fields = ['status', 'payment_status', 'customer', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        return queryset.filter(Q(invoice_number__icontains=value) | Q(customer__name__icontains=value))


class ReceiptFilter(django_filters.FilterSet):
    customer = django_filters.NumberFilter(field_name='customer_id')
    date_from = django_filters.DateFilter(field_name='receipt_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='receipt_date', lookup_expr='lte')

    class Meta:
        model = Receipt
        fields = ['status', 'mode', 'customer', 'date_from', 'date_to']


class ProductSampleFilter(django_filters.FilterSet):
    customer = django_filters.NumberFilter(field_name='customer_id')
    product = django_filters.NumberFilter(field_name='finished_product_id')
    date_from = django_filters.DateFilter(field_name='sample_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='sample_date', lookup_expr='lte')

    class Meta:
        model = ProductSample
        fields = ['customer', 'product', 'date_from', 'date_to']
