"""django-filter filtersets for the orders API."""

import django_filters

from .models import Order


class OrderFilter(django_filters.FilterSet):
    created_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    created_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    due_before = django_filters.DateFilter(field_name='due_date', lookup_expr='lt')

    class Meta:
        model = Order
        fields = ['status', 'payment_status', 'contact', 'created_by']
