"""django-filter filtersets for the finance API."""

import django_filters

from .models import Payment


class PaymentDateRangeFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name='payment_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='payment_date', lookup_expr='lte')

    class Meta:
        model = Payment
        fields = ['date_from', 'date_to']
