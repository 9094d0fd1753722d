"""Finance API views: payments and the payment reminder log."""

from decimal import Decimal

from django.db.models import Count, Sum
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from accounts.permissions import IsCompanyMember, is_manager
from orders.models import Order, PaymentStatus
from products.views import StandardResultsSetPagination

from .filters import PaymentDateRangeFilter
from .models import Payment, PaymentReminder
from .serializers import (
    PaymentReminderSerializer,
    PaymentSerializer,
    PaymentStatsSerializer,
    PendingPaymentSerializer,
)
from .services import PAYABLE_STATUSES, record_payment


class PaymentViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin, viewsets.GenericViewSet):
    """Payments are recorded and read, never edited or deleted.

    Field reps see payments for the orders they created; managers see all
    payments of the company.
    """

    serializer_class = PaymentSerializer
    permission_classes = [IsCompanyMember]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ['order', 'payment_mode', 'payment_date']
    ordering_fields = ['payment_date', 'amount', 'created_at']

    def get_queryset(self):
        user = self.request.user
        qs = Payment.objects.filter(company_id=user.company_id).select_related('order__contact', 'recorded_by')
        if not is_manager(user):
            qs = qs.filter(order__created_by=user)
        return qs

    def _orders(self):
        user = self.request.user
        qs = Order.objects.filter(company_id=user.company_id)
        if not is_manager(user):
            qs = qs.filter(created_by=user)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = data['order']
        if not self._orders().filter(pk=order.pk).exists():
            return Response({'order': ['Order not found.']}, status=status.HTTP_400_BAD_REQUEST)

        payment = record_payment(
            order,
            data['amount'],
            data['payment_mode'],
            payment_date=data.get('payment_date'),
            reference_number=data.get('reference_number', ''),
            notes=data.get('notes', ''),
            user=request.user,
        )
        return Response(self.get_serializer(payment).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def pending(self, request):
        """Orders that can take payments and still owe money."""
        orders = (
            self._orders()
            .filter(status__in=PAYABLE_STATUSES)
            .exclude(payment_status=PaymentStatus.PAID)
            .select_related('contact')
            .prefetch_related('payments')
            .order_by('due_date', 'id')
        )
        page = self.paginate_queryset(orders)
        if page is not None:
            serializer = PendingPaymentSerializer(page, many=True)
            return self.get_paginated_response(serializer.data)
        return Response(PendingPaymentSerializer(orders, many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        """Collected totals per payment mode and the outstanding balance.

        Supports optional `date_from` / `date_to` on the payment date.
        """
        date_range = PaymentDateRangeFilter(request.query_params, queryset=self.get_queryset())
        if not date_range.is_valid():
            raise ValidationError(date_range.errors)
        payments = date_range.qs

        totals = payments.aggregate(total=Sum('amount'), count=Count('id'))
        by_mode = {
            row['payment_mode']: row['total']
            for row in payments.order_by().values('payment_mode').annotate(total=Sum('amount'))
        }

        open_orders = self._orders().filter(status__in=PAYABLE_STATUSES).exclude(payment_status=PaymentStatus.PAID)
        billed = open_orders.aggregate(total=Sum('total_amount'))['total'] or Decimal('0.00')
        received = (
            Payment.objects.filter(order__in=open_orders).aggregate(total=Sum('amount'))['total']
            or Decimal('0.00')
        )

        serializer = PaymentStatsSerializer({
            'total_collected': totals['total'] or Decimal('0.00'),
            'payment_count': totals['count'],
            'total_outstanding': billed - received,
            'by_mode': by_mode,
        })
        return Response(serializer.data)


class PaymentReminderViewSet(viewsets.ReadOnlyModelViewSet):
    """Reminder delivery log, newest first."""

    serializer_class = PaymentReminderSerializer
    permission_classes = [IsCompanyMember]
    pagination_class = StandardResultsSetPagination
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ['order', 'channel', 'trigger', 'delivered', 'reminder_date']

    def get_queryset(self):
        user = self.request.user
        qs = PaymentReminder.objects.filter(order__company_id=user.company_id).select_related('order')
        if not is_manager(user):
            qs = qs.filter(order__created_by=user)
        return qs
