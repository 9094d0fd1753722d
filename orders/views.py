"""Orders API views.

Includes order creation/editing while DRAFT, the status workflow endpoints
and the manual payment reminder trigger.
"""

import logging

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from accounts.permissions import IsCompanyMember, is_manager
from finance.reminders import send_order_reminder
from finance.serializers import PaymentReminderSerializer, SendReminderSerializer
from products.views import StandardResultsSetPagination

from .filters import OrderFilter
from .models import Order, OrderStatus
from .serializers import OrderCancelSerializer, OrderSerializer, OrderStatusUpdateSerializer
from .workflow import MANAGER_ONLY_TARGETS, TRANSITIONS, cancel_order, check_transition, ensure_editable, transition_order

logger = logging.getLogger(__name__)


class OrderViewSet(viewsets.ModelViewSet):
    """Order API endpoints.

    - Field reps: create orders and see the orders they created.
    - Managers and admins: every order of the company; approve or reject.
    Orders are never deleted; cancelling is a status.
    """

    permission_classes = [IsCompanyMember]
    serializer_class = OrderSerializer
    pagination_class = StandardResultsSetPagination
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = OrderFilter
    search_fields = ['order_number', 'contact__name']
    ordering_fields = ['created_at', 'total_amount', 'due_date', 'order_number']
    ordering = ['-created_at']

    def get_queryset(self):
        user = self.request.user
        qs = (
            Order.objects.filter(company_id=user.company_id)
            .select_related('contact', 'created_by')
            .prefetch_related('items__product', 'payments')
        )
        if not is_manager(user):
            qs = qs.filter(created_by=user)
        return qs

    def perform_create(self, serializer):
        order = serializer.save(company=self.request.user.company, created_by=self.request.user)
        logger.info('Order %s created by %s (total %s)', order.order_number, self.request.user.username, order.total_amount)

    def update(self, request, *args, **kwargs):
        ensure_editable(self.get_object())
        return super().update(request, *args, **kwargs)

    @action(detail=True, methods=['patch'], url_path='status')
    def change_status(self, request, pk=None):
        """Move the order to another status.

        Payload: { status, reason?, notes?, actual_delivery_date? }
        """
        order = self.get_object()
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        target = data['status']

        check_transition(order.status, target)
        if target in MANAGER_ONLY_TARGETS and not is_manager(request.user):
            raise PermissionDenied('Only managers can approve or reject orders.')

        order = transition_order(
            order,
            target,
            user=request.user,
            reason=data.get('reason'),
            notes=data.get('notes'),
            actual_delivery_date=data.get('actual_delivery_date'),
        )
        return Response(self.get_serializer(self.get_queryset().get(pk=order.pk)).data)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        """Cancel with a mandatory reason."""
        order = self.get_object()
        serializer = OrderCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = cancel_order(order, serializer.validated_data['reason'], user=request.user)
        return Response(self.get_serializer(self.get_queryset().get(pk=order.pk)).data)

    @action(detail=True, methods=['post'], url_path='send-reminder')
    def send_reminder(self, request, pk=None):
        """Send one payment reminder now, outside the scheduled cadence."""
        order = self.get_object()
        serializer = SendReminderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reminder = send_order_reminder(order, channel=serializer.validated_data.get('channel'), user=request.user)
        code = status.HTTP_201_CREATED if reminder.delivered else status.HTTP_502_BAD_GATEWAY
        return Response(PaymentReminderSerializer(reminder).data, status=code)

    @action(detail=False, methods=['get'])
    def statuses(self, request):
        """List order statuses with the statuses each one can move to."""
        return Response([
            {
                'value': value,
                'label': label,
                'allowed_transitions': sorted(str(s) for s in TRANSITIONS[value]),
            }
            for value, label in OrderStatus.choices
        ])
