"""DRF serializers for finance APIs."""

from rest_framework import serializers

from notifications.clients import Channel
from orders.models import Order

from .models import Payment, PaymentReminder


class PaymentSerializer(serializers.ModelSerializer):
    """Payment serializer; writes go through :func:`finance.services.record_payment`."""

    order = serializers.PrimaryKeyRelatedField(queryset=Order.objects.all())
    order_number = serializers.ReadOnlyField(source='order.order_number')
    contact_name = serializers.ReadOnlyField(source='order.contact.name')
    recorded_by_name = serializers.ReadOnlyField(source='recorded_by.username')
    payment_date = serializers.DateField(required=False)

    class Meta:
        model = Payment
        fields = [
            'id', 'payment_number', 'order', 'order_number', 'contact_name', 'amount', 'payment_mode',
            'payment_date', 'reference_number', 'notes', 'recorded_by_name', 'created_at',
        ]
        read_only_fields = ['payment_number', 'created_at']

    def validate_order(self, order):
        request = self.context.get('request')
        if order.company_id != getattr(getattr(request, 'user', None), 'company_id', None):
            raise serializers.ValidationError("Order not found.")
        return order

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Amount must be greater than zero.")
        return value


class PendingPaymentSerializer(serializers.ModelSerializer):
    """Order with an unpaid balance."""

    contact_name = serializers.ReadOnlyField(source='contact.name')
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    pending_amount = serializers.DecimalField(source='outstanding_amount', max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'contact', 'contact_name', 'status', 'payment_status',
            'total_amount', 'amount_paid', 'pending_amount', 'due_date',
        ]


class PaymentReminderSerializer(serializers.ModelSerializer):
    order_number = serializers.ReadOnlyField(source='order.order_number')

    class Meta:
        model = PaymentReminder
        fields = [
            'id', 'order', 'order_number', 'channel', 'trigger', 'reminder_date', 'sent_at', 'delivered',
            'amount', 'days_overdue', 'message', 'response', 'error',
        ]
        read_only_fields = fields


class SendReminderSerializer(serializers.Serializer):
    channel = serializers.ChoiceField(choices=Channel.choices, required=False)


class PaymentStatsSerializer(serializers.Serializer):
    """Shape of ``GET /api/payments/stats/``."""

    total_collected = serializers.DecimalField(max_digits=14, decimal_places=2)
    payment_count = serializers.IntegerField()
    total_outstanding = serializers.DecimalField(max_digits=14, decimal_places=2)
    by_mode = serializers.DictField(child=serializers.DecimalField(max_digits=14, decimal_places=2))
