"""DRF serializers for orders APIs."""

from decimal import Decimal

from django.db import transaction
from rest_framework import serializers

from contacts.models import Contact
from products.models import Product

from .models import Order, OrderItem, OrderStatus
from .numbering import generate_order_number
from .workflow import ensure_editable


class OrderItemSerializer(serializers.ModelSerializer):
    """A product line. ``unit_price`` defaults to the product's catalogue price."""

    product = serializers.PrimaryKeyRelatedField(queryset=Product.objects.all())
    product_name = serializers.ReadOnlyField(source='product.name')
    sku = serializers.ReadOnlyField(source='product.sku')
    quantity = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)

    class Meta:
        model = OrderItem
        fields = ['id', 'product', 'product_name', 'sku', 'quantity', 'unit_price', 'total_price']
        read_only_fields = ['total_price']

    def validate_unit_price(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError("Unit price must be greater than zero.")
        return value


class OrderSerializer(serializers.ModelSerializer):
    """Order with its items.

    Totals, the order number and every lifecycle field are server-side;
    clients change status through the dedicated endpoints.
    """

    items = OrderItemSerializer(many=True)
    contact = serializers.PrimaryKeyRelatedField(queryset=Contact.objects.all())
    contact_name = serializers.ReadOnlyField(source='contact.name')
    created_by_name = serializers.ReadOnlyField(source='created_by.username')
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    amount_paid = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    outstanding_amount = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = Order
        fields = [
            'id',
            'order_number',
            'contact',
            'contact_name',
            'created_by_name',
            'status',
            'status_display',
            'payment_status',
            'total_amount',
            'amount_paid',
            'outstanding_amount',
            'credit_period_days',
            'due_date',
            'delivery_address',
            'delivery_city',
            'delivery_state',
            'delivery_pincode',
            'expected_delivery_date',
            'actual_delivery_date',
            'notes',
            'cancellation_reason',
            'rejection_reason',
            'submitted_at',
            'approved_at',
            'dispatched_at',
            'delivered_at',
            'cancelled_at',
            'created_at',
            'updated_at',
            'items',
        ]
        read_only_fields = [
            'order_number', 'status', 'payment_status', 'total_amount', 'due_date', 'actual_delivery_date',
            'cancellation_reason', 'rejection_reason', 'submitted_at', 'approved_at', 'dispatched_at',
            'delivered_at', 'cancelled_at', 'created_at', 'updated_at',
        ]

    def _company_id(self):
        request = self.context.get('request')
        return getattr(getattr(request, 'user', None), 'company_id', None)

    def validate_contact(self, contact):
        if contact.company_id != self._company_id():
            raise serializers.ValidationError("Contact not found.")
        return contact

    def validate_items(self, items):
        if not items:
            raise serializers.ValidationError("An order needs at least one item.")
        company_id = self._company_id()
        for item in items:
            product = item['product']
            if product.company_id != company_id:
                raise serializers.ValidationError(f"Product {product.pk} not found.")
            if not product.is_active:
                raise serializers.ValidationError(f"Product {product.sku} is not available.")
        return items

    def validate(self, attrs):
        if self.instance is None and 'items' not in attrs:
            raise serializers.ValidationError({'items': "This field is required."})
        return attrs

    @staticmethod
    def _write_items(order, items_data) -> Decimal:
        total = Decimal('0.00')
        for item in items_data:
            product = item['product']
            unit_price = item.get('unit_price') or product.price
            line_total = unit_price * item['quantity']
            OrderItem.objects.create(
                order=order,
                product=product,
                quantity=item['quantity'],
                unit_price=unit_price,
                total_price=line_total,
            )
            total += line_total
        return total

    def create(self, validated_data):
        items_data = validated_data.pop('items')
        with transaction.atomic():
            order = Order.objects.create(
                order_number=generate_order_number(),
                status=OrderStatus.DRAFT,
                **validated_data,
            )
            order.total_amount = self._write_items(order, items_data)
            order.save(update_fields=['total_amount'])
        return order

    def update(self, instance, validated_data):
        items_data = validated_data.pop('items', None)
        with transaction.atomic():
            locked = Order.objects.select_for_update().get(pk=instance.pk)
            ensure_editable(locked)

            for attr, value in validated_data.items():
                setattr(instance, attr, value)
            if items_data is not None:
                instance.items.all().delete()
                instance.total_amount = self._write_items(instance, items_data)
            instance.save()
        return instance


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OrderStatus.choices)
    reason = serializers.CharField(required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
    actual_delivery_date = serializers.DateField(required=False)


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=False, trim_whitespace=True)
