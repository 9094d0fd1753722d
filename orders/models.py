"""Database models for orders, their items and number sequences."""

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Sum


class OrderStatus(models.TextChoices):
    DRAFT = 'DRAFT', 'Draft'
    PENDING = 'PENDING', 'Pending approval'
    APPROVED = 'APPROVED', 'Approved'
    DISPATCHED = 'DISPATCHED', 'Dispatched'
    DELIVERED = 'DELIVERED', 'Delivered'
    CANCELLED = 'CANCELLED', 'Cancelled'
    REJECTED = 'REJECTED', 'Rejected'


class PaymentStatus(models.TextChoices):
    UNPAID = 'UNPAID', 'Unpaid'
    PARTIAL = 'PARTIAL', 'Partially paid'
    PAID = 'PAID', 'Paid'


def _default_credit_period():
    return settings.DEFAULT_CREDIT_PERIOD_DAYS


class NumberSequence(models.Model):
    """Last issued value of a named counter (``ORD-2026``, ``PAY``).

    Rows are read with ``select_for_update()`` so concurrent writers are
    serialized on the counter instead of racing on a max-scan.
    """

    key = models.CharField(max_length=32, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.key}: {self.last_value}"


class Order(models.Model):
    """A purchase request placed by a field rep on behalf of a contact.

    ``order_number`` is assigned once at creation. ``status`` only changes
    through :func:`orders.workflow.transition_order`.
    """

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='orders')
    contact = models.ForeignKey('contacts.Contact', on_delete=models.PROTECT, related_name='orders')
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders_created',
    )
    order_number = models.CharField(max_length=20, unique=True, editable=False)
    status = models.CharField(max_length=20, choices=OrderStatus.choices, default=OrderStatus.DRAFT, db_index=True)
    payment_status = models.CharField(
        max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID, db_index=True,
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    credit_period_days = models.PositiveIntegerField(default=_default_credit_period)
    due_date = models.DateField(null=True, blank=True)

    delivery_address = models.TextField(blank=True)
    delivery_city = models.CharField(max_length=100, blank=True)
    delivery_state = models.CharField(max_length=100, blank=True)
    delivery_pincode = models.CharField(max_length=10, blank=True)
    expected_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(null=True, blank=True)

    notes = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)

    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    dispatched_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['company', 'status'], name='order_company_status_idx'),
            models.Index(fields=['status', 'payment_status', 'due_date'], name='order_overdue_scan_idx'),
        ]

    def __str__(self):
        return self.order_number

    @property
    def amount_paid(self) -> Decimal:
        # Uses the prefetch cache when present
        if 'payments' in getattr(self, '_prefetched_objects_cache', {}):
            return sum((p.amount for p in self.payments.all()), Decimal('0.00'))
        return self.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')

    @property
    def outstanding_amount(self) -> Decimal:
        return self.total_amount - self.amount_paid


class OrderItem(models.Model):
    """A product line on an order; prices are captured at order time."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey('products.Product', on_delete=models.PROTECT, related_name='order_items')
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.order.order_number} - {self.product.name} x {self.quantity}"
