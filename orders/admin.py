"""Django admin configuration for orders and related models."""

from django.contrib import admin

from finance.models import Payment, PaymentReminder

from .models import NumberSequence, Order, OrderItem


class OrderItemInline(admin.TabularInline):
    """Inline display of order items."""

    model = OrderItem
    extra = 0
    # Prices are captured at order time
    readonly_fields = ('product', 'quantity', 'unit_price', 'total_price')
    can_delete = False


class PaymentInline(admin.TabularInline):
    """Payments recorded against the order; they come from the API only."""

    model = Payment
    extra = 0
    can_delete = False
    max_num = 0

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]


class PaymentReminderInline(admin.TabularInline):
    model = PaymentReminder
    extra = 0
    can_delete = False
    max_num = 0
    fields = ('reminder_date', 'channel', 'trigger', 'delivered', 'amount', 'days_overdue', 'error')
    readonly_fields = fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Orders are read-mostly here; status changes go through the API workflow."""

    list_display = ('order_number', 'company', 'contact', 'status', 'payment_status', 'total_amount', 'due_date', 'created_at')
    list_filter = ('status', 'payment_status', 'company')
    search_fields = ('order_number', 'contact__name', 'created_by__username')
    readonly_fields = ('order_number', 'status', 'payment_status', 'total_amount')
    inlines = [OrderItemInline, PaymentInline, PaymentReminderInline]


@admin.register(NumberSequence)
class NumberSequenceAdmin(admin.ModelAdmin):
    list_display = ('key', 'last_value', 'updated_at')
    readonly_fields = ('key', 'last_value', 'updated_at')
