"""Django admin configuration for finance models."""

from django.contrib import admin

from .models import Payment, PaymentReminder


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Payments are append-only; the admin shows them read-only."""

    list_display = ('payment_number', 'get_order_number', 'amount', 'payment_mode', 'payment_date', 'recorded_by')
    list_filter = ('payment_mode', 'payment_date', 'company')
    search_fields = ('payment_number', 'order__order_number', 'reference_number')

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def get_order_number(self, obj):
        return obj.order.order_number
    get_order_number.short_description = 'Order'


@admin.register(PaymentReminder)
class PaymentReminderAdmin(admin.ModelAdmin):
    list_display = ('order', 'reminder_date', 'channel', 'trigger', 'delivered', 'amount', 'days_overdue')
    list_filter = ('channel', 'trigger', 'delivered', 'reminder_date')
    search_fields = ('order__order_number', 'order__contact__name')

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False
