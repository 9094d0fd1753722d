"""Database models for payments and payment reminders.

Both tables are append-only: a payment is never edited or deleted through the
API, and a reminder row records one delivery attempt as it happened.
"""

from django.conf import settings
from django.db import models

from notifications.clients import Channel
from orders.models import Order


class PaymentMode(models.TextChoices):
    CASH = 'CASH', 'Cash'
    UPI = 'UPI', 'UPI'
    NEFT = 'NEFT', 'NEFT'
    RTGS = 'RTGS', 'RTGS'
    CHEQUE = 'CHEQUE', 'Cheque'
    CARD = 'CARD', 'Card'
    OTHER = 'OTHER', 'Other'


class Payment(models.Model):
    """Money received against an order."""

    company = models.ForeignKey('accounts.Company', on_delete=models.CASCADE, related_name='payments')
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name='payments')
    payment_number = models.CharField(max_length=20, unique=True, editable=False)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    payment_mode = models.CharField(max_length=10, choices=PaymentMode.choices, default=PaymentMode.CASH)
    payment_date = models.DateField()
    reference_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments_recorded',
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-payment_date', '-created_at']

    def __str__(self):
        return f"{self.payment_number} ({self.amount})"


class PaymentReminder(models.Model):
    """Log entry for one reminder delivery attempt."""

    class Trigger(models.TextChoices):
        SCHEDULED = 'SCHEDULED', 'Scheduled'
        MANUAL = 'MANUAL', 'Manual'

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='payment_reminders')
    channel = models.CharField(max_length=10, choices=Channel.choices, default=Channel.SMS)
    trigger = models.CharField(max_length=10, choices=Trigger.choices, default=Trigger.SCHEDULED)
    # The day the job ran for; used for once-per-day de-duplication
    reminder_date = models.DateField()
    sent_at = models.DateTimeField(auto_now_add=True)
    delivered = models.BooleanField(default=False)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    days_overdue = models.IntegerField(default=0)
    message = models.TextField()
    response = models.JSONField(default=dict, blank=True)
    error = models.TextField(blank=True)
    sent_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+',
    )

    class Meta:
        ordering = ['-sent_at']
        constraints = [
            models.UniqueConstraint(
                fields=['order', 'reminder_date'],
                condition=models.Q(trigger='SCHEDULED'),
                name='unique_scheduled_reminder_per_day',
            ),
        ]

    def __str__(self):
        return f"{self.order.order_number} {self.channel} {self.reminder_date}"
