"""Overdue payment reminders.

:func:`send_payment_reminders` is meant to run once a day (see the
``send_payment_reminders`` management command). A delivered order with an
unpaid balance gets a reminder on every ``PAYMENT_REMINDER_INTERVAL_DAYS``-th
day past its due date: day 7, 14, 21 and so on with the default interval.

Each attempt is stored as a :class:`~finance.models.PaymentReminder`, whether
it was delivered or not. A failure for one order is recorded and the batch
carries on; only failing to load the candidate orders aborts the run.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from notifications.clients import Channel, SendResult, get_notification_client
from notifications.phone import mask_identifier
from orders.models import Order, OrderStatus, PaymentStatus

from .models import PaymentReminder
from .services import PAYABLE_STATUSES

logger = logging.getLogger(__name__)


@dataclass
class ReminderDetail:
    order_id: int
    order_number: str
    contact_name: str
    amount: Decimal
    days_pending: int
    success: bool
    error: str | None = None


@dataclass
class PaymentReminderResult:
    total_overdue_orders: int = 0
    reminders_sent: int = 0
    errors: int = 0
    skipped_duplicates: int = 0
    details: list[ReminderDetail] = field(default_factory=list)


def build_reminder_message(order: Order, amount: Decimal, days: int) -> str:
    return (
        f'Hi {order.contact.name}, payment of {settings.REMINDER_CURRENCY_PREFIX}{amount:.2f} '
        f'for Order {order.order_number} is overdue by {days} days. '
        f'Please pay soon. -{settings.REMINDER_SIGNATURE}'
    )


def reminder_destination(contact, channel: str) -> str:
    if channel == Channel.EMAIL:
        return contact.email or ''
    return contact.phone or ''


def overdue_orders(today: date):
    """Delivered orders still owing money whose due date is before ``today``."""
    return (
        Order.objects.filter(
            status=OrderStatus.DELIVERED,
            payment_status__in=[PaymentStatus.UNPAID, PaymentStatus.PARTIAL],
            due_date__lt=today,
        )
        .select_related('contact')
        .prefetch_related('payments')
        .order_by('due_date', 'id')
    )


def _claim(order, amount, days, *, channel, trigger, today, user=None) -> PaymentReminder:
    """Record the attempt before anything is sent."""
    return PaymentReminder.objects.create(
        order=order,
        channel=channel,
        trigger=trigger,
        reminder_date=today,
        delivered=False,
        amount=amount,
        days_overdue=days,
        message=build_reminder_message(order, amount, days),
        error='Delivery not attempted',
        sent_by=user,
    )


def _deliver(reminder: PaymentReminder, client) -> PaymentReminder:
    order = reminder.order
    destination = reminder_destination(order.contact, reminder.channel)

    if not destination:
        field_name = 'e-mail address' if reminder.channel == Channel.EMAIL else 'phone number'
        result = SendResult(success=False, error=f'Contact has no {field_name}')
    else:
        try:
            result = client.send_message(
                destination, reminder.message,
                channel=reminder.channel, subject=f'Payment reminder: Order {order.order_number}',
            )
        except Exception as exc:
            logger.exception('Reminder for order %s failed', order.order_number)
            result = SendResult(success=False, error=str(exc) or exc.__class__.__name__)

    if result.success:
        logger.info('Reminder for order %s sent to %s via %s', order.order_number, mask_identifier(destination), reminder.channel)
    else:
        logger.warning('Reminder for order %s not delivered: %s', order.order_number, result.error)

    reminder.delivered = result.success
    reminder.response = result.raw_response or {}
    reminder.error = result.error or ''
    reminder.save(update_fields=['delivered', 'response', 'error'])
    return reminder


def send_payment_reminders(today: date | None = None, client=None, channel: str | None = None) -> PaymentReminderResult:
    """Send the reminders due on ``today`` and return a summary of the run."""
    today = today or timezone.localdate()
    client = client or get_notification_client()
    channel = channel or settings.PAYMENT_REMINDER_CHANNEL
    interval = settings.PAYMENT_REMINDER_INTERVAL_DAYS

    try:
        candidates = list(overdue_orders(today))
    except DatabaseError:
        logger.exception('Could not load overdue orders for %s', today)
        raise

    result = PaymentReminderResult(total_overdue_orders=len(candidates))
    logger.info('Payment reminder run for %s: %d overdue orders', today, len(candidates))

    for order in candidates:
        days = (today - order.due_date).days
        if days <= 0 or days % interval:
            continue

        amount = order.outstanding_amount
        if amount <= 0:
            continue

        try:
            # The order lock serialises overlapping runs; the claim commits before the provider call
            with transaction.atomic():
                Order.objects.select_for_update().filter(pk=order.pk).first()
                already_sent = PaymentReminder.objects.filter(
                    order=order, trigger=PaymentReminder.Trigger.SCHEDULED, reminder_date=today,
                ).exists()
                if already_sent:
                    result.skipped_duplicates += 1
                    continue
                reminder = _claim(
                    order, amount, days, channel=channel, trigger=PaymentReminder.Trigger.SCHEDULED, today=today,
                )
        except IntegrityError:
            # A concurrent run recorded today's reminder first
            result.skipped_duplicates += 1
            continue

        try:
            reminder = _deliver(reminder, client)
        except DatabaseError as exc:
            logger.exception('Reminder for order %s could not be recorded', order.order_number)
            result.errors += 1
            result.details.append(ReminderDetail(
                order_id=order.pk,
                order_number=order.order_number,
                contact_name=order.contact.name,
                amount=amount,
                days_pending=days,
                success=False,
                error=str(exc),
            ))
            continue

        if reminder.delivered:
            result.reminders_sent += 1
        else:
            result.errors += 1
        result.details.append(ReminderDetail(
            order_id=order.pk,
            order_number=order.order_number,
            contact_name=order.contact.name,
            amount=amount,
            days_pending=days,
            success=reminder.delivered,
            error=reminder.error or None,
        ))

    logger.info(
        'Payment reminder run for %s finished: %d sent, %d errors, %d duplicates skipped',
        today, result.reminders_sent, result.errors, result.skipped_duplicates,
    )
    return result


def send_order_reminder(order: Order, *, channel: str | None = None, client=None, user=None,
                        today: date | None = None) -> PaymentReminder:
    """Send one reminder for ``order`` right now.

    Manual reminders ignore the cadence and the once-per-day rule but still
    need a payable order with an outstanding balance.
    """
    if order.status not in PAYABLE_STATUSES:
        raise ValidationError({'detail': f'Reminders cannot be sent for {order.status} orders.'})

    today = today or timezone.localdate()
    amount = order.outstanding_amount
    if amount <= 0:
        raise ValidationError({'detail': 'This order has no outstanding balance.'})

    days = max((today - order.due_date).days, 0) if order.due_date else 0
    reminder = _claim(
        order, amount, days,
        channel=channel or settings.PAYMENT_REMINDER_CHANNEL,
        trigger=PaymentReminder.Trigger.MANUAL,
        today=today,
        user=user,
    )
    return _deliver(reminder, client or get_notification_client())
