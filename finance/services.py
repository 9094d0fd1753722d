"""Payment recording.

Payments are only accepted once an order is approved, never for more than
the outstanding balance, and every payment recomputes the order's
``payment_status``.
"""

import logging
import re
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.db.models import Sum
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from orders.models import Order, OrderStatus, PaymentStatus
from orders.numbering import next_sequence_value

from .models import Payment

logger = logging.getLogger(__name__)

PAYMENT_PREFIX = 'PAY'
PAYMENT_SEQUENCE_MAX = 999999

PAYABLE_STATUSES = frozenset({OrderStatus.APPROVED, OrderStatus.DISPATCHED, OrderStatus.DELIVERED})

_PAYMENT_NUMBER_RE = re.compile(r'^PAY-(\d{6})$')


def _last_issued_payment_sequence() -> int:
    last = (
        Payment.objects.filter(payment_number__startswith=f'{PAYMENT_PREFIX}-')
        .order_by('-payment_number')
        .values_list('payment_number', flat=True)
        .first()
    )
    match = _PAYMENT_NUMBER_RE.match(last or '')
    return int(match.group(1)) if match else 0


def generate_payment_number() -> str:
    sequence = next_sequence_value(PAYMENT_PREFIX, seed=_last_issued_payment_sequence, maximum=PAYMENT_SEQUENCE_MAX)
    return f'{PAYMENT_PREFIX}-{sequence:06d}'


def payment_status_for(total: Decimal, paid: Decimal) -> str:
    if paid >= total:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.UNPAID


def recompute_payment_status(order: Order) -> str:
    """Derive ``payment_status`` from the recorded payments and save it."""
    paid = order.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
    new_status = payment_status_for(order.total_amount, paid)
    if order.payment_status != new_status:
        order.payment_status = new_status
        order.save(update_fields=['payment_status', 'updated_at'])
    return new_status


def record_payment(
    order: Order,
    amount: Decimal,
    payment_mode: str,
    *,
    payment_date: date | None = None,
    reference_number: str = '',
    notes: str = '',
    user=None,
) -> Payment:
    """Record ``amount`` against ``order`` and update its payment status."""
    if amount is None or amount <= 0:
        raise ValidationError({'amount': 'Amount must be greater than zero.'})

    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        if locked.status not in PAYABLE_STATUSES:
            raise ValidationError({'order': f'Payments cannot be recorded for {locked.status} orders.'})

        paid = locked.payments.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
        outstanding = locked.total_amount - paid
        if amount > outstanding:
            raise ValidationError({'amount': f'Amount exceeds the outstanding balance of {outstanding:.2f}.'})

        payment = Payment.objects.create(
            company_id=locked.company_id,
            order=locked,
            payment_number=generate_payment_number(),
            amount=amount,
            payment_mode=payment_mode,
            payment_date=payment_date or timezone.localdate(),
            reference_number=reference_number,
            notes=notes,
            recorded_by=user,
        )
        status = recompute_payment_status(locked)

    logger.info('Payment %s of %s recorded for order %s (now %s)', payment.payment_number, amount, locked.order_number, status)
    return payment
