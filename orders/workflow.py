"""Order status state machine.

Happy path: DRAFT -> PENDING -> APPROVED -> DISPATCHED -> DELIVERED.
CANCELLED is reachable until the goods leave (DRAFT, PENDING, APPROVED);
REJECTED only from PENDING. DELIVERED, CANCELLED and REJECTED are terminal.
"""

import logging
from datetime import date, timedelta

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from core.exceptions import InvalidTransition, OrderNotEditable

from .models import Order, OrderStatus

logger = logging.getLogger(__name__)


TRANSITIONS: dict[str, frozenset[str]] = {
    OrderStatus.DRAFT: frozenset({OrderStatus.PENDING, OrderStatus.CANCELLED}),
    OrderStatus.PENDING: frozenset({OrderStatus.APPROVED, OrderStatus.REJECTED, OrderStatus.CANCELLED}),
    OrderStatus.APPROVED: frozenset({OrderStatus.DISPATCHED, OrderStatus.CANCELLED}),
    OrderStatus.DISPATCHED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

# Targets only managers and admins may request
MANAGER_ONLY_TARGETS = frozenset({OrderStatus.APPROVED, OrderStatus.REJECTED})

_TIMESTAMP_FIELDS = {
    OrderStatus.PENDING: 'submitted_at',
    OrderStatus.APPROVED: 'approved_at',
    OrderStatus.DISPATCHED: 'dispatched_at',
    OrderStatus.DELIVERED: 'delivered_at',
    OrderStatus.CANCELLED: 'cancelled_at',
}


def allowed_targets(source: str) -> frozenset[str]:
    return TRANSITIONS.get(source, frozenset())


def can_transition(source: str, target: str) -> bool:
    return target in allowed_targets(source)


def check_transition(source: str, target: str) -> None:
    """Raise :class:`InvalidTransition` unless ``source -> target`` is allowed."""
    if not can_transition(source, target):
        raise InvalidTransition(str(source), str(target), [str(s) for s in allowed_targets(source)])


def ensure_editable(order: Order) -> None:
    if order.status != OrderStatus.DRAFT:
        raise OrderNotEditable()


def _append_note(existing: str, note: str) -> str:
    note = (note or '').strip()
    if not note:
        return existing
    return f'{existing}\n{note}' if existing else note


def transition_order(
    order: Order,
    target: str,
    *,
    user=None,
    reason: str | None = None,
    notes: str | None = None,
    actual_delivery_date: date | None = None,
    today: date | None = None,
) -> Order:
    """Move ``order`` to ``target`` and return the updated order.

    The row is re-read under a lock and the transition re-validated, so of
    two concurrent requests only one can apply. On failure nothing is saved.
    """
    check_transition(order.status, target)
    reason = (reason or '').strip()
    if target == OrderStatus.CANCELLED and not reason:
        raise ValidationError({'reason': 'A cancellation reason is required.'})

    today = today or timezone.localdate()
    now = timezone.now()

    with transaction.atomic():
        locked = Order.objects.select_for_update().get(pk=order.pk)
        source = locked.status
        check_transition(source, target)

        locked.status = target
        update_fields = ['status', 'updated_at']

        timestamp_field = _TIMESTAMP_FIELDS.get(target)
        if timestamp_field:
            setattr(locked, timestamp_field, now)
            update_fields.append(timestamp_field)

        if target == OrderStatus.APPROVED and locked.due_date is None:
            locked.due_date = today + timedelta(days=locked.credit_period_days)
            update_fields.append('due_date')
        elif target == OrderStatus.DELIVERED:
            locked.actual_delivery_date = actual_delivery_date or today
            update_fields.append('actual_delivery_date')
        elif target == OrderStatus.CANCELLED:
            locked.cancellation_reason = reason
            update_fields.append('cancellation_reason')
        elif target == OrderStatus.REJECTED and reason:
            locked.rejection_reason = reason
            update_fields.append('rejection_reason')

        if notes:
            locked.notes = _append_note(locked.notes, notes)
            update_fields.append('notes')

        locked.save(update_fields=update_fields)

    logger.info(
        'Order %s moved %s -> %s by %s',
        locked.order_number, source, target, getattr(user, 'username', None) or 'system',
    )
    return locked


def cancel_order(order: Order, reason: str, *, user=None, today: date | None = None) -> Order:
    return transition_order(order, OrderStatus.CANCELLED, user=user, reason=reason, today=today)
