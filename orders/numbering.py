"""Human-readable order numbers.

Numbers look like ``ORD-2026-00042``: the calendar year, then a five digit
sequence that restarts at 1 every year. Each year has its own
:class:`~orders.models.NumberSequence` row; allocation locks that row, so two
concurrent checkouts can never be handed the same number. The unique
constraint on ``Order.order_number`` stays as the last line of defence.
"""

import logging
import re
from datetime import date

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.exceptions import SequenceExhausted

from .models import NumberSequence, Order

logger = logging.getLogger(__name__)

ORDER_PREFIX = 'ORD'
ORDER_SEQUENCE_WIDTH = 5
ORDER_SEQUENCE_MAX = 10 ** ORDER_SEQUENCE_WIDTH - 1

_ORDER_NUMBER_RE = re.compile(r'^ORD-(\d{4})-(\d{5})$')


def next_sequence_value(key: str, seed=None, maximum: int | None = None) -> int:
    """Atomically increment the counter ``key`` and return the new value.

    ``seed`` is called once, when the counter row does not exist yet, and
    returns the value to start from (the last number already issued).
    Raises :class:`SequenceExhausted` when the next value would exceed
    ``maximum``; the counter is left untouched in that case.
    """
    with transaction.atomic():
        sequence = NumberSequence.objects.select_for_update().filter(key=key).first()
        if sequence is None:
            start = seed() if seed is not None else 0
            try:
                with transaction.atomic():
                    NumberSequence.objects.create(key=key, last_value=start)
            except IntegrityError:
                # Another writer created the row first; use theirs.
                logger.info('Sequence %s created concurrently', key)
            sequence = NumberSequence.objects.select_for_update().get(key=key)

        value = sequence.last_value + 1
        if maximum is not None and value > maximum:
            logger.error('Sequence %s exhausted at %s', key, sequence.last_value)
            raise SequenceExhausted(f'Number sequence {key} is exhausted ({maximum} issued).')

        sequence.last_value = value
        sequence.save(update_fields=['last_value', 'updated_at'])
        return value


def format_order_number(year: int, sequence: int) -> str:
    return f'{ORDER_PREFIX}-{year:04d}-{sequence:0{ORDER_SEQUENCE_WIDTH}d}'


def is_valid_order_number(value) -> bool:
    return bool(_ORDER_NUMBER_RE.match(str(value or '')))


def extract_year_from_order_number(value) -> int | None:
    match = _ORDER_NUMBER_RE.match(str(value or ''))
    return int(match.group(1)) if match else None


def extract_sequence_from_order_number(value) -> int | None:
    match = _ORDER_NUMBER_RE.match(str(value or ''))
    return int(match.group(2)) if match else None


def _last_issued_order_sequence(year: int) -> int:
    """Highest sequence already used for ``year`` by existing orders."""
    prefix = f'{ORDER_PREFIX}-{year:04d}-'
    last = (
        Order.objects.filter(order_number__startswith=prefix)
        .order_by('-order_number')
        .values_list('order_number', flat=True)
        .first()
    )
    return extract_sequence_from_order_number(last) or 0


def generate_order_number(today: date | None = None) -> str:
    """Allocate the next order number for the year of ``today``.

    Call inside the transaction that creates the order so a rolled back
    order also rolls back its number.
    """
    today = today or timezone.localdate()
    year = today.year
    sequence = next_sequence_value(
        f'{ORDER_PREFIX}-{year:04d}',
        seed=lambda: _last_issued_order_sequence(year),
        maximum=ORDER_SEQUENCE_MAX,
    )
    return format_order_number(year, sequence)
