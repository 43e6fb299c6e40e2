"""
Pure frequency advancement.

Contract:
    ``advance(from_date, frequency)`` returns the next generation date.
    PURE: no I/O, no clock reads; the same inputs always give the same date.

Calendar arithmetic:
    Week-based frequencies add a fixed number of days.  Month-based
    frequencies add calendar months and let an out-of-range day overflow
    into the following month rather than clamping to month end:

        2025-01-31 + 1 month  -> 2025-03-03
        2024-02-29 + 1 year   -> 2025-03-01

    An unrecognised frequency advances by one month and is logged; it is
    never an error.
"""

from __future__ import annotations

from datetime import date, timedelta

from billing_kernel.logging_config import get_logger

from billing_batch.domain.types import Frequency

logger = get_logger("batch.frequency")

_DAY_STEPS: dict[Frequency, int] = {
    Frequency.WEEKLY: 7,
    Frequency.BIWEEKLY: 14,
}

_MONTH_STEPS: dict[Frequency, int] = {
    Frequency.MONTHLY: 1,
    Frequency.QUARTERLY: 3,
    Frequency.YEARLY: 12,
}


def add_months(from_date: date, months: int) -> date:
    """Add calendar months, overflowing past month end into the next month."""
    total = from_date.month - 1 + months
    first_of_month = date(from_date.year + total // 12, total % 12 + 1, 1)
    return first_of_month + timedelta(days=from_date.day - 1)


def coerce_frequency(value: Frequency | str) -> Frequency:
    """Map a stored frequency value onto the enum; unknown values become MONTHLY."""
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(value)
    except ValueError:
        logger.warning(
            "unknown_frequency_defaulted",
            extra={"frequency": value, "defaulted_to": Frequency.MONTHLY.value},
        )
        return Frequency.MONTHLY


def advance(from_date: date, frequency: Frequency | str) -> date:
    """Next generation date after ``from_date`` for ``frequency``."""
    freq = coerce_frequency(frequency)

    days = _DAY_STEPS.get(freq)
    if days is not None:
        return from_date + timedelta(days=days)

    return add_months(from_date, _MONTH_STEPS[freq])
