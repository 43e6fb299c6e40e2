"""
Pure overdue-interest math.

Contract:
    ``calculate_interest(document, daily_rate, as_of)`` -> InterestCalculation.
    PURE: no I/O; ``as_of`` is supplied by the caller.

Arithmetic:
    days_overdue  = whole days elapsed since midnight of the due date,
                    truncated by hour division (23h59m past due is 0 days)
    daily         = round2(outstanding * rate)
    total         = round2(daily * days_overdue)
    Rounding is half-up at two decimals.  A fully paid document yields all
    zeros.
"""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal

from billing_kernel.exceptions import ValidationError

from billing_batch.domain.results import InterestCalculation
from billing_batch.domain.types import BillingDocument

_CENT = Decimal("0.01")
_ZERO = Decimal("0")
DEFAULT_MAX_DAILY_RATE = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    return amount.quantize(_CENT, rounding=ROUND_HALF_UP)


def days_overdue(due_date: date, as_of: datetime) -> int:
    """Whole days past due, by integer hour division."""
    due_start = datetime.combine(due_date, time.min, tzinfo=as_of.tzinfo)
    if as_of <= due_start:
        return 0
    hours = (as_of - due_start).total_seconds() / 3600
    return int(hours / 24)


def validate_interest_rate(
    rate: Decimal,
    max_rate: Decimal = DEFAULT_MAX_DAILY_RATE,
) -> None:
    if rate < 0:
        raise ValidationError("rate", "interest rate cannot be negative")
    if rate > max_rate:
        raise ValidationError(
            "rate", f"interest rate exceeds maximum allowed ({max_rate * 100}% daily)"
        )


def calculate_interest(
    document: BillingDocument,
    daily_rate: Decimal,
    as_of: datetime,
) -> InterestCalculation:
    outstanding = document.outstanding
    if outstanding <= 0:
        return InterestCalculation(
            document_id=document.document_id,
            document_number=document.number,
            due_date=document.due_date,
            days_overdue=0,
            outstanding=_ZERO,
            daily_rate=daily_rate,
            daily_interest=_ZERO,
            total_interest=_ZERO,
            total_with_interest=_ZERO,
            currency=document.currency,
            calculated_at=as_of,
        )

    days = days_overdue(document.due_date, as_of)
    daily = round_money(outstanding * daily_rate)
    total = round_money(daily * days)

    return InterestCalculation(
        document_id=document.document_id,
        document_number=document.number,
        due_date=document.due_date,
        days_overdue=days,
        outstanding=outstanding,
        daily_rate=daily_rate,
        daily_interest=daily,
        total_interest=total,
        total_with_interest=outstanding + total,
        currency=document.currency,
        calculated_at=as_of,
    )
