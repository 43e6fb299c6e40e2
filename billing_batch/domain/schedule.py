"""
Pure schedule rules: validation, due evaluation, request building.

Contract:
    Everything here is PURE -- no I/O, no clock reads.  Callers pass the
    evaluation date explicitly.

Architecture: billing_batch/domain.  ZERO I/O.

Invariants enforced:
    - A schedule is due iff active, next_generation_date <= as_of date, and
      end_date is absent or >= as_of date.
    - Zero line quantities are replaced by 1 before validation and again
      when a document request is built.
    - Validation runs at create/update time only; persisted schedules are
      trusted during due scans.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from billing_kernel.exceptions import ValidationError

from billing_batch.domain.types import (
    CreateDocumentRequest,
    Frequency,
    RecurringSchedule,
    ScheduleLine,
)

_ONE = Decimal("1")


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class CreateScheduleRequest:
    """Input to ``ScheduleService.create``.

    ``None`` for currency, document_type, payment_terms_days or
    attach_document means "use the engine default".  An explicit
    ``payment_terms_days=0`` is kept as 0.
    """

    name: str
    contact_id: UUID | None
    frequency: Frequency | str
    start_date: date | None
    lines: tuple[ScheduleLine, ...] = ()
    contact_name: str = ""
    document_type: str | None = None
    currency: str | None = None
    end_date: date | None = None
    payment_terms_days: int | None = None
    reference: str = ""
    notes: str = ""
    send_on_generation: bool = False
    template_type: str | None = None
    recipient_email_override: str | None = None
    attach_document: bool | None = None
    subject_override: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class UpdateScheduleRequest:
    """Partial update: ``None`` leaves the field unchanged.

    ``lines``, when given, replaces the whole line set.
    """

    name: str | None = None
    contact_id: UUID | None = None
    contact_name: str | None = None
    frequency: Frequency | str | None = None
    end_date: date | None = None
    payment_terms_days: int | None = None
    reference: str | None = None
    notes: str | None = None
    lines: tuple[ScheduleLine, ...] | None = None
    send_on_generation: bool | None = None
    template_type: str | None = None
    recipient_email_override: str | None = None
    attach_document: bool | None = None
    subject_override: str | None = None
    message: str | None = None


@dataclass(frozen=True)
class CreateFromDocumentRequest:
    """Create a schedule whose lines and contact are copied from a document."""

    document_id: UUID
    name: str
    frequency: Frequency | str
    start_date: date | None
    end_date: date | None = None
    payment_terms_days: int | None = None


# =============================================================================
# Lines
# =============================================================================


def normalize_quantity(quantity: Decimal) -> Decimal:
    """A zero quantity means one unit."""
    if quantity == 0:
        return _ONE
    return quantity


def normalize_lines(lines: tuple[ScheduleLine, ...] | list[ScheduleLine]) -> tuple[ScheduleLine, ...]:
    """Default zero quantities to 1 and number lines from 1 in input order."""
    return tuple(
        replace(
            line,
            quantity=normalize_quantity(line.quantity),
            line_number=index,
        )
        for index, line in enumerate(lines, start=1)
    )


# =============================================================================
# Validation
# =============================================================================


def _as_frequency(value: Frequency | str) -> Frequency | str:
    """Enum member when recognised; the raw value otherwise so validation reports it."""
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(value)
    except ValueError:
        return value


def validate_schedule(schedule: RecurringSchedule) -> None:
    """
    Raise ``ValidationError`` on the first violated rule.

    Rules (checked in this order):
        name, contact, start date, end >= start, frequency,
        payment terms >= 0, at least one line, then per line:
        description, quantity > 0, unit price >= 0.
    """
    if not schedule.name:
        raise ValidationError("name", "name is required")
    if schedule.contact_id is None:
        raise ValidationError("contact_id", "contact is required")
    if schedule.start_date is None:
        raise ValidationError("start_date", "start date is required")
    if schedule.end_date is not None and schedule.end_date < schedule.start_date:
        raise ValidationError("end_date", "end date cannot be before start date")
    if not isinstance(schedule.frequency, Frequency):
        raise ValidationError("frequency", "invalid frequency")
    if schedule.payment_terms_days < 0:
        raise ValidationError("payment_terms_days", "payment terms days cannot be negative")
    if not schedule.lines:
        raise ValidationError("lines", "at least one line item is required")
    for line in schedule.lines:
        if not line.description:
            raise ValidationError("lines.description", "line description is required")
        if line.quantity <= 0:
            raise ValidationError("lines.quantity", "line quantity must be positive")
        if line.unit_price < 0:
            raise ValidationError("lines.unit_price", "line unit price cannot be negative")


# =============================================================================
# Construction
# =============================================================================


def new_schedule(
    request: CreateScheduleRequest,
    *,
    schedule_id: UUID,
    tenant_id: str,
    created_by: UUID,
    default_currency: str,
    default_document_type: str,
    default_payment_terms_days: int,
) -> RecurringSchedule:
    """Build (and validate) a fresh schedule from a create request.

    The first cycle is due on the start date: next_generation_date = start_date.
    """
    schedule = RecurringSchedule(
        schedule_id=schedule_id,
        tenant_id=tenant_id,
        name=request.name,
        contact_id=request.contact_id,
        contact_name=request.contact_name,
        frequency=_as_frequency(request.frequency),
        start_date=request.start_date,
        next_generation_date=request.start_date,
        end_date=request.end_date,
        document_type=request.document_type or default_document_type,
        currency=request.currency or default_currency,
        payment_terms_days=(
            default_payment_terms_days
            if request.payment_terms_days is None
            else request.payment_terms_days
        ),
        reference=request.reference,
        notes=request.notes,
        lines=normalize_lines(request.lines),
        is_active=True,
        generated_count=0,
        send_on_generation=request.send_on_generation,
        template_type=request.template_type,
        recipient_email_override=request.recipient_email_override,
        attach_document=True if request.attach_document is None else request.attach_document,
        subject_override=request.subject_override,
        message=request.message,
        created_by=created_by,
    )
    validate_schedule(schedule)
    return schedule


def apply_update(schedule: RecurringSchedule, request: UpdateScheduleRequest) -> RecurringSchedule:
    """Merge a partial update into ``schedule`` and validate the result."""
    changes: dict = {}
    for name in (
        "name",
        "contact_id",
        "contact_name",
        "end_date",
        "payment_terms_days",
        "reference",
        "notes",
        "send_on_generation",
        "template_type",
        "recipient_email_override",
        "attach_document",
        "subject_override",
        "message",
    ):
        value = getattr(request, name)
        if value is not None:
            changes[name] = value
    if request.frequency is not None:
        changes["frequency"] = _as_frequency(request.frequency)
    if request.lines is not None:
        changes["lines"] = normalize_lines(request.lines)

    updated = replace(schedule, **changes)
    validate_schedule(updated)
    return updated


# =============================================================================
# Due evaluation
# =============================================================================


def is_due(schedule: RecurringSchedule, as_of_date: date) -> bool:
    """Pure due test; mirrors the store's due query."""
    if not schedule.is_active:
        return False
    if schedule.next_generation_date > as_of_date:
        return False
    if schedule.end_date is not None and schedule.end_date < as_of_date:
        return False
    return True


def build_document_request(
    schedule: RecurringSchedule,
    issue_date: date,
    created_by: UUID | None,
) -> CreateDocumentRequest:
    """Document request for one cycle: due = issue + payment terms, rate 1."""
    return CreateDocumentRequest(
        document_type=schedule.document_type,
        contact_id=schedule.contact_id,
        issue_date=issue_date,
        due_date=issue_date + timedelta(days=schedule.payment_terms_days),
        currency=schedule.currency,
        lines=tuple(
            replace(line, quantity=normalize_quantity(line.quantity), line_id=None)
            for line in schedule.lines
        ),
        exchange_rate=_ONE,
        reference=schedule.reference,
        notes=schedule.notes,
        created_by=created_by,
    )
