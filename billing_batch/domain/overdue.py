"""
Pure overdue-document math for manual reminders and batch interest.

Contract:
    PURE.  ``is_overdue`` is the predicate the SQL store mirrors in its
    overdue query; the in-memory fakes call it directly.

Overdue on date D:
    sales document, status SENT / PARTIALLY_PAID / OVERDUE,
    due_date < D, total > amount_paid.
    days overdue = D - due_date.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from billing_batch.domain.reminder import admissible_statuses
from billing_batch.domain.results import OverdueDocument, OverdueSummary
from billing_batch.domain.types import SALES_DOCUMENT_TYPE, BillingDocument, TriggerType

OVERDUE_STATUSES = admissible_statuses(TriggerType.AFTER_DUE)


@dataclass(frozen=True)
class SendReminderRequest:
    document_id: UUID
    message: str | None = None


@dataclass(frozen=True)
class SendBulkRemindersRequest:
    document_ids: tuple[UUID, ...]
    message: str | None = None


def is_overdue(document: BillingDocument, as_of_date: date) -> bool:
    return (
        document.document_type == SALES_DOCUMENT_TYPE
        and document.status in OVERDUE_STATUSES
        and document.due_date < as_of_date
        and document.total > document.amount_paid
    )


def days_past_due(document: BillingDocument, as_of_date: date) -> int:
    return (as_of_date - document.due_date).days


def overdue_sort_key(document: BillingDocument, as_of_date: date) -> tuple:
    """Most overdue first, then the largest total."""
    return (-days_past_due(document, as_of_date), -document.total, document.number)


def summarize_overdue(
    tenant_id: str,
    documents: list[OverdueDocument],
    generated_at: datetime,
) -> OverdueSummary:
    """Totals over ``documents``; the average is integer days, 0 when empty."""
    total = sum((d.outstanding for d in documents), Decimal("0"))
    contacts = {d.document.contact_id for d in documents}
    average = sum(d.days_overdue for d in documents) // len(documents) if documents else 0
    return OverdueSummary(
        tenant_id=tenant_id,
        total_outstanding=total,
        document_count=len(documents),
        contact_count=len(contacts),
        average_days_overdue=average,
        documents=tuple(documents),
        generated_at=generated_at,
    )
