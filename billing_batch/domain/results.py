"""
billing_batch.domain.results -- Run and item result types.

Ephemeral, immutable reports returned by the generation orchestrator, the
notification dispatcher, the reminder evaluator, the manual reminder
service and the interest calculator.  Counts are derived from the item tuples so they can never
disagree with them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from billing_batch.domain.types import BillingDocument, DeliveryStatus


# =============================================================================
# Notification
# =============================================================================


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one ``NotificationDispatcher.send`` call.

    ``sent`` is True only for ``DeliveryStatus.SENT``.  ``error`` may be set
    alongside a SENT status when a non-fatal step (the attachment) failed.
    """

    sent: bool
    status: DeliveryStatus
    log_id: str | None = None
    error: str | None = None


# =============================================================================
# Generation
# =============================================================================


@dataclass(frozen=True)
class GenerationOutcome:
    """One schedule turned into one document."""

    schedule_id: UUID
    document_id: UUID
    document_number: str
    next_generation_date: date
    notification_sent: bool = False
    notification_status: DeliveryStatus | None = None
    notification_log_id: str | None = None
    notification_error: str | None = None


@dataclass(frozen=True)
class GenerationFailure:
    schedule_id: UUID
    error: str


@dataclass(frozen=True)
class GenerationResult:
    """Aggregate of one ``GenerationOrchestrator.run_due`` call."""

    tenant_id: str
    as_of: datetime
    due_count: int
    outcomes: tuple[GenerationOutcome, ...] = ()
    failures: tuple[GenerationFailure, ...] = ()
    cancelled: bool = False

    @property
    def generated(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def errors(self) -> tuple[str, ...]:
        return tuple(f"{f.schedule_id}: {f.error}" for f in self.failures)


# =============================================================================
# Reminders
# =============================================================================


@dataclass(frozen=True)
class RuleRunResult:
    """Per-rule counters for one reminder run."""

    rule_id: UUID
    rule_name: str
    documents_found: int = 0
    reminders_sent: int = 0
    skipped: int = 0
    failed: int = 0
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ReminderRunResult:
    """Aggregate of one ``ReminderRuleEvaluator.run_due`` call."""

    tenant_id: str
    as_of: datetime
    rule_results: tuple[RuleRunResult, ...] = ()
    cancelled: bool = False

    @property
    def rules_processed(self) -> int:
        return len(self.rule_results)

    @property
    def documents_found(self) -> int:
        return sum(r.documents_found for r in self.rule_results)

    @property
    def reminders_sent(self) -> int:
        return sum(r.reminders_sent for r in self.rule_results)

    @property
    def skipped(self) -> int:
        return sum(r.skipped for r in self.rule_results)

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.rule_results)

    @property
    def errors(self) -> tuple[str, ...]:
        return tuple(e for r in self.rule_results for e in r.errors)


# =============================================================================
# Interest
# =============================================================================


@dataclass(frozen=True)
class InterestCalculation:
    """Overdue interest for one document at one point in time."""

    document_id: UUID
    document_number: str
    due_date: date
    days_overdue: int
    outstanding: Decimal
    daily_rate: Decimal
    daily_interest: Decimal
    total_interest: Decimal
    total_with_interest: Decimal
    currency: str
    calculated_at: datetime


# =============================================================================
# Overdue documents and manual reminders
# =============================================================================


@dataclass(frozen=True)
class OverdueDocument:
    """An overdue document with its reminder history digest."""

    document: BillingDocument
    days_overdue: int
    reminder_count: int = 0
    last_reminder_at: datetime | None = None

    @property
    def outstanding(self) -> Decimal:
        return self.document.outstanding


@dataclass(frozen=True)
class OverdueSummary:
    """Overdue position of one tenant.

    ``total_outstanding`` adds amounts across currencies as stored.
    """

    tenant_id: str
    total_outstanding: Decimal
    document_count: int
    contact_count: int
    average_days_overdue: int
    documents: tuple[OverdueDocument, ...]
    generated_at: datetime


@dataclass(frozen=True)
class ManualReminderResult:
    document_id: UUID
    success: bool
    message: str
    document_number: str = ""
    reminder_id: UUID | None = None
    reminder_number: int | None = None


@dataclass(frozen=True)
class BulkReminderResult:
    """Aggregate of one ``PaymentReminderService.send_bulk`` call."""

    results: tuple[ManualReminderResult, ...] = ()

    @property
    def requested(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return self.requested - self.successful
