"""
billing_batch.domain.types -- Pure frozen dataclasses for recurring billing.

ZERO I/O.  Everything the services pass around (schedules, rules, ledger
rows, document snapshots, notification payloads) is an immutable DTO with
enum status fields and tuples for collections.  ORM models convert to and
from these via ``to_dto()`` / ``from_dto()``.

Invariants enforced:
    - All DTOs are frozen (immutable snapshots of stored state).
    - Money and quantities are ``Decimal``; never float.
    - Enumerations are closed; unknown frequency values are mapped to
      MONTHLY explicitly by ``billing_batch.domain.frequency``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


# =============================================================================
# Enums
# =============================================================================


class Frequency(str, Enum):
    """Recurrence interval of a schedule."""

    WEEKLY = "WEEKLY"
    BIWEEKLY = "BIWEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class TriggerType(str, Enum):
    """When a reminder rule fires relative to the document due date."""

    BEFORE_DUE = "BEFORE_DUE"
    ON_DUE = "ON_DUE"
    AFTER_DUE = "AFTER_DUE"


class DeliveryStatus(str, Enum):
    """Outcome of one notification dispatch."""

    SENT = "SENT"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"  # No recipient address
    NO_CONFIG = "NO_CONFIG"  # No notification service configured


class ReminderStatus(str, Enum):
    """Dedup ledger row status. SENT is terminal."""

    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class DocumentStatus(str, Enum):
    """Billing document statuses consumed by the reminder query."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    VOIDED = "VOIDED"


class TemplateType(str, Enum):
    INVOICE_SEND = "INVOICE_SEND"
    PAYMENT_RECEIPT = "PAYMENT_RECEIPT"
    OVERDUE_REMINDER = "OVERDUE_REMINDER"
    PAYMENT_DUE_SOON = "PAYMENT_DUE_SOON"
    PAYMENT_DUE_TODAY = "PAYMENT_DUE_TODAY"


SALES_DOCUMENT_TYPE = "SALES"


# =============================================================================
# Invocation context
# =============================================================================


@dataclass(frozen=True)
class TenantScope:
    """Who a run acts for: tenant, its storage namespace, and the acting user."""

    tenant_id: str
    schema_name: str
    actor_id: UUID


# =============================================================================
# Schedules
# =============================================================================


@dataclass(frozen=True)
class ScheduleLine:
    """One template line copied into every generated document."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    unit: str = ""
    discount_percent: Decimal = Decimal("0")
    vat_rate: Decimal = Decimal("0")
    account_id: UUID | None = None
    product_id: UUID | None = None
    line_number: int = 0  # 1-based; assigned on save
    line_id: UUID | None = None


@dataclass(frozen=True)
class RecurringSchedule:
    """Immutable snapshot of a recurring document schedule.

    ``next_generation_date`` only moves forward, and only after a document
    was created for the current cycle.  ``generated_count`` is monotonic.
    """

    schedule_id: UUID
    tenant_id: str
    name: str
    contact_id: UUID
    frequency: Frequency
    start_date: date
    next_generation_date: date
    lines: tuple[ScheduleLine, ...] = ()
    contact_name: str = ""
    document_type: str = SALES_DOCUMENT_TYPE
    currency: str = "EUR"
    end_date: date | None = None
    payment_terms_days: int = 14
    reference: str = ""
    notes: str = ""
    is_active: bool = True
    last_generated_at: datetime | None = None
    generated_count: int = 0

    # Notification on generation
    send_on_generation: bool = False
    template_type: str | None = None
    recipient_email_override: str | None = None
    attach_document: bool = True
    subject_override: str | None = None
    message: str | None = None

    created_by: UUID | None = None
    created_at: datetime | None = None


# =============================================================================
# Reminders
# =============================================================================


@dataclass(frozen=True)
class ReminderRule:
    """Tenant-defined reminder trigger: (trigger type, day offset) -> template."""

    rule_id: UUID
    tenant_id: str
    name: str
    trigger_type: TriggerType
    days_offset: int
    template_type: str
    is_active: bool = True


@dataclass(frozen=True)
class SentReminder:
    """Ledger row for one reminder delivery attempt.

    Rule-driven rows carry ``rule_id`` and ``trigger_type``; manual rows
    leave both empty and never count towards the rule dedup check.
    """

    reminder_id: UUID
    tenant_id: str
    document_id: UUID
    rule_id: UUID | None
    trigger_type: TriggerType | None
    days_offset: int
    status: ReminderStatus
    document_number: str = ""
    contact_id: UUID | None = None
    contact_name: str = ""
    contact_email: str = ""
    sent_at: datetime | None = None
    error_message: str | None = None
    created_at: datetime | None = None


# =============================================================================
# Documents (consumed snapshots)
# =============================================================================


@dataclass(frozen=True)
class BillingDocument:
    """Snapshot of an issued document as returned by the document collaborator."""

    document_id: UUID
    number: str
    document_type: str
    contact_id: UUID
    issue_date: date
    due_date: date
    total: Decimal
    amount_paid: Decimal
    currency: str
    status: DocumentStatus
    contact_name: str = ""
    contact_email: str = ""
    lines: tuple[ScheduleLine, ...] = ()

    @property
    def outstanding(self) -> Decimal:
        return self.total - self.amount_paid


@dataclass(frozen=True)
class CreateDocumentRequest:
    """Input to ``DocumentCreationService.create_document``."""

    document_type: str
    contact_id: UUID
    issue_date: date
    due_date: date
    currency: str
    lines: tuple[ScheduleLine, ...]
    exchange_rate: Decimal = Decimal("1")
    reference: str = ""
    notes: str = ""
    created_by: UUID | None = None


@dataclass(frozen=True)
class ReminderCandidate:
    """A document selected for a rule, with its day distance to the due date."""

    document: BillingDocument
    days_overdue: int = 0
    days_until_due: int = 0


@dataclass(frozen=True)
class InterestRecord:
    """A saved interest calculation for one document."""

    record_id: UUID
    document_id: UUID
    calculated_at: datetime
    days_overdue: int
    principal: Decimal
    daily_rate: Decimal
    interest_amount: Decimal
    total_with_interest: Decimal
    currency: str


# =============================================================================
# Notification payloads
# =============================================================================


@dataclass(frozen=True)
class TenantInfo:
    tenant_id: str
    name: str


@dataclass(frozen=True)
class ContactInfo:
    contact_id: UUID
    name: str
    email: str = ""


@dataclass(frozen=True)
class Template:
    template_type: str
    subject: str
    body_html: str
    body_text: str = ""


@dataclass(frozen=True)
class TemplateData:
    """Values available to a template at render time."""

    company_name: str = ""
    contact_name: str = ""
    message: str = ""
    document_number: str = ""
    total_amount: str = ""
    currency: str = ""
    due_date: str = ""
    issue_date: str = ""
    days_overdue: int = 0
    days_until_due: int = 0


@dataclass(frozen=True)
class RenderedMessage:
    subject: str
    body_html: str
    body_text: str = ""


@dataclass(frozen=True)
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"


@dataclass(frozen=True)
class NotificationRequest:
    """What the dispatcher should send for one document.

    ``fallback_template_type`` is only set on the generation path; reminder
    dispatches leave it ``None`` so a missing template is a hard failure.
    """

    template_type: str
    email_type: str
    contact_id: UUID | None = None
    recipient_email_override: str | None = None
    recipient_name: str = ""
    fallback_template_type: str | None = None
    attach_document: bool = False
    subject_override: str | None = None
    message: str | None = None
    days_overdue: int = 0
    days_until_due: int = 0
