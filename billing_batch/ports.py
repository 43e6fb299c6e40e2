"""
Collaborator protocols for the billing batch services.

Contract:
    Services depend on these protocols only.  The SQLAlchemy stores in
    ``billing_batch.stores`` implement ``ScheduleStore``,
    ``ReminderStore`` and ``InterestStore``; documents, notifications,
    attachments, tenants and contacts are provided by the host application.

Error conventions:
    - Store lookups raise the distinguished ``*NotFoundError`` for absent
      rows.  Every other failure propagates unchanged and is wrapped with a
      stage label by the calling service.
    - Optional collaborators (notification, attachment, tenant and contact
      directories) may be absent; services check for ``None`` explicitly and
      report a degraded outcome instead of failing.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from billing_batch.domain.types import (
    Attachment,
    BillingDocument,
    ContactInfo,
    CreateDocumentRequest,
    DeliveryStatus,
    InterestRecord,
    RecurringSchedule,
    ReminderCandidate,
    ReminderRule,
    ReminderStatus,
    RenderedMessage,
    ScheduleLine,
    SentReminder,
    Template,
    TemplateData,
    TenantInfo,
    TenantScope,
)


# =============================================================================
# Stores
# =============================================================================


@runtime_checkable
class ScheduleStore(Protocol):
    """Persistence for recurring schedules and document delivery status.

    All reads and writes are scoped by ``tenant.tenant_id``.
    Implementations never commit; the caller owns the transaction.
    """

    def ensure_schema(self, tenant: TenantScope) -> None: ...

    def create(self, tenant: TenantScope, schedule: RecurringSchedule) -> RecurringSchedule: ...

    def get(self, tenant: TenantScope, schedule_id: UUID) -> RecurringSchedule: ...

    def list(self, tenant: TenantScope, active_only: bool = False) -> list[RecurringSchedule]: ...

    def update(
        self,
        tenant: TenantScope,
        schedule: RecurringSchedule,
        replace_lines: bool = False,
    ) -> RecurringSchedule:
        """Write editable fields; with ``replace_lines`` swap the whole line set atomically."""
        ...

    def delete(self, tenant: TenantScope, schedule_id: UUID) -> None: ...

    def create_line(self, tenant: TenantScope, schedule_id: UUID, line: ScheduleLine) -> ScheduleLine: ...

    def get_lines(self, tenant: TenantScope, schedule_id: UUID) -> list[ScheduleLine]: ...

    def delete_lines(self, tenant: TenantScope, schedule_id: UUID) -> None: ...

    def set_active(self, tenant: TenantScope, schedule_id: UUID, active: bool) -> None: ...

    def get_due_ids(self, tenant: TenantScope, as_of_date: date) -> list[UUID]: ...

    def update_after_generation(
        self,
        tenant: TenantScope,
        schedule_id: UUID,
        next_date: date,
        generated_at: datetime,
    ) -> None: ...

    def update_document_delivery_status(
        self,
        tenant: TenantScope,
        document_id: UUID,
        sent_at: datetime | None,
        status: DeliveryStatus,
        log_id: str | None,
    ) -> None: ...


@runtime_checkable
class ReminderStore(Protocol):
    """Persistence for reminder rules, the candidate query and the dedup ledger."""

    def ensure_schema(self, tenant: TenantScope) -> None: ...

    def list_rules(self, tenant: TenantScope) -> list[ReminderRule]: ...

    def list_active_rules(self, tenant: TenantScope) -> list[ReminderRule]: ...

    def get_rule(self, tenant: TenantScope, rule_id: UUID) -> ReminderRule: ...

    def create_rule(self, tenant: TenantScope, rule: ReminderRule) -> ReminderRule: ...

    def update_rule(self, tenant: TenantScope, rule: ReminderRule) -> ReminderRule: ...

    def delete_rule(self, tenant: TenantScope, rule_id: UUID) -> None: ...

    def get_documents_for_rule(
        self,
        tenant: TenantScope,
        rule: ReminderRule,
        as_of_date: date,
    ) -> list[ReminderCandidate]: ...

    def has_reminder_been_sent(self, tenant: TenantScope, document_id: UUID, rule_id: UUID) -> bool:
        """True iff a SENT ledger row exists for (document, rule)."""
        ...

    def record_reminder(self, tenant: TenantScope, reminder: SentReminder) -> SentReminder: ...

    def update_reminder_status(
        self,
        tenant: TenantScope,
        reminder_id: UUID,
        status: ReminderStatus,
        sent_at: datetime | None,
        error_message: str | None,
    ) -> None: ...

    def get_overdue_documents(self, tenant: TenantScope, as_of_date: date) -> list[BillingDocument]:
        """Overdue documents, most overdue first, then the largest total."""
        ...

    def get_reminder_stats(self, tenant: TenantScope, document_id: UUID) -> tuple[int, datetime | None]:
        """Count of SENT ledger rows for the document and the newest ``sent_at``."""
        ...

    def list_reminders_for_document(self, tenant: TenantScope, document_id: UUID) -> list[SentReminder]:
        """Every ledger row for the document, newest first."""
        ...


@runtime_checkable
class InterestStore(Protocol):
    """Document lookup and the append-only interest calculation log."""

    def ensure_schema(self, tenant: TenantScope) -> None: ...

    def get_document(self, tenant: TenantScope, document_id: UUID) -> BillingDocument: ...

    def get_overdue_documents(self, tenant: TenantScope, as_of_date: date) -> list[BillingDocument]:
        """Overdue documents ordered by due date, oldest first."""
        ...

    def save(self, tenant: TenantScope, record: InterestRecord) -> InterestRecord: ...

    def latest(self, tenant: TenantScope, document_id: UUID) -> InterestRecord | None: ...

    def history(self, tenant: TenantScope, document_id: UUID) -> list[InterestRecord]: ...


# =============================================================================
# External services
# =============================================================================


@runtime_checkable
class DocumentCreationService(Protocol):
    def create_document(self, tenant: TenantScope, request: CreateDocumentRequest) -> BillingDocument: ...

    def get_document(self, tenant: TenantScope, document_id: UUID) -> BillingDocument: ...


@runtime_checkable
class NotificationService(Protocol):
    """Template lookup, rendering and email delivery."""

    def get_template(self, tenant: TenantScope, template_type: str) -> Template: ...

    def render(self, template: Template, data: TemplateData) -> RenderedMessage: ...

    def send(
        self,
        tenant: TenantScope,
        *,
        email_type: str,
        to_email: str,
        to_name: str,
        subject: str,
        body_html: str,
        body_text: str,
        attachments: tuple[Attachment, ...],
        related_id: UUID | None,
    ) -> str:
        """Deliver the message and return the delivery log id."""
        ...


@runtime_checkable
class AttachmentService(Protocol):
    def generate(self, document: BillingDocument, tenant: TenantScope, tenant_info: TenantInfo | None) -> bytes: ...


@runtime_checkable
class TenantDirectory(Protocol):
    def get_tenant(self, tenant_id: str) -> TenantInfo: ...


@runtime_checkable
class ContactDirectory(Protocol):
    def get_contact(self, tenant_id: str, contact_id: UUID) -> ContactInfo: ...
