"""
PaymentReminderService -- overdue summary and manual payment reminders.

Contract:
    ``overdue_summary`` reports every overdue document of a tenant with its
    reminder count.  ``send_reminder`` / ``send_bulk`` send an
    operator-initiated reminder through the same dispatcher and ledger as
    the rule evaluator.  ``history`` lists a document's ledger rows.

Manual reminder:
    overdue lookup -> email check -> PENDING row -> dispatch -> SENT | FAILED

Invariants enforced:
    - Only overdue documents can be reminded; anything else is an
      unsuccessful result, not an error.
    - The PENDING row is written BEFORE sending; if it cannot be written
      ``CollaboratorError`` is raised and nothing is sent.
    - Manual rows carry no rule, so they never block a rule-driven reminder.
    - No template fallback: a missing template fails the reminder.
    - A failed status update after dispatch is logged, never raised.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID, uuid4

from billing_config.schema import EngineSettings
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import CollaboratorError
from billing_kernel.logging_config import LogContext, get_logger

from billing_batch.domain.overdue import (
    SendBulkRemindersRequest,
    SendReminderRequest,
    days_past_due,
    summarize_overdue,
)
from billing_batch.domain.reminder import default_template_for
from billing_batch.domain.results import (
    BulkReminderResult,
    ManualReminderResult,
    OverdueDocument,
    OverdueSummary,
)
from billing_batch.domain.types import (
    BillingDocument,
    NotificationRequest,
    ReminderStatus,
    SentReminder,
    TenantScope,
    TriggerType,
)
from billing_batch.ports import ReminderStore
from billing_batch.services.dispatcher import NotificationDispatcher

logger = get_logger("batch.payment_reminders")


class PaymentReminderService:
    """Operator-facing reminders for overdue documents."""

    def __init__(
        self,
        reminder_store: ReminderStore,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        self._store = reminder_store
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def overdue_summary(self, tenant: TenantScope, as_of: datetime | None = None) -> OverdueSummary:
        """Every overdue document with its SENT reminder count and last send.

        Raises:
            CollaboratorError: the overdue query or a reminder count failed.
        """
        as_of = as_of or self._clock.now()
        as_of_date = as_of.date()
        documents = self._overdue_documents(tenant, as_of_date)

        overdue: list[OverdueDocument] = []
        for document in documents:
            try:
                count, last_sent = self._store.get_reminder_stats(tenant, document.document_id)
            except Exception as exc:
                raise CollaboratorError(f"get reminder count for {document.number}", exc) from exc
            overdue.append(
                OverdueDocument(
                    document=document,
                    days_overdue=days_past_due(document, as_of_date),
                    reminder_count=count,
                    last_reminder_at=last_sent,
                )
            )

        summary = summarize_overdue(tenant.tenant_id, overdue, generated_at=as_of)
        logger.info(
            "overdue_summary_built",
            extra={
                "tenant_id": tenant.tenant_id,
                "documents": summary.document_count,
                "contacts": summary.contact_count,
                "total_outstanding": summary.total_outstanding,
            },
        )
        return summary

    def history(self, tenant: TenantScope, document_id: UUID) -> list[SentReminder]:
        """Every ledger row for the document, newest first."""
        try:
            return self._store.list_reminders_for_document(tenant, document_id)
        except Exception as exc:
            raise CollaboratorError("list reminder history", exc) from exc

    # -------------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------------

    def send_reminder(
        self,
        tenant: TenantScope,
        request: SendReminderRequest,
        as_of: datetime | None = None,
    ) -> ManualReminderResult:
        """Send one manual reminder for an overdue document.

        Raises:
            CollaboratorError: a store read failed or the PENDING row could
                not be written.
        """
        as_of = as_of or self._clock.now()

        with LogContext.bind(tenant_id=tenant.tenant_id, actor_id=tenant.actor_id):
            document = self._find_overdue(tenant, request.document_id, as_of)
            if document is None:
                return ManualReminderResult(
                    document_id=request.document_id,
                    success=False,
                    message="document not found or not overdue",
                )
            if not document.contact_email:
                return ManualReminderResult(
                    document_id=document.document_id,
                    document_number=document.number,
                    success=False,
                    message="contact has no email address",
                )
            return self._send(tenant, document, request.message, as_of)

    def send_bulk(
        self,
        tenant: TenantScope,
        request: SendBulkRemindersRequest,
        as_of: datetime | None = None,
    ) -> BulkReminderResult:
        """``send_reminder`` for each id in order; errors become failed results."""
        as_of = as_of or self._clock.now()
        results: list[ManualReminderResult] = []

        for document_id in request.document_ids:
            try:
                result = self.send_reminder(
                    tenant, SendReminderRequest(document_id, request.message), as_of,
                )
            except Exception as exc:
                logger.warning(
                    "manual_reminder_error",
                    extra={"document_id": str(document_id), "error": str(exc)},
                )
                result = ManualReminderResult(document_id=document_id, success=False, message=str(exc))
            results.append(result)

        bulk = BulkReminderResult(results=tuple(results))
        logger.info(
            "bulk_reminders_completed",
            extra={
                "tenant_id": tenant.tenant_id,
                "requested": bulk.requested,
                "successful": bulk.successful,
                "failed": bulk.failed,
            },
        )
        return bulk

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _overdue_documents(self, tenant: TenantScope, as_of_date: date) -> list[BillingDocument]:
        try:
            return self._store.get_overdue_documents(tenant, as_of_date)
        except Exception as exc:
            raise CollaboratorError("get overdue documents", exc) from exc

    def _find_overdue(
        self,
        tenant: TenantScope,
        document_id: UUID,
        as_of: datetime,
    ) -> BillingDocument | None:
        for document in self._overdue_documents(tenant, as_of.date()):
            if document.document_id == document_id:
                return document
        return None

    def _send(
        self,
        tenant: TenantScope,
        document: BillingDocument,
        message: str | None,
        as_of: datetime,
    ) -> ManualReminderResult:
        days = days_past_due(document, as_of.date())
        try:
            count, _ = self._store.get_reminder_stats(tenant, document.document_id)
        except Exception as exc:
            raise CollaboratorError(f"get reminder count for {document.number}", exc) from exc
        number = count + 1

        pending = SentReminder(
            reminder_id=uuid4(),
            tenant_id=tenant.tenant_id,
            document_id=document.document_id,
            rule_id=None,
            trigger_type=None,
            days_offset=days,
            status=ReminderStatus.PENDING,
            document_number=document.number,
            contact_id=document.contact_id,
            contact_name=document.contact_name,
            contact_email=document.contact_email,
            created_at=as_of,
        )
        try:
            self._store.record_reminder(tenant, pending)
        except Exception as exc:
            raise CollaboratorError("record reminder", exc) from exc

        template_type = default_template_for(TriggerType.AFTER_DUE, self._settings.reminder_templates)
        outcome = self._dispatcher.send(
            tenant,
            NotificationRequest(
                template_type=template_type,
                email_type=template_type,
                recipient_email_override=document.contact_email,
                recipient_name=document.contact_name,
                message=message,
                days_overdue=days,
            ),
            document,
        )

        if outcome.sent:
            status, sent_at, error = ReminderStatus.SENT, as_of, None
        else:
            status, sent_at, error = ReminderStatus.FAILED, None, outcome.error

        try:
            self._store.update_reminder_status(tenant, pending.reminder_id, status, sent_at, error)
        except Exception:
            logger.warning(
                "reminder_status_update_failed",
                extra={
                    "reminder_id": str(pending.reminder_id),
                    "document_id": str(document.document_id),
                    "status": status.value,
                },
                exc_info=True,
            )

        logger.info(
            "manual_reminder_sent" if outcome.sent else "manual_reminder_failed",
            extra={
                "document_id": str(document.document_id),
                "reminder_number": number,
                "days_overdue": days,
                "delivery": outcome.status,
            },
        )
        return ManualReminderResult(
            document_id=document.document_id,
            document_number=document.number,
            success=outcome.sent,
            message=f"reminder #{number} sent" if outcome.sent else outcome.error or "send failed",
            reminder_id=pending.reminder_id,
            reminder_number=number,
        )
