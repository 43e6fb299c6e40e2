"""
ReminderRuleEvaluator -- rule-based payment reminders with a dedup ledger.

Contract:
    ``run_due(tenant, as_of, cancel_event)`` evaluates every active rule for
    the tenant and returns a ``ReminderRunResult`` with per-rule counters.

Per (document, rule) state machine:
    (none) -> PENDING -> SENT      terminal; blocks every later send
                      -> FAILED    retried on a later run

Invariants enforced:
    - A SENT ledger row for (document, rule) is the only idempotency guard.
    - The PENDING row is written BEFORE sending; if it cannot be written the
      reminder is counted as failed and nothing is sent.
    - A document without a contact email is skipped without a ledger row.
    - No template fallback: a missing rule template fails the reminder.
    - One rule's failure never stops the other rules.
"""

from __future__ import annotations

import threading
from datetime import datetime
from uuid import uuid4

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import CollaboratorError
from billing_kernel.logging_config import LogContext, get_logger

from billing_batch.domain.results import ReminderRunResult, RuleRunResult
from billing_batch.domain.types import (
    NotificationRequest,
    ReminderCandidate,
    ReminderRule,
    ReminderStatus,
    SentReminder,
    TenantScope,
)
from billing_batch.ports import ReminderStore
from billing_batch.services.dispatcher import NotificationDispatcher

logger = get_logger("batch.reminders")


class ReminderRuleEvaluator:
    """Evaluates reminder rules and sends reminders through the dispatcher."""

    def __init__(
        self,
        reminder_store: ReminderStore,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
    ):
        self._store = reminder_store
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._clock = clock or SystemClock()

    def run_due(
        self,
        tenant: TenantScope,
        as_of: datetime | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ReminderRunResult:
        """Process every active rule as of ``as_of``.

        Raises:
            CollaboratorError: if the active rules cannot be listed.
        """
        as_of = as_of or self._clock.now()
        run_id = uuid4()

        with LogContext.bind(tenant_id=tenant.tenant_id, run_id=run_id, actor_id=tenant.actor_id):
            logger.info(
                "reminder_run_started",
                extra={"as_of": as_of, "schema_name": tenant.schema_name},
            )

            try:
                rules = self._store.list_active_rules(tenant)
            except Exception as exc:
                logger.exception("reminder_run_aborted")
                raise CollaboratorError("list active rules", exc) from exc

            rule_results: list[RuleRunResult] = []
            cancelled = False

            for rule in rules:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    break
                with LogContext.bind(rule_id=rule.rule_id):
                    rule_result, cancelled = self._process_rule(tenant, rule, as_of, cancel_event)
                rule_results.append(rule_result)
                if cancelled:
                    break

            if cancelled:
                logger.info("reminder_run_cancelled", extra={"rules_processed": len(rule_results)})

            result = ReminderRunResult(
                tenant_id=tenant.tenant_id,
                as_of=as_of,
                rule_results=tuple(rule_results),
                cancelled=cancelled,
            )
            logger.info(
                "reminder_run_completed",
                extra={
                    "rules": result.rules_processed,
                    "found": result.documents_found,
                    "sent": result.reminders_sent,
                    "skipped": result.skipped,
                    "failed": result.failed,
                },
            )
            return result

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _process_rule(
        self,
        tenant: TenantScope,
        rule: ReminderRule,
        as_of: datetime,
        cancel_event: threading.Event | None,
    ) -> tuple[RuleRunResult, bool]:
        errors: list[str] = []
        sent = skipped = failed = 0
        cancelled = False

        try:
            candidates = self._store.get_documents_for_rule(tenant, rule, as_of.date())
        except Exception as exc:
            logger.warning("reminder_candidates_failed", extra={"error": str(exc)})
            errors.append(f"get documents: {exc}")
            candidates = []

        for candidate in candidates:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break

            document = candidate.document
            try:
                already_sent = self._store.has_reminder_been_sent(
                    tenant, document.document_id, rule.rule_id,
                )
            except Exception as exc:
                errors.append(f"check sent for {document.number}: {exc}")
                failed += 1
                continue

            if already_sent or not document.contact_email:
                skipped += 1
                continue

            if self._send_reminder(tenant, rule, candidate, as_of, errors):
                sent += 1
            else:
                failed += 1

        result = RuleRunResult(
            rule_id=rule.rule_id,
            rule_name=rule.name,
            documents_found=len(candidates),
            reminders_sent=sent,
            skipped=skipped,
            failed=failed,
            errors=tuple(errors),
        )
        logger.info(
            "reminder_rule_processed",
            extra={
                "rule_name": rule.name,
                "trigger_type": rule.trigger_type.value,
                "days_offset": rule.days_offset,
                "found": result.documents_found,
                "sent": sent,
                "skipped": skipped,
                "failed": failed,
            },
        )
        return result, cancelled

    def _send_reminder(
        self,
        tenant: TenantScope,
        rule: ReminderRule,
        candidate: ReminderCandidate,
        as_of: datetime,
        errors: list[str],
    ) -> bool:
        document = candidate.document
        pending = SentReminder(
            reminder_id=uuid4(),
            tenant_id=tenant.tenant_id,
            document_id=document.document_id,
            rule_id=rule.rule_id,
            trigger_type=rule.trigger_type,
            days_offset=rule.days_offset,
            status=ReminderStatus.PENDING,
            document_number=document.number,
            contact_id=document.contact_id,
            contact_name=document.contact_name,
            contact_email=document.contact_email,
        )
        try:
            self._store.record_reminder(tenant, pending)
        except Exception as exc:
            errors.append(f"record reminder for {document.number}: {exc}")
            return False

        request = NotificationRequest(
            template_type=rule.template_type,
            email_type=rule.template_type,
            recipient_email_override=document.contact_email,
            recipient_name=document.contact_name,
            days_overdue=candidate.days_overdue,
            days_until_due=candidate.days_until_due,
        )
        outcome = self._dispatcher.send(tenant, request, document)

        if outcome.sent:
            status, sent_at, error = ReminderStatus.SENT, as_of, None
        else:
            status, sent_at, error = ReminderStatus.FAILED, None, outcome.error
            errors.append(f"send {document.number}: {outcome.error}")

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

        return outcome.sent
