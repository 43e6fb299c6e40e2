"""
GenerationOrchestrator -- turns due recurring schedules into documents.

Contract:
    ``run_due(tenant, as_of, cancel_event)`` generates one document for every
    schedule due on ``as_of`` and returns a ``GenerationResult``.
    ``generate_one(tenant, schedule_id, as_of)`` generates a single document
    and raises on failure.

Architecture: billing_batch/services.  Uses billing_batch.domain for pure
    rules and billing_batch.ports for every collaborator.

Invariants enforced:
    - The schedule is advanced only after the document was created; a
      creation failure leaves the schedule untouched, so the next run retries
      it (at-least-once).
    - Advancement is a single store call keyed by tenant and schedule id.
    - Notification outcome never fails the item; delivery status is
      persisted best-effort.
    - One item's failure never aborts the run.  Cancellation is checked
      between items, never inside one.
    - ``as_of`` comes from the caller or the injected Clock.
"""

from __future__ import annotations

import threading
from datetime import datetime
from uuid import UUID, uuid4

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import (
    BillingKernelError,
    CollaboratorError,
    ScheduleInactiveError,
)
from billing_kernel.logging_config import LogContext, get_logger

from billing_batch.domain.frequency import advance
from billing_batch.domain.results import (
    DispatchOutcome,
    GenerationFailure,
    GenerationOutcome,
    GenerationResult,
)
from billing_batch.domain.schedule import build_document_request
from billing_batch.domain.types import (
    BillingDocument,
    DeliveryStatus,
    NotificationRequest,
    RecurringSchedule,
    TemplateType,
    TenantScope,
)
from billing_batch.ports import DocumentCreationService, ScheduleStore
from billing_batch.services.dispatcher import NotificationDispatcher

logger = get_logger("batch.generation")


class GenerationOrchestrator:
    """Generates documents for due schedules, one at a time.

    Non-goals:
        - Does NOT call ``session.commit()`` -- the caller owns boundaries.
        - Does NOT lock schedules; a single active runner per tenant is
          assumed and at-least-once generation is the safety net.
    """

    def __init__(
        self,
        schedule_store: ScheduleStore,
        document_service: DocumentCreationService,
        dispatcher: NotificationDispatcher | None = None,
        clock: Clock | None = None,
        template_type: str = TemplateType.INVOICE_SEND.value,
        fallback_template_type: str | None = TemplateType.INVOICE_SEND.value,
    ):
        self._store = schedule_store
        self._documents = document_service
        self._dispatcher = dispatcher or NotificationDispatcher()
        self._clock = clock or SystemClock()
        self._template_type = template_type
        self._fallback_template_type = fallback_template_type

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def run_due(
        self,
        tenant: TenantScope,
        as_of: datetime | None = None,
        cancel_event: threading.Event | None = None,
    ) -> GenerationResult:
        """Generate every schedule due on ``as_of``.

        Raises:
            CollaboratorError: if the due schedules cannot be listed.
        """
        as_of = as_of or self._clock.now()
        run_id = uuid4()

        with LogContext.bind(tenant_id=tenant.tenant_id, run_id=run_id, actor_id=tenant.actor_id):
            logger.info(
                "generation_run_started",
                extra={"as_of": as_of, "schema_name": tenant.schema_name},
            )

            try:
                due_ids = self._store.get_due_ids(tenant, as_of.date())
            except Exception as exc:
                logger.exception("generation_run_aborted")
                raise CollaboratorError("list due schedules", exc) from exc

            outcomes: list[GenerationOutcome] = []
            failures: list[GenerationFailure] = []
            cancelled = False

            for schedule_id in due_ids:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled = True
                    logger.info(
                        "generation_run_cancelled",
                        extra={"processed": len(outcomes) + len(failures), "due": len(due_ids)},
                    )
                    break

                try:
                    outcomes.append(self.generate_one(tenant, schedule_id, as_of))
                except Exception as exc:
                    failures.append(GenerationFailure(schedule_id=schedule_id, error=str(exc)))
                    logger.warning(
                        "schedule_generation_failed",
                        extra={"schedule_id": str(schedule_id), "error": str(exc)},
                    )

            result = GenerationResult(
                tenant_id=tenant.tenant_id,
                as_of=as_of,
                due_count=len(due_ids),
                outcomes=tuple(outcomes),
                failures=tuple(failures),
                cancelled=cancelled,
            )

            logger.info(
                "generation_run_completed",
                extra={
                    "due": result.due_count,
                    "generated": result.generated,
                    "failed": result.failed,
                    "cancelled": cancelled,
                },
            )
            return result

    def generate_one(
        self,
        tenant: TenantScope,
        schedule_id: UUID,
        as_of: datetime | None = None,
    ) -> GenerationOutcome:
        """Generate the document for one schedule cycle.

        Raises:
            ScheduleNotFoundError: schedule absent for the tenant.
            ScheduleInactiveError: schedule is paused; nothing is written.
            CollaboratorError: a store or document call failed.
        """
        as_of = as_of or self._clock.now()

        with LogContext.bind(schedule_id=schedule_id):
            try:
                schedule = self._store.get(tenant, schedule_id)
            except BillingKernelError:
                raise
            except Exception as exc:
                raise CollaboratorError("get schedule", exc) from exc

            if not schedule.is_active:
                raise ScheduleInactiveError(str(schedule_id))

            request = build_document_request(schedule, as_of.date(), tenant.actor_id)
            try:
                document = self._documents.create_document(tenant, request)
            except Exception as exc:
                raise CollaboratorError("create document", exc) from exc

            next_date = advance(schedule.next_generation_date, schedule.frequency)
            try:
                self._store.update_after_generation(tenant, schedule_id, next_date, as_of)
            except Exception as exc:
                # Document exists but the cycle did not advance; the next run
                # generates it again.
                logger.error(
                    "schedule_advance_failed",
                    extra={"document_id": str(document.document_id), "error": str(exc)},
                )
                raise CollaboratorError("update schedule", exc) from exc

            logger.info(
                "schedule_generated",
                extra={
                    "document_id": str(document.document_id),
                    "document_number": document.number,
                    "next_generation_date": next_date,
                },
            )

            dispatch = None
            if schedule.send_on_generation:
                dispatch = self._notify(tenant, schedule, document, as_of)

            return GenerationOutcome(
                schedule_id=schedule_id,
                document_id=document.document_id,
                document_number=document.number,
                next_generation_date=next_date,
                notification_sent=dispatch.sent if dispatch else False,
                notification_status=dispatch.status if dispatch else None,
                notification_log_id=dispatch.log_id if dispatch else None,
                notification_error=dispatch.error if dispatch else None,
            )

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _notify(
        self,
        tenant: TenantScope,
        schedule: RecurringSchedule,
        document: BillingDocument,
        as_of: datetime,
    ) -> DispatchOutcome:
        template_type = schedule.template_type or self._template_type
        request = NotificationRequest(
            template_type=template_type,
            email_type=template_type,
            contact_id=schedule.contact_id,
            recipient_email_override=schedule.recipient_email_override,
            fallback_template_type=self._fallback_template_type,
            attach_document=schedule.attach_document,
            subject_override=schedule.subject_override,
            message=schedule.message,
        )
        outcome = self._dispatcher.send(tenant, request, document)

        if outcome.status is not DeliveryStatus.NO_CONFIG:
            try:
                self._store.update_document_delivery_status(
                    tenant,
                    document.document_id,
                    as_of if outcome.sent else None,
                    outcome.status,
                    outcome.log_id,
                )
            except Exception:
                logger.warning(
                    "delivery_status_persist_failed",
                    extra={"document_id": str(document.document_id)},
                    exc_info=True,
                )

        return outcome
