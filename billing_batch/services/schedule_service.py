"""
ScheduleService -- create, read, update and delete recurring schedules.

Contract:
    All validation happens here (via billing_batch.domain.schedule) before
    anything reaches the store.  Defaults for currency, document type and
    payment terms come from ``EngineSettings``.

Architecture: billing_batch/services.  Caller owns the transaction.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from billing_config.schema import EngineSettings
from billing_kernel.exceptions import BillingKernelError, CollaboratorError, NotConfiguredError
from billing_kernel.logging_config import get_logger

from billing_batch.domain.schedule import (
    CreateFromDocumentRequest,
    CreateScheduleRequest,
    UpdateScheduleRequest,
    apply_update,
    new_schedule,
)
from billing_batch.domain.types import RecurringSchedule, TenantScope
from billing_batch.ports import DocumentCreationService, ScheduleStore

logger = get_logger("batch.schedules")


class ScheduleService:
    """CRUD plus pause/resume for recurring schedules."""

    def __init__(
        self,
        schedule_store: ScheduleStore,
        document_service: DocumentCreationService | None = None,
        settings: EngineSettings | None = None,
    ):
        self._store = schedule_store
        self._documents = document_service
        self._settings = settings or EngineSettings()

    def create(self, tenant: TenantScope, request: CreateScheduleRequest) -> RecurringSchedule:
        """Validate and persist a new schedule; its first cycle is due on start_date.

        Raises:
            ValidationError: invalid request.
        """
        schedule = new_schedule(
            request,
            schedule_id=uuid4(),
            tenant_id=tenant.tenant_id,
            created_by=tenant.actor_id,
            default_currency=self._settings.default_currency,
            default_document_type=self._settings.default_document_type,
            default_payment_terms_days=self._settings.default_payment_terms_days,
        )
        created = self._store.create(tenant, schedule)
        logger.info(
            "schedule_created",
            extra={
                "schedule_id": str(created.schedule_id),
                "frequency": created.frequency.value,
                "next_generation_date": created.next_generation_date,
                "lines": len(created.lines),
            },
        )
        return created

    def create_from_document(
        self,
        tenant: TenantScope,
        request: CreateFromDocumentRequest,
    ) -> RecurringSchedule:
        """Copy contact, type, currency and lines from an existing document.

        Raises:
            NotConfiguredError: no document service configured.
            DocumentNotFoundError: source document absent.
            CollaboratorError: document lookup failed.
            ValidationError: invalid resulting schedule.
        """
        if self._documents is None:
            raise NotConfiguredError("document service", "create_from_document")
        try:
            document = self._documents.get_document(tenant, request.document_id)
        except BillingKernelError:
            raise
        except Exception as exc:
            raise CollaboratorError("get document", exc) from exc

        return self.create(
            tenant,
            CreateScheduleRequest(
                name=request.name,
                contact_id=document.contact_id,
                contact_name=document.contact_name,
                frequency=request.frequency,
                start_date=request.start_date,
                end_date=request.end_date,
                payment_terms_days=request.payment_terms_days,
                document_type=document.document_type,
                currency=document.currency,
                lines=document.lines,
            ),
        )

    def get(self, tenant: TenantScope, schedule_id: UUID) -> RecurringSchedule:
        return self._store.get(tenant, schedule_id)

    def list(self, tenant: TenantScope, active_only: bool = False) -> list[RecurringSchedule]:
        return self._store.list(tenant, active_only=active_only)

    def update(
        self,
        tenant: TenantScope,
        schedule_id: UUID,
        request: UpdateScheduleRequest,
    ) -> RecurringSchedule:
        """Partial update; when ``request.lines`` is given all lines are replaced."""
        current = self._store.get(tenant, schedule_id)
        updated = apply_update(current, request)
        saved = self._store.update(tenant, updated, replace_lines=request.lines is not None)
        logger.info(
            "schedule_updated",
            extra={"schedule_id": str(schedule_id), "lines_replaced": request.lines is not None},
        )
        return saved

    def delete(self, tenant: TenantScope, schedule_id: UUID) -> None:
        self._store.delete(tenant, schedule_id)
        logger.info("schedule_deleted", extra={"schedule_id": str(schedule_id)})

    def pause(self, tenant: TenantScope, schedule_id: UUID) -> None:
        self._store.set_active(tenant, schedule_id, False)
        logger.info("schedule_paused", extra={"schedule_id": str(schedule_id)})

    def resume(self, tenant: TenantScope, schedule_id: UUID) -> None:
        self._store.set_active(tenant, schedule_id, True)
        logger.info("schedule_resumed", extra={"schedule_id": str(schedule_id)})
