"""
BillingOrchestrator -- DI container for the recurring billing engine.

Contract:
    Wires the SQL stores, the notification dispatcher, the generation
    orchestrator, the reminder evaluator, the manual reminder and interest
    services and the CRUD services around one session.  Single place where all billing dependencies are composed.

Architecture: billing_batch (top-level).  This is the canonical entry point
    for configuring and running generation and reminder jobs.

Invariants enforced:
    - Clock injection: every service receives the same Clock.
    - Caller owns the session lifecycle; nothing here commits.
    - Host collaborators (documents, notifications, attachments, tenant and
      contact directories) are passed in unchanged; only the document
      service is mandatory.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from billing_config import EngineSettings
from billing_kernel.domain.clock import Clock, SystemClock

from billing_batch.domain.results import InterestCalculation
from billing_batch.domain.types import BillingDocument, TenantScope
from billing_batch.ports import (
    AttachmentService,
    ContactDirectory,
    DocumentCreationService,
    NotificationService,
    TenantDirectory,
)
from billing_batch.services.dispatcher import NotificationDispatcher
from billing_batch.services.generation import GenerationOrchestrator
from billing_batch.services.interest import InterestService
from billing_batch.services.payment_reminders import PaymentReminderService
from billing_batch.services.reminders import ReminderRuleEvaluator
from billing_batch.services.rule_service import ReminderRuleService
from billing_batch.services.schedule_service import ScheduleService
from billing_batch.services.scheduler import BillingScheduler
from billing_batch.stores.sqlalchemy_store import SqlInterestStore, SqlReminderStore, SqlScheduleStore


class BillingOrchestrator:
    """DI container for recurring billing.

    Contract:
        - ``from_session()`` factory creates a fully wired orchestrator.
        - ``generation`` / ``reminders`` run the periodic jobs.
        - ``schedules`` / ``rules`` are the CRUD entry points.
        - ``payment_reminders`` / ``interest`` serve operator requests.
        - ``create_scheduler()`` returns a BillingScheduler for background use.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
        - Does NOT manage session lifecycle -- caller controls commits.
    """

    def __init__(
        self,
        session: Session,
        document_service: DocumentCreationService,
        notification_service: NotificationService | None = None,
        attachment_service: AttachmentService | None = None,
        tenant_directory: TenantDirectory | None = None,
        contact_directory: ContactDirectory | None = None,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()
        self._collaborators = {
            "document_service": document_service,
            "notification_service": notification_service,
            "attachment_service": attachment_service,
            "tenant_directory": tenant_directory,
            "contact_directory": contact_directory,
        }

        self._schedule_store = SqlScheduleStore(session)
        self._reminder_store = SqlReminderStore(session)
        self._interest_store = SqlInterestStore(session)
        self._dispatcher = NotificationDispatcher(
            notification_service=notification_service,
            attachment_service=attachment_service,
            tenant_directory=tenant_directory,
            contact_directory=contact_directory,
            attachment_content_type=self._settings.attachment_content_type,
        )
        self._generation = GenerationOrchestrator(
            schedule_store=self._schedule_store,
            document_service=document_service,
            dispatcher=self._dispatcher,
            clock=self._clock,
            template_type=self._settings.generation_template_type,
            fallback_template_type=self._settings.generation_fallback_template_type,
        )
        self._reminders = ReminderRuleEvaluator(
            reminder_store=self._reminder_store,
            dispatcher=self._dispatcher,
            clock=self._clock,
        )
        self._schedules = ScheduleService(
            schedule_store=self._schedule_store,
            document_service=document_service,
            settings=self._settings,
        )
        self._rules = ReminderRuleService(
            reminder_store=self._reminder_store,
            settings=self._settings,
        )
        self._payment_reminders = PaymentReminderService(
            reminder_store=self._reminder_store,
            dispatcher=self._dispatcher,
            clock=self._clock,
            settings=self._settings,
        )
        self._interest = InterestService(
            store=self._interest_store,
            clock=self._clock,
            settings=self._settings,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_session(
        cls,
        session: Session,
        document_service: DocumentCreationService,
        notification_service: NotificationService | None = None,
        attachment_service: AttachmentService | None = None,
        tenant_directory: TenantDirectory | None = None,
        contact_directory: ContactDirectory | None = None,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ) -> BillingOrchestrator:
        """Create a fully wired BillingOrchestrator from a session.

        Args:
            session: SQLAlchemy session for persistence.
            document_service: Creates and fetches billing documents.
            notification_service: Optional; without it every dispatch is
                reported as NO_CONFIG.
            clock: Optional clock for deterministic testing.
            settings: Optional engine settings; packaged defaults otherwise.
        """
        return cls(
            session=session,
            document_service=document_service,
            notification_service=notification_service,
            attachment_service=attachment_service,
            tenant_directory=tenant_directory,
            contact_directory=contact_directory,
            clock=clock or SystemClock(),
            settings=settings,
        )

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def ensure_schema(self, tenant: TenantScope) -> None:
        """Create the billing tables for ``tenant`` if they are missing."""
        self._schedule_store.ensure_schema(tenant)
        self._reminder_store.ensure_schema(tenant)
        self._interest_store.ensure_schema(tenant)

    def calculate_interest(
        self,
        document: BillingDocument,
        daily_rate: Decimal,
        as_of: datetime | None = None,
    ) -> InterestCalculation:
        """Overdue interest for ``document`` at ``daily_rate``.

        Raises:
            ValidationError: rate negative or above the configured maximum.
        """
        return self._interest.calculate_for_document(document, daily_rate, as_of)

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def create_scheduler(
        self,
        session_factory: Callable[[], Session],
        tenant_provider: Callable[[], Iterable[TenantScope]],
        tick_interval_seconds: int | None = None,
    ) -> BillingScheduler:
        """Create a BillingScheduler wired with the orchestrator's dependencies.

        Args:
            session_factory: Callable returning a new session for each tick.
            tenant_provider: Callable returning the tenants to serve.
            tick_interval_seconds: Polling interval; settings value if None.
        """
        clock = self._clock
        settings = self._settings
        collaborators = dict(self._collaborators)

        def orchestrator_factory(session: Session) -> BillingOrchestrator:
            return BillingOrchestrator(
                session=session,
                clock=clock,
                settings=settings,
                **collaborators,
            )

        return BillingScheduler(
            session_factory=session_factory,
            orchestrator_factory=orchestrator_factory,
            tenant_provider=tenant_provider,
            clock=clock,
            tick_interval_seconds=(
                tick_interval_seconds
                if tick_interval_seconds is not None
                else settings.tick_interval_seconds
            ),
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    @property
    def generation(self) -> GenerationOrchestrator:
        return self._generation

    @property
    def reminders(self) -> ReminderRuleEvaluator:
        return self._reminders

    @property
    def schedules(self) -> ScheduleService:
        return self._schedules

    @property
    def rules(self) -> ReminderRuleService:
        return self._rules

    @property
    def payment_reminders(self) -> PaymentReminderService:
        return self._payment_reminders

    @property
    def interest(self) -> InterestService:
        return self._interest
