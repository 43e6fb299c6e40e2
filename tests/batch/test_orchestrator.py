"""
Tests for billing_batch.orchestrator -- BillingOrchestrator DI container.

Validates from_session wiring, shared clock and settings, interest
calculation limits, manual reminders and the interest log over one session,
ensure_schema and create_scheduler.
"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from billing_config.schema import EngineSettings
from billing_kernel.domain.clock import SystemClock
from billing_kernel.exceptions import ValidationError

from billing_batch.domain.overdue import SendReminderRequest
from billing_batch.domain.schedule import CreateScheduleRequest
from billing_batch.domain.types import Frequency, ReminderStatus
from billing_batch.models import BillingDocumentModel
from billing_batch.orchestrator import BillingOrchestrator
from billing_batch.services import (
    BillingScheduler,
    GenerationOrchestrator,
    InterestService,
    NotificationDispatcher,
    PaymentReminderService,
    ReminderRuleEvaluator,
    ReminderRuleService,
    ScheduleService,
)

from fakes import FakeDocumentService, FakeNotificationService, make_document, make_line


@pytest.fixture
def documents():
    return FakeDocumentService()


@pytest.fixture
def orchestrator(db_session, documents, clock):
    return BillingOrchestrator.from_session(db_session, documents, clock=clock)


# =============================================================================
# from_session
# =============================================================================


class TestFromSession:

    def test_wires_services(self, orchestrator):
        assert isinstance(orchestrator.generation, GenerationOrchestrator)
        assert isinstance(orchestrator.reminders, ReminderRuleEvaluator)
        assert isinstance(orchestrator.schedules, ScheduleService)
        assert isinstance(orchestrator.rules, ReminderRuleService)
        assert isinstance(orchestrator.dispatcher, NotificationDispatcher)
        assert isinstance(orchestrator.payment_reminders, PaymentReminderService)
        assert isinstance(orchestrator.interest, InterestService)

    def test_properties(self, orchestrator, db_session, clock):
        assert orchestrator.session is db_session
        assert orchestrator.clock is clock
        assert orchestrator.settings == EngineSettings()

    def test_default_clock(self, db_session, documents):
        orchestrator = BillingOrchestrator.from_session(db_session, documents)
        assert isinstance(orchestrator.clock, SystemClock)

    def test_dispatcher_not_configured_without_notifications(self, orchestrator):
        assert orchestrator.dispatcher.is_configured is False

    def test_dispatcher_configured(self, db_session, documents, clock):
        orchestrator = BillingOrchestrator.from_session(
            db_session, documents, notification_service=FakeNotificationService(), clock=clock,
        )
        assert orchestrator.dispatcher.is_configured is True

    def test_services_share_session(self, orchestrator, tenant):
        orchestrator.ensure_schema(tenant)
        created = orchestrator.schedules.create(
            tenant,
            CreateScheduleRequest(
                name="Hosting",
                contact_id=make_document().contact_id,
                frequency=Frequency.MONTHLY,
                start_date=date(2025, 1, 1),
                lines=(make_line(),),
            ),
        )

        result = orchestrator.generation.run_due(tenant)

        assert result.as_of == datetime(2025, 1, 16, 9, 0, 0)
        assert [o.schedule_id for o in result.outcomes] == [created.schedule_id]

    def test_settings_flow_into_services(self, db_session, documents, clock, tenant):
        settings = EngineSettings(default_currency="GBP")
        orchestrator = BillingOrchestrator.from_session(
            db_session, documents, clock=clock, settings=settings,
        )
        created = orchestrator.schedules.create(
            tenant,
            CreateScheduleRequest(
                name="Hosting",
                contact_id=make_document().contact_id,
                frequency="MONTHLY",
                start_date=date(2025, 1, 1),
                lines=(make_line(),),
            ),
        )
        assert created.currency == "GBP"


# =============================================================================
# Interest
# =============================================================================


class TestCalculateInterest:

    def test_uses_clock_by_default(self, orchestrator):
        document = make_document(due_date=date(2025, 1, 6), total=Decimal("1000.00"))
        calc = orchestrator.calculate_interest(document, Decimal("0.001"))
        assert calc.days_overdue == 10
        assert calc.total_interest == Decimal("10.00")

    def test_explicit_as_of(self, orchestrator):
        document = make_document(due_date=date(2025, 1, 1), total=Decimal("1000.00"))
        calc = orchestrator.calculate_interest(
            document, Decimal("0.001"), as_of=datetime(2025, 1, 3, 0, 0),
        )
        assert calc.days_overdue == 2

    def test_rate_limit_from_settings(self, db_session, documents, clock):
        orchestrator = BillingOrchestrator.from_session(
            db_session, documents, clock=clock,
            settings=EngineSettings(max_daily_interest_rate=Decimal("0.002")),
        )
        with pytest.raises(ValidationError, match="exceeds maximum"):
            orchestrator.calculate_interest(make_document(), Decimal("0.003"))

    def test_negative_rate(self, orchestrator):
        with pytest.raises(ValidationError, match="cannot be negative"):
            orchestrator.calculate_interest(make_document(), Decimal("-0.001"))


# =============================================================================
# Manual reminders and interest log
# =============================================================================


class TestOperatorServices:

    @pytest.fixture
    def overdue(self, db_session, tenant):
        document = make_document(due_date=date(2025, 1, 6), total=Decimal("1000.00"))
        db_session.add(BillingDocumentModel.from_dto(document, tenant.tenant_id, tenant.actor_id))
        db_session.flush()
        return document

    def test_manual_reminder_uses_shared_dispatcher(self, db_session, documents, clock, tenant, overdue):
        notifications = FakeNotificationService()
        orchestrator = BillingOrchestrator.from_session(
            db_session, documents, notification_service=notifications, clock=clock,
        )
        orchestrator.ensure_schema(tenant)

        result = orchestrator.payment_reminders.send_reminder(
            tenant, SendReminderRequest(overdue.document_id, "Second notice"),
        )

        assert result.message == "reminder #1 sent"
        assert notifications.sent[0]["related_id"] == overdue.document_id
        [row] = orchestrator.payment_reminders.history(tenant, overdue.document_id)
        assert row.status is ReminderStatus.SENT
        [item] = orchestrator.payment_reminders.overdue_summary(tenant).documents
        assert (item.days_overdue, item.reminder_count) == (10, 1)

    def test_interest_log(self, orchestrator, tenant, overdue):
        orchestrator.ensure_schema(tenant)

        [calc] = orchestrator.interest.calculate_overdue(tenant, Decimal("0.001"), record=True)

        latest = orchestrator.interest.latest(tenant, overdue.document_id)
        assert latest.interest_amount == calc.total_interest == Decimal("10.00")


# =============================================================================
# create_scheduler
# =============================================================================


class TestCreateScheduler:

    def test_returns_scheduler(self, orchestrator, session_factory):
        scheduler = orchestrator.create_scheduler(session_factory, lambda: [], tick_interval_seconds=5)
        assert isinstance(scheduler, BillingScheduler)
        assert scheduler.tick_interval_seconds == 5

    def test_interval_defaults_to_settings(self, db_session, documents, session_factory, clock):
        orchestrator = BillingOrchestrator.from_session(
            db_session, documents, clock=clock, settings=EngineSettings(tick_interval_seconds=60),
        )
        scheduler = orchestrator.create_scheduler(session_factory, lambda: [])
        assert scheduler.tick_interval_seconds == 60

    def test_tick_with_no_tenants(self, orchestrator, session_factory):
        scheduler = orchestrator.create_scheduler(session_factory, lambda: [])
        assert scheduler.tick() == ()

    def test_scheduler_uses_same_collaborators(self, orchestrator, session_factory, documents, tenant):
        orchestrator.ensure_schema(tenant)
        orchestrator.schedules.create(
            tenant,
            CreateScheduleRequest(
                name="Hosting",
                contact_id=make_document().contact_id,
                frequency=Frequency.WEEKLY,
                start_date=date(2025, 1, 10),
                lines=(make_line(),),
            ),
        )
        orchestrator.session.commit()

        [report] = orchestrator.create_scheduler(session_factory, lambda: [tenant]).tick()

        assert report.generation.generated == 1
        assert len(documents.requests) == 1
        assert report.generation.as_of == datetime(2025, 1, 16, 9, 0, 0)
