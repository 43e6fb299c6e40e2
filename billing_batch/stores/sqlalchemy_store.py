"""
SqlScheduleStore / SqlReminderStore / SqlInterestStore -- SQLAlchemy
implementations of the ``ScheduleStore``, ``ReminderStore`` and
``InterestStore`` protocols.

Contract:
    Operate on a caller-owned ``Session``.  Every query filters on
    ``tenant.tenant_id``.  Writes run inside a SAVEPOINT so a failure leaves
    no partial rows behind and the outer transaction usable.  Stores flush
    but never commit.

Architecture: billing_batch/stores.  Imports from billing_batch.models,
    billing_batch.domain and billing_kernel.

Failure modes:
    - ``ScheduleNotFoundError`` / ``ReminderRuleNotFoundError`` /
      ``DocumentNotFoundError`` / ``NotFoundError`` for absent rows.
    - Any SQLAlchemy error propagates unchanged.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import desc, func, or_, select, update
from sqlalchemy.orm import Session

from billing_kernel.db.base import Base
from billing_kernel.exceptions import (
    DocumentNotFoundError,
    NotFoundError,
    ReminderRuleNotFoundError,
    ScheduleNotFoundError,
)
from billing_kernel.logging_config import get_logger

from billing_batch.domain.overdue import OVERDUE_STATUSES
from billing_batch.domain.reminder import admissible_statuses, target_due_date, to_candidate
from billing_batch.domain.types import (
    SALES_DOCUMENT_TYPE,
    BillingDocument,
    DeliveryStatus,
    InterestRecord,
    RecurringSchedule,
    ReminderCandidate,
    ReminderRule,
    ReminderStatus,
    ScheduleLine,
    SentReminder,
    TenantScope,
)
from billing_batch.models.interest import DocumentInterestModel
from billing_batch.models.recurring import (
    BillingDocumentModel,
    PaymentReminderModel,
    RecurringScheduleModel,
    ReminderRuleModel,
    ScheduleLineModel,
)

logger = get_logger("batch.store")

_SCHEDULE_TABLES = (
    RecurringScheduleModel.__table__,
    ScheduleLineModel.__table__,
    BillingDocumentModel.__table__,
)

_REMINDER_TABLES = (
    ReminderRuleModel.__table__,
    PaymentReminderModel.__table__,
    BillingDocumentModel.__table__,
)

_INTEREST_TABLES = (
    DocumentInterestModel.__table__,
    BillingDocumentModel.__table__,
)


def _ensure_tables(session: Session, tenant: TenantScope, tables: tuple) -> None:
    Base.metadata.create_all(bind=session.connection(), tables=list(tables), checkfirst=True)
    logger.debug(
        "schema_ensured",
        extra={"schema_name": tenant.schema_name, "tables": [t.name for t in tables]},
    )


def _select_overdue(tenant: TenantScope, as_of_date: date):
    """Documents overdue on ``as_of_date``; callers add the ordering."""
    return select(BillingDocumentModel).where(
        BillingDocumentModel.tenant_id == tenant.tenant_id,
        BillingDocumentModel.document_type == SALES_DOCUMENT_TYPE,
        BillingDocumentModel.status.in_(sorted(s.value for s in OVERDUE_STATUSES)),
        BillingDocumentModel.due_date < as_of_date,
        BillingDocumentModel.total > BillingDocumentModel.amount_paid,
    )


def _update_in_savepoint(session: Session, stmt) -> int:
    """Run one UPDATE in a SAVEPOINT and return the matched row count.

    A failed statement rolls back to the savepoint only; on PostgreSQL the
    outer transaction stays usable and earlier writes of the run survive.
    """
    with session.begin_nested():
        return session.execute(stmt).rowcount


# =============================================================================
# Schedules
# =============================================================================


class SqlScheduleStore:
    """Recurring schedule persistence on a SQLAlchemy session."""

    def __init__(self, session: Session):
        self._session = session

    def ensure_schema(self, tenant: TenantScope) -> None:
        _ensure_tables(self._session, tenant, _SCHEDULE_TABLES)

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def create(self, tenant: TenantScope, schedule: RecurringSchedule) -> RecurringSchedule:
        model = RecurringScheduleModel.from_dto(schedule, created_by_id=tenant.actor_id)
        with self._session.begin_nested():
            self._session.add(model)
            self._session.flush()
        return model.to_dto()

    def get(self, tenant: TenantScope, schedule_id: UUID) -> RecurringSchedule:
        return self._get_model(tenant, schedule_id).to_dto()

    def list(self, tenant: TenantScope, active_only: bool = False) -> list[RecurringSchedule]:
        stmt = select(RecurringScheduleModel).where(
            RecurringScheduleModel.tenant_id == tenant.tenant_id,
        )
        if active_only:
            stmt = stmt.where(RecurringScheduleModel.is_active == True)  # noqa: E712
        stmt = stmt.order_by(RecurringScheduleModel.name, RecurringScheduleModel.id)
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def update(
        self,
        tenant: TenantScope,
        schedule: RecurringSchedule,
        replace_lines: bool = False,
    ) -> RecurringSchedule:
        """Write the editable fields; replace all lines when ``replace_lines``."""
        model = self._get_model(tenant, schedule.schedule_id)
        with self._session.begin_nested():
            model.name = schedule.name
            model.contact_id = schedule.contact_id
            model.contact_name = schedule.contact_name
            model.frequency = schedule.frequency.value
            model.end_date = schedule.end_date
            model.payment_terms_days = schedule.payment_terms_days
            model.reference = schedule.reference
            model.notes = schedule.notes
            model.send_on_generation = schedule.send_on_generation
            model.template_type = schedule.template_type
            model.recipient_email_override = schedule.recipient_email_override
            model.attach_document = schedule.attach_document
            model.subject_override = schedule.subject_override
            model.message = schedule.message
            model.updated_by_id = tenant.actor_id
            if replace_lines:
                model.lines.clear()
                self._session.flush()
                model.lines.extend(
                    ScheduleLineModel.from_dto(line) for line in schedule.lines
                )
            self._session.flush()
        return model.to_dto()

    def delete(self, tenant: TenantScope, schedule_id: UUID) -> None:
        model = self._get_model(tenant, schedule_id)
        with self._session.begin_nested():
            self._session.delete(model)
            self._session.flush()

    def set_active(self, tenant: TenantScope, schedule_id: UUID, active: bool) -> None:
        model = self._get_model(tenant, schedule_id)
        model.is_active = active
        model.updated_by_id = tenant.actor_id
        self._session.flush()

    # -------------------------------------------------------------------------
    # Lines
    # -------------------------------------------------------------------------

    def create_line(self, tenant: TenantScope, schedule_id: UUID, line: ScheduleLine) -> ScheduleLine:
        model = self._get_model(tenant, schedule_id)
        line_model = ScheduleLineModel.from_dto(line)
        if not line_model.line_number:
            line_model.line_number = len(model.lines) + 1
        model.lines.append(line_model)
        self._session.flush()
        return line_model.to_dto()

    def get_lines(self, tenant: TenantScope, schedule_id: UUID) -> list[ScheduleLine]:
        return [line.to_dto() for line in self._get_model(tenant, schedule_id).lines]

    def delete_lines(self, tenant: TenantScope, schedule_id: UUID) -> None:
        model = self._get_model(tenant, schedule_id)
        model.lines.clear()
        self._session.flush()

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def get_due_ids(self, tenant: TenantScope, as_of_date: date) -> list[UUID]:
        stmt = (
            select(RecurringScheduleModel.id)
            .where(
                RecurringScheduleModel.tenant_id == tenant.tenant_id,
                RecurringScheduleModel.is_active == True,  # noqa: E712
                RecurringScheduleModel.next_generation_date <= as_of_date,
                or_(
                    RecurringScheduleModel.end_date.is_(None),
                    RecurringScheduleModel.end_date >= as_of_date,
                ),
            )
            .order_by(RecurringScheduleModel.next_generation_date, RecurringScheduleModel.id)
        )
        return list(self._session.execute(stmt).scalars().all())

    def update_after_generation(
        self,
        tenant: TenantScope,
        schedule_id: UUID,
        next_date: date,
        generated_at: datetime,
    ) -> None:
        """Advance one cycle in a single UPDATE keyed by tenant and id."""
        stmt = (
            update(RecurringScheduleModel)
            .where(
                RecurringScheduleModel.id == schedule_id,
                RecurringScheduleModel.tenant_id == tenant.tenant_id,
            )
            .values(
                next_generation_date=next_date,
                last_generated_at=generated_at,
                generated_count=RecurringScheduleModel.generated_count + 1,
                updated_by_id=tenant.actor_id,
            )
        )
        if _update_in_savepoint(self._session, stmt) == 0:
            raise ScheduleNotFoundError(str(schedule_id))

    def update_document_delivery_status(
        self,
        tenant: TenantScope,
        document_id: UUID,
        sent_at: datetime | None,
        status: DeliveryStatus,
        log_id: str | None,
    ) -> None:
        stmt = (
            update(BillingDocumentModel)
            .where(
                BillingDocumentModel.id == document_id,
                BillingDocumentModel.tenant_id == tenant.tenant_id,
            )
            .values(
                delivery_status=status.value,
                delivery_sent_at=sent_at,
                delivery_log_id=log_id,
                updated_by_id=tenant.actor_id,
            )
        )
        if _update_in_savepoint(self._session, stmt) == 0:
            raise DocumentNotFoundError(str(document_id))

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _get_model(self, tenant: TenantScope, schedule_id: UUID) -> RecurringScheduleModel:
        model = self._session.execute(
            select(RecurringScheduleModel).where(
                RecurringScheduleModel.id == schedule_id,
                RecurringScheduleModel.tenant_id == tenant.tenant_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise ScheduleNotFoundError(str(schedule_id))
        return model


# =============================================================================
# Reminder rules and ledger
# =============================================================================


class SqlReminderStore:
    """Reminder rules, candidate selection and the dedup ledger."""

    def __init__(self, session: Session):
        self._session = session

    def ensure_schema(self, tenant: TenantScope) -> None:
        _ensure_tables(self._session, tenant, _REMINDER_TABLES)

    # -------------------------------------------------------------------------
    # Rules
    # -------------------------------------------------------------------------

    def list_rules(self, tenant: TenantScope) -> list[ReminderRule]:
        return self._select_rules(tenant, active_only=False)

    def list_active_rules(self, tenant: TenantScope) -> list[ReminderRule]:
        return self._select_rules(tenant, active_only=True)

    def get_rule(self, tenant: TenantScope, rule_id: UUID) -> ReminderRule:
        return self._get_rule_model(tenant, rule_id).to_dto()

    def create_rule(self, tenant: TenantScope, rule: ReminderRule) -> ReminderRule:
        model = ReminderRuleModel.from_dto(rule, created_by_id=tenant.actor_id)
        self._session.add(model)
        self._session.flush()
        return model.to_dto()

    def update_rule(self, tenant: TenantScope, rule: ReminderRule) -> ReminderRule:
        model = self._get_rule_model(tenant, rule.rule_id)
        model.name = rule.name
        model.template_type = rule.template_type
        model.is_active = rule.is_active
        model.updated_by_id = tenant.actor_id
        self._session.flush()
        return model.to_dto()

    def delete_rule(self, tenant: TenantScope, rule_id: UUID) -> None:
        model = self._get_rule_model(tenant, rule_id)
        self._session.delete(model)
        self._session.flush()

    # -------------------------------------------------------------------------
    # Candidates
    # -------------------------------------------------------------------------

    def get_documents_for_rule(
        self,
        tenant: TenantScope,
        rule: ReminderRule,
        as_of_date: date,
    ) -> list[ReminderCandidate]:
        target = target_due_date(rule, as_of_date)
        statuses = sorted(s.value for s in admissible_statuses(rule.trigger_type))
        stmt = (
            select(BillingDocumentModel)
            .where(
                BillingDocumentModel.tenant_id == tenant.tenant_id,
                BillingDocumentModel.document_type == SALES_DOCUMENT_TYPE,
                BillingDocumentModel.status.in_(statuses),
                BillingDocumentModel.due_date == target,
                BillingDocumentModel.total > BillingDocumentModel.amount_paid,
            )
            .order_by(BillingDocumentModel.number)
        )
        return [
            to_candidate(model.to_dto(), rule, as_of_date)
            for model in self._session.execute(stmt).scalars().all()
        ]

    # -------------------------------------------------------------------------
    # Ledger
    # -------------------------------------------------------------------------

    def has_reminder_been_sent(self, tenant: TenantScope, document_id: UUID, rule_id: UUID) -> bool:
        count = self._session.execute(
            select(func.count())
            .select_from(PaymentReminderModel)
            .where(
                PaymentReminderModel.tenant_id == tenant.tenant_id,
                PaymentReminderModel.document_id == document_id,
                PaymentReminderModel.rule_id == rule_id,
                PaymentReminderModel.status == ReminderStatus.SENT.value,
            )
        ).scalar_one()
        return count > 0

    def record_reminder(self, tenant: TenantScope, reminder: SentReminder) -> SentReminder:
        model = PaymentReminderModel.from_dto(reminder, created_by_id=tenant.actor_id)
        with self._session.begin_nested():
            self._session.add(model)
            self._session.flush()
        return model.to_dto()

    def update_reminder_status(
        self,
        tenant: TenantScope,
        reminder_id: UUID,
        status: ReminderStatus,
        sent_at: datetime | None,
        error_message: str | None,
    ) -> None:
        stmt = (
            update(PaymentReminderModel)
            .where(
                PaymentReminderModel.id == reminder_id,
                PaymentReminderModel.tenant_id == tenant.tenant_id,
            )
            .values(
                status=status.value,
                sent_at=sent_at,
                error_message=error_message,
                updated_by_id=tenant.actor_id,
            )
        )
        if _update_in_savepoint(self._session, stmt) == 0:
            raise NotFoundError("payment reminder", str(reminder_id))

    def get_reminder_stats(self, tenant: TenantScope, document_id: UUID) -> tuple[int, datetime | None]:
        count, last_sent = self._session.execute(
            select(func.count(), func.max(PaymentReminderModel.sent_at)).where(
                PaymentReminderModel.tenant_id == tenant.tenant_id,
                PaymentReminderModel.document_id == document_id,
                PaymentReminderModel.status == ReminderStatus.SENT.value,
            )
        ).one()
        return count, last_sent

    def list_reminders_for_document(self, tenant: TenantScope, document_id: UUID) -> list[SentReminder]:
        stmt = (
            select(PaymentReminderModel)
            .where(
                PaymentReminderModel.tenant_id == tenant.tenant_id,
                PaymentReminderModel.document_id == document_id,
            )
            .order_by(desc(PaymentReminderModel.created_at))
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    # -------------------------------------------------------------------------
    # Overdue documents
    # -------------------------------------------------------------------------

    def get_overdue_documents(self, tenant: TenantScope, as_of_date: date) -> list[BillingDocument]:
        stmt = _select_overdue(tenant, as_of_date).order_by(
            BillingDocumentModel.due_date,
            desc(BillingDocumentModel.total),
            BillingDocumentModel.number,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _select_rules(self, tenant: TenantScope, active_only: bool) -> list[ReminderRule]:
        stmt = select(ReminderRuleModel).where(
            ReminderRuleModel.tenant_id == tenant.tenant_id,
        )
        if active_only:
            stmt = stmt.where(ReminderRuleModel.is_active == True)  # noqa: E712
        stmt = stmt.order_by(
            ReminderRuleModel.trigger_type,
            ReminderRuleModel.days_offset,
            ReminderRuleModel.name,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def _get_rule_model(self, tenant: TenantScope, rule_id: UUID) -> ReminderRuleModel:
        model = self._session.execute(
            select(ReminderRuleModel).where(
                ReminderRuleModel.id == rule_id,
                ReminderRuleModel.tenant_id == tenant.tenant_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise ReminderRuleNotFoundError(str(rule_id))
        return model


# =============================================================================
# Interest calculations
# =============================================================================


class SqlInterestStore:
    """Document lookup and the interest calculation log."""

    def __init__(self, session: Session):
        self._session = session

    def ensure_schema(self, tenant: TenantScope) -> None:
        _ensure_tables(self._session, tenant, _INTEREST_TABLES)

    def get_document(self, tenant: TenantScope, document_id: UUID) -> BillingDocument:
        model = self._session.execute(
            select(BillingDocumentModel).where(
                BillingDocumentModel.id == document_id,
                BillingDocumentModel.tenant_id == tenant.tenant_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise DocumentNotFoundError(str(document_id))
        return model.to_dto()

    def get_overdue_documents(self, tenant: TenantScope, as_of_date: date) -> list[BillingDocument]:
        stmt = _select_overdue(tenant, as_of_date).order_by(
            BillingDocumentModel.due_date,
            BillingDocumentModel.number,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def save(self, tenant: TenantScope, record: InterestRecord) -> InterestRecord:
        model = DocumentInterestModel.from_dto(
            record, tenant_id=tenant.tenant_id, created_by_id=tenant.actor_id,
        )
        with self._session.begin_nested():
            self._session.add(model)
            self._session.flush()
        return model.to_dto()

    def latest(self, tenant: TenantScope, document_id: UUID) -> InterestRecord | None:
        model = self._session.execute(
            self._select_for_document(tenant, document_id).limit(1)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def history(self, tenant: TenantScope, document_id: UUID) -> list[InterestRecord]:
        stmt = self._select_for_document(tenant, document_id)
        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    def _select_for_document(self, tenant: TenantScope, document_id: UUID):
        return (
            select(DocumentInterestModel)
            .where(
                DocumentInterestModel.tenant_id == tenant.tenant_id,
                DocumentInterestModel.document_id == document_id,
            )
            .order_by(desc(DocumentInterestModel.calculated_at))
        )
