"""
ORM models for recurring billing persistence.

Contract:
    RecurringScheduleModel (+ ScheduleLineModel), ReminderRuleModel,
    PaymentReminderModel and BillingDocumentModel persist schedules, rules,
    the reminder dedup ledger and the document snapshot consumed by the
    reminder query.  Each has ``to_dto()`` / ``from_dto()`` round-trip
    methods.

Architecture: billing_batch/models. Imports from billing_kernel.db.base only
    (plus the pure domain types for DTO conversion).

Invariants enforced:
    - Every table carries ``tenant_id``; stores filter on it for every query.
    - ``generated_count`` is only ever incremented in SQL by the store.
    - Lines are owned by their schedule (delete-orphan cascade).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_kernel.db.base import Base, TrackedBase, UUIDString

if TYPE_CHECKING:
    from billing_batch.domain.types import (
        BillingDocument,
        RecurringSchedule,
        ReminderRule,
        ScheduleLine,
        SentReminder,
    )


class RecurringScheduleModel(TrackedBase):
    """Persistent recurring schedule."""

    __tablename__ = "recurring_schedules"

    __table_args__ = (
        Index("ix_recurring_schedules_due", "tenant_id", "is_active", "next_generation_date"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    frequency: Mapped[str] = mapped_column(String(20), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_generation_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_terms_days: Mapped[int] = mapped_column(Integer, default=14, nullable=False)
    reference: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    generated_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    send_on_generation: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    template_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    recipient_email_override: Mapped[str | None] = mapped_column(String(320), nullable=True)
    attach_document: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    subject_override: Mapped[str | None] = mapped_column(String(500), nullable=True)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["ScheduleLineModel"]] = relationship(
        "ScheduleLineModel",
        back_populates="schedule",
        order_by="ScheduleLineModel.line_number",
        cascade="all, delete-orphan",
    )

    def to_dto(self) -> RecurringSchedule:
        from billing_batch.domain.frequency import coerce_frequency
        from billing_batch.domain.types import RecurringSchedule

        return RecurringSchedule(
            schedule_id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            contact_id=self.contact_id,
            contact_name=self.contact_name,
            frequency=coerce_frequency(self.frequency),
            start_date=self.start_date,
            next_generation_date=self.next_generation_date,
            end_date=self.end_date,
            lines=tuple(line.to_dto() for line in self.lines),
            document_type=self.document_type,
            currency=self.currency,
            payment_terms_days=self.payment_terms_days,
            reference=self.reference,
            notes=self.notes,
            is_active=self.is_active,
            last_generated_at=self.last_generated_at,
            generated_count=self.generated_count,
            send_on_generation=self.send_on_generation,
            template_type=self.template_type,
            recipient_email_override=self.recipient_email_override,
            attach_document=self.attach_document,
            subject_override=self.subject_override,
            message=self.message,
            created_by=self.created_by_id,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: RecurringSchedule, created_by_id: UUID) -> RecurringScheduleModel:
        return cls(
            id=dto.schedule_id,
            tenant_id=dto.tenant_id,
            name=dto.name,
            contact_id=dto.contact_id,
            contact_name=dto.contact_name,
            document_type=dto.document_type,
            currency=dto.currency,
            frequency=dto.frequency.value,
            start_date=dto.start_date,
            end_date=dto.end_date,
            next_generation_date=dto.next_generation_date,
            payment_terms_days=dto.payment_terms_days,
            reference=dto.reference,
            notes=dto.notes,
            is_active=dto.is_active,
            last_generated_at=dto.last_generated_at,
            generated_count=dto.generated_count,
            send_on_generation=dto.send_on_generation,
            template_type=dto.template_type,
            recipient_email_override=dto.recipient_email_override,
            attach_document=dto.attach_document,
            subject_override=dto.subject_override,
            message=dto.message,
            lines=[ScheduleLineModel.from_dto(line) for line in dto.lines],
            created_by_id=created_by_id,
            updated_by_id=None,
        )


class ScheduleLineModel(Base):
    """Template line of a recurring schedule."""

    __tablename__ = "recurring_schedule_lines"

    __table_args__ = (
        Index("ix_recurring_schedule_lines_schedule", "schedule_id", "line_number"),
    )

    schedule_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("recurring_schedules.id", ondelete="CASCADE"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    discount_percent: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"), nullable=False)
    vat_rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"), nullable=False)
    account_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    product_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    schedule: Mapped[RecurringScheduleModel] = relationship(
        "RecurringScheduleModel",
        back_populates="lines",
    )

    def to_dto(self) -> ScheduleLine:
        from billing_batch.domain.types import ScheduleLine

        return ScheduleLine(
            line_id=self.id,
            line_number=self.line_number,
            description=self.description,
            quantity=self.quantity,
            unit=self.unit,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            vat_rate=self.vat_rate,
            account_id=self.account_id,
            product_id=self.product_id,
        )

    @classmethod
    def from_dto(cls, dto: ScheduleLine) -> ScheduleLineModel:
        model = cls(
            line_number=dto.line_number,
            description=dto.description,
            quantity=dto.quantity,
            unit=dto.unit,
            unit_price=dto.unit_price,
            discount_percent=dto.discount_percent,
            vat_rate=dto.vat_rate,
            account_id=dto.account_id,
            product_id=dto.product_id,
        )
        if dto.line_id is not None:
            model.id = dto.line_id
        return model


class ReminderRuleModel(TrackedBase):
    """Tenant reminder rule (trigger type + day offset)."""

    __tablename__ = "reminder_rules"

    __table_args__ = (
        Index("ix_reminder_rules_tenant_active", "tenant_id", "is_active"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    trigger_type: Mapped[str] = mapped_column(String(20), nullable=False)
    days_offset: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    template_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self) -> ReminderRule:
        from billing_batch.domain.types import ReminderRule, TriggerType

        return ReminderRule(
            rule_id=self.id,
            tenant_id=self.tenant_id,
            name=self.name,
            trigger_type=TriggerType(self.trigger_type),
            days_offset=self.days_offset,
            template_type=self.template_type,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto: ReminderRule, created_by_id: UUID) -> ReminderRuleModel:
        return cls(
            id=dto.rule_id,
            tenant_id=dto.tenant_id,
            name=dto.name,
            trigger_type=dto.trigger_type.value,
            days_offset=dto.days_offset,
            template_type=dto.template_type,
            is_active=dto.is_active,
            created_by_id=created_by_id,
            updated_by_id=None,
        )


class PaymentReminderModel(TrackedBase):
    """Ledger row: one reminder delivery attempt.

    Manual reminders have no rule; their rows leave ``rule_id`` and
    ``trigger_type`` NULL.
    """

    __tablename__ = "payment_reminders"

    __table_args__ = (
        Index("ix_payment_reminders_dedup", "tenant_id", "document_id", "rule_id", "status"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    document_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    document_number: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    contact_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    contact_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    contact_email: Mapped[str] = mapped_column(String(320), default="", nullable=False)
    rule_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    trigger_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    days_offset: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> SentReminder:
        from billing_batch.domain.types import ReminderStatus, SentReminder, TriggerType

        return SentReminder(
            reminder_id=self.id,
            tenant_id=self.tenant_id,
            document_id=self.document_id,
            rule_id=self.rule_id,
            trigger_type=TriggerType(self.trigger_type) if self.trigger_type else None,
            days_offset=self.days_offset,
            status=ReminderStatus(self.status),
            document_number=self.document_number,
            contact_id=self.contact_id,
            contact_name=self.contact_name,
            contact_email=self.contact_email,
            sent_at=self.sent_at,
            error_message=self.error_message,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: SentReminder, created_by_id: UUID) -> PaymentReminderModel:
        model = cls(
            id=dto.reminder_id,
            tenant_id=dto.tenant_id,
            document_id=dto.document_id,
            document_number=dto.document_number,
            contact_id=dto.contact_id,
            contact_name=dto.contact_name,
            contact_email=dto.contact_email,
            rule_id=dto.rule_id,
            trigger_type=dto.trigger_type.value if dto.trigger_type else None,
            days_offset=dto.days_offset,
            status=dto.status.value,
            sent_at=dto.sent_at,
            error_message=dto.error_message,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
        if dto.created_at is not None:
            model.created_at = dto.created_at
        return model


class BillingDocumentModel(TrackedBase):
    """Issued billing document as seen by the reminder query.

    Rows are written by the document collaborator; this engine reads them
    and only updates the ``delivery_*`` columns.
    """

    __tablename__ = "billing_documents"

    __table_args__ = (
        Index("ix_billing_documents_due", "tenant_id", "document_type", "due_date"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    number: Mapped[str] = mapped_column(String(100), nullable=False)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)
    contact_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    contact_email: Mapped[str] = mapped_column(String(320), default="", nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(38, 9), default=Decimal("0"), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)

    delivery_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    delivery_sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    delivery_log_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self) -> BillingDocument:
        from billing_batch.domain.types import BillingDocument, DocumentStatus

        return BillingDocument(
            document_id=self.id,
            number=self.number,
            document_type=self.document_type,
            contact_id=self.contact_id,
            contact_name=self.contact_name,
            contact_email=self.contact_email,
            issue_date=self.issue_date,
            due_date=self.due_date,
            total=self.total,
            amount_paid=self.amount_paid,
            currency=self.currency,
            status=DocumentStatus(self.status),
        )

    @classmethod
    def from_dto(cls, dto: BillingDocument, tenant_id: str, created_by_id: UUID) -> BillingDocumentModel:
        return cls(
            id=dto.document_id,
            tenant_id=tenant_id,
            number=dto.number,
            document_type=dto.document_type,
            contact_id=dto.contact_id,
            contact_name=dto.contact_name,
            contact_email=dto.contact_email,
            issue_date=dto.issue_date,
            due_date=dto.due_date,
            total=dto.total,
            amount_paid=dto.amount_paid,
            currency=dto.currency,
            status=dto.status.value,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
