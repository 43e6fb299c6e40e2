"""
Saved overdue-interest calculations (``billing_batch.models.interest``).

One row per ``InterestService.save`` call.  Rows are append-only; the
latest calculation for a document is the one with the newest
``calculated_at``.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from billing_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from billing_batch.domain.types import InterestRecord


class DocumentInterestModel(TrackedBase):
    """Interest calculated for one document at ``calculated_at``."""

    __tablename__ = "document_interest"

    __table_args__ = (
        Index("ix_document_interest_document", "tenant_id", "document_id", "calculated_at"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    document_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    days_overdue: Mapped[int] = mapped_column(Integer, nullable=False)
    principal: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    daily_rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    interest_amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    total_with_interest: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    def to_dto(self) -> InterestRecord:
        from billing_batch.domain.types import InterestRecord

        return InterestRecord(
            record_id=self.id,
            document_id=self.document_id,
            calculated_at=self.calculated_at,
            days_overdue=self.days_overdue,
            principal=self.principal,
            daily_rate=self.daily_rate,
            interest_amount=self.interest_amount,
            total_with_interest=self.total_with_interest,
            currency=self.currency,
        )

    @classmethod
    def from_dto(cls, dto: InterestRecord, tenant_id: str, created_by_id: UUID) -> DocumentInterestModel:
        return cls(
            id=dto.record_id,
            tenant_id=tenant_id,
            document_id=dto.document_id,
            calculated_at=dto.calculated_at,
            days_overdue=dto.days_overdue,
            principal=dto.principal,
            daily_rate=dto.daily_rate,
            interest_amount=dto.interest_amount,
            total_with_interest=dto.total_with_interest,
            currency=dto.currency,
            created_by_id=created_by_id,
            updated_by_id=None,
        )
