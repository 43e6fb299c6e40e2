"""
InterestService -- overdue interest for stored documents and its log.

Contract:
    ``calculate_for_document`` validates the rate and runs the pure
    calculation.  ``calculate`` does the same for a stored document;
    ``calculate_overdue`` does it for every overdue document of a tenant,
    oldest due date first.  ``save`` / ``latest`` / ``history`` manage the
    append-only calculation log.

Failure modes:
    - ``ValidationError`` for a negative rate or one above the configured
      maximum; checked before any store access.
    - ``DocumentNotFoundError`` from ``calculate`` for an unknown document.
    - ``CollaboratorError`` for any other store failure.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from billing_config.schema import EngineSettings
from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.exceptions import CollaboratorError, NotFoundError
from billing_kernel.logging_config import get_logger

from billing_batch.domain.interest import calculate_interest, validate_interest_rate
from billing_batch.domain.results import InterestCalculation
from billing_batch.domain.types import BillingDocument, InterestRecord, TenantScope
from billing_batch.ports import InterestStore

logger = get_logger("batch.interest")


def to_record(calculation: InterestCalculation) -> InterestRecord:
    return InterestRecord(
        record_id=uuid4(),
        document_id=calculation.document_id,
        calculated_at=calculation.calculated_at,
        days_overdue=calculation.days_overdue,
        principal=calculation.outstanding,
        daily_rate=calculation.daily_rate,
        interest_amount=calculation.total_interest,
        total_with_interest=calculation.total_with_interest,
        currency=calculation.currency,
    )


class InterestService:

    def __init__(
        self,
        store: InterestStore,
        clock: Clock | None = None,
        settings: EngineSettings | None = None,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._settings = settings or EngineSettings()

    def calculate_for_document(
        self,
        document: BillingDocument,
        daily_rate: Decimal,
        as_of: datetime | None = None,
    ) -> InterestCalculation:
        """Overdue interest for ``document`` at ``daily_rate``.

        Raises:
            ValidationError: rate negative or above the configured maximum.
        """
        validate_interest_rate(daily_rate, self._settings.max_daily_interest_rate)
        calculation = calculate_interest(document, daily_rate, as_of or self._clock.now())
        logger.info(
            "interest_calculated",
            extra={
                "document_id": str(document.document_id),
                "days_overdue": calculation.days_overdue,
                "total_interest": str(calculation.total_interest),
            },
        )
        return calculation

    def calculate(
        self,
        tenant: TenantScope,
        document_id: UUID,
        daily_rate: Decimal,
        as_of: datetime | None = None,
    ) -> InterestCalculation:
        validate_interest_rate(daily_rate, self._settings.max_daily_interest_rate)
        try:
            document = self._store.get_document(tenant, document_id)
        except NotFoundError:
            raise
        except Exception as exc:
            raise CollaboratorError("get document", exc) from exc
        return self.calculate_for_document(document, daily_rate, as_of)

    def calculate_overdue(
        self,
        tenant: TenantScope,
        daily_rate: Decimal,
        as_of: datetime | None = None,
        record: bool = False,
    ) -> list[InterestCalculation]:
        """Interest for every overdue document; with ``record`` each is also saved."""
        validate_interest_rate(daily_rate, self._settings.max_daily_interest_rate)
        as_of = as_of or self._clock.now()
        try:
            documents = self._store.get_overdue_documents(tenant, as_of.date())
        except Exception as exc:
            raise CollaboratorError("get overdue documents", exc) from exc

        calculations = [calculate_interest(doc, daily_rate, as_of) for doc in documents]
        if record:
            for calculation in calculations:
                self.save(tenant, calculation)

        logger.info(
            "overdue_interest_calculated",
            extra={
                "tenant_id": tenant.tenant_id,
                "documents": len(calculations),
                "recorded": record,
                "total_interest": sum((c.total_interest for c in calculations), Decimal("0")),
            },
        )
        return calculations

    # -------------------------------------------------------------------------
    # Calculation log
    # -------------------------------------------------------------------------

    def save(self, tenant: TenantScope, calculation: InterestCalculation) -> InterestRecord:
        try:
            saved = self._store.save(tenant, to_record(calculation))
        except Exception as exc:
            raise CollaboratorError("save interest calculation", exc) from exc
        logger.info(
            "interest_saved",
            extra={
                "record_id": str(saved.record_id),
                "document_id": str(saved.document_id),
                "interest_amount": saved.interest_amount,
            },
        )
        return saved

    def latest(self, tenant: TenantScope, document_id: UUID) -> InterestRecord | None:
        try:
            return self._store.latest(tenant, document_id)
        except Exception as exc:
            raise CollaboratorError("get latest interest", exc) from exc

    def history(self, tenant: TenantScope, document_id: UUID) -> list[InterestRecord]:
        try:
            return self._store.history(tenant, document_id)
        except Exception as exc:
            raise CollaboratorError("list interest history", exc) from exc

