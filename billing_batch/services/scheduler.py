"""
BillingScheduler -- In-process polling driver for generation and reminders.

Contract:
    Each ``tick()`` opens one session, asks the tenant provider which tenants
    to serve, and for every tenant runs schedule generation and then reminder
    evaluation as of the same clock reading.

Architecture: billing_batch/services.  The orchestrator factory supplies the
    wired services for each tick's session.

Invariants enforced:
    - All timestamps from the injected Clock.
    - Generation is committed before reminders run, so a reminder failure
      cannot roll back schedule advancement for already created documents.
    - One tenant's failure is rolled back and logged; other tenants proceed.
    - Graceful shutdown: the stop signal is handed to both runs as their
      cancellation event, so the current item finishes and the rest waits.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable

from sqlalchemy.orm import Session

from billing_kernel.domain.clock import Clock, SystemClock
from billing_kernel.logging_config import LogContext, get_logger

from billing_batch.domain.results import GenerationResult, ReminderRunResult
from billing_batch.domain.types import TenantScope

if TYPE_CHECKING:
    from billing_batch.orchestrator import BillingOrchestrator

logger = get_logger("batch.scheduler")


@dataclass(frozen=True)
class TenantRunReport:
    """What one tick did for one tenant."""

    tenant_id: str
    generation: GenerationResult | None = None
    reminders: ReminderRunResult | None = None
    error: str | None = None


class BillingScheduler:
    """Polls on a daemon thread every ``tick_interval_seconds``.

    ``tick()`` is public so callers and tests can drive a single pass.  Runs in
    one process only; two schedulers against one database would both generate.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        orchestrator_factory: Callable[[Session], BillingOrchestrator],
        tenant_provider: Callable[[], Iterable[TenantScope]],
        clock: Clock | None = None,
        tick_interval_seconds: int = 300,
    ):
        self._session_factory = session_factory
        self._orchestrator_factory = orchestrator_factory
        self._tenant_provider = tenant_provider
        self._clock = clock or SystemClock()
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> tuple[TenantRunReport, ...]:
        """Run generation and reminders for every tenant."""
        now = self._clock.now()
        reports: list[TenantRunReport] = []

        try:
            tenants = list(self._tenant_provider())
        except Exception:
            logger.exception("tenant_listing_failed")
            return ()

        session = self._session_factory()
        try:
            for tenant in tenants:
                if self._stop_event.is_set():
                    break
                with LogContext.bind(tenant_id=tenant.tenant_id):
                    reports.append(self._run_tenant(session, tenant, now))
        finally:
            session.close()

        logger.info(
            "scheduler_tick_completed",
            extra={
                "tenants": len(reports),
                "failed_tenants": sum(1 for r in reports if r.error),
            },
        )
        return tuple(reports)

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="billing-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current item to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def tick_interval_seconds(self) -> int:
        return self._tick_interval

    @property
    def stop_event(self) -> threading.Event:
        return self._stop_event

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _run_tenant(self, session: Session, tenant: TenantScope, now) -> TenantRunReport:
        try:
            orchestrator = self._orchestrator_factory(session)
            orchestrator.ensure_schema(tenant)
            generation = orchestrator.generation.run_due(
                tenant, now, cancel_event=self._stop_event,
            )
            session.commit()
        except Exception as exc:
            session.rollback()
            logger.exception("tenant_generation_failed")
            return TenantRunReport(tenant_id=tenant.tenant_id, error=str(exc))

        try:
            reminders = orchestrator.reminders.run_due(
                tenant, now, cancel_event=self._stop_event,
            )
            session.commit()
        except Exception as exc:
            session.rollback()
            logger.exception("tenant_reminders_failed")
            return TenantRunReport(
                tenant_id=tenant.tenant_id,
                generation=generation,
                error=str(exc),
            )

        return TenantRunReport(
            tenant_id=tenant.tenant_id,
            generation=generation,
            reminders=reminders,
        )
