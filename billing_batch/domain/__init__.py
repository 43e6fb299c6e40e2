"""Pure domain layer for recurring billing. ZERO I/O."""

from billing_batch.domain.frequency import advance
from billing_batch.domain.overdue import SendBulkRemindersRequest, SendReminderRequest
from billing_batch.domain.results import (
    BulkReminderResult,
    DispatchOutcome,
    GenerationFailure,
    GenerationOutcome,
    GenerationResult,
    InterestCalculation,
    ManualReminderResult,
    OverdueDocument,
    OverdueSummary,
    ReminderRunResult,
    RuleRunResult,
)
from billing_batch.domain.types import (
    BillingDocument,
    DeliveryStatus,
    DocumentStatus,
    Frequency,
    InterestRecord,
    RecurringSchedule,
    ReminderRule,
    ReminderStatus,
    ScheduleLine,
    SentReminder,
    TemplateType,
    TenantScope,
    TriggerType,
)

__all__ = [
    "advance",
    "BillingDocument",
    "BulkReminderResult",
    "DeliveryStatus",
    "DispatchOutcome",
    "DocumentStatus",
    "Frequency",
    "GenerationFailure",
    "GenerationOutcome",
    "GenerationResult",
    "InterestCalculation",
    "InterestRecord",
    "ManualReminderResult",
    "OverdueDocument",
    "OverdueSummary",
    "RecurringSchedule",
    "ReminderRule",
    "ReminderRunResult",
    "ReminderStatus",
    "RuleRunResult",
    "ScheduleLine",
    "SendBulkRemindersRequest",
    "SendReminderRequest",
    "SentReminder",
    "TemplateType",
    "TenantScope",
    "TriggerType",
]
