"""ORM models for recurring billing persistence."""

from billing_batch.models.interest import DocumentInterestModel
from billing_batch.models.recurring import (
    BillingDocumentModel,
    PaymentReminderModel,
    RecurringScheduleModel,
    ReminderRuleModel,
    ScheduleLineModel,
)

__all__ = [
    "BillingDocumentModel",
    "DocumentInterestModel",
    "PaymentReminderModel",
    "RecurringScheduleModel",
    "ReminderRuleModel",
    "ScheduleLineModel",
]
