"""Billing batch services."""

from billing_batch.services.dispatcher import NotificationDispatcher
from billing_batch.services.generation import GenerationOrchestrator
from billing_batch.services.interest import InterestService
from billing_batch.services.payment_reminders import PaymentReminderService
from billing_batch.services.reminders import ReminderRuleEvaluator
from billing_batch.services.rule_service import ReminderRuleService
from billing_batch.services.schedule_service import ScheduleService
from billing_batch.services.scheduler import BillingScheduler, TenantRunReport

__all__ = [
    "BillingScheduler",
    "GenerationOrchestrator",
    "InterestService",
    "NotificationDispatcher",
    "PaymentReminderService",
    "ReminderRuleEvaluator",
    "ReminderRuleService",
    "ScheduleService",
    "TenantRunReport",
]
