"""
Pure reminder-rule math: target dates, admissible statuses, candidate
matching, rule validation, and default templates.

Contract:
    PURE.  The SQL store and the in-memory fakes both select candidates with
    these functions (or the equivalent SQL predicate), so the selection rule
    lives in one place.

Selection rule for a rule R evaluated on date D:
    target = D + R.days_offset   (BEFORE_DUE)
             D                   (ON_DUE)
             D - R.days_offset   (AFTER_DUE)
    A document is a candidate iff it is a sales document, its due date
    equals ``target``, its status is admissible for R's trigger, and
    ``total > amount_paid``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from billing_kernel.exceptions import ValidationError

from billing_batch.domain.types import (
    SALES_DOCUMENT_TYPE,
    BillingDocument,
    DocumentStatus,
    ReminderCandidate,
    ReminderRule,
    TemplateType,
    TriggerType,
)

_OPEN_STATUSES = frozenset({DocumentStatus.SENT, DocumentStatus.PARTIALLY_PAID})
_OVERDUE_STATUSES = _OPEN_STATUSES | {DocumentStatus.OVERDUE}

DEFAULT_TEMPLATES: dict[TriggerType, str] = {
    TriggerType.BEFORE_DUE: TemplateType.PAYMENT_DUE_SOON.value,
    TriggerType.ON_DUE: TemplateType.PAYMENT_DUE_TODAY.value,
    TriggerType.AFTER_DUE: TemplateType.OVERDUE_REMINDER.value,
}


# =============================================================================
# Requests
# =============================================================================


@dataclass(frozen=True)
class CreateRuleRequest:
    name: str
    trigger_type: TriggerType | str | None
    days_offset: int = 0
    template_type: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class UpdateRuleRequest:
    """Only name, template and active flag are mutable after creation."""

    name: str | None = None
    template_type: str | None = None
    is_active: bool | None = None


def validate_rule_request(request: CreateRuleRequest) -> TriggerType:
    """Validate a create request and return the parsed trigger type."""
    if not request.name:
        raise ValidationError("name", "rule name is required")
    if not request.trigger_type:
        raise ValidationError("trigger_type", "trigger type is required")
    try:
        trigger = TriggerType(request.trigger_type)
    except ValueError:
        raise ValidationError("trigger_type", "invalid trigger type") from None
    if request.days_offset < 0:
        raise ValidationError("days_offset", "days offset cannot be negative")
    return trigger


def default_template_for(
    trigger_type: TriggerType,
    overrides: dict[str, str] | None = None,
) -> str:
    """Template used when a rule is created without one."""
    if overrides and trigger_type.value in overrides:
        return overrides[trigger_type.value]
    return DEFAULT_TEMPLATES[trigger_type]


# =============================================================================
# Candidate selection
# =============================================================================


def target_due_date(rule: ReminderRule, as_of_date: date) -> date:
    """Due date a document must have to be selected by ``rule`` on ``as_of_date``."""
    if rule.trigger_type is TriggerType.BEFORE_DUE:
        return as_of_date + timedelta(days=rule.days_offset)
    if rule.trigger_type is TriggerType.AFTER_DUE:
        return as_of_date - timedelta(days=rule.days_offset)
    return as_of_date


def admissible_statuses(trigger_type: TriggerType) -> frozenset[DocumentStatus]:
    if trigger_type is TriggerType.AFTER_DUE:
        return _OVERDUE_STATUSES
    return _OPEN_STATUSES


def matches_rule(document: BillingDocument, rule: ReminderRule, as_of_date: date) -> bool:
    return (
        document.document_type == SALES_DOCUMENT_TYPE
        and document.due_date == target_due_date(rule, as_of_date)
        and document.status in admissible_statuses(rule.trigger_type)
        and document.total > document.amount_paid
    )


def to_candidate(document: BillingDocument, rule: ReminderRule, as_of_date: date) -> ReminderCandidate:
    """Attach day distances: overdue days for AFTER_DUE, days until due otherwise."""
    delta = (document.due_date - as_of_date).days
    if rule.trigger_type is TriggerType.AFTER_DUE:
        return ReminderCandidate(document=document, days_overdue=-delta, days_until_due=delta)
    return ReminderCandidate(document=document, days_overdue=0, days_until_due=delta)


def select_candidates(
    documents: list[BillingDocument] | tuple[BillingDocument, ...],
    rule: ReminderRule,
    as_of_date: date,
) -> list[ReminderCandidate]:
    return [
        to_candidate(doc, rule, as_of_date)
        for doc in documents
        if matches_rule(doc, rule, as_of_date)
    ]
