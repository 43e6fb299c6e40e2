"""Tests for billing_batch.domain.reminder -- trigger math and rule validation."""

from datetime import date
from decimal import Decimal

import pytest

from billing_kernel.exceptions import ValidationError

from billing_batch.domain.reminder import (
    CreateRuleRequest,
    admissible_statuses,
    default_template_for,
    matches_rule,
    select_candidates,
    target_due_date,
    to_candidate,
    validate_rule_request,
)
from billing_batch.domain.types import DocumentStatus, TriggerType

from fakes import make_document, make_rule

AS_OF = date(2025, 1, 8)


class TestTargetDueDate:

    def test_before_due_looks_ahead(self, tenant):
        rule = make_rule(tenant, trigger_type=TriggerType.BEFORE_DUE, days_offset=3)
        assert target_due_date(rule, AS_OF) == date(2025, 1, 11)

    def test_on_due_ignores_offset(self, tenant):
        rule = make_rule(tenant, trigger_type=TriggerType.ON_DUE, days_offset=5)
        assert target_due_date(rule, AS_OF) == AS_OF

    def test_after_due_looks_back(self, tenant):
        rule = make_rule(tenant, trigger_type=TriggerType.AFTER_DUE, days_offset=7)
        assert target_due_date(rule, AS_OF) == date(2025, 1, 1)


class TestAdmissibleStatuses:

    def test_open_statuses_for_before_and_on(self):
        expected = {DocumentStatus.SENT, DocumentStatus.PARTIALLY_PAID}
        assert admissible_statuses(TriggerType.BEFORE_DUE) == expected
        assert admissible_statuses(TriggerType.ON_DUE) == expected

    def test_after_due_also_overdue(self):
        assert DocumentStatus.OVERDUE in admissible_statuses(TriggerType.AFTER_DUE)
        assert DocumentStatus.PAID not in admissible_statuses(TriggerType.AFTER_DUE)


class TestMatchesRule:

    def test_after_due_candidate(self, tenant):
        rule = make_rule(tenant)
        assert matches_rule(make_document(due_date=date(2025, 1, 1)), rule, AS_OF)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"due_date": date(2025, 1, 2)},
            {"status": DocumentStatus.PAID},
            {"status": DocumentStatus.DRAFT},
            {"status": DocumentStatus.VOIDED},
            {"document_type": "PURCHASE"},
            {"amount_paid": Decimal("121.00")},
        ],
    )
    def test_non_candidates(self, tenant, overrides):
        document = make_document(**{"due_date": date(2025, 1, 1), **overrides})
        assert not matches_rule(document, make_rule(tenant), AS_OF)

    def test_overdue_status_only_for_after_due(self, tenant):
        document = make_document(due_date=AS_OF, status=DocumentStatus.OVERDUE)
        on_due = make_rule(tenant, trigger_type=TriggerType.ON_DUE, days_offset=0)
        assert not matches_rule(document, on_due, AS_OF)

    def test_partially_paid_with_balance_matches(self, tenant):
        document = make_document(
            due_date=date(2025, 1, 1),
            status=DocumentStatus.PARTIALLY_PAID,
            amount_paid=Decimal("100.00"),
        )
        assert matches_rule(document, make_rule(tenant), AS_OF)


class TestCandidates:

    def test_after_due_days_overdue(self, tenant):
        candidate = to_candidate(make_document(due_date=date(2025, 1, 1)), make_rule(tenant), AS_OF)
        assert candidate.days_overdue == 7
        assert candidate.days_until_due == -7

    def test_before_due_days_until_due(self, tenant):
        rule = make_rule(tenant, trigger_type=TriggerType.BEFORE_DUE, days_offset=3)
        candidate = to_candidate(make_document(due_date=date(2025, 1, 11)), rule, AS_OF)
        assert candidate.days_overdue == 0
        assert candidate.days_until_due == 3

    def test_select_filters(self, tenant):
        keep = make_document(number="INV-1", due_date=date(2025, 1, 1))
        drop = make_document(number="INV-2", due_date=date(2025, 1, 3))
        found = select_candidates([keep, drop], make_rule(tenant), AS_OF)
        assert [c.document.number for c in found] == ["INV-1"]


class TestRuleValidation:

    def test_valid_returns_trigger(self):
        request = CreateRuleRequest(name="Soon", trigger_type="BEFORE_DUE", days_offset=3)
        assert validate_rule_request(request) is TriggerType.BEFORE_DUE

    @pytest.mark.parametrize(
        "request_, message",
        [
            (CreateRuleRequest(name="", trigger_type=TriggerType.ON_DUE), "rule name is required"),
            (CreateRuleRequest(name="x", trigger_type=None), "trigger type is required"),
            (CreateRuleRequest(name="x", trigger_type="LATER"), "invalid trigger type"),
            (
                CreateRuleRequest(name="x", trigger_type=TriggerType.AFTER_DUE, days_offset=-1),
                "days offset cannot be negative",
            ),
        ],
    )
    def test_rejections(self, request_, message):
        with pytest.raises(ValidationError, match=message):
            validate_rule_request(request_)


class TestDefaultTemplates:

    @pytest.mark.parametrize(
        "trigger, template",
        [
            (TriggerType.BEFORE_DUE, "PAYMENT_DUE_SOON"),
            (TriggerType.ON_DUE, "PAYMENT_DUE_TODAY"),
            (TriggerType.AFTER_DUE, "OVERDUE_REMINDER"),
        ],
    )
    def test_by_trigger(self, trigger, template):
        assert default_template_for(trigger) == template

    def test_overrides_win(self):
        assert default_template_for(TriggerType.AFTER_DUE, {"AFTER_DUE": "FINAL"}) == "FINAL"
