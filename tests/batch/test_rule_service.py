"""Tests for billing_batch.services.rule_service -- reminder rule CRUD."""

from uuid import uuid4

import pytest

from billing_config.schema import EngineSettings
from billing_kernel.exceptions import ReminderRuleNotFoundError, ValidationError

from billing_batch.domain.reminder import CreateRuleRequest, UpdateRuleRequest
from billing_batch.domain.types import TriggerType
from billing_batch.services.rule_service import ReminderRuleService

from fakes import InMemoryReminderStore


@pytest.fixture
def store():
    return InMemoryReminderStore()


@pytest.fixture
def service(store):
    return ReminderRuleService(store)


class TestCreateRule:

    def test_default_template_by_trigger(self, service, tenant):
        rule = service.create_rule(
            tenant, CreateRuleRequest(name="Due soon", trigger_type="BEFORE_DUE", days_offset=3),
        )
        assert rule.trigger_type is TriggerType.BEFORE_DUE
        assert rule.template_type == "PAYMENT_DUE_SOON"
        assert rule.is_active is True
        assert rule.tenant_id == "acme"

    def test_explicit_template_kept(self, service, tenant):
        rule = service.create_rule(
            tenant,
            CreateRuleRequest(name="Final", trigger_type=TriggerType.AFTER_DUE,
                              days_offset=30, template_type="FINAL_NOTICE"),
        )
        assert rule.template_type == "FINAL_NOTICE"

    def test_configured_template_mapping(self, store, tenant):
        settings = EngineSettings(reminder_templates={"AFTER_DUE": "DUNNING_1"})
        rule = ReminderRuleService(store, settings).create_rule(
            tenant, CreateRuleRequest(name="Late", trigger_type="AFTER_DUE", days_offset=7),
        )
        assert rule.template_type == "DUNNING_1"

    def test_invalid_not_stored(self, service, store, tenant):
        with pytest.raises(ValidationError, match="days offset cannot be negative"):
            service.create_rule(
                tenant, CreateRuleRequest(name="x", trigger_type="AFTER_DUE", days_offset=-2),
            )
        assert store.rules == {}


class TestRuleLifecycle:

    def test_update_only_given_fields(self, service, tenant):
        rule = service.create_rule(
            tenant, CreateRuleRequest(name="Late", trigger_type="AFTER_DUE", days_offset=7),
        )
        updated = service.update_rule(tenant, rule.rule_id, UpdateRuleRequest(is_active=False))
        assert updated.is_active is False
        assert updated.name == "Late"
        assert updated.days_offset == 7
        assert updated.template_type == "OVERDUE_REMINDER"

    def test_list_ordered(self, service, tenant, other_tenant):
        service.create_rule(tenant, CreateRuleRequest(name="b", trigger_type="AFTER_DUE", days_offset=14))
        service.create_rule(tenant, CreateRuleRequest(name="a", trigger_type="AFTER_DUE", days_offset=7))
        service.create_rule(other_tenant, CreateRuleRequest(name="c", trigger_type="ON_DUE"))
        assert [r.name for r in service.list_rules(tenant)] == ["a", "b"]

    def test_delete(self, service, tenant):
        rule = service.create_rule(tenant, CreateRuleRequest(name="x", trigger_type="ON_DUE"))
        service.delete_rule(tenant, rule.rule_id)
        with pytest.raises(ReminderRuleNotFoundError):
            service.get_rule(tenant, rule.rule_id)

    def test_not_found(self, service, tenant):
        with pytest.raises(ReminderRuleNotFoundError):
            service.update_rule(tenant, uuid4(), UpdateRuleRequest(name="x"))

    def test_other_tenant_cannot_read(self, service, tenant, other_tenant):
        rule = service.create_rule(tenant, CreateRuleRequest(name="x", trigger_type="ON_DUE"))
        with pytest.raises(ReminderRuleNotFoundError):
            service.get_rule(other_tenant, rule.rule_id)
