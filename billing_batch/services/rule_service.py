"""ReminderRuleService -- CRUD for tenant reminder rules."""

from __future__ import annotations

from dataclasses import replace
from uuid import UUID, uuid4

from billing_config.schema import EngineSettings
from billing_kernel.logging_config import get_logger

from billing_batch.domain.reminder import (
    CreateRuleRequest,
    UpdateRuleRequest,
    default_template_for,
    validate_rule_request,
)
from billing_batch.domain.types import ReminderRule, TenantScope
from billing_batch.ports import ReminderStore

logger = get_logger("batch.rules")


class ReminderRuleService:

    def __init__(
        self,
        reminder_store: ReminderStore,
        settings: EngineSettings | None = None,
    ):
        self._store = reminder_store
        self._settings = settings or EngineSettings()

    def create_rule(self, tenant: TenantScope, request: CreateRuleRequest) -> ReminderRule:
        """Validate and persist a rule; an omitted template follows the trigger type.

        Raises:
            ValidationError: missing name, missing/unknown trigger, negative offset.
        """
        trigger = validate_rule_request(request)
        rule = ReminderRule(
            rule_id=uuid4(),
            tenant_id=tenant.tenant_id,
            name=request.name,
            trigger_type=trigger,
            days_offset=request.days_offset,
            template_type=request.template_type
            or default_template_for(trigger, self._settings.reminder_templates),
            is_active=request.is_active,
        )
        created = self._store.create_rule(tenant, rule)
        logger.info(
            "reminder_rule_created",
            extra={
                "rule_id": str(created.rule_id),
                "trigger_type": trigger.value,
                "days_offset": created.days_offset,
                "template_type": created.template_type,
            },
        )
        return created

    def get_rule(self, tenant: TenantScope, rule_id: UUID) -> ReminderRule:
        return self._store.get_rule(tenant, rule_id)

    def list_rules(self, tenant: TenantScope) -> list[ReminderRule]:
        return self._store.list_rules(tenant)

    def update_rule(
        self,
        tenant: TenantScope,
        rule_id: UUID,
        request: UpdateRuleRequest,
    ) -> ReminderRule:
        rule = self._store.get_rule(tenant, rule_id)
        changes = {
            name: value
            for name, value in (
                ("name", request.name),
                ("template_type", request.template_type),
                ("is_active", request.is_active),
            )
            if value is not None
        }
        updated = self._store.update_rule(tenant, replace(rule, **changes))
        logger.info("reminder_rule_updated", extra={"rule_id": str(rule_id), "fields": sorted(changes)})
        return updated

    def delete_rule(self, tenant: TenantScope, rule_id: UUID) -> None:
        self._store.delete_rule(tenant, rule_id)
        logger.info("reminder_rule_deleted", extra={"rule_id": str(rule_id)})
