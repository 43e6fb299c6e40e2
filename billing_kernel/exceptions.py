"""
Typed exception hierarchy for the billing engine.

Every error carries a class-level ``code`` (machine readable, API safe) and
keeps its context as attributes rather than only inside the message, so the
structured log formatter and run reports can surface it without parsing
strings.

Hierarchy:

    BillingKernelError
    |
    +-- NotFoundError
    |   +-- ScheduleNotFoundError
    |   +-- ReminderRuleNotFoundError
    |   +-- DocumentNotFoundError
    |
    +-- ValidationError
    |
    +-- ScheduleError
    |   +-- ScheduleInactiveError
    |
    +-- CollaboratorError
    |
    +-- NotConfiguredError

Error codes:

Category      | Code                     | When raised
--------------|--------------------------|---------------------------------------
Not found     | SCHEDULE_NOT_FOUND       | Schedule id absent for the tenant
              | REMINDER_RULE_NOT_FOUND  | Rule id absent for the tenant
              | DOCUMENT_NOT_FOUND       | Billing document id absent
Validation    | VALIDATION_ERROR         | Malformed schedule / rule / rate input
Schedule      | SCHEDULE_INACTIVE        | Generation requested for paused schedule
Collaborator  | COLLABORATOR_ERROR       | Store, document, notification or
              |                          | directory call failed
Configuration | NOT_CONFIGURED           | Operation needs an optional collaborator
              |                          | the orchestrator was built without

Degraded notification results (no recipient, no notification service,
attachment failure) are NOT exceptions; they are reported through
``DispatchOutcome.status``.
"""


class BillingKernelError(Exception):
    """Base exception for all billing engine errors."""

    code: str = "BILLING_KERNEL_ERROR"


# Not-found errors


class NotFoundError(BillingKernelError):
    """Requested entity does not exist for the tenant."""

    code: str = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ScheduleNotFoundError(NotFoundError):
    code: str = "SCHEDULE_NOT_FOUND"

    def __init__(self, schedule_id: str):
        super().__init__("recurring schedule", schedule_id)


class ReminderRuleNotFoundError(NotFoundError):
    code: str = "REMINDER_RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        super().__init__("reminder rule", rule_id)


class DocumentNotFoundError(NotFoundError):
    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        super().__init__("billing document", document_id)


# Validation


class ValidationError(BillingKernelError):
    """
    Input failed validation at create/update time.

    Never raised during a due-scan: persisted schedules and rules are
    assumed valid.
    """

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(message)


# Schedule state


class ScheduleError(BillingKernelError):
    code: str = "SCHEDULE_ERROR"


class ScheduleInactiveError(ScheduleError):
    """Generation was requested for a paused schedule."""

    code: str = "SCHEDULE_INACTIVE"

    def __init__(self, schedule_id: str):
        self.schedule_id = schedule_id
        super().__init__(f"recurring schedule is not active: {schedule_id}")


# Collaborators


class CollaboratorError(BillingKernelError):
    """
    An external collaborator failed.

    ``stage`` names the step that failed ("create document", "get template",
    "send email", ...) so per-item error strings stay diagnostic.
    """

    code: str = "COLLABORATOR_ERROR"

    def __init__(self, stage: str, cause: BaseException | str):
        self.stage = stage
        self.cause = str(cause)
        super().__init__(f"{stage}: {cause}")


class NotConfiguredError(BillingKernelError):
    """An operation needs an optional collaborator that was not wired in."""

    code: str = "NOT_CONFIGURED"

    def __init__(self, collaborator: str, operation: str):
        self.collaborator = collaborator
        self.operation = operation
        super().__init__(f"{operation} requires a {collaborator}")
