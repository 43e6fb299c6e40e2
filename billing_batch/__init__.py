"""
billing_batch -- Recurring document generation and payment reminders.

Turns due recurring schedules into billing documents, optionally notifies
the customer, and sends rule-based and manual payment reminders with a
per-document ledger.  Overdue interest can be calculated and logged.
Everything runs per tenant, as of an explicit timestamp, and is driven
either by direct calls or by the in-process polling scheduler.

Architecture:
    billing_batch/ is a top-level package built on billing_kernel (clock,
    logging, exceptions, DB base) and billing_config (engine settings).
    Nothing in billing_kernel imports from billing_batch except the
    ``create_tables`` helper, which imports the models lazily.

Layout:
    domain/     pure types and rules (frequency, schedule, reminder, overdue, interest)
    ports.py    collaborator protocols
    models/     SQLAlchemy ORM models
    stores/     SQLAlchemy implementations of the store protocols
    services/   dispatcher, generation, reminders, manual reminders, interest,
                CRUD services, scheduler
    orchestrator.py  dependency wiring
"""
